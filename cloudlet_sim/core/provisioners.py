"""Capacity provisioners for host resources."""

from typing import Dict, Hashable, Optional
from loguru import logger


class ResourceProvisioner:
    """Tracks allocated and free capacity of a single resource dimension.

    Used for PE MIPS, RAM, bandwidth and storage alike. Grants are
    all-or-nothing and may be tracked per owner (normally a VM id).
    """

    def __init__(self, resource: str, capacity: float):
        if capacity < 0:
            raise ValueError(f"{resource} capacity must be non-negative, got {capacity}")
        self.resource = resource
        self.capacity = capacity
        self.allocated = 0
        self._by_owner: Dict[Hashable, float] = {}

    def available_capacity(self) -> float:
        """Capacity not currently granted."""
        return self.capacity - self.allocated

    def allocated_for(self, owner_id: Hashable) -> float:
        return self._by_owner.get(owner_id, 0)

    def allocate(self, amount: float, owner_id: Optional[Hashable] = None) -> bool:
        """Grant ``amount`` if it fits entirely in the free capacity."""
        if amount < 0:
            raise ValueError(f"Cannot allocate a negative amount of {self.resource}: {amount}")
        if amount > self.available_capacity():
            logger.debug(
                f"{self.resource} allocation of {amount} refused, "
                f"{self.available_capacity()} available"
            )
            return False

        self.allocated += amount
        if owner_id is not None:
            self._by_owner[owner_id] = self._by_owner.get(owner_id, 0) + amount
        return True

    def deallocate(self, amount: Optional[float] = None, owner_id: Optional[Hashable] = None) -> None:
        """Release capacity.

        With ``owner_id`` and no ``amount`` the owner's whole grant is released.
        Without ``owner_id`` unowned capacity goes first, then owners' grants
        in the order they were made. Releasing more than is held clamps to
        what is held; releasing when nothing is held does nothing.
        """
        if owner_id is not None:
            held = self._by_owner.get(owner_id, 0)
            released = held if amount is None else min(amount, held)
            self._reduce_owner(owner_id, released)
        else:
            released = self.allocated if amount is None else min(amount, self.allocated)
            unowned = max(0, self.allocated - sum(self._by_owner.values()))
            to_take = released - min(released, unowned)
            for owner in list(self._by_owner):
                if to_take <= 0:
                    break
                take = min(to_take, self._by_owner[owner])
                self._reduce_owner(owner, take)
                to_take -= take

        self.allocated = max(0, self.allocated - released)

    def _reduce_owner(self, owner_id: Hashable, amount: float) -> None:
        remaining = self._by_owner.get(owner_id, 0) - amount
        if remaining > 0:
            self._by_owner[owner_id] = remaining
        else:
            self._by_owner.pop(owner_id, None)


class Pe:
    """A processing element (one physical core) with a fixed MIPS rating."""

    def __init__(self, pe_id: int, mips: float):
        self.pe_id = pe_id
        self.mips = mips
        self.provisioner = ResourceProvisioner("mips", mips)

    @property
    def available_mips(self) -> float:
        return self.provisioner.available_capacity()

    @property
    def is_free(self) -> bool:
        return self.provisioner.allocated == 0

    def __repr__(self) -> str:
        return f"Pe(id={self.pe_id}, mips={self.mips}, free={self.available_mips})"
