"""Host-level policies for sharing physical PEs among VMs."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Tuple, TYPE_CHECKING
from loguru import logger

from ..core.provisioners import Pe

if TYPE_CHECKING:
    from ..core.vm import VirtualMachine


class VmSchedulingPolicy(Enum):
    """How a host maps VM PEs onto its physical PEs."""
    TIME_SHARED = "time_shared"
    SPACE_SHARED = "space_shared"


class VmScheduler(ABC):
    """Grants MIPS from a host's PEs to VMs.

    Every grant goes through the PE provisioners so a host's committed MIPS
    can be inspected directly on its PEs.
    """

    policy: VmSchedulingPolicy

    def __init__(self, pe_list: List[Pe]):
        self.pe_list = pe_list
        # vm_id -> [(pe, mips)] grants, one entry per physical PE slice
        self._grants: Dict[int, List[Tuple[Pe, float]]] = {}
        # vm_id -> MIPS per virtual PE
        self._mips_map: Dict[int, List[float]] = {}

    @property
    def total_mips(self) -> float:
        return float(sum(pe.mips for pe in self.pe_list))

    @property
    def available_mips(self) -> float:
        return float(sum(pe.available_mips for pe in self.pe_list))

    @property
    def peak_pe_mips(self) -> float:
        return max((pe.mips for pe in self.pe_list), default=0.0)

    @property
    def free_pe_count(self) -> int:
        return sum(1 for pe in self.pe_list if pe.is_free)

    def allocate_pes_for_vm(self, vm: "VirtualMachine") -> bool:
        """Reserve MIPS for every virtual PE of ``vm``. All-or-nothing."""
        if vm.vm_id in self._grants:
            self.deallocate_pes_for_vm(vm.vm_id)

        grants = self.plan(vm)
        if grants is None:
            return False

        for pe, mips in grants:
            if not pe.provisioner.allocate(mips, owner_id=vm.vm_id):
                # Plans are computed against current free capacity, so this means corruption
                for granted_pe, _ in grants:
                    granted_pe.provisioner.deallocate(owner_id=vm.vm_id)
                raise RuntimeError(f"PE {pe.pe_id} refused a planned grant of {mips} MIPS")

        self._grants[vm.vm_id] = grants
        self._mips_map[vm.vm_id] = [float(vm.mips)] * vm.pe_count
        logger.debug(f"{self.policy.value} scheduler granted {vm.pe_count}x{vm.mips} MIPS to VM {vm.vm_id}")
        return True

    def deallocate_pes_for_vm(self, vm_id: int) -> None:
        for pe, _ in self._grants.pop(vm_id, []):
            pe.provisioner.deallocate(owner_id=vm_id)
        self._mips_map.pop(vm_id, None)

    def get_allocated_mips_for_vm(self, vm_id: int) -> List[float]:
        """MIPS per virtual PE currently granted to the VM."""
        return list(self._mips_map.get(vm_id, []))

    @abstractmethod
    def plan(self, vm: "VirtualMachine"):
        """Return a list of (pe, mips) grants for ``vm`` or None if it does not fit."""


class TimeSharedVmScheduler(VmScheduler):
    """VM PEs share physical PEs; a virtual PE may span several physical ones."""

    policy = VmSchedulingPolicy.TIME_SHARED

    def plan(self, vm: "VirtualMachine"):
        requested = [float(vm.mips)] * vm.pe_count
        if any(mips > self.peak_pe_mips for mips in requested):
            logger.debug(f"VM {vm.vm_id} asks {vm.mips} MIPS per PE, host peak is {self.peak_pe_mips}")
            return None
        if sum(requested) > self.available_mips:
            logger.debug(f"VM {vm.vm_id} asks {sum(requested)} MIPS, host has {self.available_mips} free")
            return None

        free = {pe.pe_id: pe.available_mips for pe in self.pe_list}
        grants: List[Tuple[Pe, float]] = []
        for mips in requested:
            needed = mips
            for pe in self.pe_list:
                if needed <= 0:
                    break
                take = min(needed, free[pe.pe_id])
                if take <= 0:
                    continue
                free[pe.pe_id] -= take
                needed -= take
                grants.append((pe, take))
        return grants


class SpaceSharedVmScheduler(VmScheduler):
    """Each VM PE pins one wholly free physical PE."""

    policy = VmSchedulingPolicy.SPACE_SHARED

    def plan(self, vm: "VirtualMachine"):
        candidates = [pe for pe in self.pe_list if pe.is_free and pe.mips >= vm.mips]
        if len(candidates) < vm.pe_count:
            logger.debug(f"VM {vm.vm_id} needs {vm.pe_count} free PEs, host has {len(candidates)}")
            return None
        return [(pe, float(vm.mips)) for pe in candidates[:vm.pe_count]]


_SCHEDULERS = {
    VmSchedulingPolicy.TIME_SHARED: TimeSharedVmScheduler,
    VmSchedulingPolicy.SPACE_SHARED: SpaceSharedVmScheduler,
}


def create_vm_scheduler(policy: VmSchedulingPolicy, pe_list: List[Pe]) -> VmScheduler:
    """Create a VM scheduler for ``policy`` over ``pe_list``."""
    return _SCHEDULERS[VmSchedulingPolicy(policy)](pe_list)
