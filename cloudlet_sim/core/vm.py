"""Virtual machine model."""

from typing import List, Optional, TYPE_CHECKING
from loguru import logger

from .cloudlet import Cloudlet
from .errors import InvalidDescriptorError
from ..scheduling.cloudlet_schedulers import (
    CloudletScheduler,
    CloudletSchedulingPolicy,
    create_cloudlet_scheduler,
)

if TYPE_CHECKING:
    from .host import Host


class VirtualMachine:
    """Capacity-bounded execution context placed on exactly one host."""

    def __init__(
        self,
        vm_id: int,
        mips: float,
        pe_count: int = 1,
        ram: int = 1024,
        bw: int = 1000,
        size: int = 1000,
        scheduling_policy: CloudletSchedulingPolicy = CloudletSchedulingPolicy.TIME_SHARED,
        vmm: str = "Xen",
        owner_id: Optional[int] = None,
    ):
        self.vm_id = vm_id
        self.mips = mips
        self.pe_count = pe_count
        self.ram = ram
        self.bw = bw
        self.size = size
        self.vmm = vmm
        self.owner_id = owner_id
        self.scheduling_policy = CloudletSchedulingPolicy(scheduling_policy)
        self.cloudlet_scheduler: CloudletScheduler = create_cloudlet_scheduler(self.scheduling_policy)

        self.host: Optional["Host"] = None
        self.datacenter_id: Optional[int] = None

    @property
    def host_id(self) -> Optional[int]:
        return self.host.host_id if self.host is not None else None

    @property
    def is_placed(self) -> bool:
        return self.host is not None

    @property
    def total_mips(self) -> float:
        return self.mips * self.pe_count

    def validate(self) -> None:
        """Reject descriptors that can never be placed."""
        for name in ("pe_count", "ram", "bw", "size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidDescriptorError(f"VM {self.vm_id}: {name} must be a non-negative integer")
        if self.pe_count == 0:
            raise InvalidDescriptorError(f"VM {self.vm_id}: pe_count must be positive")
        if isinstance(self.mips, bool) or not isinstance(self.mips, (int, float)) or self.mips <= 0:
            raise InvalidDescriptorError(f"VM {self.vm_id}: mips must be positive")

    def attach_to_host(self, host: "Host", current_time: float) -> None:
        self.host = host
        scheduler = self.cloudlet_scheduler
        scheduler.previous_time = current_time
        scheduler.mips_share = host.vm_scheduler.get_allocated_mips_for_vm(self.vm_id)
        logger.info(f"VM {self.vm_id} started on host {host.host_id}")

    def detach_from_host(self) -> None:
        self.host = None

    def submit_cloudlet(self, cloudlet: Cloudlet, current_time: float) -> bool:
        """Admit a cloudlet for execution.

        Returns False (and marks the cloudlet FAILED) when the VM is not on a
        host or the cloudlet asks for more PEs than the VM has.
        """
        if not self.is_placed:
            cloudlet.mark_failed(current_time, f"VM {self.vm_id} is not placed on a host")
            return False
        if cloudlet.pe_count > self.pe_count:
            cloudlet.mark_failed(
                current_time,
                f"needs {cloudlet.pe_count} PEs but VM {self.vm_id} has {self.pe_count}",
            )
            return False

        cloudlet.vm_id = self.vm_id
        self.cloudlet_scheduler.submit(cloudlet, current_time)
        return True

    def update_processing(self, current_time: float, mips_share: List[float]) -> Optional[float]:
        """Advance cloudlets; returns the next predicted completion time."""
        return self.cloudlet_scheduler.update_processing(current_time, mips_share)

    def pop_finished_cloudlets(self) -> List[Cloudlet]:
        return self.cloudlet_scheduler.pop_finished()

    def cancel_cloudlet(self, cloudlet_id: int, current_time: float) -> Optional[Cloudlet]:
        """Stop an unfinished cloudlet and mark it FAILED."""
        cloudlet = self.cloudlet_scheduler.cancel(cloudlet_id)
        if cloudlet is not None:
            cloudlet.mark_failed(current_time, "cancelled")
        return cloudlet

    def __repr__(self) -> str:
        return (f"VirtualMachine(id={self.vm_id}, mips={self.mips}, pes={self.pe_count}, "
                f"policy={self.scheduling_policy.value}, host={self.host_id})")
