"""Physical host model."""

from typing import Dict, List, Optional
from loguru import logger

from .provisioners import Pe, ResourceProvisioner
from .vm import VirtualMachine
from ..scheduling.vm_schedulers import VmScheduler, VmSchedulingPolicy, create_vm_scheduler


class Host:
    """Physical node owning PEs plus RAM, bandwidth and storage provisioners."""

    def __init__(
        self,
        host_id: int,
        pe_list: List[Pe],
        ram: int,
        bw: int,
        storage: int,
        vm_scheduling_policy: VmSchedulingPolicy = VmSchedulingPolicy.TIME_SHARED,
    ):
        if not pe_list:
            raise ValueError(f"Host {host_id} needs at least one PE")
        self.host_id = host_id
        self.pe_list = pe_list
        self.ram_provisioner = ResourceProvisioner("ram", ram)
        self.bw_provisioner = ResourceProvisioner("bw", bw)
        self.storage_provisioner = ResourceProvisioner("storage", storage)
        self.vm_scheduler: VmScheduler = create_vm_scheduler(vm_scheduling_policy, pe_list)
        self.vm_list: List[VirtualMachine] = []

        logger.info(f"Host {host_id} created with {len(pe_list)} PEs "
                    f"({self.total_mips:.0f} MIPS), {ram}MB RAM, {bw} BW, {storage}MB storage")

    @classmethod
    def build(
        cls,
        host_id: int,
        pe_count: int,
        mips_per_pe: float,
        ram: int,
        bw: int,
        storage: int,
        vm_scheduling_policy: VmSchedulingPolicy = VmSchedulingPolicy.TIME_SHARED,
    ) -> "Host":
        """Create a host with ``pe_count`` identical PEs."""
        pes = [Pe(i, mips_per_pe) for i in range(pe_count)]
        return cls(host_id, pes, ram, bw, storage, vm_scheduling_policy)

    @property
    def total_mips(self) -> float:
        return self.vm_scheduler.total_mips

    @property
    def storage(self) -> float:
        return self.storage_provisioner.capacity

    def get_vm(self, vm_id: int) -> Optional[VirtualMachine]:
        for vm in self.vm_list:
            if vm.vm_id == vm_id:
                return vm
        return None

    def is_suitable_for_vm(self, vm: VirtualMachine) -> bool:
        """Quick capacity check without reserving anything."""
        return (
            self.storage_provisioner.available_capacity() >= vm.size
            and self.ram_provisioner.available_capacity() >= vm.ram
            and self.bw_provisioner.available_capacity() >= vm.bw
            and self.vm_scheduler.plan(vm) is not None
        )

    def try_place_vm(self, vm: VirtualMachine, current_time: float = 0.0) -> bool:
        """Reserve every resource ``vm`` needs, or none of them."""
        if self.get_vm(vm.vm_id) is not None:
            logger.warning(f"VM {vm.vm_id} already on host {self.host_id}")
            return False

        steps = [
            ("storage", lambda: self.storage_provisioner.allocate(vm.size, owner_id=vm.vm_id),
             lambda: self.storage_provisioner.deallocate(owner_id=vm.vm_id)),
            ("ram", lambda: self.ram_provisioner.allocate(vm.ram, owner_id=vm.vm_id),
             lambda: self.ram_provisioner.deallocate(owner_id=vm.vm_id)),
            ("bw", lambda: self.bw_provisioner.allocate(vm.bw, owner_id=vm.vm_id),
             lambda: self.bw_provisioner.deallocate(owner_id=vm.vm_id)),
            ("mips", lambda: self.vm_scheduler.allocate_pes_for_vm(vm),
             lambda: self.vm_scheduler.deallocate_pes_for_vm(vm.vm_id)),
        ]

        done = []
        for resource, allocate, rollback in steps:
            if not allocate():
                for undo in reversed(done):
                    undo()
                logger.debug(f"Host {self.host_id} rejected VM {vm.vm_id}: not enough {resource}")
                return False
            done.append(rollback)

        self.vm_list.append(vm)
        vm.attach_to_host(self, current_time)
        return True

    def remove_vm(self, vm_id: int) -> None:
        """Release everything held by ``vm_id``; unknown VMs are ignored."""
        vm = self.get_vm(vm_id)
        if vm is None:
            return
        self.vm_scheduler.deallocate_pes_for_vm(vm_id)
        self.bw_provisioner.deallocate(owner_id=vm_id)
        self.ram_provisioner.deallocate(owner_id=vm_id)
        self.storage_provisioner.deallocate(owner_id=vm_id)
        self.vm_list.remove(vm)
        vm.detach_from_host()

    def update_processing(self, current_time: float) -> Optional[float]:
        """Advance every hosted VM; returns the earliest next completion time."""
        next_times = []
        for vm in self.vm_list:
            mips_share = self.vm_scheduler.get_allocated_mips_for_vm(vm.vm_id)
            next_time = vm.update_processing(current_time, mips_share)
            if next_time is not None:
                next_times.append(next_time)
        return min(next_times) if next_times else None

    def committed(self) -> Dict[str, float]:
        """Resources currently granted to VMs, by dimension."""
        return {
            "ram": self.ram_provisioner.allocated,
            "bw": self.bw_provisioner.allocated,
            "storage": self.storage_provisioner.allocated,
            "mips": self.total_mips - self.vm_scheduler.available_mips,
        }
