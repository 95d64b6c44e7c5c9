"""VM placement policies used by a datacenter."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional, TYPE_CHECKING
from loguru import logger

if TYPE_CHECKING:
    from ..core.host import Host
    from ..core.vm import VirtualMachine


class AllocationPolicy(Enum):
    """Placement policies for VM allocation."""
    FIRST_FIT = "first_fit"
    LEAST_LOADED = "least_loaded"


class VmAllocationPolicy(ABC):
    """Abstract base class for VM placement over a fixed host list."""

    def __init__(self, hosts: List["Host"], policy: AllocationPolicy):
        self.hosts = hosts
        self.policy = policy
        self.vm_table: Dict[int, "Host"] = {}  # vm_id -> host
        logger.info(f"VM allocation initialized with {policy.value} policy over {len(hosts)} hosts")

    @abstractmethod
    def candidate_hosts(self, vm: "VirtualMachine") -> List["Host"]:
        """Hosts to try for ``vm``, in the order they should be tried."""

    def allocate_vm(self, vm: "VirtualMachine") -> bool:
        """Place ``vm`` on the first candidate host that accepts it."""
        if vm.vm_id in self.vm_table:
            logger.warning(f"VM {vm.vm_id} is already placed on host {self.vm_table[vm.vm_id].host_id}")
            return False

        for host in self.candidate_hosts(vm):
            if host.try_place_vm(vm):
                self.vm_table[vm.vm_id] = host
                logger.info(f"VM {vm.vm_id} allocated to host {host.host_id}")
                return True

        logger.warning(f"Could not allocate VM {vm.vm_id} - no host has enough capacity")
        return False

    def deallocate_vm(self, vm_id: int) -> None:
        host = self.vm_table.pop(vm_id, None)
        if host is not None:
            host.remove_vm(vm_id)
            logger.info(f"VM {vm_id} deallocated from host {host.host_id}")

    def get_host(self, vm_id: int) -> Optional["Host"]:
        return self.vm_table.get(vm_id)


class FirstFitAllocationPolicy(VmAllocationPolicy):
    """Tries hosts in registration order."""

    def __init__(self, hosts: List["Host"]):
        super().__init__(hosts, AllocationPolicy.FIRST_FIT)

    def candidate_hosts(self, vm: "VirtualMachine") -> List["Host"]:
        return list(self.hosts)


class LeastLoadedAllocationPolicy(VmAllocationPolicy):
    """Tries hosts with the most free PEs first; ties keep registration order."""

    def __init__(self, hosts: List["Host"]):
        super().__init__(hosts, AllocationPolicy.LEAST_LOADED)

    def candidate_hosts(self, vm: "VirtualMachine") -> List["Host"]:
        return sorted(self.hosts, key=lambda h: -h.vm_scheduler.free_pe_count)


def create_allocation_policy(policy: AllocationPolicy, hosts: List["Host"]) -> VmAllocationPolicy:
    """Create allocation policy instance."""
    policies = {
        AllocationPolicy.FIRST_FIT: FirstFitAllocationPolicy,
        AllocationPolicy.LEAST_LOADED: LeastLoadedAllocationPolicy,
    }
    return policies[AllocationPolicy(policy)](hosts)
