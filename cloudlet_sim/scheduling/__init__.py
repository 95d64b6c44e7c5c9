"""Scheduling algorithms and policies."""

from .priority import sort_by_priority, priority_key
from .cloudlet_schedulers import (
    CloudletSchedulingPolicy,
    CloudletScheduler,
    TimeSharedCloudletScheduler,
    SpaceSharedCloudletScheduler,
    create_cloudlet_scheduler,
)
from .vm_schedulers import (
    VmSchedulingPolicy,
    VmScheduler,
    TimeSharedVmScheduler,
    SpaceSharedVmScheduler,
    create_vm_scheduler,
)
from .allocation import (
    AllocationPolicy,
    VmAllocationPolicy,
    FirstFitAllocationPolicy,
    LeastLoadedAllocationPolicy,
    create_allocation_policy,
)

__all__ = [
    "sort_by_priority",
    "priority_key",
    "CloudletSchedulingPolicy",
    "CloudletScheduler",
    "TimeSharedCloudletScheduler",
    "SpaceSharedCloudletScheduler",
    "create_cloudlet_scheduler",
    "VmSchedulingPolicy",
    "VmScheduler",
    "TimeSharedVmScheduler",
    "SpaceSharedVmScheduler",
    "create_vm_scheduler",
    "AllocationPolicy",
    "VmAllocationPolicy",
    "FirstFitAllocationPolicy",
    "LeastLoadedAllocationPolicy",
    "create_allocation_policy",
]
