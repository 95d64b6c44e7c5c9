"""Descriptors the outer layer hands to the simulation core."""

from typing import List, Optional, Union
from pydantic import BaseModel, Field

from ..scheduling.allocation import AllocationPolicy
from ..scheduling.cloudlet_schedulers import CloudletSchedulingPolicy
from ..scheduling.vm_schedulers import VmSchedulingPolicy


class HostSpec(BaseModel):
    """One physical host of the datacenter topology."""

    pe_count: int = Field(1, gt=0)
    mips_per_pe: float = Field(1000.0, gt=0)
    ram: int = Field(4096, ge=0, description="MB")
    bw: int = Field(10000, ge=0, description="Kbps")
    storage: int = Field(1000000, ge=0, description="MB")
    vm_scheduler: VmSchedulingPolicy = VmSchedulingPolicy.TIME_SHARED


class DatacenterSpec(BaseModel):
    """Datacenter topology, characteristics and placement policy."""

    name: str = "Datacenter_1"
    architecture: str = "x86"
    os: str = "Linux"
    vmm: str = "Xen"
    time_zone: float = 10.0
    cost_per_sec: float = Field(3.0, ge=0)
    cost_per_mem: float = Field(0.05, ge=0)
    cost_per_storage: float = Field(0.1, ge=0)
    cost_per_bw: float = Field(0.1, ge=0)
    allocation_policy: AllocationPolicy = AllocationPolicy.FIRST_FIT
    hosts: List[HostSpec] = Field(default_factory=lambda: [HostSpec()])


class VmSpec(BaseModel):
    """A VM request. Domain checks happen when the broker accepts it."""

    mips: float = 1000.0
    pe_count: int = 1
    ram: int = 1024
    bw: int = 1000
    size: int = 1000
    vmm: str = "Xen"
    scheduling_policy: CloudletSchedulingPolicy = CloudletSchedulingPolicy.TIME_SHARED


class CloudletSpec(BaseModel):
    """A cloudlet request.

    ``priority`` accepts a name (``"high"``) or a number (0-2); unknown values
    are reported as rejected submissions rather than parse errors.
    """

    length: int = 40000
    pe_count: int = 1
    priority: Union[int, str] = 1
    file_size: int = 300
    output_size: int = 300
    vm_id: Optional[int] = None
