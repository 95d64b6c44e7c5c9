"""Core simulation components."""

from .errors import (
    SimulationError,
    EngineInvariantError,
    SimulationStateError,
    InvalidStatusTransition,
    InvalidDescriptorError,
)
from .events import SimulationEvent, EventType
from .engine import SimulationEngine, EngineState
from .provisioners import ResourceProvisioner, Pe
from .cloudlet import Cloudlet, CloudletStatus, Priority
from .vm import VirtualMachine
from .host import Host
from .datacenter import Datacenter, DatacenterCharacteristics
from .broker import DatacenterBroker, SubmissionResult
from .specs import HostSpec, DatacenterSpec, VmSpec, CloudletSpec
from .simulator import CloudSimulator, SimulationConfig, SimulationResult, CompletedCloudletRecord

__all__ = [
    "SimulationError",
    "EngineInvariantError",
    "SimulationStateError",
    "InvalidStatusTransition",
    "InvalidDescriptorError",
    "SimulationEvent",
    "EventType",
    "SimulationEngine",
    "EngineState",
    "ResourceProvisioner",
    "Pe",
    "Cloudlet",
    "CloudletStatus",
    "Priority",
    "VirtualMachine",
    "Host",
    "Datacenter",
    "DatacenterCharacteristics",
    "DatacenterBroker",
    "SubmissionResult",
    "HostSpec",
    "DatacenterSpec",
    "VmSpec",
    "CloudletSpec",
    "CloudSimulator",
    "SimulationConfig",
    "SimulationResult",
    "CompletedCloudletRecord",
]
