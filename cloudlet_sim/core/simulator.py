"""Simulation facade: builds entities from descriptors and collects results."""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field, asdict
import time
from loguru import logger

from .broker import DatacenterBroker, SubmissionResult
from .cloudlet import Cloudlet, CloudletStatus, Priority
from .datacenter import Datacenter, DatacenterCharacteristics
from .engine import EngineState, SimulationEngine
from .errors import SimulationStateError
from .host import Host
from .specs import CloudletSpec, DatacenterSpec, VmSpec
from .vm import VirtualMachine
from ..scheduling.allocation import create_allocation_policy


@dataclass
class SimulationConfig:
    """Configuration for simulation runs."""
    terminate_at: Optional[float] = None  # seconds of simulated time, None = run to completion
    broker_name: str = "Broker"


@dataclass
class CompletedCloudletRecord:
    """What the caller reads back for each cloudlet after the run."""
    cloudlet_id: int
    status: CloudletStatus
    priority: Priority
    datacenter_id: Optional[int]
    vm_id: Optional[int]
    actual_cpu_time: float
    finish_time: Optional[float]
    start_time: Optional[float] = None
    submission_time: Optional[float] = None
    length: int = 0
    cost: float = 0.0
    failure_reason: Optional[str] = None

    @classmethod
    def from_cloudlet(cls, cloudlet: Cloudlet) -> "CompletedCloudletRecord":
        return cls(
            cloudlet_id=cloudlet.cloudlet_id,
            status=cloudlet.status,
            priority=Priority.parse(cloudlet.priority),
            datacenter_id=cloudlet.datacenter_id,
            vm_id=cloudlet.vm_id,
            actual_cpu_time=cloudlet.actual_cpu_time,
            finish_time=cloudlet.finish_time,
            start_time=cloudlet.exec_start_time,
            submission_time=cloudlet.submission_time,
            length=cloudlet.length,
            cost=cloudlet.processing_cost,
            failure_reason=cloudlet.failure_reason,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["priority"] = self.priority.name
        return data


@dataclass
class SimulationResult:
    """Everything a finished run produced."""
    records: List[CompletedCloudletRecord]
    rejected: List[Tuple[str, str]] = field(default_factory=list)
    clock: float = 0.0
    events_processed: int = 0
    vms_created: List[int] = field(default_factory=list)
    vms_failed: List[int] = field(default_factory=list)
    wall_time: float = 0.0

    @property
    def completion_order(self) -> List[int]:
        return [r.cloudlet_id for r in self.records]


class CloudSimulator:
    """Wires an engine, one datacenter and one broker together.

    Typical use::

        sim = CloudSimulator()
        sim.build_datacenter(DatacenterSpec(hosts=[HostSpec()]))
        sim.submit_vms([VmSpec()] * 3)
        sim.submit_cloudlets(specs)
        result = sim.run()
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()
        self.engine = SimulationEngine(terminate_at=self.config.terminate_at)
        self.datacenter: Optional[Datacenter] = None
        self.broker = DatacenterBroker(self.engine, self.config.broker_name)
        self._next_vm_id = 0
        self._next_cloudlet_id = 0
        self._result: Optional[SimulationResult] = None

        logger.info("CloudSimulator initialized")

    def build_datacenter(self, spec: DatacenterSpec) -> Datacenter:
        """Create the datacenter and its hosts from a topology descriptor."""
        if self.datacenter is not None:
            raise SimulationStateError("A datacenter has already been built for this simulation")

        hosts = [
            Host.build(
                host_id=i,
                pe_count=host_spec.pe_count,
                mips_per_pe=host_spec.mips_per_pe,
                ram=host_spec.ram,
                bw=host_spec.bw,
                storage=host_spec.storage,
                vm_scheduling_policy=host_spec.vm_scheduler,
            )
            for i, host_spec in enumerate(spec.hosts)
        ]
        characteristics = DatacenterCharacteristics(
            architecture=spec.architecture,
            os=spec.os,
            vmm=spec.vmm,
            time_zone=spec.time_zone,
            cost_per_sec=spec.cost_per_sec,
            cost_per_mem=spec.cost_per_mem,
            cost_per_storage=spec.cost_per_storage,
            cost_per_bw=spec.cost_per_bw,
        )
        self.datacenter = Datacenter(
            self.engine,
            spec.name,
            hosts,
            characteristics,
            create_allocation_policy(spec.allocation_policy, hosts),
        )
        return self.datacenter

    def submit_vms(self, specs: List[VmSpec]) -> SubmissionResult:
        vms = []
        for spec in specs:
            vms.append(VirtualMachine(
                vm_id=self._next_vm_id,
                mips=spec.mips,
                pe_count=spec.pe_count,
                ram=spec.ram,
                bw=spec.bw,
                size=spec.size,
                scheduling_policy=spec.scheduling_policy,
                vmm=spec.vmm,
            ))
            self._next_vm_id += 1
        return self.broker.submit_vm_list(vms)

    def submit_cloudlets(self, specs: List[CloudletSpec]) -> SubmissionResult:
        cloudlets = []
        for spec in specs:
            cloudlets.append(Cloudlet(
                cloudlet_id=self._next_cloudlet_id,
                length=spec.length,
                pe_count=spec.pe_count,
                priority=spec.priority,
                file_size=spec.file_size,
                output_size=spec.output_size,
                vm_id=spec.vm_id,
            ))
            self._next_cloudlet_id += 1
        return self.broker.submit_cloudlet_list(cloudlets)

    def run(self) -> SimulationResult:
        """Run the simulation to completion."""
        if self.datacenter is None:
            raise SimulationStateError("build_datacenter() must be called before run()")

        logger.info("Starting cloud simulation")
        start_time = time.time()
        clock = self.engine.start()
        elapsed_time = time.time() - start_time

        self._result = SimulationResult(
            records=[CompletedCloudletRecord.from_cloudlet(c) for c in self.broker.cloudlet_received_list],
            rejected=[(repr(item), reason) for item, reason in self.broker.rejected],
            clock=clock,
            events_processed=len(self.engine.trace),
            vms_created=[vm.vm_id for vm in self.broker.vms_created_list],
            vms_failed=[vm.vm_id for vm in self.broker.vms_failed_list],
            wall_time=elapsed_time,
        )
        logger.info(f"Simulation completed in {elapsed_time:.2f}s "
                    f"(simulated {clock:.2f}s, {self._result.events_processed} events)")
        return self._result

    @property
    def results(self) -> SimulationResult:
        """Completed-cloudlet records; only available once the engine has stopped."""
        if self.engine.state is not EngineState.STOPPED or self._result is None:
            raise SimulationStateError(
                f"Results are only available after the simulation stops (engine is {self.engine.state.value})"
            )
        return self._result
