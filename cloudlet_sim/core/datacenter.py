"""Datacenter entity: owns hosts, places VMs and executes cloudlets."""

from dataclasses import dataclass
from typing import Dict, List, Optional
from loguru import logger

from .cloudlet import Cloudlet
from .engine import SimulationEngine
from .events import EventType, SimulationEvent
from .host import Host
from .vm import VirtualMachine
from ..scheduling.allocation import AllocationPolicy, VmAllocationPolicy, create_allocation_policy

# Smallest delay used when rescheduling a processing update
MIN_TIME_BETWEEN_EVENTS = 1e-6


@dataclass
class DatacenterCharacteristics:
    """Static description and pricing of a datacenter."""
    architecture: str = "x86"
    os: str = "Linux"
    vmm: str = "Xen"
    time_zone: float = 10.0
    cost_per_sec: float = 3.0  # per second of CPU time
    cost_per_mem: float = 0.05
    cost_per_storage: float = 0.1
    cost_per_bw: float = 0.1


class Datacenter:
    """Simulation entity hosting VMs for brokers.

    Every event that changes the set of running cloudlets first brings all
    hosts up to the current clock, then applies the change, then returns any
    finished cloudlets and reschedules a single processing tick at the next
    predicted completion.
    """

    def __init__(
        self,
        engine: SimulationEngine,
        name: str,
        hosts: List[Host],
        characteristics: Optional[DatacenterCharacteristics] = None,
        allocation_policy: Optional[VmAllocationPolicy] = None,
    ):
        self.engine = engine
        self.name = name
        self.host_list = hosts
        self.characteristics = characteristics or DatacenterCharacteristics()
        self.vm_allocation_policy = allocation_policy or create_allocation_policy(
            AllocationPolicy.FIRST_FIT, hosts
        )
        self.vms: Dict[int, VirtualMachine] = {}
        self._next_tick: Optional[SimulationEvent] = None

        self._handlers = {
            EventType.VM_CREATE: self._handle_vm_create,
            EventType.VM_DESTROY: self._handle_vm_destroy,
            EventType.CLOUDLET_SUBMIT: self._handle_cloudlet_submit,
            EventType.CLOUDLET_CANCEL: self._handle_cloudlet_cancel,
            EventType.DATACENTER_TICK: self._handle_tick,
            EventType.END_OF_SIMULATION: self._handle_end_of_simulation,
        }

        self.entity_id = engine.register(self)
        logger.info(f"Datacenter {name} (id {self.entity_id}) created with {len(hosts)} hosts")

    def start_entity(self) -> None:
        logger.debug(f"Datacenter {self.name} is starting")

    def shutdown_entity(self) -> None:
        logger.info(f"Datacenter {self.name} shutting down with {len(self.vms)} VMs still allocated")

    def process_event(self, event: SimulationEvent) -> None:
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.error(f"Datacenter {self.name} cannot handle {event.event_type.value}")
            return
        handler(event)

    # VM management

    def allocate_vm(self, vm: VirtualMachine) -> bool:
        """Place ``vm`` through the allocation policy."""
        placed = self.vm_allocation_policy.allocate_vm(vm)
        if placed:
            vm.cloudlet_scheduler.previous_time = self.engine.clock
            vm.datacenter_id = self.entity_id
            self.vms[vm.vm_id] = vm
        return placed

    def deallocate_vm(self, vm_id: int) -> None:
        self.vm_allocation_policy.deallocate_vm(vm_id)
        self.vms.pop(vm_id, None)

    def _handle_vm_create(self, event: SimulationEvent) -> None:
        self.update_processing()
        vm: VirtualMachine = event.data["vm"]
        success = self.allocate_vm(vm)
        self.engine.schedule(
            self.entity_id, event.source_id, 0.0, EventType.VM_CREATE_ACK,
            {"vm": vm, "success": success, "datacenter_id": self.entity_id},
        )

    def _handle_vm_destroy(self, event: SimulationEvent) -> None:
        self.update_processing()
        vm_id = event.data["vm_id"]
        vm = self.vms.get(vm_id)
        if vm is None:
            logger.debug(f"Datacenter {self.name}: VM {vm_id} is not allocated here")
            return

        for cloudlet in vm.cloudlet_scheduler.drain():
            cloudlet.mark_failed(self.engine.clock, f"VM {vm_id} destroyed")
            self._return_cloudlet(cloudlet)
        self.deallocate_vm(vm_id)
        self._schedule_next_tick()

    # Cloudlet execution

    def _handle_cloudlet_submit(self, event: SimulationEvent) -> None:
        self.update_processing()
        cloudlet: Cloudlet = event.data["cloudlet"]
        now = self.engine.clock

        cloudlet.datacenter_id = self.entity_id
        cloudlet.cost_per_sec = self.characteristics.cost_per_sec
        cloudlet.cost_per_bw = self.characteristics.cost_per_bw

        vm = self.vms.get(cloudlet.vm_id)
        if vm is None:
            cloudlet.mark_failed(now, f"VM {cloudlet.vm_id} is not running in {self.name}")
            self._return_cloudlet(cloudlet)
            return

        if not vm.submit_cloudlet(cloudlet, now):
            self._return_cloudlet(cloudlet)
            return

        self._schedule_next_tick()

    def _handle_cloudlet_cancel(self, event: SimulationEvent) -> None:
        self.update_processing()
        cloudlet_id = event.data["cloudlet_id"]
        vm = self.vms.get(event.data.get("vm_id"))
        cloudlet = vm.cancel_cloudlet(cloudlet_id, self.engine.clock) if vm else None
        if cloudlet is None:
            logger.debug(f"Cloudlet {cloudlet_id} not found for cancellation in {self.name}")
            return
        self._return_cloudlet(cloudlet)
        self._schedule_next_tick()

    def _handle_tick(self, event: SimulationEvent) -> None:
        self._next_tick = None
        self.update_processing()
        self._schedule_next_tick()

    def _handle_end_of_simulation(self, event: SimulationEvent) -> None:
        self.engine.cancel(self._next_tick)
        self._next_tick = None
        self.engine.finish(self)

    def update_processing(self) -> Optional[float]:
        """Advance all hosts to the current clock and return finished cloudlets.

        Returns the earliest predicted completion time across hosts.
        """
        now = self.engine.clock
        next_times = [t for t in (host.update_processing(now) for host in self.host_list) if t is not None]
        for vm in self.vms.values():
            for cloudlet in vm.pop_finished_cloudlets():
                self._return_cloudlet(cloudlet)
        return min(next_times) if next_times else None

    def _schedule_next_tick(self) -> None:
        now = self.engine.clock
        next_times = [
            t for t in (vm.cloudlet_scheduler.next_finish_time(now) for vm in self.vms.values())
            if t is not None
        ]
        self.engine.cancel(self._next_tick)
        self._next_tick = None
        if not next_times:
            return
        delay = max(min(next_times) - now, MIN_TIME_BETWEEN_EVENTS)
        self._next_tick = self.engine.schedule(
            self.entity_id, self.entity_id, delay, EventType.DATACENTER_TICK
        )

    def _return_cloudlet(self, cloudlet: Cloudlet) -> None:
        self.engine.schedule(
            self.entity_id, cloudlet.owner_id, 0.0, EventType.CLOUDLET_RETURN,
            {"cloudlet": cloudlet},
        )

    def __repr__(self) -> str:
        return f"Datacenter(name={self.name!r}, id={self.entity_id}, hosts={len(self.host_list)})"
