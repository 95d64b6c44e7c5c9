"""Broker entity submitting VMs and cloudlets on behalf of a user."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
from loguru import logger

from .cloudlet import Cloudlet, CloudletStatus
from .datacenter import Datacenter
from .engine import SimulationEngine
from .errors import InvalidDescriptorError
from .events import EventType, SimulationEvent
from .vm import VirtualMachine
from ..scheduling.priority import sort_by_priority


@dataclass
class SubmissionResult:
    """Outcome of a list submission: accepted items and rejected ones with reasons."""
    accepted: List = field(default_factory=list)
    rejected: List[Tuple[object, str]] = field(default_factory=list)

    @property
    def all_accepted(self) -> bool:
        return not self.rejected


class DatacenterBroker:
    """Holds a user's VMs and cloudlets and drives them through one datacenter.

    VMs are created first; once every creation has been acknowledged the
    pending cloudlets are dispatched in priority order, bound VMs first and
    round-robin over the created VMs otherwise.
    """

    def __init__(
        self,
        engine: SimulationEngine,
        name: str = "Broker",
        destination_datacenter_id: Optional[int] = None,
    ):
        self.engine = engine
        self.name = name
        self.destination_datacenter_id = destination_datacenter_id

        self.vm_list: List[VirtualMachine] = []
        self.vms_created_list: List[VirtualMachine] = []
        self.vms_failed_list: List[VirtualMachine] = []
        self.cloudlet_list: List[Cloudlet] = []
        # accepted cloudlets in the order they were submitted
        self.cloudlet_arrival_list: List[Cloudlet] = []
        self.cloudlet_submitted_list: List[Cloudlet] = []
        self.cloudlet_received_list: List[Cloudlet] = []
        self.rejected: List[Tuple[object, str]] = []

        self._vms_to_create: List[VirtualMachine] = []
        self._vm_requests = 0
        self._vm_acks = 0
        self._in_flight: Dict[int, Cloudlet] = {}
        self._vm_index = 0
        self._started = False
        self._finishing = False

        self._handlers = {
            EventType.VM_CREATE_ACK: self._handle_vm_create_ack,
            EventType.CLOUDLET_RETURN: self._handle_cloudlet_return,
            EventType.END_OF_SIMULATION: self._handle_end_of_simulation,
        }

        self.entity_id = engine.register(self)
        logger.info(f"Broker {name} (id {self.entity_id}) created")

    # Submission

    def submit_vm_list(self, vms: Iterable[VirtualMachine]) -> SubmissionResult:
        """Validate and queue VMs; creation requests go out at start (or now if running)."""
        result = SubmissionResult()
        known_ids = {vm.vm_id for vm in self.vm_list}
        for vm in vms:
            try:
                vm.validate()
                if vm.vm_id in known_ids:
                    raise InvalidDescriptorError(f"VM id {vm.vm_id} submitted twice")
            except InvalidDescriptorError as e:
                self._reject(result, vm, str(e))
                continue
            vm.owner_id = self.entity_id
            known_ids.add(vm.vm_id)
            self.vm_list.append(vm)
            self._vms_to_create.append(vm)
            result.accepted.append(vm)

        logger.info(f"Broker {self.name}: {len(result.accepted)} VMs accepted, {len(result.rejected)} rejected")
        if self._started and not self._finishing:
            self._request_vm_creation()
        return result

    def submit_cloudlet_list(self, cloudlets: Iterable[Cloudlet]) -> SubmissionResult:
        """Validate cloudlets and merge them into the pending list in priority order."""
        result = SubmissionResult()
        known_ids = {c.cloudlet_id for c in self.cloudlet_list}
        known_ids.update(c.cloudlet_id for c in self.cloudlet_submitted_list)
        for cloudlet in cloudlets:
            try:
                cloudlet.validate()
                if cloudlet.cloudlet_id in known_ids:
                    raise InvalidDescriptorError(f"Cloudlet id {cloudlet.cloudlet_id} submitted twice")
                if cloudlet.status is not CloudletStatus.CREATED:
                    raise InvalidDescriptorError(
                        f"Cloudlet {cloudlet.cloudlet_id} is already {cloudlet.status.value}"
                    )
            except InvalidDescriptorError as e:
                self._reject(result, cloudlet, str(e))
                continue
            cloudlet.owner_id = self.entity_id
            known_ids.add(cloudlet.cloudlet_id)
            result.accepted.append(cloudlet)

        self.cloudlet_arrival_list.extend(result.accepted)
        pending = self.cloudlet_list + result.accepted
        logger.info(f"Broker {self.name}: cloudlets before sorting: {self._describe(pending)}")
        self.cloudlet_list = sort_by_priority(pending)
        logger.info(f"Broker {self.name}: cloudlets after sorting: {self._describe(self.cloudlet_list)}")

        if self._started and self._all_vms_acknowledged() and not self._finishing:
            self._dispatch_cloudlets()
        return result

    def bind_cloudlet_to_vm(self, cloudlet_id: int, vm_id: int) -> bool:
        """Ask for a pending cloudlet to run on a specific VM."""
        for cloudlet in self.cloudlet_list:
            if cloudlet.cloudlet_id == cloudlet_id:
                cloudlet.vm_id = vm_id
                return True
        return False

    def cancel_cloudlet(self, cloudlet_id: int) -> bool:
        """Cancel a pending or running cloudlet; it ends FAILED."""
        for cloudlet in self.cloudlet_list:
            if cloudlet.cloudlet_id == cloudlet_id:
                self.cloudlet_list.remove(cloudlet)
                cloudlet.mark_failed(self.engine.clock, "cancelled before dispatch")
                self.cloudlet_received_list.append(cloudlet)
                return True

        cloudlet = self._in_flight.get(cloudlet_id)
        if cloudlet is None:
            return False
        self.engine.schedule(
            self.entity_id, self._datacenter_for(cloudlet.vm_id), 0.0,
            EventType.CLOUDLET_CANCEL, {"cloudlet_id": cloudlet_id, "vm_id": cloudlet.vm_id},
        )
        return True

    @staticmethod
    def _describe(cloudlets: List[Cloudlet]) -> str:
        return ", ".join(f"#{c.cloudlet_id}(p={int(c.priority)})" for c in cloudlets)

    def _reject(self, result: SubmissionResult, item: object, reason: str) -> None:
        logger.warning(f"Broker {self.name} rejected submission: {reason}")
        result.rejected.append((item, reason))
        self.rejected.append((item, reason))

    # Entity lifecycle

    def start_entity(self) -> None:
        self._started = True
        if self.destination_datacenter_id is None:
            datacenters = self.engine.find_entities(Datacenter)
            if datacenters:
                self.destination_datacenter_id = datacenters[0].entity_id

        if self.destination_datacenter_id is None:
            logger.error(f"Broker {self.name}: no datacenter available")
        else:
            logger.info(f"Broker {self.name} targets datacenter {self.destination_datacenter_id}")
            self._request_vm_creation()

        if self._all_vms_acknowledged():
            self._dispatch_cloudlets()

    def shutdown_entity(self) -> None:
        now = self.engine.clock
        leftovers = self.cloudlet_list + list(self._in_flight.values())
        for cloudlet in leftovers:
            if not cloudlet.status.is_final:
                cloudlet.mark_failed(now, "simulation ended before completion")
            self.cloudlet_received_list.append(cloudlet)
        self.cloudlet_list = []
        self._in_flight.clear()
        logger.info(f"Broker {self.name} is shutting down: "
                    f"{len(self.cloudlet_received_list)} cloudlets received")

    def process_event(self, event: SimulationEvent) -> None:
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.error(f"Broker {self.name} cannot handle {event.event_type.value}")
            return
        handler(event)

    # VM creation

    def _request_vm_creation(self) -> None:
        if self.destination_datacenter_id is None:
            return
        for vm in self._vms_to_create:
            logger.info(f"Broker {self.name}: requesting creation of VM {vm.vm_id} "
                        f"in datacenter {self.destination_datacenter_id}")
            self.engine.schedule(
                self.entity_id, self.destination_datacenter_id, 0.0, EventType.VM_CREATE, {"vm": vm}
            )
            self._vm_requests += 1
        self._vms_to_create = []

    def _all_vms_acknowledged(self) -> bool:
        return not self._vms_to_create and self._vm_acks == self._vm_requests

    def _handle_vm_create_ack(self, event: SimulationEvent) -> None:
        vm: VirtualMachine = event.data["vm"]
        self._vm_acks += 1
        if event.data["success"]:
            self.vms_created_list.append(vm)
            logger.info(f"Broker {self.name}: VM {vm.vm_id} created in datacenter "
                        f"{event.source_id} on host {vm.host_id}")
        else:
            self.vms_failed_list.append(vm)
            logger.warning(f"Broker {self.name}: creation of VM {vm.vm_id} failed "
                           f"in datacenter {event.source_id}")

        if self._all_vms_acknowledged():
            logger.info(f"Broker {self.name}: {len(self.vms_created_list)} of "
                        f"{len(self.vm_list)} VMs created")
            self._dispatch_cloudlets()

    # Cloudlet dispatch

    def _next_created_vm(self) -> Optional[VirtualMachine]:
        if not self.vms_created_list:
            return None
        vm = self.vms_created_list[self._vm_index % len(self.vms_created_list)]
        self._vm_index = (self._vm_index + 1) % len(self.vms_created_list)
        return vm

    def _select_vm(self, cloudlet: Cloudlet) -> Optional[VirtualMachine]:
        if cloudlet.vm_id is None:
            return self._next_created_vm()
        for vm in self.vms_created_list:
            if vm.vm_id == cloudlet.vm_id:
                return vm
        rerouted = self._next_created_vm()
        if rerouted is not None:
            logger.warning(f"Broker {self.name}: VM {cloudlet.vm_id} unavailable, "
                           f"rerouting cloudlet {cloudlet.cloudlet_id} to VM {rerouted.vm_id}")
        return rerouted

    def _datacenter_for(self, vm_id: Optional[int]) -> Optional[int]:
        for vm in self.vms_created_list:
            if vm.vm_id == vm_id:
                return vm.datacenter_id
        return self.destination_datacenter_id

    def _dispatch_cloudlets(self) -> None:
        now = self.engine.clock
        for cloudlet in self.cloudlet_list:
            vm = self._select_vm(cloudlet)
            if vm is None:
                cloudlet.mark_failed(now, "no VM available")
                self.cloudlet_received_list.append(cloudlet)
                continue

            cloudlet.vm_id = vm.vm_id
            cloudlet.mark_queued(now)
            logger.info(f"Broker {self.name}: sending cloudlet {cloudlet.cloudlet_id} "
                        f"(priority {cloudlet.priority.name}) to VM {vm.vm_id}")
            self.engine.schedule(
                self.entity_id, vm.datacenter_id, 0.0, EventType.CLOUDLET_SUBMIT, {"cloudlet": cloudlet}
            )
            self.cloudlet_submitted_list.append(cloudlet)
            self._in_flight[cloudlet.cloudlet_id] = cloudlet

        self.cloudlet_list = []
        self._check_completion()

    def _handle_cloudlet_return(self, event: SimulationEvent) -> None:
        cloudlet: Cloudlet = event.data["cloudlet"]
        self._in_flight.pop(cloudlet.cloudlet_id, None)
        self.cloudlet_received_list.append(cloudlet)
        logger.info(f"Broker {self.name}: cloudlet {cloudlet.cloudlet_id} received "
                    f"({cloudlet.status.value})")
        self._check_completion()

    # Completion

    def _check_completion(self) -> None:
        if self._finishing or self.cloudlet_list or self._in_flight:
            return
        if not self._all_vms_acknowledged():
            return
        self._finishing = True
        logger.info(f"Broker {self.name}: all cloudlets received, destroying VMs")
        datacenter_ids = []
        if self.destination_datacenter_id is not None:
            datacenter_ids.append(self.destination_datacenter_id)
        for vm in self.vms_created_list:
            self.engine.schedule(
                self.entity_id, vm.datacenter_id, 0.0, EventType.VM_DESTROY, {"vm_id": vm.vm_id}
            )
            if vm.datacenter_id not in datacenter_ids:
                datacenter_ids.append(vm.datacenter_id)
        for datacenter_id in datacenter_ids:
            self.engine.schedule(self.entity_id, datacenter_id, 0.0, EventType.END_OF_SIMULATION)
        self.engine.schedule(self.entity_id, self.entity_id, 0.0, EventType.END_OF_SIMULATION)

    def _handle_end_of_simulation(self, event: SimulationEvent) -> None:
        self.engine.finish(self)
