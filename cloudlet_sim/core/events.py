"""Simulation events and event types."""

from enum import Enum
from typing import Any, Dict, Tuple
from dataclasses import dataclass, field
from loguru import logger


class EventType(Enum):
    """Types of simulation events."""

    # VM lifecycle
    VM_CREATE = "vm_create"
    VM_CREATE_ACK = "vm_create_ack"
    VM_DESTROY = "vm_destroy"

    # Cloudlet lifecycle
    CLOUDLET_SUBMIT = "cloudlet_submit"
    CLOUDLET_RETURN = "cloudlet_return"
    CLOUDLET_CANCEL = "cloudlet_cancel"

    # Datacenter internal processing update
    DATACENTER_TICK = "datacenter_tick"

    # Entity shutdown
    END_OF_SIMULATION = "end_of_simulation"


@dataclass(frozen=True)
class SimulationEvent:
    """An immutable event addressed from one entity to another."""

    timestamp: float
    sequence: int
    event_type: EventType
    source_id: int
    destination_id: int
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Log event creation."""
        logger.debug(
            f"Event created: {self.event_type.value} #{self.sequence} at {self.timestamp:.2f}s "
            f"from entity {self.source_id} to entity {self.destination_id}"
        )

    @property
    def order_key(self) -> Tuple[float, int]:
        """Key of the engine's total dispatch order."""
        return (self.timestamp, self.sequence)

    def __lt__(self, other: "SimulationEvent") -> bool:
        """Compare events for queue ordering."""
        return self.order_key < other.order_key
