"""Discrete-event simulation engine built on a SimPy environment."""

import itertools
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type
import simpy
from simpy.core import EmptySchedule
from loguru import logger

from .errors import EngineInvariantError, SimulationStateError
from .events import EventType, SimulationEvent


class EngineState(Enum):
    """Engine lifecycle states."""
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


EventListener = Callable[[SimulationEvent], None]


class SimulationEngine:
    """Central event queue and clock shared by all simulation entities.

    Entities register themselves and receive an integer id. They talk to each
    other only through :meth:`schedule`; the engine pops events in
    ``(timestamp, sequence)`` order and hands each one to the destination
    entity's ``process_event``. SimPy's heap orders events by time and then by
    insertion, which is exactly the sequence order assigned here.

    An entity must provide ``name``, ``start_entity()``, ``process_event(event)``
    and ``shutdown_entity()``.
    """

    def __init__(self, terminate_at: Optional[float] = None):
        self.terminate_at = terminate_at
        self.init()

    def init(self) -> None:
        """Reset the clock to zero and drop all events and entities."""
        if getattr(self, "state", EngineState.IDLE) in (EngineState.RUNNING, EngineState.DRAINING):
            raise SimulationStateError("Cannot re-initialise a running engine")

        self.env = simpy.Environment()
        self.state = EngineState.IDLE
        self._sequence = itertools.count()
        self._entities: Dict[int, Any] = {}
        self._finished: set = set()
        self._pending: Dict[int, SimulationEvent] = {}
        self._last_dispatched: Optional[Tuple[float, int]] = None
        self._clock = 0.0
        self._listeners: List[EventListener] = []
        self.trace: List[SimulationEvent] = []

        logger.info("Simulation engine initialized")

    @property
    def clock(self) -> float:
        """Time of the last dispatched event, in seconds.

        Cancelled events still sit in the SimPy heap and move ``env.now`` when
        they are popped, so the clock only follows events that were delivered.
        """
        return self._clock

    @property
    def pending_events(self) -> int:
        return len(self._pending)

    def register(self, entity: Any) -> int:
        """Register an entity and return its id."""
        if self.state is not EngineState.IDLE:
            raise SimulationStateError(
                f"Entities can only be registered while idle (engine is {self.state.value})"
            )
        entity_id = len(self._entities)
        self._entities[entity_id] = entity
        logger.debug(f"Entity {getattr(entity, 'name', entity_id)} registered with id {entity_id}")
        return entity_id

    def get_entity(self, entity_id: int) -> Any:
        return self._entities.get(entity_id)

    def find_entities(self, entity_cls: Type) -> List[Any]:
        """Registered entities of a given class, in registration order."""
        return [e for e in self._entities.values() if isinstance(e, entity_cls)]

    def subscribe(self, listener: EventListener) -> None:
        """Call ``listener`` after every dispatched event."""
        self._listeners.append(listener)

    def schedule(
        self,
        source_id: int,
        destination_id: int,
        delay: float,
        event_type: EventType,
        data: Optional[Dict[str, Any]] = None,
    ) -> SimulationEvent:
        """Queue an event ``delay`` seconds after the current time."""
        if self.state in (EngineState.DRAINING, EngineState.STOPPED):
            raise SimulationStateError(
                f"Cannot schedule {event_type.value} while engine is {self.state.value}"
            )
        if delay < 0:
            raise EngineInvariantError(
                f"Negative delay {delay} for {event_type.value} would move the clock backwards"
            )

        event = SimulationEvent(
            timestamp=self.env.now + delay,
            sequence=next(self._sequence),
            event_type=event_type,
            source_id=source_id,
            destination_id=destination_id,
            data=data or {},
        )
        timeout = self.env.timeout(delay, value=event)
        timeout.callbacks.append(self._dispatch)
        self._pending[event.sequence] = event
        return event

    def cancel(self, event: Optional[SimulationEvent]) -> bool:
        """Remove a not-yet-fired event. Returns False if it already fired."""
        if event is None:
            return False
        removed = self._pending.pop(event.sequence, None) is not None
        if removed:
            logger.debug(f"Event {event.event_type.value} #{event.sequence} cancelled")
        return removed

    def finish(self, entity: Any) -> None:
        """Mark an entity as having no more events to produce."""
        self._finished.add(entity.entity_id)
        logger.debug(f"Entity {entity.name} finished at {self.clock:.2f}s")

    def is_finished(self, entity_id: int) -> bool:
        return entity_id in self._finished

    def start(self) -> float:
        """Run the simulation until no work remains. Returns the final clock."""
        if self.state is not EngineState.IDLE:
            raise SimulationStateError(f"Engine cannot start from state {self.state.value}")

        self.state = EngineState.RUNNING
        logger.info(f"Starting simulation with {len(self._entities)} entities")

        for entity in list(self._entities.values()):
            entity.start_entity()

        while self.state is EngineState.RUNNING:
            if self._entities and len(self._finished) == len(self._entities):
                break
            next_time = self.env.peek()
            if self.terminate_at is not None and next_time > self.terminate_at:
                logger.info(f"Termination time {self.terminate_at:.2f}s reached")
                break
            try:
                self.env.step()
            except EmptySchedule:
                break

        if self.state is EngineState.RUNNING:
            self._drain()

        logger.info(f"Simulation stopped at {self.clock:.2f}s after {len(self.trace)} events")
        return self.clock

    def stop(self) -> None:
        """Force the engine into STOPPED, discarding queued events.

        A running engine still drains: every entity's ``shutdown_entity`` is
        called so no work is left half-processed.
        """
        if self.state is EngineState.RUNNING:
            self._drain()
        elif self.state is not EngineState.DRAINING:
            self._discard_pending()
            self.state = EngineState.STOPPED
        logger.info(f"Simulation stopped explicitly at {self.clock:.2f}s")

    def _drain(self) -> None:
        self.state = EngineState.DRAINING
        for entity in list(self._entities.values()):
            entity.shutdown_entity()
        self._discard_pending()
        self.state = EngineState.STOPPED

    def _discard_pending(self) -> None:
        if self._pending:
            logger.debug(f"Discarding {len(self._pending)} pending events")
        self._pending.clear()

    def _dispatch(self, timeout: simpy.events.Event) -> None:
        event: SimulationEvent = timeout.value
        if self._pending.pop(event.sequence, None) is None:
            # cancelled, or discarded by stop()
            return

        if event.timestamp != self.env.now:
            raise EngineInvariantError(
                f"Event #{event.sequence} stamped {event.timestamp} fired at {self.env.now}"
            )
        if self._last_dispatched is not None and event.order_key < self._last_dispatched:
            raise EngineInvariantError(
                f"Event #{event.sequence} at {event.timestamp} dispatched after "
                f"#{self._last_dispatched[1]} at {self._last_dispatched[0]}"
            )
        self._last_dispatched = event.order_key

        entity = self._entities.get(event.destination_id)
        if entity is None:
            raise EngineInvariantError(
                f"Event #{event.sequence} addressed to unknown entity {event.destination_id}"
            )
        if event.destination_id in self._finished:
            logger.debug(f"Dropping {event.event_type.value} for finished entity {entity.name}")
            return

        self._clock = event.timestamp
        self.trace.append(event)
        entity.process_event(event)

        for listener in self._listeners:
            listener(event)
