import pytest

from cloudlet_sim.core.engine import EngineState, SimulationEngine
from cloudlet_sim.core.errors import EngineInvariantError, SimulationStateError
from cloudlet_sim.core.events import EventType


def test_events_dispatch_in_time_then_fifo_order(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)

    late = engine.schedule(entity.entity_id, entity.entity_id, 5.0, EventType.DATACENTER_TICK)
    first = engine.schedule(entity.entity_id, entity.entity_id, 1.0, EventType.CLOUDLET_SUBMIT)
    second = engine.schedule(entity.entity_id, entity.entity_id, 1.0, EventType.CLOUDLET_RETURN)

    clock = engine.start()

    assert [e.sequence for e in entity.received] == [first.sequence, second.sequence, late.sequence]
    assert clock == 5.0
    assert engine.state is EngineState.STOPPED


def test_trace_is_non_decreasing(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    for delay in (3.0, 0.0, 2.0, 2.0, 1.5):
        engine.schedule(entity.entity_id, entity.entity_id, delay, EventType.DATACENTER_TICK)
    engine.start()

    keys = [e.order_key for e in engine.trace]
    assert keys == sorted(keys)
    assert len(keys) == 5


def test_cancelled_event_is_never_delivered(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    kept = engine.schedule(entity.entity_id, entity.entity_id, 1.0, EventType.DATACENTER_TICK)
    dropped = engine.schedule(entity.entity_id, entity.entity_id, 2.0, EventType.DATACENTER_TICK)

    assert engine.cancel(dropped)
    assert not engine.cancel(dropped)
    assert engine.pending_events == 1

    engine.start()
    assert [e.sequence for e in entity.received] == [kept.sequence]


def test_negative_delay_raises(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    with pytest.raises(EngineInvariantError):
        engine.schedule(entity.entity_id, entity.entity_id, -0.5, EventType.DATACENTER_TICK)


def test_unknown_destination_raises(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    engine.schedule(entity.entity_id, 99, 0.0, EventType.CLOUDLET_SUBMIT)
    with pytest.raises(EngineInvariantError):
        engine.start()


def test_lifecycle_calls_start_and_shutdown(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    engine.start()
    assert entity.started
    assert entity.shut_down


def test_no_registration_or_scheduling_after_stop(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    engine.start()

    with pytest.raises(SimulationStateError):
        recorder_cls(engine, "late")
    with pytest.raises(SimulationStateError):
        engine.schedule(entity.entity_id, entity.entity_id, 0.0, EventType.DATACENTER_TICK)
    with pytest.raises(SimulationStateError):
        engine.start()


def test_terminate_at_discards_later_events(recorder_cls):
    engine = SimulationEngine(terminate_at=3.0)
    entity = recorder_cls(engine)
    engine.schedule(entity.entity_id, entity.entity_id, 1.0, EventType.DATACENTER_TICK)
    engine.schedule(entity.entity_id, entity.entity_id, 5.0, EventType.DATACENTER_TICK)

    clock = engine.start()

    assert len(entity.received) == 1
    assert clock == 1.0
    assert engine.pending_events == 0
    assert entity.shut_down


def test_finished_entities_stop_the_loop(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    engine.schedule(entity.entity_id, entity.entity_id, 1.0, EventType.END_OF_SIMULATION)
    engine.schedule(entity.entity_id, entity.entity_id, 4.0, EventType.DATACENTER_TICK)

    def finish_on_end(event):
        if event.event_type is EventType.END_OF_SIMULATION:
            engine.finish(entity)

    engine.subscribe(finish_on_end)
    clock = engine.start()

    assert engine.is_finished(entity.entity_id)
    assert [e.event_type for e in entity.received] == [EventType.END_OF_SIMULATION]
    assert clock == 1.0


def test_init_resets_clock_and_entities(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    engine.schedule(entity.entity_id, entity.entity_id, 2.0, EventType.DATACENTER_TICK)
    engine.start()

    engine.init()
    assert engine.clock == 0
    assert engine.state is EngineState.IDLE
    assert engine.get_entity(entity.entity_id) is None
    assert engine.trace == []


def test_stop_before_start_discards_queue(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    engine.schedule(entity.entity_id, entity.entity_id, 1.0, EventType.DATACENTER_TICK)

    engine.stop()

    assert engine.state is EngineState.STOPPED
    assert engine.pending_events == 0
    with pytest.raises(SimulationStateError):
        engine.start()


def test_stop_while_running_drains_entities(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    engine.schedule(entity.entity_id, entity.entity_id, 1.0, EventType.DATACENTER_TICK)
    engine.schedule(entity.entity_id, entity.entity_id, 2.0, EventType.DATACENTER_TICK)
    engine.subscribe(lambda event: engine.stop())

    clock = engine.start()

    assert len(entity.received) == 1
    assert entity.shut_down
    assert engine.state is EngineState.STOPPED
    assert engine.pending_events == 0
    assert clock == 1.0


def test_cancelled_event_does_not_advance_clock(recorder_cls):
    engine = SimulationEngine()
    entity = recorder_cls(engine)
    engine.schedule(entity.entity_id, entity.entity_id, 1.0, EventType.DATACENTER_TICK)
    stale = engine.schedule(entity.entity_id, entity.entity_id, 50.0, EventType.DATACENTER_TICK)
    engine.cancel(stale)

    assert engine.start() == 1.0
    assert engine.clock == 1.0
