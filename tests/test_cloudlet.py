import pytest

from cloudlet_sim.core.cloudlet import Cloudlet, CloudletStatus, Priority
from cloudlet_sim.core.errors import InvalidDescriptorError, InvalidStatusTransition
from cloudlet_sim.scheduling.priority import sort_by_priority


@pytest.mark.parametrize("raw, expected", [
    (0, Priority.HIGH),
    (2, Priority.LOW),
    ("medium", Priority.MEDIUM),
    (" High ", Priority.HIGH),
    (Priority.LOW, Priority.LOW),
])
def test_priority_parse(raw, expected):
    assert Priority.parse(raw) is expected


@pytest.mark.parametrize("raw", ["urgent", 5, -1, True, 1.5, None])
def test_priority_parse_rejects_unknown_values(raw):
    with pytest.raises(InvalidDescriptorError):
        Priority.parse(raw)


def test_sort_is_stable_within_a_priority_class():
    priorities = [2, 0, 1, 0, 2, 1]
    cloudlets = [Cloudlet(i, 1000 * (10 - i), priority=p) for i, p in enumerate(priorities)]

    ordered = sort_by_priority(cloudlets)

    assert [c.cloudlet_id for c in ordered] == [1, 3, 2, 5, 0, 4]
    # input list untouched
    assert [c.cloudlet_id for c in cloudlets] == [0, 1, 2, 3, 4, 5]


def test_validate_normalises_priority():
    cloudlet = Cloudlet(0, 40000, priority="low")
    cloudlet.validate()
    assert cloudlet.priority is Priority.LOW


@pytest.mark.parametrize("kwargs", [
    {"length": 0},
    {"length": -10},
    {"length": 1000, "pe_count": 0},
    {"length": 1000, "file_size": -1},
    {"length": 1000, "priority": "whenever"},
])
def test_validate_rejects_bad_descriptors(kwargs):
    cloudlet = Cloudlet(0, **kwargs)
    with pytest.raises(InvalidDescriptorError):
        cloudlet.validate()


def test_status_moves_forward_only():
    cloudlet = Cloudlet(0, 1000)
    cloudlet.mark_queued(0.0)
    cloudlet.mark_started(1.0)
    cloudlet.mark_finished(3.0)

    assert cloudlet.status is CloudletStatus.SUCCESS
    assert cloudlet.actual_cpu_time == 2.0
    assert cloudlet.wait_time == 1.0
    with pytest.raises(InvalidStatusTransition):
        cloudlet.mark_failed(4.0, "too late")
    with pytest.raises(InvalidStatusTransition):
        cloudlet.set_status(CloudletStatus.QUEUED)


def test_created_cloudlet_cannot_start_directly():
    cloudlet = Cloudlet(0, 1000)
    with pytest.raises(InvalidStatusTransition):
        cloudlet.mark_started(0.0)


def test_failure_keeps_reason():
    cloudlet = Cloudlet(4, 1000)
    cloudlet.mark_queued(0.0)
    cloudlet.mark_failed(0.0, "no VM available")
    assert cloudlet.status.is_final
    assert cloudlet.failure_reason == "no VM available"
    assert cloudlet.actual_cpu_time == 0.0


def test_processing_cost():
    cloudlet = Cloudlet(0, 1000, file_size=300, output_size=300)
    cloudlet.cost_per_bw = 0.1
    cloudlet.cost_per_sec = 3.0
    cloudlet.mark_queued(0.0)
    cloudlet.mark_started(0.0)
    cloudlet.mark_finished(2.0)
    assert cloudlet.processing_cost == pytest.approx(60.0 + 6.0)
