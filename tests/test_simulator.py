import numpy as np
import pytest

from cloudlet_sim.core import (
    CloudSimulator,
    CloudletSpec,
    CloudletStatus,
    DatacenterSpec,
    HostSpec,
    Priority,
    SimulationConfig,
    SimulationStateError,
    VmSpec,
)
from cloudlet_sim.scheduling import CloudletSchedulingPolicy, VmSchedulingPolicy
from cloudlet_sim.utils.config import ScenarioConfig, build_simulator


def test_high_priority_runs_first_on_a_single_pe(single_pe_space_shared):
    result = single_pe_space_shared.run()

    assert result.completion_order == [1, 2, 0]
    finish = {r.cloudlet_id: r.finish_time for r in result.records}
    assert finish == {1: pytest.approx(2.0), 2: pytest.approx(5.0), 0: pytest.approx(6.0)}
    assert all(r.status is CloudletStatus.SUCCESS for r in result.records)


def test_records_keep_submitted_id_and_priority(single_pe_space_shared):
    result = single_pe_space_shared.run()
    priorities = {r.cloudlet_id: r.priority for r in result.records}
    assert priorities == {0: Priority.LOW, 1: Priority.HIGH, 2: Priority.MEDIUM}
    assert {r.vm_id for r in result.records} == {0}
    assert {r.datacenter_id for r in result.records} == {single_pe_space_shared.datacenter.entity_id}


def test_results_unavailable_before_the_run(single_pe_space_shared):
    with pytest.raises(SimulationStateError):
        single_pe_space_shared.results
    result = single_pe_space_shared.run()
    assert single_pe_space_shared.results is result


def test_run_without_datacenter_raises():
    sim = CloudSimulator()
    with pytest.raises(SimulationStateError):
        sim.run()


def test_second_datacenter_is_refused():
    sim = CloudSimulator()
    sim.build_datacenter(DatacenterSpec())
    with pytest.raises(SimulationStateError):
        sim.build_datacenter(DatacenterSpec())


def test_default_scenario_places_one_vm_and_finishes_everything():
    result = build_simulator(ScenarioConfig()).run()

    assert result.vms_created == [0]
    assert result.vms_failed == [1, 2]
    assert len(result.records) == 8
    assert all(r.status is CloudletStatus.SUCCESS for r in result.records)
    assert {r.vm_id for r in result.records} == {0}
    assert all(r.actual_cpu_time > 0 for r in result.records)


def test_runs_are_deterministic_for_a_seed():
    first = build_simulator(ScenarioConfig(random_seed=7)).run()
    second = build_simulator(ScenarioConfig(random_seed=7)).run()
    assert [r.to_dict() for r in first.records] == [r.to_dict() for r in second.records]
    assert first.clock == second.clock


def test_cloudlet_wider_than_its_vm_fails_without_running():
    sim = CloudSimulator()
    sim.build_datacenter(DatacenterSpec())
    sim.submit_vms([VmSpec(pe_count=1)])
    sim.submit_cloudlets([CloudletSpec(length=1000, pe_count=2), CloudletSpec(length=1000)])

    result = sim.run()
    records = {r.cloudlet_id: r for r in result.records}
    assert records[0].status is CloudletStatus.FAILED
    assert records[0].start_time is None
    assert "PEs" in records[0].failure_reason
    assert records[1].status is CloudletStatus.SUCCESS


def test_terminate_at_fails_unfinished_cloudlets():
    scenario = ScenarioConfig(terminate_at=1.0)
    sim = build_simulator(scenario)
    result = sim.run()

    assert len(result.records) == 8
    assert all(r.status is CloudletStatus.FAILED for r in result.records)
    assert all(r.failure_reason == "simulation ended before completion" for r in result.records)


def test_submission_ids_are_sequential():
    sim = CloudSimulator(SimulationConfig(broker_name="User"))
    sim.build_datacenter(DatacenterSpec())
    first = sim.submit_cloudlets([CloudletSpec(), CloudletSpec()])
    second = sim.submit_cloudlets([CloudletSpec()])
    assert [c.cloudlet_id for c in first.accepted + second.accepted] == [0, 1, 2]
    assert sim.broker.name == "User"


def random_scenario(rng):
    hosts = [
        HostSpec(
            pe_count=int(rng.integers(1, 5)),
            mips_per_pe=float(rng.integers(500, 2001)),
            ram=int(rng.integers(1024, 8193)),
            vm_scheduler=VmSchedulingPolicy.SPACE_SHARED if rng.random() < 0.5 else VmSchedulingPolicy.TIME_SHARED,
        )
        for _ in range(int(rng.integers(1, 4)))
    ]
    vms = [
        VmSpec(
            mips=float(rng.integers(250, 1501)),
            pe_count=int(rng.integers(1, 3)),
            ram=int(rng.integers(256, 2049)),
            scheduling_policy=(CloudletSchedulingPolicy.SPACE_SHARED if rng.random() < 0.5
                               else CloudletSchedulingPolicy.TIME_SHARED),
        )
        for _ in range(int(rng.integers(1, 5)))
    ]
    cloudlets = [
        CloudletSpec(
            length=int(rng.integers(1000, 20001)),
            pe_count=int(rng.integers(1, 3)),
            priority=int(rng.integers(0, 3)),
        )
        for _ in range(int(rng.integers(1, 11)))
    ]
    return DatacenterSpec(hosts=hosts), vms, cloudlets


@pytest.mark.parametrize("seed", range(10))
def test_random_scenarios_respect_capacity_and_finish(seed):
    rng = np.random.default_rng(seed)
    datacenter, vms, cloudlets = random_scenario(rng)

    sim = CloudSimulator()
    sim.build_datacenter(datacenter)
    sim.submit_vms(vms)
    sim.submit_cloudlets(cloudlets)

    violations = []

    def check_capacity(event):
        for host in sim.datacenter.host_list:
            committed = host.committed()
            if committed["ram"] > host.ram_provisioner.capacity:
                violations.append((event.sequence, host.host_id, "ram"))
            if committed["mips"] > host.total_mips + 1e-9:
                violations.append((event.sequence, host.host_id, "mips"))
            for pe in host.pe_list:
                if pe.provisioner.allocated > pe.mips + 1e-9:
                    violations.append((event.sequence, host.host_id, pe.pe_id))

    sim.engine.subscribe(check_capacity)
    result = sim.run()

    assert violations == []
    assert len(result.records) == len(cloudlets)
    assert all(r.status.is_final for r in result.records)
    keys = [e.order_key for e in sim.engine.trace]
    assert keys == sorted(keys)
    for record in result.records:
        if record.status is CloudletStatus.SUCCESS:
            assert record.finish_time >= record.start_time >= record.submission_time
