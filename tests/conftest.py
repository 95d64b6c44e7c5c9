"""Shared fixtures for the simulator tests."""

import pytest

from cloudlet_sim.core import CloudSimulator, CloudletSpec, DatacenterSpec, HostSpec, VmSpec
from cloudlet_sim.scheduling import CloudletSchedulingPolicy


class Recorder:
    """Minimal entity that remembers what it was sent."""

    def __init__(self, engine, name="recorder"):
        self.engine = engine
        self.name = name
        self.received = []
        self.started = False
        self.shut_down = False
        self.entity_id = engine.register(self)

    def start_entity(self):
        self.started = True

    def process_event(self, event):
        self.received.append(event)

    def shutdown_entity(self):
        self.shut_down = True


@pytest.fixture
def recorder_cls():
    return Recorder


@pytest.fixture
def single_pe_space_shared():
    """One 1000 MIPS PE, one space-shared VM, three cloudlets submitted LOW, HIGH, MEDIUM."""
    sim = CloudSimulator()
    sim.build_datacenter(DatacenterSpec(hosts=[HostSpec(pe_count=1, mips_per_pe=1000)]))
    sim.submit_vms([VmSpec(mips=1000, scheduling_policy=CloudletSchedulingPolicy.SPACE_SHARED)])
    sim.submit_cloudlets([
        CloudletSpec(length=1000, priority="low"),
        CloudletSpec(length=2000, priority="high"),
        CloudletSpec(length=3000, priority="medium"),
    ])
    return sim
