import pytest

from cloudlet_sim.core.host import Host
from cloudlet_sim.core.vm import VirtualMachine
from cloudlet_sim.scheduling.allocation import AllocationPolicy, create_allocation_policy
from cloudlet_sim.scheduling.vm_schedulers import VmSchedulingPolicy


def make_host(host_id=0, pe_count=1, mips=1000, ram=2048, bw=10000, storage=100000,
              policy=VmSchedulingPolicy.TIME_SHARED):
    return Host.build(host_id, pe_count, mips, ram, bw, storage, policy)


def test_place_and_remove_vm():
    host = make_host()
    vm = VirtualMachine(0, 1000, ram=1024, bw=1000, size=1000)

    assert host.try_place_vm(vm)
    assert vm.host_id == 0
    assert host.committed() == {"ram": 1024, "bw": 1000, "storage": 1000, "mips": 1000.0}

    host.remove_vm(0)
    assert not vm.is_placed
    assert host.committed() == {"ram": 0, "bw": 0, "storage": 0, "mips": 0.0}


def test_failed_placement_rolls_back_everything():
    host = make_host(bw=500)
    vm = VirtualMachine(0, 500, ram=512, bw=1000, size=1000)

    assert not host.try_place_vm(vm)
    assert not vm.is_placed
    assert host.committed() == {"ram": 0, "bw": 0, "storage": 0, "mips": 0.0}


def test_time_shared_rejects_pe_faster_than_host_peak():
    host = make_host(pe_count=2, mips=1000)
    vm = VirtualMachine(0, 1500)
    assert not host.is_suitable_for_vm(vm)
    assert not host.try_place_vm(vm)
    assert host.committed()["ram"] == 0


def test_time_shared_rejects_when_host_mips_exhausted():
    host = make_host(pe_count=1, mips=1000, ram=8192)
    assert host.try_place_vm(VirtualMachine(0, 1000))
    assert not host.try_place_vm(VirtualMachine(1, 1000))
    assert [vm.vm_id for vm in host.vm_list] == [0]


def test_time_shared_may_split_a_virtual_pe():
    host = make_host(pe_count=2, mips=1000, ram=8192)
    assert host.try_place_vm(VirtualMachine(0, 600))
    assert host.try_place_vm(VirtualMachine(1, 1000))

    assert host.vm_scheduler.get_allocated_mips_for_vm(1) == [1000.0]
    assert host.vm_scheduler.available_mips == pytest.approx(400.0)


def test_space_shared_needs_whole_free_pes():
    host = make_host(pe_count=2, mips=1000, ram=8192, policy=VmSchedulingPolicy.SPACE_SHARED)
    assert host.try_place_vm(VirtualMachine(0, 500))
    assert host.vm_scheduler.free_pe_count == 1
    assert not host.try_place_vm(VirtualMachine(1, 500, pe_count=2))
    assert host.try_place_vm(VirtualMachine(2, 500))
    assert host.vm_scheduler.free_pe_count == 0


def test_first_fit_uses_registration_order():
    hosts = [make_host(0), make_host(1)]
    policy = create_allocation_policy(AllocationPolicy.FIRST_FIT, hosts)

    assert policy.allocate_vm(VirtualMachine(0, 1000))
    assert policy.allocate_vm(VirtualMachine(1, 1000))
    assert policy.get_host(0) is hosts[0]
    assert policy.get_host(1) is hosts[1]
    assert not policy.allocate_vm(VirtualMachine(2, 1000))


def test_least_loaded_prefers_most_free_pes():
    hosts = [make_host(0, pe_count=1, ram=8192), make_host(1, pe_count=4, ram=8192)]
    policy = create_allocation_policy(AllocationPolicy.LEAST_LOADED, hosts)

    assert policy.allocate_vm(VirtualMachine(0, 500))
    assert policy.get_host(0) is hosts[1]

    policy.deallocate_vm(0)
    assert policy.get_host(0) is None
    assert hosts[1].vm_list == []
