from pathlib import Path

import pytest

from cloudlet_sim.core.specs import CloudletSpec, HostSpec
from cloudlet_sim.scheduling import AllocationPolicy, VmSchedulingPolicy
from cloudlet_sim.utils.config import (
    ScenarioConfig,
    create_default_config,
    load_config,
    save_config,
)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"


def test_default_scenario_shape():
    config = ScenarioConfig()
    assert len(config.datacenter.hosts) == 1
    assert config.datacenter.hosts[0].pe_count == 1
    assert config.datacenter.hosts[0].mips_per_pe == 1000
    assert len(config.vms) == 3
    assert config.generator.count == 8


@pytest.mark.parametrize("suffix", [".yaml", ".json"])
def test_save_and_load_round_trip(tmp_path, suffix):
    config = ScenarioConfig(random_seed=3, terminate_at=500.0)
    config.datacenter.hosts = [HostSpec(pe_count=4, vm_scheduler=VmSchedulingPolicy.SPACE_SHARED)]
    config.cloudlets = [CloudletSpec(length=1234, priority="high")]

    path = tmp_path / f"scenario{suffix}"
    save_config(config, path)
    loaded = load_config(path)

    assert loaded == config


def test_load_rejects_unknown_format(tmp_path):
    path = tmp_path / "scenario.toml"
    path.write_text("random_seed = 1\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_load_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config(Path("does/not/exist.yaml"))


def test_load_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    with pytest.raises(ValueError):
        load_config(path)


def test_shipped_configs_load():
    default = load_config(CONFIG_DIR / "default.yaml")
    assert default == ScenarioConfig(experiment=default.experiment)

    space_shared = load_config(CONFIG_DIR / "space_shared.yaml")
    assert all(h.vm_scheduler is VmSchedulingPolicy.SPACE_SHARED for h in space_shared.datacenter.hosts)
    assert space_shared.datacenter.allocation_policy in set(AllocationPolicy)


def test_resolve_cloudlets_is_seeded():
    first = ScenarioConfig(random_seed=11).resolve_cloudlets()
    second = ScenarioConfig(random_seed=11).resolve_cloudlets()
    assert first == second
    assert len(first) == 8
    assert all(40000 <= spec.length < 60000 for spec in first)


def test_explicit_cloudlets_win_over_generator():
    config = ScenarioConfig(cloudlets=[CloudletSpec(length=10), CloudletSpec(length=20)])
    assert [spec.length for spec in config.resolve_cloudlets()] == [10, 20]


def test_create_default_config(tmp_path):
    path = tmp_path / "configs" / "default.yaml"
    config = create_default_config(path)
    assert path.exists()
    assert load_config(path) == config
