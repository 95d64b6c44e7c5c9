"""Utility modules for the cloudlet simulator."""

from .config import (
    ScenarioConfig,
    GeneratorConfig,
    load_config,
    save_config,
    save_results,
    build_simulator,
    create_default_config,
)

__all__ = [
    "ScenarioConfig",
    "GeneratorConfig",
    "load_config",
    "save_config",
    "save_results",
    "build_simulator",
    "create_default_config",
]
