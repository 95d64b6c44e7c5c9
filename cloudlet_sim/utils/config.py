"""Configuration management utilities."""

from typing import Dict, Any, List, Optional
from pathlib import Path
import yaml
import json
from pydantic import BaseModel, Field
from loguru import logger

from ..core.simulator import CloudSimulator, SimulationConfig
from ..core.specs import CloudletSpec, DatacenterSpec, VmSpec
from ..data.generators import CloudletGenerator


class GeneratorConfig(BaseModel):
    """Random cloudlet generation, used when no explicit cloudlets are listed."""

    count: int = Field(8, ge=0)
    min_length: int = Field(40000, gt=0)
    max_length: int = Field(60000, gt=0)
    pe_count: int = Field(1, gt=0)
    file_size: int = Field(300, ge=0)
    output_size: int = Field(300, ge=0)
    priority_weights: Optional[List[float]] = None


class ScenarioConfig(BaseModel):
    """A complete simulation scenario."""

    random_seed: Optional[int] = 42
    terminate_at: Optional[float] = None
    datacenter: DatacenterSpec = Field(default_factory=DatacenterSpec)
    vms: List[VmSpec] = Field(default_factory=lambda: [VmSpec() for _ in range(3)])
    cloudlets: List[CloudletSpec] = Field(default_factory=list)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)

    # Experiment metadata
    experiment: Dict[str, Any] = Field(default_factory=dict)

    def resolve_cloudlets(self) -> List[CloudletSpec]:
        """Explicit cloudlets if any, otherwise seeded random ones."""
        if self.cloudlets:
            return list(self.cloudlets)
        generator = CloudletGenerator(self.random_seed)
        return generator.generate_cloudlets(
            self.generator.count,
            min_length=self.generator.min_length,
            max_length=self.generator.max_length,
            pe_count=self.generator.pe_count,
            file_size=self.generator.file_size,
            output_size=self.generator.output_size,
            priority_weights=self.generator.priority_weights,
        )


def load_config(config_path: Path) -> ScenarioConfig:
    """Load configuration from file."""

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, 'r') as f:
        if config_path.suffix.lower() in ['.yaml', '.yml']:
            config_data = yaml.safe_load(f)
        elif config_path.suffix.lower() == '.json':
            config_data = json.load(f)
        else:
            raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    if config_data is None:
        raise ValueError(f"Config file is empty: {config_path}")

    config = ScenarioConfig.model_validate(config_data)

    logger.info(f"Configuration loaded: {len(config.datacenter.hosts)} hosts, "
                f"{len(config.vms)} VMs, seed {config.random_seed}")

    return config


def save_config(config: ScenarioConfig, config_path: Path) -> None:
    """Save configuration to file."""

    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(mode='json')

    with open(config_path, 'w') as f:
        if config_path.suffix.lower() in ['.yaml', '.yml']:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)
        elif config_path.suffix.lower() == '.json':
            json.dump(config_dict, f, indent=2)
        else:
            raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    logger.info(f"Configuration saved to {config_path}")


def build_simulator(config: ScenarioConfig) -> CloudSimulator:
    """Create a simulator with the scenario's datacenter, VMs and cloudlets submitted."""

    simulator = CloudSimulator(SimulationConfig(terminate_at=config.terminate_at))
    simulator.build_datacenter(config.datacenter)
    simulator.submit_vms(config.vms)
    simulator.submit_cloudlets(config.resolve_cloudlets())
    return simulator


def save_results(analysis: Dict[str, Any], output_dir: Path) -> None:
    """Save simulation results to files."""

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    results_file = output_dir / "simulation_results.json"
    with open(results_file, 'w') as f:
        json.dump(analysis, f, indent=2, default=str)

    logger.info(f"Results saved to {results_file}")


def create_default_config(config_path: Path = Path("configs/default.yaml")) -> ScenarioConfig:
    """Write the default scenario: one single-PE host, three VMs, eight cloudlets."""

    config = ScenarioConfig(
        experiment={
            'name': 'priority_scheduling',
            'description': 'Eight random-priority cloudlets on three time-shared VMs',
        }
    )
    save_config(config, config_path)
    logger.info(f"Default configuration written to {config_path}")
    return config
