"""Command-line interface for the cloudlet simulator."""

import typer
from typing import List, Optional
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from loguru import logger

from .core.cloudlet import Cloudlet, CloudletStatus, Priority
from .core.simulator import CompletedCloudletRecord
from .evaluation.metrics import SimulationAnalyzer, records_to_dataframe
from .scheduling.cloudlet_schedulers import CloudletSchedulingPolicy
from .utils.config import ScenarioConfig, build_simulator, create_default_config, load_config, save_results

app = typer.Typer(name="cloudlet-sim", help="Priority-aware cloudlet scheduling simulator")
console = Console()

@app.command()
def run(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Scenario file (YAML or JSON)"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for generated cloudlets"),
    cloudlets: Optional[int] = typer.Option(None, "--cloudlets", "-n", help="Number of generated cloudlets"),
    vm_policy: Optional[CloudletSchedulingPolicy] = typer.Option(
        None, "--vm-policy", help="Cloudlet scheduling policy applied to every VM"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run a priority scheduling simulation."""

    if verbose:
        logger.remove()
        logger.add("logs/simulation_{time}.log", level="DEBUG")
        logger.add(lambda msg: console.print(msg, style="dim", end=""), level="INFO")

    console.print("Starting cloudlet simulation", style="bold blue")

    if config and config.exists():
        scenario = load_config(config)
        console.print(f"Loaded configuration from {config}")
    else:
        scenario = ScenarioConfig()
        console.print("Using default configuration")

    if seed is not None:
        scenario.random_seed = seed
    if cloudlets is not None:
        scenario.generator.count = cloudlets
    if vm_policy is not None:
        for vm in scenario.vms:
            vm.scheduling_policy = vm_policy

    simulator = build_simulator(scenario)

    display_cloudlet_order("Cloudlets BEFORE sorting (by priority)", simulator.broker.cloudlet_arrival_list)
    display_cloudlet_order("Cloudlets AFTER sorting (by priority)", simulator.broker.cloudlet_list)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Simulating...", total=None)
        result = simulator.run()
        progress.update(task, description="Simulation completed")

    display_cloudlet_results(result.records)

    analyzer = SimulationAnalyzer()
    analysis = analyzer.analyze_simulation(result)
    display_results_summary(analysis)

    if result.rejected:
        for item, reason in result.rejected:
            console.print(f"Rejected {item}: {reason}", style="yellow")

    if output:
        output_dir = Path(output)
        save_results(analysis, output_dir)
        records_to_dataframe(result.records).to_csv(output_dir / "cloudlets.csv", index=False)
        console.print(f"Results saved to {output_dir}")

    console.print("Simulation completed successfully!", style="bold green")

@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("configs/default.yaml"), help="Where to write the scenario file"),
) -> None:
    """Write the default scenario file."""
    create_default_config(path)
    console.print(f"Default configuration written to {path}")


def display_cloudlet_order(title: str, cloudlets: List[Cloudlet]) -> None:
    table = Table(title=title)
    table.add_column("Cloudlet ID", style="cyan")
    table.add_column("Priority", style="magenta")
    table.add_column("Length", style="green")

    for cloudlet in cloudlets:
        priority = Priority.parse(cloudlet.priority)
        table.add_row(str(cloudlet.cloudlet_id), f"{int(priority)} ({priority.name})", str(cloudlet.length))

    console.print(table)

def display_cloudlet_results(records: List[CompletedCloudletRecord]) -> None:
    """Per-cloudlet output table, in completion order."""

    table = Table(title="OUTPUT")
    table.add_column("Cloudlet ID", style="cyan")
    table.add_column("STATUS")
    table.add_column("Priority", style="magenta")
    table.add_column("Data center ID")
    table.add_column("VM ID")
    table.add_column("Time", style="green")
    table.add_column("Finish Time", style="green")

    for record in records:
        if record.status is CloudletStatus.SUCCESS:
            table.add_row(
                str(record.cloudlet_id),
                "[green]SUCCESS[/green]",
                str(int(record.priority)),
                str(record.datacenter_id),
                str(record.vm_id),
                f"{record.actual_cpu_time:.2f}",
                f"{record.finish_time:.2f}",
            )
        else:
            table.add_row(str(record.cloudlet_id), "[red]FAILED[/red]", str(int(record.priority)),
                          "", "", "", "")

    console.print(table)

def display_results_summary(analysis: dict) -> None:
    """Display simulation results summary."""

    table = Table(title="Simulation Results Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Unit", style="yellow")

    summary = analysis.get('summary', {})
    timing = analysis.get('timing_metrics', {})
    cost = analysis.get('cost_metrics', {})

    metrics = [
        ("Total Cloudlets", f"{summary.get('total_cloudlets', 0)}", "count"),
        ("Successful Cloudlets", f"{summary.get('successful_cloudlets', 0)}", "count"),
        ("Failed Cloudlets", f"{summary.get('failed_cloudlets', 0)}", "count"),
        ("VMs Created", f"{summary.get('vms_created', 0)}", "count"),
        ("VMs Failed", f"{summary.get('vms_failed', 0)}", "count"),
        ("Makespan", f"{timing.get('makespan', 0):.2f}", "seconds"),
        ("Average CPU Time", f"{timing.get('avg_cpu_time', 0):.2f}", "seconds"),
        ("Total Cost", f"{cost.get('total_cost', 0):.2f}", "units"),
        ("Priority Inversions", f"{analysis.get('priority_inversions', 0)}", "count"),
    ]

    for metric, value, unit in metrics:
        table.add_row(metric, value, unit)

    console.print(table)

def main() -> None:
    """Main entry point."""
    app()

if __name__ == "__main__":
    main()
