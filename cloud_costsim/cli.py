"""Command-line interface for the cost-aware cloud simulator."""

import typer
from typing import Optional
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from loguru import logger

from .core.simulator import SimulationConfig
from .errors import ConfigurationError
from .evaluation.report import Report, format_report
from .experiment import run_experiment
from .utils.config import Config, create_default_configs, load_config, save_results

app = typer.Typer(name="cloud-costsim", help="Cost-aware Cloud Allocation Simulator")
console = Console()


@app.command()
def simulate(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    duration: Optional[float] = typer.Option(None, "--duration", "-d", help="Maximum simulated seconds"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run a cost-aware simulation with reactive autoscaling."""

    if verbose:
        logger.remove()
        logger.add("logs/simulation_{time}.log", level="DEBUG")
        logger.add(lambda msg: console.print(msg, style="dim", end=""), level="INFO")

    console.print("🚀 Starting Cost-Aware Cloud Simulation", style="bold blue")

    try:
        if config is not None:
            sim_config = load_config(config)
            console.print(f"📋 Loaded configuration from {config}")
        else:
            sim_config = Config()
            console.print("📋 Using default configuration")

        if duration is not None:
            sim_config.simulation = SimulationConfig(
                scheduling_interval=sim_config.simulation.scheduling_interval,
                max_duration=duration,
                random_seed=sim_config.simulation.random_seed,
                enable_failures=sim_config.simulation.enable_failures,
                host_failure_rate=sim_config.simulation.host_failure_rate,
                host_recovery_time=sim_config.simulation.host_recovery_time,
            )
    except (ConfigurationError, ValueError, TypeError, FileNotFoundError) as e:
        console.print(f"❌ Invalid configuration: {e}", style="bold red")
        raise typer.Exit(code=1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Simulating...", total=None)
        try:
            result = run_experiment(sim_config)
        except ConfigurationError as e:
            console.print(f"❌ Invalid configuration: {e}", style="bold red")
            raise typer.Exit(code=1)
        progress.update(task, description="Simulation completed")

    display_results_summary(result.report)
    if verbose:
        console.print(format_report(result.report))

    if output:
        save_results(result.report, result.accountant.to_frame(), output)
        console.print(f"💾 Results saved to {output}")

    console.print("✅ Simulation completed successfully!", style="bold green")


@app.command("init-config")
def init_config(
    output_dir: Path = typer.Option(Path("configs"), "--output-dir", "-o", help="Directory for config files"),
) -> None:
    """Write the default configuration file."""
    path = create_default_configs(output_dir)
    console.print(f"📝 Default configuration written to {path}")


def display_results_summary(report: Report) -> None:
    """Display simulation results summary."""

    table = Table(title="Simulation Results Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Unit", style="yellow")

    metrics = [
        ("Simulated Time", f"{report.simulation_time:.1f}", "seconds"),
        ("Finished Workloads", f"{report.total_finished}", "count"),
        ("SLA Violations", f"{report.sla_violations}", "count"),
        ("SLA Violation Rate", f"{report.sla_violation_rate:.2%}", "percentage"),
        ("Average Execution Time", f"{report.avg_execution_time:.2f}", "seconds"),
        ("Energy Cost", f"{report.total_energy_cost:.4f}", "USD"),
        ("SLA Cost", f"{report.total_sla_cost:.2f}", "USD"),
        ("Total Cost", f"{report.total_cost:.4f}", "USD"),
        ("Scale Up Events", f"{report.scale_up_events}", "count"),
        ("Scale Down Events", f"{report.scale_down_events}", "count"),
    ]

    for metric, value, unit in metrics:
        table.add_row(metric, value, unit)

    console.print(table)

    host_table = Table(title="Resource Utilization")
    host_table.add_column("Host", style="cyan")
    host_table.add_column("CPU", style="green")
    host_table.add_column("Power (W)", style="yellow")
    for host in report.hosts:
        host_table.add_row(
            f"{host.host_id}{' (failed)' if host.is_failed else ''}",
            f"{host.cpu_utilization:.1%}",
            f"{host.power_watts:.1f}",
        )
    console.print(host_table)

    for warning in report.warnings:
        console.print(f"⚠️  {warning}", style="yellow")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
