"""Command-line interface for the positive-response GLM tutorial."""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="posglm",
    help="Gamma and inverse Gaussian GLMs for positive continuous data.",
    no_args_is_help=True,
)

console = Console()

CASE_STUDIES = ('lime', 'perm')


def _load_or_simulate(which: str, data_config):
    """Load a configured CSV, or simulate when allowed; returns (data, simulated)."""
    from posglm.datasets import load_lime, load_perm, simulate_lime, simulate_perm

    loaders = {'lime': load_lime, 'perm': load_perm}
    simulators = {
        'lime': lambda: simulate_lime(seed=data_config.seed),
        'perm': lambda: simulate_perm(seed=data_config.seed),
    }
    path = getattr(data_config, which)
    if path is not None and Path(path).exists():
        return loaders[which](path), False
    if not data_config.simulate_missing:
        raise FileNotFoundError(
            f"No {which} data: set data.{which} to an existing CSV or enable data.simulate_missing"
        )
    return simulators[which](), True


@app.command()
def report(
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration YAML file.",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output HTML file (overrides the config)."),
    ] = None,
    only: Annotated[
        Optional[str],
        typer.Option("--only", help="Run one case study: 'lime' or 'perm'."),
    ] = None,
    save_figures: Annotated[
        bool,
        typer.Option("--save-figures", help="Also write each figure as PNG."),
    ] = False,
) -> None:
    """Run the case studies and write the HTML report."""
    import matplotlib

    matplotlib.use("Agg")

    from posglm._logging import configure_logging
    from posglm.case_studies import run_lime, run_perm
    from posglm.config import load_config
    from posglm.report import Report

    if only is not None and only not in CASE_STUDIES:
        console.print(f"[red]Error: Invalid case study '{only}'. Use 'lime' or 'perm'.[/red]")
        raise typer.Exit(code=1)

    try:
        cfg = load_config(config)
        configure_logging(cfg.log_level)
        runners = {'lime': run_lime, 'perm': run_perm}

        doc = Report()
        summary = Table(title="Case studies")
        summary.add_column("Study", style="cyan")
        summary.add_column("Data", style="yellow")
        summary.add_column("Main model", style="green")
        summary.add_column("AIC", style="magenta")

        for which in ([only] if only else CASE_STUDIES):
            data, simulated = _load_or_simulate(which, cfg.data)
            if simulated:
                doc.add_note(
                    f"The {which} data in this report are simulated "
                    f"(seed {cfg.data.seed}), not the measured data."
                )
            study = runners[which](data, cfg.fit, dispersion_method=cfg.dispersion_method)
            doc.add(study)
            main = study.main_model
            summary.add_row(
                study.title,
                "simulated" if simulated else str(getattr(cfg.data, which)),
                f"{main.family.name}, {main.link} link",
                f"{main.aic:.2f}",
            )

        path = output or cfg.report.path
        doc.write(path, dpi=cfg.report.dpi,
                  save_figures=save_figures or cfg.report.save_figures)
        doc.close()
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[red]Report failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(summary)
    console.print(f"\n[green]Report written to: {path}[/green]")


@app.command()
def simulate(
    output_dir: Annotated[
        Path,
        typer.Option("--output-dir", "-o", help="Directory for lime.csv and perm.csv."),
    ] = Path("data"),
    seed: Annotated[int, typer.Option("--seed", help="Random seed.")] = 0,
) -> None:
    """Write simulated lime and perm CSV files."""
    from posglm.datasets import write_example_data

    try:
        paths = write_example_data(output_dir, seed=seed)
    except OSError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e

    for name, path in paths.items():
        console.print(f"[green]{name}:[/green] {path}")


@app.command()
def backends() -> None:
    """Show which computational backends are available."""
    from posglm._backends import get_backend, list_available_backends

    available = list_available_backends()
    table = Table(title="Backends")
    table.add_column("Backend", style="cyan")
    table.add_column("Available", style="green")
    for name in ('cpu', 'pytorch', 'gpu'):
        table.add_row(name, "yes" if name in available else "no")
    console.print(table)
    console.print(f"Default ('auto'): [bold]{get_backend('auto').name}[/bold]")


if __name__ == "__main__":
    app()
