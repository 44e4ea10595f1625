"""CLI commands for preparing the mirror and recording a run."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from .auditor import GitRepoAuditor
from .codec import PathCodecError
from .config import AuditorConfig, ConfigError, load_config
from .models import Deletion, Reconciliation
from .runfile import RunFileError, load_run
from .tools.vcs import GitError

APP_HELP = "Record group membership changes in a git mirror."

app = typer.Typer(help=APP_HELP)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_path: Path) -> AuditorConfig:
    try:
        return load_config(config_path)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _render_changes(changes: Reconciliation) -> None:
    for label, change_set in (("sync", changes.sync), ("valid", changes.valid)):
        typer.echo(f"{label}: {len(change_set)} change(s)")
        for filename, content in sorted(change_set.items()):
            verb = "delete" if isinstance(content, Deletion) else "write"
            typer.echo(f"  - {verb} {filename}")


@app.command()
def setup(
    config_path: Path = typer.Argument(..., help="Path to the auditor YAML configuration."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Clone or refresh the mirror working copy."""

    _configure_logging(debug)
    config = _load_config(config_path)
    try:
        GitRepoAuditor(config, {}).setup()
    except (GitError, OSError) as error:
        typer.echo(f"Setup failed: {error}")
        raise typer.Exit(code=1) from error
    typer.echo(f"Working copy ready at {config.checkout_directory}")


@app.command()
def plan(
    config_path: Path = typer.Argument(..., help="Path to the auditor YAML configuration."),
    run_path: Path = typer.Argument(..., help="Path to the YAML run description."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Show the sync and valid changes a run would commit."""

    _configure_logging(debug)
    config = _load_config(config_path)
    try:
        run = load_run(run_path)
    except RunFileError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    auditor = GitRepoAuditor(config, run.groups)
    try:
        changes = auditor.plan(run.actions, run.successful)
    except PathCodecError as error:
        typer.echo(f"Plan failed: {error}")
        raise typer.Exit(code=1) from error
    _render_changes(changes)


@app.command()
def run(
    config_path: Path = typer.Argument(..., help="Path to the auditor YAML configuration."),
    run_path: Path = typer.Argument(..., help="Path to the YAML run description."),
    message: str = typer.Option("", "--message", "-m", help="Override the configured commit message."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Prepare the working copy and commit the outcome of a run."""

    _configure_logging(debug)
    config = _load_config(config_path)
    try:
        run_file = load_run(run_path)
    except RunFileError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    exception = RuntimeError(run_file.provider_exception) if run_file.provider_exception else None
    auditor = GitRepoAuditor(config, run_file.groups)
    try:
        auditor.setup()
        changes = auditor.commit(
            actions=run_file.actions,
            successful_actions=run_file.successful,
            provider_exception=exception,
            commit_message=message or None,
        )
    except (GitError, OSError, PathCodecError) as error:
        typer.echo(f"Audit failed: {error}")
        raise typer.Exit(code=1) from error
    _render_changes(changes)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
