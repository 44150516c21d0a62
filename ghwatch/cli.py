"""CLI entry point for ghwatch."""

from __future__ import annotations

import logging
import signal

import typer
from rich import print as rprint
from rich.logging import RichHandler

from ghwatch.config import Config, load_targets
from ghwatch.errors import ConfigError
from ghwatch.github.client import GitHubClient
from ghwatch.github.facts import FactsProvider
from ghwatch.models import MonitorTarget, OrganizationTarget, RepositoryTarget
from ghwatch.notify.base import build_notifier
from ghwatch.runner import BatchRunner
from ghwatch.scheduler import Scheduler
from ghwatch.storage.state import StateStore

app = typer.Typer(help="Watch GitHub repositories and organizations for new commits and releases.")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_config() -> Config:
    config = Config.load()
    _configure_logging(config.log_level)
    issues = config.validate()
    if issues:
        for issue in issues:
            rprint(f"[red]Config error: {issue}[/red]")
        raise typer.Exit(1)
    return config


def _load_targets(config: Config) -> list[MonitorTarget]:
    try:
        return load_targets(config.targets_path)
    except ConfigError as e:
        rprint(f"[red]Config error: {e}[/red]")
        raise typer.Exit(1)


def _mark(flag: bool) -> str:
    return "[green]yes[/green]" if flag else "[red]no[/red]"


def _print_targets(targets: list[MonitorTarget]) -> None:
    repositories = [t for t in targets if isinstance(t, RepositoryTarget)]
    organizations = [t for t in targets if isinstance(t, OrganizationTarget)]
    rprint(
        f"Loaded [bold]{len(repositories)}[/bold] repositories and "
        f"[bold]{len(organizations)}[/bold] organizations to monitor:"
    )
    for i, repo in enumerate(repositories, 1):
        branch = f" ({repo.branch})" if repo.branch else ""
        rprint(f"  {i}. {repo.key}{branch} - {repo.description or 'No description'}")
        rprint(f"     Commits: {_mark(repo.watch_commits)} | Releases: {_mark(repo.watch_releases)}")
    for i, org in enumerate(organizations, 1):
        rprint(f"  O{i}. Organization: {org.org} - {org.description or 'No description'}")
        rprint(
            f"     New Repos: {_mark(org.watch_new_repos)} | Commits: {_mark(org.watch_commits)}"
            f" | Releases: {_mark(org.watch_releases)} | Exclude Forks: {_mark(org.exclude_forks)}"
        )


def _build_runner(config: Config) -> tuple[BatchRunner, GitHubClient]:
    client = GitHubClient(token=config.github_token, timeout=config.http_timeout)
    runner = BatchRunner(
        facts=FactsProvider(client),
        notifier=build_notifier(config),
        store=StateStore(config.state_path),
        max_repositories_per_org=config.org_repo_check_limit,
    )
    return runner, client


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Runs scheduled monitoring when no command is given."""
    if ctx.invoked_subcommand is None:
        start()


@app.command()
def start() -> None:
    """Start scheduled monitoring (runs a check immediately)."""
    config = _load_config()
    targets = _load_targets(config)
    _print_targets(targets)

    runner, client = _build_runner(config)
    if runner.test_connection():
        rprint("[green]Notifications enabled[/green]")
    else:
        rprint("[yellow]Notifications disabled or unavailable[/yellow]")

    def check() -> None:
        summary = runner.run_batch(targets)
        rprint(summary.to_text())

    scheduler = Scheduler(check, interval=config.check_interval * 60)

    def shutdown(signum, frame) -> None:
        rprint("\n[bold]Shutting down GitHub Monitor...[/bold]")
        scheduler.stop()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    rprint(f"Checking every [bold]{config.check_interval}[/bold] minutes")
    try:
        scheduler.start()
    finally:
        client.close()


@app.command("check-now")
def check_now(
    json_output: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
) -> None:
    """Run a single check of every target and exit."""
    config = _load_config()
    targets = _load_targets(config)

    runner, client = _build_runner(config)
    try:
        summary = runner.run_batch(targets)
    finally:
        client.close()

    if json_output:
        typer.echo(summary.to_json())
    else:
        rprint(summary.to_text())


@app.command("test-notification")
def test_notification() -> None:
    """Send a test notification through every enabled channel."""
    config = Config.load()
    _configure_logging(config.log_level)
    notifier = build_notifier(config)

    result = notifier.send_test_notification()
    if result.success:
        rprint("[green]Test notification sent successfully![/green]")
    else:
        rprint(f"[red]Failed to send test notification: {result.error}[/red]")
        rprint("Please check your configuration.")
        raise typer.Exit(1)


app.command("test-email", hidden=True)(test_notification)


@app.command()
def targets() -> None:
    """List the configured targets and what is watched on each."""
    config = Config.load()
    _print_targets(_load_targets(config))


if __name__ == "__main__":
    app()
