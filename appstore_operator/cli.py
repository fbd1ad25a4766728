"""Command line interface: ``appstore-operator``."""

from __future__ import annotations

import asyncio
import logging
import signal
import uuid
from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from appstore_operator.constants.enums import MessageType
from appstore_operator.controllers.charts import ChartMirror, MirrorSyncError
from appstore_operator.models.messages import DeploymentRequestPayload
from appstore_operator.models.state import ConfigLoadError, OperatorSettings, load_settings

app = typer.Typer(no_args_is_help=True, help="Kubernetes operator for the application store.")
console = Console()

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
    # chatty at INFO
    logging.getLogger("aiormq").setLevel(logging.WARNING)
    logging.getLogger("aio_pika").setLevel(logging.WARNING)


def _settings(log_level: str | None) -> OperatorSettings:
    overrides = {"log_level": log_level} if log_level else {}
    try:
        settings = load_settings(**overrides)
    except ConfigLoadError as exc:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc
    configure_logging(settings.log_level)
    return settings


def _mirror(settings: OperatorSettings) -> ChartMirror:
    return ChartMirror(
        repo_url=settings.charts_repo_url,
        local_path=settings.charts_path,
        branch=settings.charts_branch,
        sync_interval=settings.charts_sync_interval,
        git_binary=settings.git_binary,
    )


@app.command("run")
def run(
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="Override log level"),
) -> None:
    """Run the operator until SIGINT/SIGTERM."""
    from appstore_operator.runtime import Operator

    settings = _settings(log_level)
    if not settings.charts_repo_url:
        console.print("[red]APPSTORE_CHARTS_REPO_URL is required[/red]")
        raise typer.Exit(code=2)

    async def _main() -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
        operator = Operator.from_settings(settings)
        await operator.run(stop)

    try:
        asyncio.run(_main())
    except MirrorSyncError as exc:
        logger.error("Initial chart sync failed: %s", exc)
        raise typer.Exit(code=1) from exc


@app.command("sync-charts")
def sync_charts(
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="Override log level"),
) -> None:
    """Clone or update the local chart mirror once."""
    settings = _settings(log_level)
    mirror = _mirror(settings)
    try:
        mirror.start()
    except MirrorSyncError as exc:
        console.print(f"[red]Chart sync failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    charts = mirror.list()
    console.print(f"[green]Synced[/green] {len(charts)} chart(s) into {settings.charts_path}")


@app.command("list-charts")
def list_charts() -> None:
    """List the charts available in the local mirror."""
    settings = _settings(None)
    mirror = _mirror(settings)
    names = mirror.list()
    if not names:
        console.print(f"[yellow]No charts found in {settings.charts_path}[/yellow]")
        return

    table = Table(title="Available charts")
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("App version")
    table.add_column("Description")
    for name in names:
        meta = mirror.metadata(name)
        if meta is None:
            table.add_row(name, "-", "-", "[red]invalid Chart.yaml[/red]")
            continue
        table.add_row(name, meta.version, meta.app_version, meta.description)
    console.print(table)


@app.command("request")
def request(
    app_name: str = typer.Argument(..., help="Chart to deploy"),
    team: str = typer.Option(..., "--team", "-t", help="Requesting team id"),
    namespace: str = typer.Option(..., "--namespace", "-n", help="Target namespace"),
    user: str = typer.Option("", "--user", "-u", help="Requesting user id"),
    release_name: str | None = typer.Option(None, "--release-name", help="Explicit release name"),
    version: str | None = typer.Option(None, "--version", help="Chart version"),
    values_file: Path | None = typer.Option(
        None, "--values", "-f", exists=True, dir_okay=False, help="YAML values file"
    ),
) -> None:
    """Publish a deployment request onto the message bus."""
    from appstore_operator.messaging import MessagePublisher

    settings = _settings(None)
    values = None
    if values_file is not None:
        with open(values_file, encoding="utf-8") as f:
            values = yaml.safe_load(f) or {}
        if not isinstance(values, dict):
            console.print("[red]Values file must contain a mapping[/red]")
            raise typer.Exit(code=2)

    request_id = str(uuid.uuid4())
    payload = DeploymentRequestPayload(
        request_id=request_id,
        team_id=team,
        user_id=user,
        app_name=app_name,
        namespace=namespace,
        release_name=release_name,
        version=version,
        values=values,
    )

    async def _publish() -> None:
        async with MessagePublisher(
            amqp_url=settings.amqp_url,
            exchange=settings.exchange,
            source=settings.message_source,
        ) as publisher:
            await publisher.publish(MessageType.DEPLOYMENT_REQUEST, payload, message_id=request_id)

    try:
        asyncio.run(_publish())
    except OSError as exc:
        console.print(f"[red]Could not reach the broker:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Requested[/green] {app_name} for team {team} (request {request_id})")


if __name__ == "__main__":
    app()
