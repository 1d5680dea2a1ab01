"""Command line interface of opentray."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import anyenv
from platformdirs import user_log_path
import typer as t

from opentray import log
from opentray.config import APP_NAME, TrayConfig
from opentray.exceptions import ConfigValidationError


if TYPE_CHECKING:
    from opentray.commands import OperationOutcome
    from opentray.engine import SyncEngine
    from opentray.models import Instance, PermissionRequest, Session
    from opentray.reconcile import SessionState


logger = log.get_logger(__name__)

cli = t.Typer(name=APP_NAME, help="Companion client for running OpenCode instances", no_args_is_help=True)

VERBOSE_HELP = "Enable debug logging"
CONFIG_HELP = "Path to a YAML or JSON config file"
VERBOSE_CMDS = "-v", "--verbose"
CONFIG_CMDS = "-c", "--config"


@cli.callback()
def main(
    ctx: t.Context,
    verbose: Annotated[bool, t.Option(*VERBOSE_CMDS, help=VERBOSE_HELP)] = False,
    config: Annotated[Path | None, t.Option(*CONFIG_CMDS, help=CONFIG_HELP)] = None,
    log_to_file: Annotated[bool, t.Option("--log-file", help="Also log to a rotating file")] = False,
) -> None:
    """Discover and follow local OpenCode instances."""
    log_file = user_log_path(APP_NAME, appauthor=False) / f"{APP_NAME}.log" if log_to_file else None
    log.configure_logging("DEBUG" if verbose else "INFO", log_file=log_file)
    try:
        ctx.obj = TrayConfig.from_file(config) if config else TrayConfig()
    except (ConfigValidationError, OSError) as e:
        raise t.BadParameter(str(e), param_hint="--config") from e


@cli.command("discover")
def discover_command(
    ctx: t.Context,
    base_port: Annotated[int | None, t.Option("--base-port", help="First port to probe")] = None,
    port_count: Annotated[int | None, t.Option("--port-count", help="Number of ports to probe")] = None,
    as_json: Annotated[bool, t.Option("--json", help="Print instances as JSON")] = False,
) -> None:
    """Run one discovery cycle and print the instances found."""
    from opentray.discovery import InstanceLocator

    config: TrayConfig = ctx.obj
    overrides = {"base_port": base_port, "port_count": port_count}
    config = config.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    instances = asyncio.run(InstanceLocator(config).discover())
    if as_json:
        data = [i.model_dump(mode="json") for i in instances]
        t.echo(anyenv.dump_json(data, indent=True))
        return
    if not instances:
        t.echo("No OpenCode instances found", err=True)
        raise t.Exit(1)
    for instance in instances:
        t.echo(f"{instance.endpoint}  {instance.directory}  {instance.version or '?'}")


@cli.command("watch")
def watch_command(
    ctx: t.Context,
    port: Annotated[int | None, t.Option("--port", "-p", help="Port of the instance to follow")] = None,
    session: Annotated[str | None, t.Option("--session", "-s", help="Id of the session to follow")] = None,
) -> None:
    """Follow an instance and log every change until interrupted."""
    try:
        asyncio.run(_watch(ctx.obj, port, session))
    except KeyboardInterrupt:
        logger.info("Watch interrupted")


async def _watch(config: TrayConfig, port: int | None, session_id: str | None) -> None:
    from opentray.engine import SyncEngine

    async with SyncEngine(config) as engine:
        _connect_printers(engine)
        instances = await engine.discover()
        if port is not None:
            match = next((i for i in instances if i.port == port), None)
            if match is None:
                t.echo(f"No OpenCode instance on port {port}", err=True)
                raise t.Exit(1)
            await engine.select_instance(match)
        elif engine.repository.instance is None and instances:
            await engine.select_instance(instances[0])
        if session_id is not None:
            target = next((s for s in engine.repository.sessions if s.id == session_id), None)
            if target is None:
                t.echo(f"Session {session_id!r} not found", err=True)
                raise t.Exit(1)
            await engine.select_session(target)
        engine.start()
        await asyncio.Event().wait()


def _connect_printers(engine: SyncEngine) -> None:
    repo = engine.repository

    def on_instance(instance: Instance | None) -> None:
        if instance:
            t.echo(f"Instance: {instance.endpoint} ({instance.directory})")

    def on_sessions(sessions: list[Session]) -> None:
        t.echo(f"{len(sessions)} session(s)")

    def on_detail(state: SessionState | None) -> None:
        if state is not None:
            parts = sum(len(m.parts) for m in state.messages)
            t.echo(f"{state.session.title}: {len(state.messages)} message(s), {parts} part(s)")

    def on_status(session_id: str, status: str) -> None:
        t.echo(f"Status {session_id}: {status}")

    def on_permission(request: PermissionRequest | None) -> None:
        if request is not None:
            t.echo(f"Permission requested: {request.permission} {', '.join(request.patterns)}")

    def on_finished(session: Session, diff_count: int) -> None:
        t.echo(f'Task completed: "{session.title}" ({diff_count} file(s) changed)')

    def on_outcome(outcome: OperationOutcome) -> None:
        t.echo(f"{outcome.title}: {outcome.body}")

    def on_error(error: str | None) -> None:
        if error:
            t.echo(error, err=True)

    repo.instance_changed.connect(on_instance)
    repo.sessions_changed.connect(on_sessions)
    repo.detail_changed.connect(on_detail)
    repo.status_changed.connect(on_status)
    repo.permission_changed.connect(on_permission)
    repo.session_finished.connect(on_finished)
    repo.error_changed.connect(on_error)
    engine.commands.outcome.connect(on_outcome)


@cli.command("archived")
def archived_command(ctx: t.Context) -> None:
    """List the archived sessions."""
    from opentray.archive import ArchiveStore

    config: TrayConfig = ctx.obj
    store = ArchiveStore(config.archive_path)
    sessions = store.sessions()
    if not sessions:
        t.echo("No archived sessions")
        return
    for session in sessions:
        t.echo(f"{session.id}  {session.title}  {session.directory}")


if __name__ == "__main__":
    cli()
