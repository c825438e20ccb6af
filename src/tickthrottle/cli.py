#!/usr/bin/env python3
"""
tickthrottle - supervisord TICK throttling listener
Main CLI entry point
"""

import signal
import sys

import click
from rich.console import Console
from rich.table import Table

from tickthrottle import __version__
from tickthrottle.config import ListenerSettings, load_config
from tickthrottle.errors import CounterStoreError
from tickthrottle.listener import EventListener
from tickthrottle.scheduler import DryRunTaskInvoker, SubprocessTaskInvoker
from tickthrottle.storage import CounterStore, InMemoryCounterStore, SharedMemoryCounterStore
from tickthrottle.throttle import ThrottleEngine
from tickthrottle.utils import get_logger, setup_logging

# Operator-facing output. The listen command never prints: its stdout is
# the supervisord protocol channel.
console = Console()
err_console = Console(stderr=True)


def build_store(settings: ListenerSettings, dry_run: bool = False) -> CounterStore:
    if dry_run or settings.storage.backend == "memory":
        return InMemoryCounterStore()
    return SharedMemoryCounterStore(prefix=settings.storage.name_prefix)


def build_engine(settings: ListenerSettings, env_id: str, dry_run: bool = False) -> ThrottleEngine:
    """Wire store, invoker and engine from validated settings"""
    if dry_run:
        invoker = DryRunTaskInvoker(settings.task.command, env_var=settings.task.env_var)
    else:
        invoker = SubprocessTaskInvoker(
            settings.task.command,
            env_var=settings.task.env_var,
            cwd=settings.task.cwd,
        )

    return ThrottleEngine(
        settings=settings.throttle,
        store=build_store(settings, dry_run),
        invoker=invoker,
        env_id=env_id,
        tick_event=settings.tick_event,
    )


def _shutdown_handler(signum, frame):
    """supervisord stops listeners with SIGTERM; leave without a traceback"""
    get_logger('tickthrottle.cli').info(f"Received signal {signum}, stopping listener")
    sys.exit(0)


@click.group()
@click.version_option(version=__version__)
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              help='Config file (default: $TICKTHROTTLE_CONFIG or config/config.yaml)')
@click.pass_context
def cli(ctx, config_path):
    """
    tickthrottle - run a task at most N times per cycle from supervisord TICK events

    \b
    supervisord program section:
        [eventlistener:tickthrottle]
        command=tickthrottle listen %(ENV_APP_ENV)s
        events=PROCESS_STATE_RUNNING,TICK_60
    """
    if ctx.obj is None:
        ctx.obj = {}

    try:
        config = load_config(config_path)
        settings = ListenerSettings.from_config(config)
    except Exception as e:
        err_console.print(f"[red]Failed to load configuration:[/red] {e}")
        sys.exit(1)

    setup_logging(
        log_file=config.get('logging.file', 'logs/tickthrottle.log'),
        log_level=config.get('logging.level', 'INFO'),
        max_bytes=config.get('logging.max_bytes', 10485760),
        backup_count=config.get('logging.backup_count', 5),
        module_levels=config.get('logging.modules')
    )

    ctx.obj['config'] = config
    ctx.obj['settings'] = settings
    ctx.obj['logger'] = get_logger('tickthrottle.cli')


# ==============================================================================
# LISTENER
# ==============================================================================

@cli.command()
@click.argument('env')
@click.option('--dry-run', is_flag=True, help='In-memory counters, log task runs instead of launching')
@click.pass_context
def listen(ctx, env, dry_run):
    """Serve supervisord events. ENV is exported to the task (e.g. APP_ENV)."""
    logger = ctx.obj['logger']
    settings = ctx.obj['settings']

    signal.signal(signal.SIGTERM, _shutdown_handler)
    signal.signal(signal.SIGINT, _shutdown_handler)

    engine = build_engine(settings, env, dry_run=dry_run)
    t = settings.throttle
    logger.info(
        f"Listener started: env={env} event={settings.tick_event} "
        f"ticks_per_period={t.ticks_per_period} max_executions={t.max_executions} "
        f"periods_in_cycle={t.periods_in_cycle}{' [DRY RUN]' if dry_run else ''}"
    )

    listener = EventListener(engine.handle, engine.supported_events)
    listener.run()


# ==============================================================================
# OPERATOR COMMANDS
# ==============================================================================

@cli.command()
@click.pass_context
def status(ctx):
    """Show persisted counters and configured limits"""
    settings = ctx.obj['settings']
    t = settings.throttle

    if settings.storage.backend == "memory":
        console.print("[yellow]storage.backend is 'memory': counters live only inside the listener[/yellow]")
        return

    engine = build_engine(settings, env_id="-", dry_run=False)
    try:
        snapshot = engine.snapshot()
    except CounterStoreError as e:
        err_console.print(f"[red]Cannot read counters:[/red] {e}")
        sys.exit(1)

    def _fmt(value):
        return "[dim]unset[/dim]" if value is None else str(value)

    table = Table(title=f"tickthrottle v{__version__}")
    table.add_column("Counter", style="cyan")
    table.add_column("Slot", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Limit", justify="right")

    table.add_row("ticks", str(t.tick_slot), _fmt(snapshot.ticks), str(t.ticks_per_period))
    table.add_row("executions", str(t.execution_slot), _fmt(snapshot.executions), str(t.periods_in_cycle))

    console.print(table)
    console.print(f"Tick event: {settings.tick_event}")
    console.print(f"Max executions per cycle: {t.max_executions}")

    executions = snapshot.executions or 0
    remaining = max(t.max_executions - executions, 0)
    console.print(f"Executions left this cycle: [bold]{remaining}[/bold]")


@cli.command()
@click.confirmation_option(prompt='Reset tick and execution counters?')
@click.pass_context
def reset(ctx):
    """Delete both counters (same as a PROCESS_STATE_RUNNING event)"""
    settings = ctx.obj['settings']
    logger = ctx.obj['logger']

    engine = build_engine(settings, env_id="-", dry_run=False)
    try:
        engine.rearm()
    except CounterStoreError as e:
        err_console.print(f"[red]Cannot reset counters:[/red] {e}")
        sys.exit(1)
    logger.info("Counters reset from CLI")
    console.print("[green]Counters reset[/green]")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
