from __future__ import annotations

import importlib
from enum import Enum
from pathlib import Path
from typing import List, Optional

import structlog
import typer

from sixtofour_manager.config_io import DEFAULT_SETTINGS_PATH, build_run_config, load_settings
from sixtofour_manager.errors import SixToFourError
from sixtofour_manager.main import Orchestrator
from sixtofour_manager.state import InvocationLock
from sixtofour_manager.util import configure_logging

__version__ = "0.1.0"
PROG = "sixtofour"

log = structlog.get_logger()

# исключения того click, который поднимает сам typer (в новых версиях он вшит в typer)
_click_exc = importlib.import_module(typer.BadParameter.__module__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


class Action(str, Enum):
    start = "start"
    stop = "stop"
    restart = "restart"
    reload = "reload"
    force_reload = "force-reload"


# reload/force-reload - синонимы restart
_METHODS = {
    Action.start: "start",
    Action.stop: "stop",
    Action.restart: "restart",
    Action.reload: "restart",
    Action.force_reload: "restart",
}


def _version_cb(value: bool) -> None:
    if value:
        typer.echo(f"{PROG} {__version__}")
        raise typer.Exit()


@app.command()
def run(
    action: Action = typer.Argument(..., help="start|stop|restart|reload|force-reload"),
    ipv4: Optional[str] = typer.Option(
        None, "-i", "--ipv4", help="Внешний IPv4 (без автопоиска, например за NAT)"
    ),
    no_radvd: bool = typer.Option(False, "-r", "--no-radvd", help="Не настраивать radvd"),
    interfaces: Optional[List[str]] = typer.Option(
        None, "-I", "--interface", help="Интерфейс для /64 (можно несколько, порядок важен)"
    ),
    debug: bool = typer.Option(False, "-d", "--debug", help="Подробный вывод"),
    config: Path = typer.Option(DEFAULT_SETTINGS_PATH, "-c", "--config", help="YAML с настройками хоста"),
    version: bool = typer.Option(
        False, "-v", "--version", callback=_version_cb, is_eager=True, help="Показать версию"
    ),
) -> None:
    configure_logging(debug)
    try:
        settings = load_settings(config)
        rc = build_run_config(
            settings,
            ipv4=ipv4,
            radvd_enabled=not no_radvd,
            interfaces=interfaces or (),
            debug=debug,
        )
        with InvocationLock(settings.lock_path):
            orch = Orchestrator(rc)
            assignment = getattr(orch, _METHODS[action])()
    except SixToFourError as e:
        log.debug("action_failed", action=action.value, error_type=type(e).__name__)
        typer.secho(f"{PROG}: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=e.exit_code)

    if action is Action.stop:
        typer.echo(f"[{PROG}] tunnel {settings.tunnel_name} removed.")
    else:
        typer.echo(f"[{PROG}] tunnel {settings.tunnel_name} up.")
        for entry in assignment or ():
            typer.echo(f"[{PROG}] {entry.interface}: {entry.network}")


def main(argv: Optional[List[str]] = None) -> int:
    command = typer.main.get_command(app)
    try:
        rv = command.main(args=argv, prog_name=PROG, standalone_mode=False)
    except _click_exc.NoSuchOption as e:
        e.show()
        return 2
    except _click_exc.UsageError as e:
        # нет действия, лишние аргументы, неизвестное действие
        e.show()
        return 1
    except typer.Abort:
        return 1
    return rv if isinstance(rv, int) else 0


def entrypoint() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    entrypoint()
