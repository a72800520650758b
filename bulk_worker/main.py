from __future__ import annotations

import signal
import sys
import threading

import typer

from bulk_worker.config import get_settings
from bulk_worker.exchangers.registry import available_exchangers
from bulk_worker.orchestrator import run_once, serve
from bulk_worker.reporter import print_outcome
from bulk_worker.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Periodic bulk user worker.")
log = get_logger(__name__)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"period={settings.cycle_period_seconds}s read_limit={settings.read_limit} "
        f"batch={settings.batch_size} mode={settings.bulk_mode} "
        f"(available: {', '.join(available_exchangers())}) | "
        f"retry={settings.retry_max_retries}x{settings.retry_delay_seconds}s | "
        f"csv={settings.export_csv_path} json={settings.export_json_path}"
    )


@app.command()
def run() -> None:
    """
    Run the worker until SIGINT/SIGTERM; the in-flight cycle is allowed to finish.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    stop_event = threading.Event()

    def _request_stop(signum: int, frame: object) -> None:
        del frame
        log.info(f"Received signal {signum}, initiating graceful shutdown")
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    serve(stop_event, settings=settings)


@app.command("run-once")
def run_once_command() -> None:
    """
    Run a single retried cycle, print its outcome, and exit non-zero on failure.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    outcome = run_once(settings=settings)
    print_outcome(outcome)
    if not outcome.succeeded:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
