"""
WebSocket Relay load-test CLI.

Opens one or more virtual users against a running relay. Each user sends a
single message, logs everything it receives and disconnects after a fixed
interval. Exits non-zero if any handshake did not switch protocols.

Usage:
    ws-relay-loadtest run --url ws://127.0.0.1:8080/ --clients 10
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

import typer
from rich.console import Console
from rich.table import Table
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus

from shared.config.logging import loadtest_logger as logger, setup_logging
from ws_relay.components.core.constants import RelayConstants
from ws_relay.components.core.context import sanitize_log_data

app = typer.Typer(
    name="ws-relay-loadtest",
    help="Load-test a running WebSocket relay",
    add_completion=False,
)
console = Console()


@dataclass
class LoadTestResult:
    """Outcome of a single virtual user."""

    user_id: int
    status: int | None = None
    sent: bool = False
    received: list[str | bytes] = field(default_factory=list)
    error: str | None = None

    @property
    def passed(self) -> bool:
        """The handshake switched protocols."""
        return self.status == RelayConstants.SWITCHING_PROTOCOLS


async def run_virtual_user(
    url: str,
    message: str,
    timeout_ms: int,
    user_id: int = 0,
) -> LoadTestResult:
    """
    Connect, send one message, log echoes until the timeout, then close.

    The connection is closed after timeout_ms whatever the server does.
    """
    result = LoadTestResult(user_id=user_id)
    deadline = time.monotonic() + timeout_ms / 1000

    try:
        async with connect(
            url,
            open_timeout=RelayConstants.LOADTEST_OPEN_TIMEOUT,
            close_timeout=1,
        ) as websocket:
            result.status = websocket.response.status_code
            logger.info("Connected", user=user_id, status=result.status)
            await websocket.send(message)
            result.sent = True

            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    received = await asyncio.wait_for(websocket.recv(), timeout=remaining)
                except asyncio.TimeoutError:
                    break
                result.received.append(received)
                logger.info(
                    "Received message",
                    user=user_id,
                    message=sanitize_log_data(received),
                )
        logger.info("Disconnected", user=user_id, received=len(result.received))
    except InvalidStatus as e:
        result.status = e.response.status_code
        result.error = f"handshake rejected: {e.response.status_code}"
    except InvalidHandshake as e:
        result.error = f"invalid handshake: {e}"
    except ConnectionClosed as e:
        result.error = f"connection closed: {e}"
    except asyncio.TimeoutError:
        result.error = "connection timed out"
    except OSError as e:
        result.error = f"connection failed: {e}"

    if result.error:
        logger.warning("Virtual user failed", user=user_id, error=result.error)
    return result


async def run_load_test(
    url: str,
    message: str,
    timeout_ms: int,
    clients: int,
) -> list[LoadTestResult]:
    """Run every virtual user concurrently."""
    return list(
        await asyncio.gather(
            *[run_virtual_user(url, message, timeout_ms, user_id=i) for i in range(clients)]
        )
    )


def _results_table(results: list[LoadTestResult]) -> Table:
    table = Table(title="Load Test Results")
    table.add_column("User", style="cyan")
    table.add_column("Status")
    table.add_column("Sent")
    table.add_column("Received", justify="right")
    table.add_column("Check")
    table.add_column("Error", style="red")

    for result in results:
        table.add_row(
            str(result.user_id),
            str(result.status) if result.status is not None else "-",
            "yes" if result.sent else "no",
            str(len(result.received)),
            "[green]✓ status is 101[/green]" if result.passed else "[red]✗ status is 101[/red]",
            result.error or "",
        )
    return table


@app.callback()
def main() -> None:
    """Load-test a running WebSocket relay."""


@app.command()
def run(
    url: str = typer.Option(RelayConstants.LOADTEST_URL, help="Relay WebSocket URL"),
    message: str = typer.Option(RelayConstants.LOADTEST_MESSAGE, help="Message each user sends"),
    timeout_ms: int = typer.Option(
        RelayConstants.LOADTEST_TIMEOUT_MS,
        "--timeout-ms",
        help="Milliseconds before each user disconnects",
    ),
    clients: int = typer.Option(1, "--clients", "-c", min=1, help="Concurrent virtual users"),
):
    """Run virtual users against the relay."""
    setup_logging()
    console.print(f"[blue]Load testing {url} with {clients} client(s)[/blue]")

    results = asyncio.run(run_load_test(url, message, timeout_ms, clients))
    console.print(_results_table(results))

    failed = [r for r in results if not r.passed]
    if failed:
        console.print(f"[red]✗ {len(failed)} of {len(results)} checks failed[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ {len(results)} of {len(results)} checks passed[/green]")


if __name__ == "__main__":
    app()
