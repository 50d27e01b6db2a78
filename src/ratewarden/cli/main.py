"""ratewarden CLI -- inspect defaults, preview backoff, run the operator API.

Thin wrapper around the engine using click.
"""

from __future__ import annotations

import json
import random

import click

from ratewarden.core.backoff import BASE_DELAY_MS, calculate_backoff
from ratewarden.core.types import CATEGORY_ENDPOINTS, DEFAULT_CONFIGS


def _error(msg: str) -> None:
    """Print an error message to stderr and exit 1."""
    click.echo(msg, err=True)
    raise SystemExit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="ratewarden")
def cli() -> None:
    """ratewarden -- in-process rate limiting and abuse detection."""


# ---------------------------------------------------------------------------
# ratewarden defaults
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON.")
def defaults(as_json: bool) -> None:
    """Show the built-in category quotas."""
    if as_json:
        data = {
            category: {
                "endpoint": CATEGORY_ENDPOINTS[category],
                "max_requests": config.max_requests,
                "window_ms": config.window_ms,
                "block_duration_ms": config.block_duration_ms,
            }
            for category, config in DEFAULT_CONFIGS.items()
        }
        click.echo(json.dumps(data, indent=2))
        return

    for category, config in DEFAULT_CONFIGS.items():
        line = f"{category:<14}{config.max_requests:>5} req / {config.window_ms / 1000:g}s"
        if config.block_duration_ms:
            line += f"  (block {config.block_duration_ms / 1000:g}s)"
        click.echo(line)


# ---------------------------------------------------------------------------
# ratewarden backoff
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--attempts", "-a", default=6, show_default=True, help="Number of retries to show.")
@click.option(
    "--base-delay",
    "-b",
    default=BASE_DELAY_MS,
    show_default=True,
    help="Base delay in milliseconds.",
)
@click.option("--seed", type=int, default=None, help="Seed the jitter for a reproducible schedule.")
def backoff(attempts: int, base_delay: float, seed: int | None) -> None:
    """Print the retry delay for each attempt."""
    if attempts < 1:
        _error("Error: --attempts must be at least 1")
    if base_delay < 0:
        _error("Error: --base-delay must not be negative")
    rng = random.Random(seed)
    for attempt in range(1, attempts + 1):
        delay = calculate_backoff(attempt, base_delay, rng=rng)
        click.echo(f"attempt {attempt}: {delay:.0f} ms")


# ---------------------------------------------------------------------------
# ratewarden serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", default=None, help="Bind address (default: RATEWARDEN_HOST).")
@click.option("--port", type=int, default=None, help="Port (default: RATEWARDEN_PORT).")
def serve(host: str | None, port: int | None) -> None:
    """Run the operator API under uvicorn."""
    import uvicorn

    from ratewarden.core.errors import InvalidConfigurationError
    from ratewarden.engine.config import Settings
    from ratewarden.service.app import create_app

    try:
        settings = Settings()
    except InvalidConfigurationError as exc:
        _error(f"Error: {exc}")
        return
    uvicorn.run(
        create_app(settings=settings),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
