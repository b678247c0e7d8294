"""Shared CLI helpers used by ``cli.py`` and ``cli_commands/*.py``.

Provides ``get_sow_dir()``, ``load_or_exit()``, ``save_or_exit()`` and
``fail()`` so command modules can share discovery and error reporting
without circular imports.
"""

from __future__ import annotations

import json as json_mod
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from sow.logging import setup_logging
from sow.persistence import SOW_DIR_NAME, LoadedProject, find_sow_root, load, read_config, save

logger = logging.getLogger(__name__)


def fail(message: str, as_json: bool = False) -> NoReturn:
    """Report an error on the right stream and exit with status 1."""
    if as_json:
        click.echo(json_mod.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def get_sow_dir() -> Path:
    """Discover .sow/ and configure logging for this invocation."""
    try:
        sow_dir = find_sow_root()
    except FileNotFoundError:
        click.echo(f"No {SOW_DIR_NAME}/ found. Run 'sow init' first.", err=True)
        sys.exit(1)
    config = read_config(sow_dir)
    setup_logging(sow_dir, config.get("log_level", "INFO"))
    return sow_dir


def load_or_exit(sow_dir: Path, as_json: bool = False) -> LoadedProject:
    """Load the active project or exit with an actionable message."""
    try:
        return load(sow_dir)
    except FileNotFoundError:
        fail("No active project. Run 'sow new' first.", as_json)
    except ValueError as e:
        logger.error("Failed to load project: %s", e, extra={"error": str(e)})
        fail(str(e), as_json)


def save_or_exit(loaded: LoadedProject, sow_dir: Path, as_json: bool = False) -> None:
    """Save the project; a validation failure leaves the file on disk untouched."""
    try:
        save(loaded, sow_dir)
    except ValueError as e:
        fail(str(e), as_json)


def parse_key_values(pairs: tuple[str, ...], as_json: bool = False) -> dict[str, str]:
    result: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            fail(f"Invalid metadata format: {pair} (expected key=value)", as_json)
        k, v = pair.split("=", 1)
        result[k] = v
    return result
