"""Configuration management CLI commands.

- config list: Show current effective configuration
- config path: Show the config lookup chain and the file in use
- config init: Write a config file with every default spelled out
- config get: Print one value by dot path
"""

from __future__ import annotations

import json
from pathlib import Path

import click
from pydantic import BaseModel
from rich.syntax import Syntax

from imgopt.cli import ui
from imgopt.cli.console import get_console
from imgopt.config import ConfigManager, ImgoptConfig
from imgopt.constants import CONFIG_FILENAME
from imgopt.exceptions import ConfigurationError


def _load(config_path: Path | None = None) -> ConfigManager:
    manager = ConfigManager()
    try:
        manager.load(config_path)
    except ConfigurationError as e:
        ui.error("Configuration error", detail=str(e))
        raise SystemExit(1)
    return manager


_config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to configuration file.",
)


@click.group()
def config() -> None:
    """Configuration management commands."""


@config.command("list")
@_config_option
def config_list(config_path: Path | None) -> None:
    """Show current effective configuration."""
    cfg = _load(config_path).config
    config_json = json.dumps(cfg.model_dump(mode="json"), indent=2)
    get_console().print(Syntax(config_json, "json", theme="monokai", line_numbers=False))


@config.command("path")
@_config_option
def config_path_cmd(config_path: Path | None) -> None:
    """Show configuration file lookup order."""
    manager = _load(config_path)
    console = get_console()

    ui.title("Configuration sources")
    rows = [
        ("--config / IMGOPT_CONFIG", "highest"),
        (f"./{CONFIG_FILENAME}", ""),
        ("~/.imgopt/config.json", ""),
        ("built-in defaults", "lowest"),
    ]
    width = max(len(label) for label, _ in rows)
    for num, (label, annotation) in enumerate(rows, start=1):
        padding = " " * (width - len(label))
        console.print(f"  {num}. {label}{padding} [dim]{ui.MARK_LINE}[/] {annotation}")
    console.print()

    if manager.config_path:
        ui.success(f"Currently using: {manager.config_path}")
    else:
        ui.warning("Using default configuration (no config file found)")


@config.command("init")
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(path_type=Path),
    default=None,
    help=f"Where to write the file (default: ./{CONFIG_FILENAME}).",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
def config_init(output_path: Path | None, force: bool) -> None:
    """Create a configuration file with default values."""
    target = output_path or Path.cwd() / CONFIG_FILENAME
    if target.is_dir():
        target = target / CONFIG_FILENAME
    if target.exists() and not force:
        ui.error(f"{target} already exists", detail="use --force to overwrite")
        raise SystemExit(1)

    saved = ConfigManager().save(target, config=ImgoptConfig())
    ui.success(f"Configuration written to {saved}")


@config.command("get")
@click.argument("key")
@_config_option
def config_get(key: str, config_path: Path | None) -> None:
    """Get a configuration value, e.g. ``convert.webp_quality``."""
    manager = _load(config_path)
    value = manager.get(key)
    if value is None:
        ui.warning(f"Key not found or unset: {key}")
        raise SystemExit(1)

    if isinstance(value, BaseModel):
        output = json.dumps(value.model_dump(mode="json"), indent=2)
        get_console().print(Syntax(output, "json", theme="monokai", line_numbers=False))
    else:
        get_console().print(str(value))
