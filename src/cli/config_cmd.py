#!/usr/bin/env python3
"""
Configuration CLI commands.
"""

import sys
from pathlib import Path
from typing import Optional

import click
import yaml

from config import find_config_dir, get_config_manager
from config_validation import ConfigurationValidator
from exceptions import PocUtilsError


@click.group()
def main() -> None:
    """POC configuration commands."""
    pass


@main.command(name="list")
def list_pocs() -> None:
    """List known POCs and their components."""
    try:
        manager = get_config_manager()
        for name in manager.list_pocs():
            config = manager.get_poc_config(name)
            components = " -> ".join(c.name for c in config.components)
            click.echo(f"{name:<28} {components}")
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.option("--poc", "-p", required=True, help="POC name")
def show(poc: str) -> None:
    """Print the effective configuration of a POC as YAML."""
    try:
        config = get_config_manager().get_poc_config(poc)
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(yaml.safe_dump(config.to_dict(), sort_keys=False))


@main.command()
@click.argument("path", required=False, type=click.Path(exists=True))
def validate(path: Optional[str]) -> None:
    """Validate a config file, or every file in the config directory."""
    validator = ConfigurationValidator()

    if path and Path(path).is_file():
        _, result = validator.validate_file(Path(path))
        files = {path: result}
    else:
        directory = Path(path) if path else find_config_dir()
        files = validator.validate_directory(directory)["files"]

    if not files:
        click.echo("No configuration files found")
        return

    all_valid = True
    for name, result in files.items():
        if result["valid"]:
            click.echo(f"✅ {name}")
            continue
        all_valid = False
        click.echo(f"❌ {name}")
        for error in result["errors"]:
            click.echo(f"  - {error}")

    sys.exit(0 if all_valid else 1)


if __name__ == "__main__":
    main()
