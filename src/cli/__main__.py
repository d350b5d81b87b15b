#!/usr/bin/env python3
"""Main CLI entry point for POC utilities."""

import logging
import sys
from typing import Any

import click
from botocore.exceptions import BotoCoreError, ClientError

from .backup import main as backup_commands
from .config_cmd import main as config_commands
from .restore import main as restore_commands
from .stack import main as stack_commands
from .test import main as test_commands


class AwsErrorGroup(click.Group):
    """Report AWS errors that escape a command as a single line."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except ClientError as e:
            error = e.response.get("Error", {})
            click.echo(f"AWS error ({error.get('Code', 'Unknown')}): {error.get('Message', e)}", err=True)
            sys.exit(1)
        except BotoCoreError as e:
            click.echo(f"AWS error: {e}", err=True)
            sys.exit(1)


@click.group(cls=AwsErrorGroup)
@click.version_option(package_name="poc-utils")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Deployment, teardown and disaster recovery utilities for the AWS POCs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not verbose:
        for noisy in ("boto3", "botocore", "urllib3", "s3transfer"):
            logging.getLogger(noisy).setLevel(logging.WARNING)


cli.add_command(stack_commands, name="stack")
cli.add_command(restore_commands, name="restore")
cli.add_command(backup_commands, name="backup")
cli.add_command(test_commands, name="test")
cli.add_command(config_commands, name="config")


if __name__ == "__main__":
    cli()
