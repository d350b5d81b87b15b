#!/usr/bin/env python3
"""
Backup CLI commands.
"""

import sys
from typing import Optional

import click

from config import get_poc_config
from exceptions import PocUtilsError
from recovery import BackupUploader, OperationsLogShipper

from .restore import format_size


@click.group()
def main() -> None:
    """Upload backups to the disaster recovery bucket."""
    pass


@main.command()
@click.option("--bucket", "-b", required=True, help="Backup bucket name")
@click.option("--source", "-s", required=True, type=click.Path(exists=True), help="File or directory")
@click.option("--date", "-d", help="Backup date (default: today, UTC)")
@click.option("--poc", "-p", default="disaster-recovery", show_default=True, help="POC name")
@click.option("--environment", "-e", help="Environment; enables shipping events to CloudWatch Logs")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
def upload(
    bucket: str,
    source: str,
    date: Optional[str],
    poc: str,
    environment: Optional[str],
    region: Optional[str],
    profile: Optional[str],
) -> None:
    """Upload a file or directory as a dated backup."""
    try:
        config = get_poc_config(poc)
        region = region or config.aws_region

        telemetry = None
        if environment:
            telemetry = OperationsLogShipper(
                config.format_name(config.backup_log_group_pattern, environment=environment),
                region=region,
                profile=profile,
            )

        uploader = BackupUploader(
            region=region,
            profile=profile,
            backup_prefix=config.backup_prefix,
            storage_class=config.backup_storage_class,
            telemetry=telemetry,
        )
        summary = uploader.upload(bucket, source, date=date)
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"✅ Uploaded {len(summary.uploaded)} file(s) ({format_size(summary.uploaded_bytes)}) "
        f"to s3://{summary.bucket}/{summary.prefix}"
    )
    if summary.skipped:
        click.echo(f"   Skipped {len(summary.skipped)} file(s) already present")


if __name__ == "__main__":
    main()
