#!/usr/bin/env python3
"""
Restore CLI commands for archived disaster recovery backups.
"""

import sys
from typing import Optional

import click

from config import PocConfig, get_poc_config
from exceptions import PocUtilsError
from recovery import JobStore, OperationsLogShipper, RestoreTier, RestoreTracker

TIER_CHOICES = click.Choice([t.value.lower() for t in RestoreTier], case_sensitive=False)


def format_size(size_bytes: int) -> str:
    """Human readable byte count."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.2f} TB"


def build_tracker(ctx: click.Context) -> RestoreTracker:
    """Create a tracker from the shared group options."""
    opts = ctx.obj
    config: PocConfig = opts["config"]
    region = opts["region"] or config.aws_region

    telemetry = None
    if opts["environment"]:
        telemetry = OperationsLogShipper(
            config.format_name(config.restore_log_group_pattern, environment=opts["environment"]),
            region=region,
            profile=opts["profile"],
        )

    return RestoreTracker(
        JobStore(opts["job_dir"] or config.get_restore_job_dir()),
        region=region,
        profile=opts["profile"],
        backup_prefix=config.backup_prefix,
        telemetry=telemetry,
    )


@click.group()
@click.option("--poc", "-p", default="disaster-recovery", show_default=True, help="POC name")
@click.option("--environment", "-e", help="Environment; enables shipping events to CloudWatch Logs")
@click.option("--job-dir", type=click.Path(file_okay=False), help="Directory for job records")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
@click.pass_context
def main(
    ctx: click.Context,
    poc: str,
    environment: Optional[str],
    job_dir: Optional[str],
    region: Optional[str],
    profile: Optional[str],
) -> None:
    """Restore archived backups from S3."""
    try:
        config = get_poc_config(poc)
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    ctx.obj = {
        "config": config,
        "environment": environment,
        "job_dir": job_dir,
        "region": region,
        "profile": profile,
    }


@main.command(name="list")
@click.option("--bucket", "-b", required=True, help="Backup bucket name")
@click.option("--date", "-d", required=True, help="Backup date (YYYY-MM-DD, YYYY-MM or YYYY)")
@click.pass_context
def list_backups(ctx: click.Context, bucket: str, date: str) -> None:
    """List backups available for a date."""
    try:
        objects = build_tracker(ctx).list_backups(bucket, date)
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not objects:
        click.echo("No backups found")
        return

    for obj in objects:
        click.echo(f"{obj.key:<60} {format_size(obj.size):>10}  {obj.storage_class}")
    click.echo(f"\n{len(objects)} file(s), {format_size(sum(o.size for o in objects))}")


@main.command()
@click.option("--bucket", "-b", required=True, help="Backup bucket name")
@click.option("--date", "-d", required=True, help="Backup date")
@click.option("--tier", "-t", type=TIER_CHOICES, help="Only show this tier")
@click.pass_context
def estimate(ctx: click.Context, bucket: str, date: str, tier: Optional[str]) -> None:
    """Estimate restore cost per retrieval tier."""
    try:
        result = build_tracker(ctx).estimate(bucket, date)
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Files: {result['file_count']} ({result['archived_count']} archived)")
    click.echo(f"Archived size: {format_size(result['archived_size'])} "
               f"({result['archived_size_gb']:.4f} GB)")
    click.echo("\nRetrieval cost:")
    for name, info in result["tiers"].items():
        if tier and name.lower() != tier.lower():
            continue
        if not info["available"]:
            click.echo(f"  {name:<10} not available for {', '.join(result['storage_classes'])}")
            continue
        times = ", ".join(t for t in info["retrieval_time"].values() if t)
        click.echo(f"  {name:<10} ${info['cost']:.4f}" + (f"  ({times})" if times else ""))


@main.command()
@click.option("--bucket", "-b", required=True, help="Backup bucket name")
@click.option("--date", "-d", required=True, help="Backup date")
@click.option("--tier", "-t", type=TIER_CHOICES, default="standard", show_default=True)
@click.option("--days", type=int, help="Days to keep the restored copy")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def initiate(
    ctx: click.Context, bucket: str, date: str, tier: str, days: Optional[int], yes: bool
) -> None:
    """Request restoration of all backups for a date."""
    config: PocConfig = ctx.obj["config"]
    try:
        restore_tier = RestoreTier.from_name(tier)
        tracker = build_tracker(ctx)

        if not yes:
            cost = tracker.estimate(bucket, date)["tiers"][restore_tier.value]["cost"]
            click.confirm(
                f"Restore backups from {date} at {restore_tier.value} tier "
                f"(estimated ${cost:.4f})?",
                abort=True,
            )

        job = tracker.initiate(bucket, date, restore_tier, days=days or config.restore_days)
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Restore job {job.job_id} created for {len(job.files)} file(s)")
    click.echo(f"   Estimated cost: ${job.estimated_cost:.4f}")
    click.echo(f"   Check progress: poc-utils restore status --job-id {job.job_id}")


@main.command()
@click.option("--job-id", "-j", required=True, help="Restore job id")
@click.pass_context
def status(ctx: click.Context, job_id: str) -> None:
    """Show per-file and overall restore progress."""
    try:
        job = build_tracker(ctx).status(job_id)
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for f in job.files:
        line = f"{f.key:<60} {f.state}"
        if f.restore_expiry:
            line += f" (until {f.restore_expiry})"
        click.echo(line)

    summary = job.summary()
    click.echo(
        f"\n{summary['available']}/{summary['total_files']} available "
        f"({summary['percent_available']}%), {summary['in_progress']} in progress"
    )


@main.command()
@click.option("--job-id", "-j", required=True, help="Restore job id")
@click.option(
    "--destination",
    "-o",
    required=True,
    type=click.Path(file_okay=False),
    help="Local directory to download into",
)
@click.pass_context
def download(ctx: click.Context, job_id: str, destination: str) -> None:
    """Download restored files of a job."""
    try:
        result = build_tracker(ctx).download(job_id, destination)
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Downloaded: {len(result['downloaded'])}")
    if result["already_downloaded"]:
        click.echo(f"Already downloaded: {len(result['already_downloaded'])}")
    if result["skipped"]:
        click.echo(f"Not yet restored (skipped): {len(result['skipped'])}")
        for key in result["skipped"]:
            click.echo(f"  - {key}")


if __name__ == "__main__":
    main()
