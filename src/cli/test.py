#!/usr/bin/env python3
"""
Testing CLI commands.
"""

import json
import sys
from typing import Optional

import click

from config import get_poc_config
from exceptions import PocUtilsError
from testing import CheckStatus, SmokeTestRunner

STATUS_ICONS = {
    CheckStatus.PASSED: "✅",
    CheckStatus.FAILED: "❌",
    CheckStatus.SKIPPED: "⏭️ ",
    CheckStatus.WARNING: "⚠️ ",
}


@click.group()
def main() -> None:
    """Testing and validation commands."""
    pass


@main.command()
@click.option("--poc", "-p", required=True, help="POC name")
@click.option("--environment", "-e", required=True, help="Environment (dev/test/prod)")
@click.option("--timeout", default=30, show_default=True, help="Request timeout in seconds")
@click.option("--report-dir", type=click.Path(file_okay=False), help="Where to write the JSON report")
@click.option("--profile", help="AWS profile to use")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
def smoke(
    poc: str,
    environment: str,
    timeout: int,
    report_dir: Optional[str],
    profile: Optional[str],
    output_json: bool,
) -> None:
    """Run smoke tests against deployed POC stacks."""
    try:
        config = get_poc_config(poc)
        config.validate_environment(environment)
        runner = SmokeTestRunner(
            config,
            environment,
            timeout=timeout,
            report_dir=report_dir,
            profile=profile,
        )
        all_passed, results = runner.run_all_tests()
        report_path = runner.write_report()
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output_json:
        click.echo(json.dumps({
            "poc": poc,
            "environment": environment,
            "all_passed": all_passed,
            "results": [
                {
                    "name": r.name,
                    "status": r.status.value,
                    "message": r.message,
                    "duration": r.duration,
                }
                for r in results
            ],
        }, indent=2))
    else:
        for result in results:
            click.echo(f"{STATUS_ICONS[result.status]} {result.name}: {result.message}")
        click.echo(f"\nReport: {report_path}")

    sys.exit(0 if all_passed else 1)


if __name__ == "__main__":
    main()
