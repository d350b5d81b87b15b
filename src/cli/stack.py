#!/usr/bin/env python3
"""
CloudFormation stack CLI commands: deploy, teardown, status, diagnose.
"""

import json
import sys
from typing import Dict, Optional, Tuple

import click

from cloudformation import NOT_FOUND, StackDiagnostics, StackManager
from config import get_poc_config
from deployment import DeploymentResult, PocDeployer
from exceptions import PocUtilsError


def parse_key_values(pairs: Tuple[str, ...]) -> Dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    values: Dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"Expected KEY=VALUE, got '{pair}'")
        key, value = pair.split("=", 1)
        values[key.strip()] = value
    return values


def report_result(result: DeploymentResult) -> None:
    """Print a deployment result and exit non-zero on failure."""
    for warning in result.warnings or []:
        click.echo(f"⚠️  {warning}")
    for error in result.errors or []:
        click.echo(f"❌ {error}", err=True)

    if result.outputs:
        click.echo("\nOutputs:")
        for key, value in result.outputs.items():
            click.echo(f"  {key}: {value}")

    if result.success:
        click.echo(f"\n✅ {result.message} ({result.duration:.1f}s)")
    else:
        click.echo(f"\n❌ {result.message}", err=True)
        sys.exit(1)


@click.group()
def main() -> None:
    """CloudFormation stack management commands."""
    pass


@main.command()
@click.option("--poc", "-p", required=True, help="POC name")
@click.option("--environment", "-e", required=True, help="Environment (dev/test/prod)")
@click.option("--component", "-c", help="Deploy only this component")
@click.option("--parameter", "-P", multiple=True, help="Parameters (key=value)")
@click.option("--template-dir", type=click.Path(file_okay=False), help="Template directory")
@click.option("--wait", is_flag=True, help="Wait for each stack to finish")
@click.option("--dry-run", is_flag=True, help="Show what would be deployed")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
def deploy(
    poc: str,
    environment: str,
    component: Optional[str],
    parameter: Tuple[str, ...],
    template_dir: Optional[str],
    wait: bool,
    dry_run: bool,
    region: Optional[str],
    profile: Optional[str],
) -> None:
    """Deploy a POC's component stacks in order."""
    try:
        deployer = PocDeployer(
            get_poc_config(poc),
            environment,
            component=component,
            parameters=parse_key_values(parameter),
            template_dir=template_dir,
            wait=wait,
            region=region,
            profile=profile,
            dry_run=dry_run,
        )
        with deployer:
            result = deployer.execute("deploy")
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    report_result(result)


@main.command()
@click.option("--poc", "-p", required=True, help="POC name")
@click.option("--environment", "-e", required=True, help="Environment (dev/test/prod)")
@click.option("--component", "-c", help="Remove only this component")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Empty S3 buckets blocking a failed deletion",
)
@click.option("--dry-run", is_flag=True, help="Show what would be deleted")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
def teardown(
    poc: str,
    environment: str,
    component: Optional[str],
    force: bool,
    dry_run: bool,
    region: Optional[str],
    profile: Optional[str],
) -> None:
    """Delete a POC's component stacks in reverse order."""
    try:
        deployer = PocDeployer(
            get_poc_config(poc),
            environment,
            component=component,
            region=region,
            profile=profile,
            dry_run=dry_run,
        )
        with deployer:
            result = deployer.execute("teardown", force=force)
    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    report_result(result)


@main.command()
@click.option("--stack-name", "-s", help="CloudFormation stack name")
@click.option("--poc", "-p", help="POC name (shows all component stacks)")
@click.option("--environment", "-e", help="Environment, with --poc")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
def status(
    stack_name: Optional[str],
    poc: Optional[str],
    environment: Optional[str],
    region: Optional[str],
    profile: Optional[str],
) -> None:
    """Show CloudFormation stack status."""
    try:
        if stack_name:
            stack_names = [stack_name]
            manager = StackManager(region=region, profile=profile)
        elif poc and environment:
            config = get_poc_config(poc)
            config.validate_environment(environment)
            stack_names = [
                config.get_stack_name(environment, c.name) for c in config.components
            ]
            manager = StackManager(region=region or config.aws_region, profile=profile)
        else:
            raise click.UsageError("Pass --stack-name, or --poc with --environment")

        for name in stack_names:
            stack_status = manager.get_stack_status(name)
            if stack_status == NOT_FOUND:
                color = "yellow"
            elif "FAILED" in stack_status or "ROLLBACK" in stack_status:
                color = "red"
            elif stack_status.endswith("_COMPLETE"):
                color = "green"
            else:
                color = "yellow"
            click.echo(f"{name:<50} {click.style(stack_status, fg=color)}")

            if stack_name and stack_status != NOT_FOUND:
                outputs = manager.get_stack_outputs(name)
                if outputs:
                    click.echo("\nOutputs:")
                    for key, value in outputs.items():
                        click.echo(f"  {key}: {value}")

    except PocUtilsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def diagnose(stack_name: str, region: Optional[str], profile: Optional[str], output_json: bool) -> None:
    """Diagnose CloudFormation stack failures."""
    manager = StackManager(region=region, profile=profile)

    if output_json:
        diagnosis = manager.diagnose_stack_failure(stack_name)
        click.echo(json.dumps(diagnosis, indent=2, default=str))
    else:
        click.echo(StackDiagnostics(manager).generate_report(stack_name))


if __name__ == "__main__":
    main()
