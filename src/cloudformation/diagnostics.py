"""
CloudFormation stack diagnostics and troubleshooting.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from botocore.exceptions import ClientError

from .stack_manager import NOT_FOUND, StackManager

logger = logging.getLogger(__name__)


class StackDiagnostics:
    """Diagnose CloudFormation stack issues."""

    def __init__(self, stack_manager: StackManager):
        """Initialize diagnostics with a stack manager."""
        self.stack_manager = stack_manager
        self.cloudformation = stack_manager.cloudformation

    def generate_report(self, stack_name: str) -> str:
        """Generate a diagnostic report for a stack."""
        report = []
        report.append("CloudFormation Stack Diagnostic Report")
        report.append(f"Stack: {stack_name}")
        report.append(f"Time: {datetime.now().isoformat()}")
        report.append("=" * 80)

        diagnosis = self.stack_manager.diagnose_stack_failure(stack_name)

        if diagnosis["status"] == NOT_FOUND:
            report.append("\n❌ Stack does not exist")
            return "\n".join(report)

        report.append(f"\n📊 Stack Status: {diagnosis['status']}")

        if diagnosis["failed_resources"]:
            report.append(f"\n❌ Failed Resources ({len(diagnosis['failed_resources'])})")
            for resource in diagnosis["failed_resources"]:
                report.append(f"\n  Resource: {resource['logical_id']}")
                report.append(f"  Type: {resource['resource_type']}")
                report.append(f"  Status: {resource['status']}")
                report.append(f"  Reason: {resource['reason']}")
                report.append(f"  Time: {resource['timestamp']}")

        report.append("\n📅 Recent Events (Last 10):")
        for event in self.get_recent_events(stack_name, limit=10):
            status_emoji = self._get_status_emoji(event["ResourceStatus"])
            report.append(
                f"  {status_emoji} {event['Timestamp']} - "
                f"{event['LogicalResourceId']} ({event['ResourceStatus']})"
            )
            if event.get("ResourceStatusReason"):
                report.append(f"    → {event['ResourceStatusReason']}")

        if diagnosis["recommendations"]:
            report.append("\n💡 Recommendations:")
            for i, rec in enumerate(diagnosis["recommendations"], 1):
                report.append(f"  {i}. {rec}")

        report.extend(self._get_common_solutions(diagnosis["status"]))

        return "\n".join(report)

    def get_recent_events(self, stack_name: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Get the most recent stack events, newest first."""
        events: List[Dict[str, Any]] = []

        try:
            paginator = self.cloudformation.get_paginator("describe_stack_events")
            for page in paginator.paginate(StackName=stack_name):
                for event in page["StackEvents"]:
                    events.append(
                        {
                            "Timestamp": event["Timestamp"],
                            "LogicalResourceId": event["LogicalResourceId"],
                            "ResourceType": event["ResourceType"],
                            "ResourceStatus": event["ResourceStatus"],
                            "ResourceStatusReason": event.get("ResourceStatusReason"),
                        }
                    )
                    if len(events) >= limit:
                        return events
        except ClientError as e:
            logger.warning(f"Error getting events for {stack_name}: {e}")

        return events

    def _get_status_emoji(self, status: str) -> str:
        """Get emoji for resource status."""
        if "COMPLETE" in status and "ROLLBACK" not in status:
            return "✅"
        elif "FAILED" in status:
            return "❌"
        elif "IN_PROGRESS" in status:
            return "🔄"
        elif "ROLLBACK" in status:
            return "↩️"
        return "•"

    def _get_common_solutions(self, status: str) -> List[str]:
        """Get common solutions based on stack status."""
        solutions = ["\n🛠️  Common Solutions:"]

        if status == "ROLLBACK_COMPLETE":
            solutions.extend([
                "  1. The stack failed during creation and rolled back",
                "  2. Re-running deploy deletes and recreates it",
            ])
        elif status in ("ROLLBACK_FAILED", "UPDATE_ROLLBACK_FAILED"):
            solutions.extend([
                "  1. Manual intervention required",
                "  2. Check failed resources above",
                "  3. Continue the rollback from the AWS console, then deploy again",
            ])
        elif status == "DELETE_FAILED":
            solutions.extend([
                "  1. Resources are preventing deletion",
                "  2. Common cause: non-empty S3 buckets",
                "  3. Force delete: poc-utils stack teardown ... --force",
            ])
        elif status.endswith("_IN_PROGRESS"):
            solutions.extend([
                "  1. Operation is still in progress",
                "  2. Monitor with: poc-utils stack status --stack-name <name>",
            ])
        else:
            return []

        return solutions
