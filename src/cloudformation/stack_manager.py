"""
CloudFormation stack management operations.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from exceptions import (
    DeploymentFailedError,
    FatalStackStateError,
    PreconditionError,
    TransientStackError,
)

from .templates import (
    MAX_TEMPLATE_BODY_BYTES,
    parse_template,
    missing_parameters,
    read_template_body,
)

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"

# Statuses no automatic retry can get out of
FATAL_STATUSES = frozenset(
    ["ROLLBACK_FAILED", "DELETE_FAILED", "UPDATE_ROLLBACK_FAILED"]
)

SUCCESS_STATUSES = frozenset(
    ["CREATE_COMPLETE", "UPDATE_COMPLETE", "IMPORT_COMPLETE"]
)

TRANSIENT_ERROR_CODES = frozenset(
    [
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "ServiceUnavailable",
        "InternalFailure",
        "RequestTimeout",
    ]
)

DEFAULT_CAPABILITIES = (
    "CAPABILITY_IAM",
    "CAPABILITY_NAMED_IAM",
    "CAPABILITY_AUTO_EXPAND",
)


class AttemptOutcome(Enum):
    """Classification of a single deployment attempt."""

    SUCCESS = "success"
    TRANSIENT = "transient"
    FATAL = "fatal"


class TeardownOutcome(Enum):
    """Result of deleting a stack."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class StackDescriptor:
    """Everything needed to create or update one stack."""

    name: str
    template_path: Path
    region: Optional[str] = None
    parameters: Dict[str, str] = field(default_factory=dict)
    capabilities: Tuple[str, ...] = DEFAULT_CAPABILITIES
    tags: Dict[str, str] = field(default_factory=dict)
    template_bucket: Optional[str] = None


def is_terminal_status(status: str) -> bool:
    """Check whether CloudFormation will make no further transition."""
    return status == NOT_FOUND or not status.endswith("_IN_PROGRESS")


def is_transient_error(error: Exception) -> bool:
    """Check whether an AWS error is throttling or a connection problem."""
    if isinstance(error, BotoCoreError):
        return True
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "") in TRANSIENT_ERROR_CODES
    return False


class StackManager:
    """Manage CloudFormation stack operations."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize stack manager.

        Args:
            region: AWS region
            profile: AWS profile to use
            sleep: Function used between polls and retries
            clock: Monotonic clock used for wall-clock budgets
        """
        self.region = region or "us-east-1"
        self.profile = profile
        self._sleep = sleep
        self._clock = clock

        # Initialize AWS client
        session_args = {"region_name": self.region}
        if profile:
            session_args["profile_name"] = profile

        session = boto3.Session(**session_args)
        self.cloudformation = session.client("cloudformation")
        self.s3 = session.client("s3")

    def get_stack_status(self, stack_name: str) -> str:
        """Get current stack status, or NOT_FOUND."""
        try:
            response = self.cloudformation.describe_stacks(StackName=stack_name)
            if response["Stacks"]:
                return str(response["Stacks"][0]["StackStatus"])
        except ClientError as e:
            if "does not exist" in str(e):
                return NOT_FOUND
            raise
        return NOT_FOUND

    def stack_exists(self, stack_name: str) -> bool:
        """Check whether a stack exists (deleted stacks do not)."""
        return self.get_stack_status(stack_name) not in (NOT_FOUND, "DELETE_COMPLETE")

    def deploy_stack(
        self,
        descriptor: StackDescriptor,
        max_attempts: int = 3,
        retry_delay: float = 30,
        teardown_timeout: float = 1800,
        poll_interval: float = 15,
    ) -> str:
        """
        Create or update a stack, retrying transient failures.

        Returns once the create/update call has been accepted. Use
        ``wait_for_stack`` to confirm a terminal status.

        Args:
            descriptor: Stack to deploy
            max_attempts: Upper bound on attempts, including the first
            retry_delay: Fixed delay in seconds between attempts
            teardown_timeout: Budget for deleting a ROLLBACK_COMPLETE stack
            poll_interval: Delay between status checks during that delete

        Returns:
            The stack status observed after the accepted call

        Raises:
            PreconditionError: Template missing, unreadable or lacking parameters
            FatalStackStateError: Stack is in a non-recoverable state
            DeploymentFailedError: Retry budget exhausted
        """
        if max_attempts < 1:
            raise PreconditionError("max_attempts must be at least 1")

        template_source = self._template_source(descriptor)

        last_error: Optional[TransientStackError] = None
        for attempt in range(1, max_attempts + 1):
            logger.info(
                f"Deploying stack {descriptor.name} (attempt {attempt}/{max_attempts})"
            )
            outcome, detail = self._attempt_deploy(
                descriptor, template_source, teardown_timeout, poll_interval
            )

            if outcome is AttemptOutcome.SUCCESS:
                return self.get_stack_status(descriptor.name)

            if outcome is AttemptOutcome.FATAL:
                status = self.get_stack_status(descriptor.name)
                raise FatalStackStateError(
                    descriptor.name,
                    f"Stack {descriptor.name} cannot be deployed: {detail}",
                    status=status,
                )

            last_error = TransientStackError(descriptor.name, detail)
            if attempt < max_attempts:
                logger.warning(
                    f"Attempt {attempt} for {descriptor.name} failed: {detail}. "
                    f"Retrying in {retry_delay}s"
                )
                self._sleep(retry_delay)

        raise DeploymentFailedError(
            descriptor.name,
            f"Stack {descriptor.name} failed after {max_attempts} attempts: {last_error}",
            attempts=max_attempts,
        )

    def _template_source(self, descriptor: StackDescriptor) -> Dict[str, str]:
        """Resolve the template into TemplateBody or TemplateURL arguments."""
        path = Path(descriptor.template_path)
        body = read_template_body(path)
        template = parse_template(body, path.suffix.lower())

        missing = missing_parameters(template, descriptor.parameters)
        if missing:
            raise PreconditionError(
                f"Missing required parameters for {descriptor.name}: "
                + ", ".join(sorted(missing))
            )

        if len(body.encode("utf-8")) <= MAX_TEMPLATE_BODY_BYTES:
            return {"TemplateBody": body}

        if not descriptor.template_bucket:
            raise PreconditionError(
                f"Template {path} exceeds {MAX_TEMPLATE_BODY_BYTES} bytes; "
                "a template bucket is required"
            )

        key = f"templates/{descriptor.name}/{path.name}"
        logger.info(f"Uploading template to s3://{descriptor.template_bucket}/{key}")
        self.s3.upload_file(str(path), descriptor.template_bucket, key)
        return {
            "TemplateURL": f"https://{descriptor.template_bucket}.s3.amazonaws.com/{key}"
        }

    def _attempt_deploy(
        self,
        descriptor: StackDescriptor,
        template_source: Dict[str, str],
        teardown_timeout: float = 1800,
        poll_interval: float = 15,
    ) -> Tuple[AttemptOutcome, str]:
        """Run one create/update call and classify the result."""
        try:
            status = self.get_stack_status(descriptor.name)
            if status in FATAL_STATUSES:
                return AttemptOutcome.FATAL, f"stack is in {status} state"

            if status == "ROLLBACK_COMPLETE":
                # A stack that never created successfully can only be replaced
                logger.warning(
                    f"Stack {descriptor.name} is in ROLLBACK_COMPLETE state. Deleting..."
                )
                outcome = self.delete_stack(
                    descriptor.name, timeout=teardown_timeout, poll_interval=poll_interval
                )
                if outcome is TeardownOutcome.FAILURE:
                    return AttemptOutcome.FATAL, "could not delete rolled back stack"
                if outcome is TeardownOutcome.TIMEOUT:
                    return AttemptOutcome.TRANSIENT, "timed out deleting rolled back stack"
                status = NOT_FOUND

            params: Dict[str, Any] = {
                "StackName": descriptor.name,
                "Parameters": [
                    {"ParameterKey": key, "ParameterValue": str(value)}
                    for key, value in descriptor.parameters.items()
                ],
                "Capabilities": list(descriptor.capabilities),
                **template_source,
            }
            if descriptor.tags:
                params["Tags"] = [
                    {"Key": key, "Value": str(value)}
                    for key, value in descriptor.tags.items()
                ]

            if status in (NOT_FOUND, "DELETE_COMPLETE"):
                logger.info(f"Creating stack {descriptor.name}...")
                self.cloudformation.create_stack(**params)
            else:
                logger.info(f"Updating stack {descriptor.name}...")
                self.cloudformation.update_stack(**params)

        except ClientError as e:
            return self._classify_client_error(descriptor.name, e)
        except BotoCoreError as e:
            return AttemptOutcome.TRANSIENT, str(e)

        return AttemptOutcome.SUCCESS, ""

    def _classify_client_error(
        self, stack_name: str, error: ClientError
    ) -> Tuple[AttemptOutcome, str]:
        """Decide whether a failed control-plane call is worth retrying."""
        message = str(error)
        code = error.response.get("Error", {}).get("Code", "")

        if "No updates are to be performed" in message:
            logger.info("No stack updates needed")
            return AttemptOutcome.SUCCESS, ""

        if code in TRANSIENT_ERROR_CODES:
            return AttemptOutcome.TRANSIENT, message

        # Fatal-state short-circuit regardless of the error itself
        try:
            status = self.get_stack_status(stack_name)
        except (ClientError, BotoCoreError):
            return AttemptOutcome.TRANSIENT, message
        if status in FATAL_STATUSES:
            return AttemptOutcome.FATAL, f"stack is in {status} state"

        if code == "ValidationError" and "can not be updated" not in message:
            return AttemptOutcome.FATAL, message

        return AttemptOutcome.TRANSIENT, message

    def wait_for_stack(
        self,
        stack_name: str,
        timeout: float = 1800,
        poll_interval: float = 15,
    ) -> str:
        """
        Poll until the stack reaches a terminal status or the timeout elapses.

        Returns:
            The last observed status (still ``*_IN_PROGRESS`` on timeout)
        """
        deadline = self._clock() + timeout
        while True:
            status = self.get_stack_status(stack_name)
            if is_terminal_status(status):
                logger.info(f"Stack {stack_name} reached {status}")
                return status
            if self._clock() >= deadline:
                logger.warning(f"Timed out waiting for {stack_name} (last status {status})")
                return status
            logger.debug(f"Stack {stack_name} is {status}; polling again in {poll_interval}s")
            self._sleep(poll_interval)

    def delete_stack(
        self,
        stack_name: str,
        force: bool = False,
        timeout: float = 1800,
        poll_interval: float = 15,
    ) -> TeardownOutcome:
        """
        Delete a CloudFormation stack and poll until it is gone.

        Throttling and connection errors leave the status unknown for that
        poll; any other AWS error ends the teardown as a failure.

        Args:
            stack_name: Stack to delete
            force: Empty S3 buckets blocking a DELETE_FAILED stack first
            timeout: Wall-clock budget in seconds for the whole teardown
            poll_interval: Fixed delay between status checks
        """
        logger.info(f"Deleting stack {stack_name}...")
        try:
            return self._delete_and_poll(stack_name, force, timeout, poll_interval)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete stack {stack_name}: {e}")
            return TeardownOutcome.FAILURE

    def _delete_and_poll(
        self,
        stack_name: str,
        force: bool,
        timeout: float,
        poll_interval: float,
    ) -> TeardownOutcome:
        deadline = self._clock() + timeout

        status = self._teardown_status(stack_name)
        if status in (NOT_FOUND, "DELETE_COMPLETE"):
            logger.info(f"Stack {stack_name} does not exist")
            return TeardownOutcome.SUCCESS

        if status == "DELETE_FAILED" and force:
            self._handle_delete_blockers(stack_name)

        delete_requested = status == "DELETE_IN_PROGRESS"
        while True:
            if not delete_requested:
                try:
                    self.cloudformation.delete_stack(StackName=stack_name)
                    delete_requested = True
                except (ClientError, BotoCoreError) as e:
                    if not is_transient_error(e):
                        raise
                    logger.warning(f"Delete request for {stack_name} failed: {e}")

            if delete_requested:
                status = self._teardown_status(stack_name)
                if status in (NOT_FOUND, "DELETE_COMPLETE"):
                    logger.info(f"Stack {stack_name} deleted successfully")
                    return TeardownOutcome.SUCCESS

                if status == "DELETE_FAILED":
                    diagnosis = self.diagnose_stack_failure(stack_name)
                    for resource in diagnosis["failed_resources"]:
                        logger.error(f"  - {resource['logical_id']}: {resource['reason']}")
                    return TeardownOutcome.FAILURE

            if self._clock() >= deadline:
                logger.warning(
                    f"Timed out after {timeout}s deleting {stack_name} (status {status})"
                )
                return TeardownOutcome.TIMEOUT

            self._sleep(poll_interval)

    def _teardown_status(self, stack_name: str) -> Optional[str]:
        """Get the stack status, or None when a transient error hides it."""
        try:
            return self.get_stack_status(stack_name)
        except (ClientError, BotoCoreError) as e:
            if not is_transient_error(e):
                raise
            logger.warning(f"Status of {stack_name} unknown: {e}")
            return None

    def _handle_delete_blockers(self, stack_name: str) -> None:
        """Empty S3 buckets that block stack deletion."""
        logger.info("Checking for resources blocking deletion...")

        response = self.cloudformation.describe_stack_resources(StackName=stack_name)
        for resource in response["StackResources"]:
            if (
                resource["ResourceType"] != "AWS::S3::Bucket"
                or resource["ResourceStatus"] != "DELETE_FAILED"
            ):
                continue

            bucket_name = resource["PhysicalResourceId"]
            logger.info(f"Emptying S3 bucket: {bucket_name}")
            try:
                self.empty_bucket(bucket_name)
            except ClientError as e:
                logger.warning(f"Failed to empty bucket {bucket_name}: {e}")

    def empty_bucket(self, bucket_name: str) -> int:
        """Delete every object version and delete marker in a bucket."""
        deleted = 0
        paginator = self.s3.get_paginator("list_object_versions")
        for page in paginator.paginate(Bucket=bucket_name):
            versions = [
                {"Key": v["Key"], "VersionId": v["VersionId"]}
                for v in page.get("Versions", []) + page.get("DeleteMarkers", [])
            ]
            if versions:
                self.s3.delete_objects(Bucket=bucket_name, Delete={"Objects": versions})
                deleted += len(versions)
        return deleted

    def diagnose_stack_failure(self, stack_name: str) -> Dict[str, Any]:
        """Diagnose stack failure and return detailed information."""
        diagnosis: Dict[str, Any] = {
            "stack_name": stack_name,
            "status": None,
            "failed_resources": [],
            "recommendations": [],
        }

        status = self.get_stack_status(stack_name)
        diagnosis["status"] = status

        if status == NOT_FOUND:
            diagnosis["recommendations"].append("Stack does not exist")
            return diagnosis

        try:
            response = self.cloudformation.describe_stack_events(StackName=stack_name)
        except ClientError as e:
            diagnosis["error"] = str(e)
            return diagnosis

        for event in response["StackEvents"]:
            if not event["ResourceStatus"].endswith("_FAILED"):
                continue
            reason = event.get("ResourceStatusReason", "No reason provided")
            diagnosis["failed_resources"].append(
                {
                    "logical_id": event["LogicalResourceId"],
                    "resource_type": event["ResourceType"],
                    "status": event["ResourceStatus"],
                    "reason": reason,
                    "timestamp": str(event["Timestamp"]),
                }
            )
            diagnosis["recommendations"].extend(
                self._get_failure_recommendations(event["ResourceType"], reason)
            )

        if status in FATAL_STATUSES:
            diagnosis["recommendations"].append(
                f"Stack is in {status} state and needs operator intervention."
            )

        diagnosis["recommendations"] = sorted(set(diagnosis["recommendations"]))
        return diagnosis

    def _get_failure_recommendations(
        self, resource_type: str, reason: str
    ) -> List[str]:
        """Get recommendations based on failure reason."""
        recommendations = []

        if resource_type == "AWS::S3::Bucket":
            if "BucketNotEmpty" in reason or "bucket is not empty" in reason.lower():
                recommendations.append("Empty the S3 bucket or re-run teardown with --force")
            elif "already exists" in reason.lower():
                recommendations.append(
                    "S3 bucket name already exists. Choose a different name."
                )

        if "AccessDenied" in reason or "is not authorized" in reason:
            recommendations.append("Check IAM permissions for CloudFormation")

        if resource_type == "AWS::SNS::Subscription" and "Invalid parameter" in reason:
            recommendations.append("Check the notification email address parameter")

        if "timeout" in reason.lower():
            recommendations.append(
                "Operation timed out. Check resource logs for details."
            )

        return recommendations

    def get_stack_outputs(self, stack_name: str) -> Dict[str, str]:
        """Get outputs from a CloudFormation stack."""
        try:
            response = self.cloudformation.describe_stacks(StackName=stack_name)
        except ClientError as e:
            if "does not exist" in str(e):
                return {}
            raise

        outputs = {}
        if response["Stacks"]:
            for output in response["Stacks"][0].get("Outputs", []):
                outputs[output["OutputKey"]] = output["OutputValue"]
        return outputs

    def list_stacks(self, prefix: Optional[str] = None) -> List[Dict[str, Any]]:
        """List live CloudFormation stacks, optionally filtered by name prefix."""
        stacks = []
        paginator = self.cloudformation.get_paginator("list_stacks")

        for page in paginator.paginate():
            for stack in page["StackSummaries"]:
                if stack["StackStatus"] == "DELETE_COMPLETE":
                    continue
                if prefix and not stack["StackName"].startswith(prefix):
                    continue

                stacks.append(
                    {
                        "name": stack["StackName"],
                        "status": stack["StackStatus"],
                        "created": str(stack["CreationTime"]),
                        "updated": str(
                            stack.get("LastUpdatedTime", stack["CreationTime"])
                        ),
                    }
                )

        return stacks
