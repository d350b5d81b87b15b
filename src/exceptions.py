"""
Exception types shared by the stack, recovery and testing utilities.
"""

from typing import Optional


class PocUtilsError(Exception):
    """Base class for all errors raised by the project utilities."""


class PreconditionError(PocUtilsError):
    """A local precondition failed before any AWS call was made."""


class ConfigurationError(PocUtilsError):
    """A configuration file is missing or does not match the schema."""


class StackError(PocUtilsError):
    """Base class for CloudFormation stack errors."""

    def __init__(self, stack_name: str, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.stack_name = stack_name
        self.status = status


class TransientStackError(StackError):
    """A retryable control-plane or network failure."""


class FatalStackStateError(StackError):
    """The stack is in a state that cannot be recovered automatically."""


class DeploymentFailedError(StackError):
    """Deployment gave up after exhausting its retry budget."""

    def __init__(
        self,
        stack_name: str,
        message: str,
        attempts: int,
        status: Optional[str] = None,
    ):
        super().__init__(stack_name, message, status)
        self.attempts = attempts
