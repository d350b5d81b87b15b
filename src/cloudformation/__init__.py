"""
CloudFormation stack management utilities.
"""

from .diagnostics import StackDiagnostics
from .stack_manager import (
    NOT_FOUND,
    StackDescriptor,
    StackManager,
    TeardownOutcome,
)

__all__ = [
    "NOT_FOUND",
    "StackDescriptor",
    "StackDiagnostics",
    "StackManager",
    "TeardownOutcome",
]
