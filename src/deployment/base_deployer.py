"""
Base deployment class with common functionality.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from exceptions import PocUtilsError

logger = logging.getLogger(__name__)


class DeploymentStatus(Enum):
    """Status of a deployment operation."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class DeploymentResult:
    """Result of a deployment operation."""
    status: DeploymentStatus
    message: str
    duration: float
    outputs: Optional[Dict[str, Any]] = None
    errors: Optional[List[str]] = None
    warnings: Optional[List[str]] = None

    @property
    def success(self) -> bool:
        """Check if deployment was successful."""
        return self.status == DeploymentStatus.SUCCESS


class BaseDeployer(ABC):
    """Base class for deployers: message collection and timing."""

    def __init__(self, environment: str, dry_run: bool = False):
        self.environment = environment
        self.dry_run = dry_run

        # Deployment state
        self.start_time: Optional[float] = None
        self.outputs: Dict[str, Any] = {}
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def add_output(self, key: str, value: Any) -> None:
        """Add an output value."""
        self.outputs[key] = value

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        logger.error(message)

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)
        logger.warning(message)

    def elapsed(self) -> float:
        """Seconds since execute() started."""
        return time.time() - self.start_time if self.start_time else 0.0

    @abstractmethod
    def deploy(self) -> DeploymentResult:
        """
        Execute the deployment.

        Must be implemented by subclasses.
        """

    @abstractmethod
    def teardown(self, force: bool = False) -> DeploymentResult:
        """
        Remove what deploy() created.

        Must be implemented by subclasses.
        """

    def execute(self, operation: str = "deploy", **kwargs) -> DeploymentResult:
        """Run deploy or teardown, turning project errors into a failed result."""
        self.start_time = time.time()
        self.errors = []
        self.warnings = []

        try:
            if operation == "deploy":
                result = self.deploy()
            elif operation == "teardown":
                result = self.teardown(**kwargs)
            else:
                raise ValueError(f"Unknown operation: {operation}")
        except PocUtilsError as e:
            self.add_error(str(e))
            return DeploymentResult(
                status=DeploymentStatus.FAILED,
                message=f"{operation.capitalize()} failed: {e}",
                duration=self.elapsed(),
                outputs=self.outputs,
                errors=self.errors,
                warnings=self.warnings,
            )

        result.outputs = {**self.outputs, **(result.outputs or {})}
        result.errors = self.errors + [e for e in (result.errors or []) if e not in self.errors]
        result.warnings = self.warnings + [w for w in (result.warnings or []) if w not in self.warnings]
        return result

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        pass
