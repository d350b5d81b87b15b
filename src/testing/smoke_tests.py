"""
Smoke tests for deployed POC stacks.

Validates that every component stack finished deploying, exposes the
outputs later steps depend on, and that HTTP endpoints among its outputs
answer.
"""

import json
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from cloudformation.stack_manager import NOT_FOUND, SUCCESS_STATUSES, StackManager
from config import ComponentConfig, PocConfig

logger = logging.getLogger(__name__)


class CheckStatus(Enum):
    """Check execution status."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    WARNING = "warning"


@dataclass
class CheckResult:
    """Result of a single check."""

    name: str
    status: CheckStatus
    message: str
    duration: float
    details: Optional[Dict[str, Any]] = None


class SmokeTestRunner:
    """Run smoke tests against deployed POC stacks."""

    def __init__(
        self,
        config: PocConfig,
        environment: str,
        stack_manager: Optional[StackManager] = None,
        http: Optional[requests.Session] = None,
        timeout: int = 30,
        report_dir: Optional[Path] = None,
        profile: Optional[str] = None,
    ):
        """
        Initialize smoke test runner.

        Args:
            config: POC configuration
            environment: Deployment environment
            stack_manager: Pre-built stack manager
            http: HTTP session used for endpoint checks
            timeout: Request timeout in seconds
            report_dir: Where the JSON report is written
            profile: AWS profile to use
        """
        self.config = config
        self.environment = environment
        self.stack_manager = stack_manager or StackManager(
            region=config.aws_region, profile=profile
        )
        self.http = http or requests.Session()
        self.timeout = timeout
        self.report_dir = Path(report_dir) if report_dir else config.get_report_dir()
        self.results: List[CheckResult] = []

    def run_all_tests(self) -> Tuple[bool, List[CheckResult]]:
        """
        Run all smoke tests.

        Returns:
            Tuple of (all_passed, results)
        """
        logger.info(f"Running smoke tests for {self.config.name} ({self.environment})")
        self.results = []

        for component in self.config.components:
            stack_name = self.config.get_stack_name(self.environment, component.name)
            status_result = self._run_check(
                f"{component.name}: stack status",
                lambda: self.check_stack_status(stack_name),
            )
            if status_result.status is CheckStatus.FAILED:
                continue

            outputs = self.stack_manager.get_stack_outputs(stack_name)
            self._run_check(
                f"{component.name}: required outputs",
                lambda: self.check_required_outputs(component, outputs),
            )
            for key, value in sorted(outputs.items()):
                if value.startswith(("https://", "http://")):
                    self._run_check(
                        f"{component.name}: endpoint {key}",
                        lambda url=value: self.check_endpoint(url),
                    )

        failed = sum(1 for r in self.results if r.status == CheckStatus.FAILED)
        passed = sum(1 for r in self.results if r.status == CheckStatus.PASSED)
        if failed:
            logger.error(f"{failed} checks failed, {passed} passed")
        else:
            logger.info(f"All {passed} checks passed")

        return failed == 0, self.results

    def _run_check(
        self, name: str, check: Callable[[], Tuple[CheckStatus, str]]
    ) -> CheckResult:
        """Run a single check and record the result."""
        start_time = time.time()
        try:
            status, message = check()
        except requests.RequestException as e:
            status, message = CheckStatus.FAILED, f"Request failed: {e}"

        result = CheckResult(
            name=name, status=status, message=message, duration=time.time() - start_time
        )
        self.results.append(result)
        logger.info(f"[{status.value}] {name}: {message}")
        return result

    def check_stack_status(self, stack_name: str) -> Tuple[CheckStatus, str]:
        status = self.stack_manager.get_stack_status(stack_name)
        if status == NOT_FOUND:
            return CheckStatus.FAILED, f"Stack {stack_name} does not exist"
        if status in SUCCESS_STATUSES:
            return CheckStatus.PASSED, status
        if status == "UPDATE_ROLLBACK_COMPLETE":
            return CheckStatus.WARNING, "Last update was rolled back"
        return CheckStatus.FAILED, f"Stack {stack_name} is in {status}"

    def check_required_outputs(
        self, component: ComponentConfig, outputs: Dict[str, str]
    ) -> Tuple[CheckStatus, str]:
        if not component.required_outputs:
            return CheckStatus.SKIPPED, "No required outputs declared"
        missing = [key for key in component.required_outputs if not outputs.get(key)]
        if missing:
            return CheckStatus.FAILED, "Missing outputs: " + ", ".join(missing)
        return CheckStatus.PASSED, f"{len(component.required_outputs)} output(s) present"

    def check_endpoint(self, url: str) -> Tuple[CheckStatus, str]:
        """Any non-5xx answer means the endpoint is deployed and routing."""
        response = self.http.get(url, timeout=self.timeout)
        if response.status_code >= 500:
            return CheckStatus.FAILED, f"{url} returned {response.status_code}"
        return CheckStatus.PASSED, f"{url} returned {response.status_code}"

    def write_report(self) -> Path:
        """Write the results of the last run as JSON."""
        now = datetime.now(timezone.utc)
        self.report_dir.mkdir(parents=True, exist_ok=True)
        path = self.report_dir / f"smoke-{self.config.name}-{self.environment}-{now:%Y%m%d-%H%M%S}.json"

        report = {
            "poc": self.config.name,
            "environment": self.environment,
            "timestamp": now.isoformat(),
            "passed": all(r.status != CheckStatus.FAILED for r in self.results),
            "results": [
                {**asdict(r), "status": r.status.value} for r in self.results
            ],
        }
        with open(path, "w") as f:
            json.dump(report, f, indent=2)
        logger.info(f"Smoke test report written to {path}")
        return path
