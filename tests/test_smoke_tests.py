"""
Tests for smoke tests against deployed POC stacks.
"""

import json
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

from cloudformation.stack_manager import NOT_FOUND, StackManager
from config import ComponentConfig, PocConfig
from testing import CheckStatus, SmokeTestRunner


@pytest.fixture
def poc_config() -> PocConfig:
    return PocConfig(
        name="serverless-architecture",
        display_name="Serverless Architecture",
        components=[
            ComponentConfig(name="sqs", template="sqs.yaml"),
            ComponentConfig(
                name="api-gateway",
                template="api-gateway.yaml",
                required_outputs=["APIEndpoint"],
            ),
        ],
    )


@pytest.fixture
def stack_manager() -> Mock:
    manager = Mock(spec=StackManager)
    manager.get_stack_status.return_value = "CREATE_COMPLETE"
    manager.get_stack_outputs.side_effect = lambda name: (
        {"APIEndpoint": "https://abc.execute-api.us-east-1.amazonaws.com/dev"}
        if name.endswith("api-gateway")
        else {"QueueURL": "sqs-queue"}
    )
    return manager


@pytest.fixture
def http() -> Mock:
    session = Mock(spec=requests.Session)
    session.get.return_value = Mock(status_code=403)
    return session


def make_runner(poc_config, stack_manager, http, tmp_path) -> SmokeTestRunner:
    return SmokeTestRunner(
        poc_config,
        "dev",
        stack_manager=stack_manager,
        http=http,
        timeout=5,
        report_dir=tmp_path / "reports",
    )


class TestSmokeTestRunner:
    """Test SmokeTestRunner."""

    def test_all_checks_pass(self, poc_config, stack_manager, http, tmp_path) -> None:
        runner = make_runner(poc_config, stack_manager, http, tmp_path)

        all_passed, results = runner.run_all_tests()

        assert all_passed is True
        names = [r.name for r in results]
        assert names == [
            "sqs: stack status",
            "sqs: required outputs",
            "api-gateway: stack status",
            "api-gateway: required outputs",
            "api-gateway: endpoint APIEndpoint",
        ]
        assert results[1].status == CheckStatus.SKIPPED
        http.get.assert_called_once_with(
            "https://abc.execute-api.us-east-1.amazonaws.com/dev", timeout=5
        )

    def test_missing_stack(self, poc_config, stack_manager, http, tmp_path) -> None:
        stack_manager.get_stack_status.return_value = NOT_FOUND

        all_passed, results = make_runner(poc_config, stack_manager, http, tmp_path).run_all_tests()

        assert all_passed is False
        assert [r.status for r in results] == [CheckStatus.FAILED, CheckStatus.FAILED]
        stack_manager.get_stack_outputs.assert_not_called()

    def test_rolled_back_update_warns(self, poc_config, stack_manager, http, tmp_path) -> None:
        stack_manager.get_stack_status.return_value = "UPDATE_ROLLBACK_COMPLETE"

        all_passed, results = make_runner(poc_config, stack_manager, http, tmp_path).run_all_tests()

        assert all_passed is True
        assert results[0].status == CheckStatus.WARNING

    def test_missing_required_output(self, poc_config, stack_manager, http, tmp_path) -> None:
        stack_manager.get_stack_outputs.side_effect = None
        stack_manager.get_stack_outputs.return_value = {}

        all_passed, results = make_runner(poc_config, stack_manager, http, tmp_path).run_all_tests()

        assert all_passed is False
        failed = [r for r in results if r.status == CheckStatus.FAILED]
        assert failed[0].message == "Missing outputs: APIEndpoint"

    def test_endpoint_server_error(self, poc_config, stack_manager, http, tmp_path) -> None:
        http.get.return_value = Mock(status_code=502)

        all_passed, _ = make_runner(poc_config, stack_manager, http, tmp_path).run_all_tests()

        assert all_passed is False

    def test_endpoint_unreachable(self, poc_config, stack_manager, http, tmp_path) -> None:
        http.get.side_effect = requests.ConnectionError("connection refused")

        all_passed, results = make_runner(poc_config, stack_manager, http, tmp_path).run_all_tests()

        assert all_passed is False
        assert results[-1].message.startswith("Request failed")

    def test_write_report(self, poc_config, stack_manager, http, tmp_path) -> None:
        runner = make_runner(poc_config, stack_manager, http, tmp_path)
        runner.run_all_tests()

        path = runner.write_report()

        assert path.parent == tmp_path / "reports"
        assert path.name.startswith("smoke-serverless-architecture-dev-")
        report = json.loads(path.read_text())
        assert report["passed"] is True
        assert report["results"][0]["status"] == "passed"
