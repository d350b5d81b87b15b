"""
Tests for deployment.base_deployer module.
"""

import pytest

from deployment.base_deployer import BaseDeployer, DeploymentResult, DeploymentStatus
from exceptions import PreconditionError


class RecordingDeployer(BaseDeployer):
    """Deployer whose operations are scripted by the test."""

    def __init__(self, deploy_result=None, error=None):
        super().__init__("dev")
        self.deploy_result = deploy_result
        self.error = error
        self.teardown_force = None

    def deploy(self) -> DeploymentResult:
        self.add_output("iam.StackStatus", "CREATE_COMPLETE")
        self.add_warning("template bucket not set")
        if self.error:
            raise self.error
        return self.deploy_result

    def teardown(self, force: bool = False) -> DeploymentResult:
        self.teardown_force = force
        return DeploymentResult(status=DeploymentStatus.SUCCESS, message="removed", duration=0)


class TestDeploymentStatus:
    """Test DeploymentStatus enum."""

    def test_status_values(self) -> None:
        """Test DeploymentStatus enum values."""
        assert DeploymentStatus.PENDING.value == "pending"
        assert DeploymentStatus.IN_PROGRESS.value == "in_progress"
        assert DeploymentStatus.SUCCESS.value == "success"
        assert DeploymentStatus.FAILED.value == "failed"
        assert DeploymentStatus.TIMED_OUT.value == "timed_out"


class TestDeploymentResult:
    """Test DeploymentResult dataclass."""

    def test_success_property(self) -> None:
        """Test success property."""
        assert DeploymentResult(DeploymentStatus.SUCCESS, "ok", 1.0).success is True
        assert DeploymentResult(DeploymentStatus.FAILED, "no", 1.0).success is False
        assert DeploymentResult(DeploymentStatus.TIMED_OUT, "slow", 1.0).success is False


class TestBaseDeployer:
    """Test BaseDeployer execute()."""

    def test_abstract(self) -> None:
        with pytest.raises(TypeError):
            BaseDeployer("dev")

    def test_execute_merges_messages(self) -> None:
        deployer = RecordingDeployer(
            deploy_result=DeploymentResult(
                status=DeploymentStatus.SUCCESS,
                message="done",
                duration=0,
                outputs={"s3.BucketName": "backups"},
            )
        )

        result = deployer.execute("deploy")

        assert result.success
        assert result.outputs == {
            "iam.StackStatus": "CREATE_COMPLETE",
            "s3.BucketName": "backups",
        }
        assert result.warnings == ["template bucket not set"]
        assert result.errors == []

    def test_execute_converts_project_errors(self) -> None:
        deployer = RecordingDeployer(error=PreconditionError("Template file not found: iam.yaml"))

        result = deployer.execute("deploy")

        assert result.status == DeploymentStatus.FAILED
        assert "Template file not found" in result.message
        assert result.errors == ["Template file not found: iam.yaml"]
        assert result.outputs == {"iam.StackStatus": "CREATE_COMPLETE"}

    def test_execute_passes_teardown_kwargs(self) -> None:
        deployer = RecordingDeployer()

        with deployer:
            result = deployer.execute("teardown", force=True)

        assert result.success
        assert deployer.teardown_force is True

    def test_execute_unknown_operation(self) -> None:
        with pytest.raises(ValueError):
            RecordingDeployer().execute("upgrade")

    def test_execute_resets_messages(self) -> None:
        deployer = RecordingDeployer(error=PreconditionError("boom"))
        deployer.execute("deploy")

        result = deployer.execute("deploy")

        assert result.errors == ["boom"]
