"""
Configuration management for the proof-of-concept stacks.

Each POC (serverless-architecture, data-analytics, disaster-recovery) is a
set of component stacks deployed in order. Defaults live here and can be
overridden per POC with ``<config_dir>/<poc>.yaml``.
"""

import copy
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from config_validation.validator import ConfigurationValidator
from exceptions import ConfigurationError, PreconditionError


def find_config_dir() -> Path:
    """Find the configuration directory."""
    env_dir = os.environ.get("POC_CONFIG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.cwd() / "config"


@dataclass
class ComponentConfig:
    """One component stack of a POC."""

    name: str
    template: str
    parameters: Dict[str, str] = field(default_factory=dict)
    # Template parameter -> "<component>.<OutputKey>" of an earlier component
    imports: Dict[str, str] = field(default_factory=dict)
    required_outputs: List[str] = field(default_factory=list)

    def import_sources(self) -> List[str]:
        """Names of the components this one takes outputs from."""
        return sorted({ref.split(".", 1)[0] for ref in self.imports.values()})


@dataclass
class PocConfig:
    """Configuration for a specific POC."""

    # POC identification
    name: str
    display_name: str
    aws_region: str = "us-east-1"

    # Environment settings
    environments: List[str] = field(default_factory=lambda: ["dev", "test", "prod"])
    default_environment: str = "dev"

    # Stack naming and templates
    stack_name_pattern: str = "{project}-{environment}-{component}"
    template_dir: str = "infrastructure/cloudformation"
    template_bucket: Optional[str] = None
    components: List[ComponentConfig] = field(default_factory=list)
    parameters: Dict[str, str] = field(default_factory=dict)
    tags: Dict[str, str] = field(default_factory=dict)

    # Deploy retry and polling
    max_attempts: int = 3
    retry_delay: int = 30
    stack_timeout: int = 1800
    teardown_timeout: int = 1800
    poll_interval: int = 15

    # Backup and restore
    backup_prefix: str = "backups/"
    backup_storage_class: str = "DEEP_ARCHIVE"
    restore_days: int = 7
    restore_job_dir: Optional[str] = None
    restore_log_group_pattern: str = (
        "/aws/disaster-recovery/restore-operations-{environment}"
    )
    backup_log_group_pattern: str = (
        "/aws/disaster-recovery/backup-operations-{environment}"
    )

    # Smoke test reports
    report_dir: Optional[str] = None

    def format_name(self, pattern: str, **kwargs) -> str:
        """Format a naming pattern with POC variables."""
        variables = {"project": self.name, "display_name": self.display_name, **kwargs}
        return pattern.format(**variables)

    def get_stack_name(self, environment: str, component: str) -> str:
        """Get the CloudFormation stack name of one component."""
        return self.format_name(
            self.stack_name_pattern, environment=environment, component=component
        )

    def get_component(self, name: str) -> ComponentConfig:
        """Look up a component by name."""
        for component in self.components:
            if component.name == name:
                return component
        known = ", ".join(c.name for c in self.components)
        raise PreconditionError(f"Unknown component '{name}' for {self.name} (known: {known})")

    def get_template_path(
        self,
        component: ComponentConfig,
        template_dir: Optional[Union[str, Path]] = None,
    ) -> Path:
        """Resolve a component's template path."""
        return Path(template_dir or self.template_dir) / component.template

    def get_restore_job_dir(self) -> Path:
        """Directory holding restore job records."""
        if self.restore_job_dir:
            return Path(self.restore_job_dir)
        return Path(tempfile.gettempdir()) / "poc-restore-jobs"

    def get_report_dir(self) -> Path:
        """Directory holding smoke test reports."""
        if self.report_dir:
            return Path(self.report_dir)
        return Path(tempfile.gettempdir()) / "poc-test-reports"

    def validate_environment(self, environment: str) -> None:
        """Reject environments the POC does not define."""
        if environment not in self.environments:
            raise PreconditionError(
                f"Unknown environment '{environment}' for {self.name} "
                f"(expected one of: {', '.join(self.environments)})"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PocConfig":
        """Create config from dictionary."""
        data = dict(data)
        data["components"] = [
            c if isinstance(c, ComponentConfig) else ComponentConfig(**c)
            for c in data.get("components", [])
        ]
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration for {data.get('name')}: {e}") from e


class ConfigManager:
    """Manages configuration for all POCs."""

    # Default configurations for each POC
    DEFAULT_CONFIGS: Dict[str, Dict[str, Any]] = {
        "serverless-architecture": {
            "name": "serverless-architecture",
            "display_name": "Serverless Architecture",
            "template_dir": "poc-1-serverless-architecture/infrastructure/cloudformation",
            "components": [
                {"name": "iam", "template": "iam.yaml"},
                {"name": "dynamodb", "template": "dynamodb.yaml"},
                {"name": "sqs", "template": "sqs.yaml"},
                {"name": "sns", "template": "sns.yaml"},
                {
                    "name": "lambda",
                    "template": "lambda.yaml",
                    "imports": {
                        "DynamoDBTableName": "dynamodb.TableName",
                        "SQSQueueURL": "sqs.QueueURL",
                        "SQSQueueARN": "sqs.QueueARN",
                        "SNSTopicARN": "sns.TopicARN",
                        "LambdaSQSDynamoDBRoleARN": "iam.LambdaSQSDynamoDBRoleARN",
                        "LambdaDynamoDBSNSRoleARN": "iam.LambdaDynamoDBSNSRoleARN",
                    },
                },
                {
                    "name": "api-gateway",
                    "template": "api-gateway.yaml",
                    "imports": {
                        "SQSQueueURL": "sqs.QueueURL",
                        "SQSQueueARN": "sqs.QueueARN",
                        "APIGatewaySQSRoleARN": "iam.APIGatewaySQSRoleARN",
                    },
                    "required_outputs": ["APIEndpoint"],
                },
            ],
        },
        "data-analytics": {
            "name": "data-analytics",
            "display_name": "Data Analytics",
            "template_dir": "poc-2-data-analytics/infrastructure/cloudformation",
            "components": [
                {"name": "iam", "template": "iam.yaml"},
                {
                    "name": "lambda",
                    "template": "lambda.yaml",
                    "required_outputs": ["TransformDataFunctionArn"],
                },
                {
                    "name": "firehose",
                    "template": "firehose.yaml",
                    "imports": {"LambdaFunctionArn": "lambda.TransformDataFunctionArn"},
                },
                {
                    "name": "s3",
                    "template": "s3.yaml",
                    "imports": {"FirehoseRoleArn": "firehose.FirehoseDeliveryRoleArn"},
                    "required_outputs": ["BucketName"],
                },
                {
                    "name": "athena",
                    "template": "athena.yaml",
                    "imports": {"S3BucketName": "s3.BucketName"},
                },
                {
                    "name": "api-gateway",
                    "template": "api-gateway.yaml",
                    "imports": {
                        "FirehoseDeliveryStreamName": "firehose.FirehoseDeliveryStreamName",
                    },
                    "required_outputs": ["ClickstreamIngestAPIEndpoint"],
                },
            ],
        },
        "disaster-recovery": {
            "name": "disaster-recovery",
            "display_name": "Disaster Recovery",
            "template_dir": "poc-5-disaster-recovery/infrastructure/cloudformation",
            "components": [
                {
                    "name": "iam",
                    "template": "iam.yaml",
                    "required_outputs": ["BackupUserArn"],
                },
                {
                    "name": "s3",
                    "template": "s3.yaml",
                    "imports": {"BackupUserArn": "iam.BackupUserArn"},
                    "required_outputs": ["BucketName", "BucketArn"],
                },
                {
                    "name": "cloudwatch",
                    "template": "cloudwatch.yaml",
                    "required_outputs": ["NotificationTopicArn", "RestoreLogGroupName"],
                },
            ],
        },
    }

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """Initialize config manager."""
        self.config_dir = Path(config_dir) if config_dir else find_config_dir()
        self._cache: Dict[str, PocConfig] = {}
        self._load_configs()

    def _config_file(self, poc_name: str) -> Path:
        return self.config_dir / f"{poc_name}.yaml"

    def _load_configs(self) -> None:
        """Load all POC configurations, merging files over defaults."""
        names = set(self.DEFAULT_CONFIGS)
        if self.config_dir.is_dir():
            names.update(p.stem for p in self.config_dir.glob("*.yaml"))

        for poc_name in sorted(names):
            merged = copy.deepcopy(self.DEFAULT_CONFIGS.get(poc_name, {}))
            config_file = self._config_file(poc_name)
            if config_file.exists():
                merged.update(self._read_config_file(config_file))
            merged.setdefault("name", poc_name)
            merged.setdefault("display_name", poc_name.replace("-", " ").title())
            self._cache[poc_name] = PocConfig.from_dict(merged)

    def _read_config_file(self, config_file: Path) -> Dict[str, Any]:
        """Read and schema-check one override file."""
        with open(config_file, "r") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

        errors = ConfigurationValidator().validate(data)
        if errors:
            raise ConfigurationError(
                f"Invalid configuration in {config_file}: " + "; ".join(errors)
            )
        return data

    def get_poc_config(self, poc_name: str) -> PocConfig:
        """Get configuration for a specific POC."""
        if poc_name not in self._cache:
            known = ", ".join(sorted(self._cache))
            raise PreconditionError(f"Unknown POC: {poc_name} (known: {known})")
        return self._cache[poc_name]

    def save_poc_config(self, poc_name: str, config: PocConfig) -> Path:
        """Save POC configuration to file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        config_file = self._config_file(poc_name)
        with open(config_file, "w") as f:
            yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
        self._cache[poc_name] = config
        return config_file

    def list_pocs(self) -> List[str]:
        """List all available POCs."""
        return sorted(self._cache)


# Singleton instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_dir: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Get or create the config manager instance."""
    global _config_manager
    if _config_manager is None or config_dir is not None:
        _config_manager = ConfigManager(config_dir)
    return _config_manager


def get_poc_config(poc_name: str, config_dir: Optional[Union[str, Path]] = None) -> PocConfig:
    """Get configuration for a specific POC."""
    return get_config_manager(config_dir).get_poc_config(poc_name)


def get_current_poc_config() -> Optional[PocConfig]:
    """Try to determine the current POC from POC_NAME or the working directory."""
    poc_name = os.environ.get("POC_NAME")
    if poc_name:
        return get_poc_config(poc_name)

    cwd = Path.cwd()
    for part in cwd.parts:
        for name in ConfigManager.DEFAULT_CONFIGS:
            if part.endswith(name):
                return get_poc_config(name)

    return None
