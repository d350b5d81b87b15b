"""
Tests for config_validation.validator module.
"""

from pathlib import Path

import pytest
import yaml

from config_validation.validator import CONFIG_SCHEMA, ConfigurationValidator


class TestConfigurationValidator:
    """Test ConfigurationValidator functionality."""

    @pytest.fixture
    def validator(self) -> ConfigurationValidator:
        return ConfigurationValidator()

    @pytest.fixture
    def valid_config(self) -> dict:
        return {
            "name": "disaster-recovery",
            "aws_region": "us-east-1",
            "environments": ["dev", "prod"],
            "components": [
                {"name": "iam", "template": "iam.yaml", "required_outputs": ["BackupUserArn"]},
                {
                    "name": "s3",
                    "template": "s3.yaml",
                    "imports": {"BackupUserArn": "iam.BackupUserArn"},
                },
            ],
            "backup_storage_class": "DEEP_ARCHIVE",
        }

    def test_default_schema(self, validator: ConfigurationValidator) -> None:
        assert validator.schema is CONFIG_SCHEMA

    def test_valid_config(self, validator: ConfigurationValidator, valid_config: dict) -> None:
        assert validator.validate(valid_config) == []

    def test_unknown_key(self, validator: ConfigurationValidator, valid_config: dict) -> None:
        valid_config["lambda_runtime"] = "python3.12"

        errors = validator.validate(valid_config)

        assert len(errors) == 1
        assert "lambda_runtime" in errors[0]

    def test_invalid_region(self, validator: ConfigurationValidator, valid_config: dict) -> None:
        valid_config["aws_region"] = "nowhere"

        errors = validator.validate(valid_config)

        assert errors and errors[0].startswith("aws_region:")

    def test_invalid_storage_class(self, validator: ConfigurationValidator, valid_config: dict) -> None:
        valid_config["backup_storage_class"] = "TAPE"

        assert validator.validate(valid_config)

    def test_component_requires_template(self, validator: ConfigurationValidator, valid_config: dict) -> None:
        valid_config["components"].append({"name": "cloudwatch"})

        errors = validator.validate(valid_config)

        assert any("components -> 2" in e and "template" in e for e in errors)

    def test_import_must_reference_earlier_component(
        self, validator: ConfigurationValidator, valid_config: dict
    ) -> None:
        valid_config["components"][0]["imports"] = {"BucketName": "s3.BucketName"}

        errors = validator.validate(valid_config)

        assert errors == [
            "components -> iam: import BucketName references 's3', "
            "which is not an earlier component"
        ]

    def test_validate_file(self, validator: ConfigurationValidator, valid_config: dict, tmp_path: Path) -> None:
        config_file = tmp_path / "disaster-recovery.yaml"
        config_file.write_text(yaml.safe_dump(valid_config))

        is_valid, result = validator.validate_file(config_file)

        assert is_valid is True
        assert result["errors"] == []

    def test_validate_unreadable_file(self, validator: ConfigurationValidator, tmp_path: Path) -> None:
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("components: [unclosed")

        is_valid, result = validator.validate_file(config_file)

        assert is_valid is False
        assert "Could not read configuration" in result["errors"][0]

    @pytest.mark.parametrize("body", ["- just\n- a list\n", "just a string\n", "42\n"])
    def test_validate_file_not_a_mapping(
        self, validator: ConfigurationValidator, tmp_path: Path, body: str
    ) -> None:
        config_file = tmp_path / "list.yaml"
        config_file.write_text(body)

        is_valid, result = validator.validate_file(config_file)

        assert is_valid is False
        assert "is not of type 'object'" in result["errors"][0]

    def test_imports_not_a_mapping(self, validator: ConfigurationValidator, valid_config: dict) -> None:
        valid_config["components"][1]["imports"] = ["iam.BackupUserArn"]

        errors = validator.validate(valid_config)

        assert any("imports" in e for e in errors)

    def test_validate_directory(self, validator: ConfigurationValidator, valid_config: dict, tmp_path: Path) -> None:
        (tmp_path / "good.yaml").write_text(yaml.safe_dump(valid_config))
        (tmp_path / "bad.yaml").write_text(yaml.safe_dump({"max_attempts": "three"}))

        results = validator.validate_directory(tmp_path)

        assert results["all_valid"] is False
        assert results["files"]["good.yaml"]["valid"] is True
        assert results["files"]["bad.yaml"]["valid"] is False

    def test_validate_missing_directory(self, validator: ConfigurationValidator, tmp_path: Path) -> None:
        results = validator.validate_directory(tmp_path / "missing")

        assert results == {"all_valid": True, "files": {}}
