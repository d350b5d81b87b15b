"""Configuration file validation."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema
import yaml

logger = logging.getLogger(__name__)

_string_map = {"type": "object", "additionalProperties": {"type": ["string", "number", "boolean"]}}

COMPONENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name", "template"],
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string", "pattern": "^[a-z0-9][a-z0-9-]*$"},
        "template": {"type": "string", "minLength": 1},
        "parameters": _string_map,
        "imports": {
            "type": "object",
            "additionalProperties": {"type": "string", "pattern": r"^[a-z0-9-]+\.[A-Za-z0-9]+$"},
        },
        "required_outputs": {"type": "array", "items": {"type": "string"}},
    },
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string"},
        "display_name": {"type": "string"},
        "aws_region": {"type": "string", "pattern": "^[a-z]{2}(-[a-z]+)+-[0-9]$"},
        "environments": {"type": "array", "items": {"type": "string"}, "minItems": 1},
        "default_environment": {"type": "string"},
        "stack_name_pattern": {"type": "string"},
        "template_dir": {"type": "string"},
        "template_bucket": {"type": ["string", "null"]},
        "components": {"type": "array", "items": COMPONENT_SCHEMA},
        "parameters": _string_map,
        "tags": _string_map,
        "max_attempts": {"type": "integer", "minimum": 1, "maximum": 10},
        "retry_delay": {"type": "integer", "minimum": 0},
        "stack_timeout": {"type": "integer", "minimum": 0},
        "teardown_timeout": {"type": "integer", "minimum": 0},
        "poll_interval": {"type": "integer", "minimum": 1},
        "backup_prefix": {"type": "string"},
        "backup_storage_class": {
            "enum": ["STANDARD", "STANDARD_IA", "GLACIER", "GLACIER_IR", "DEEP_ARCHIVE"]
        },
        "restore_days": {"type": "integer", "minimum": 1},
        "restore_job_dir": {"type": ["string", "null"]},
        "restore_log_group_pattern": {"type": "string"},
        "backup_log_group_pattern": {"type": "string"},
        "report_dir": {"type": ["string", "null"]},
    },
}


class ConfigurationValidator:
    """Validates POC configuration files against the schema."""

    def __init__(self, schema: Optional[Dict[str, Any]] = None):
        self.schema = schema or CONFIG_SCHEMA
        self._validator = jsonschema.Draft7Validator(self.schema)

    def validate(self, config: Dict[str, Any]) -> List[str]:
        """Validate configuration data.

        Returns:
            List of error messages (empty when valid)
        """
        errors = []
        for error in sorted(self._validator.iter_errors(config), key=lambda e: list(e.absolute_path)):
            path = " -> ".join(str(x) for x in error.absolute_path)
            errors.append(f"{path}: {error.message}" if path else error.message)

        if not isinstance(config, dict):
            return errors

        errors.extend(self._check_imports(config))
        return errors

    def _check_imports(self, config: Dict[str, Any]) -> List[str]:
        """Imports may only reference components declared earlier."""
        errors = []
        seen: List[str] = []
        for component in config.get("components") or []:
            if not isinstance(component, dict):
                continue
            imports = component.get("imports") or {}
            if not isinstance(imports, dict):
                continue
            for param, ref in imports.items():
                source = str(ref).split(".", 1)[0]
                if source not in seen:
                    errors.append(
                        f"components -> {component.get('name')}: import {param} "
                        f"references '{source}', which is not an earlier component"
                    )
            seen.append(component.get("name"))
        return errors

    def validate_file(self, config_path: Path) -> Tuple[bool, Dict[str, Any]]:
        """Validate one configuration file.

        Returns:
            Tuple of (is_valid, validation_result)
        """
        result: Dict[str, Any] = {"file": str(config_path), "valid": False, "errors": []}

        logger.info(f"Validating configuration file: {config_path}")
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            result["errors"].append(f"Could not read configuration: {e}")
            return False, result

        result["errors"] = self.validate(data)
        result["valid"] = not result["errors"]
        return result["valid"], result

    def validate_directory(self, config_dir: Path) -> Dict[str, Any]:
        """Validate every ``*.yaml`` file in a directory."""
        results: Dict[str, Any] = {"all_valid": True, "files": {}}

        if not config_dir.is_dir():
            logger.warning(f"Configuration directory not found: {config_dir}")
            return results

        for config_file in sorted(config_dir.glob("*.yaml")):
            is_valid, result = self.validate_file(config_file)
            results["files"][config_file.name] = result
            if not is_valid:
                results["all_valid"] = False

        return results
