"""
Local reading of CloudFormation templates.

Templates are treated as opaque documents; only the ``Parameters`` section
is inspected so missing inputs are caught before calling AWS.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

import yaml

from exceptions import PreconditionError

logger = logging.getLogger(__name__)

# CreateStack/UpdateStack limit for an inline TemplateBody
MAX_TEMPLATE_BODY_BYTES = 51200


class CloudFormationYAMLLoader(yaml.SafeLoader):
    """YAML loader that can handle CloudFormation intrinsic functions."""

    pass


def cfn_tag_constructor(loader, tag_suffix, node):
    """Generic constructor for CloudFormation tags."""
    if isinstance(node, yaml.ScalarNode):
        return {tag_suffix: loader.construct_scalar(node)}
    elif isinstance(node, yaml.SequenceNode):
        return {tag_suffix: loader.construct_sequence(node, deep=True)}
    elif isinstance(node, yaml.MappingNode):
        return {tag_suffix: loader.construct_mapping(node, deep=True)}
    raise yaml.constructor.ConstructorError(
        None,
        None,
        f"could not determine a constructor for the tag '!{tag_suffix}'",
        node.start_mark,
    )


cfn_tags = [
    "Ref", "GetAtt", "GetAZs", "ImportValue", "Join", "Select",
    "Split", "Sub", "Transform", "Base64", "Cidr", "FindInMap",
    "GetParam", "Condition", "Equals", "If", "Not", "And", "Or",
]

for tag in cfn_tags:
    CloudFormationYAMLLoader.add_constructor(
        f"!{tag}",
        lambda loader, node, tag=tag: cfn_tag_constructor(loader, tag, node),
    )


def read_template_body(template_path: Union[str, Path]) -> str:
    """Read a template file as text, failing fast if it is missing."""
    path = Path(template_path)
    if not path.is_file():
        raise PreconditionError(f"Template file not found: {path}")
    return path.read_text(encoding="utf-8")


def parse_template(body: str, suffix: str = ".yaml") -> Dict[str, Any]:
    """Parse template text (JSON or YAML with intrinsic tags)."""
    try:
        if suffix == ".json":
            data = json.loads(body)
        else:
            data = yaml.load(body, Loader=CloudFormationYAMLLoader)
    except (ValueError, yaml.YAMLError) as e:
        raise PreconditionError(f"Template could not be parsed: {e}") from e

    if not isinstance(data, dict):
        raise PreconditionError("Template must be a mapping at the top level")
    return data


def load_template(template_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse a template file."""
    path = Path(template_path)
    return parse_template(read_template_body(path), path.suffix.lower())


def template_parameters(template: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Return the declared parameters of a parsed template."""
    return dict(template.get("Parameters") or {})


def missing_parameters(
    template: Mapping[str, Any], provided: Mapping[str, Any]
) -> List[str]:
    """List declared parameters that have no default and were not provided."""
    missing = []
    for name, spec in template_parameters(template).items():
        if name in provided:
            continue
        if isinstance(spec, dict) and "Default" in spec:
            continue
        missing.append(name)
    return missing


def select_declared_parameters(
    template: Mapping[str, Any], provided: Mapping[str, Any]
) -> Dict[str, str]:
    """Keep only the provided values the template actually declares."""
    declared = template_parameters(template)
    selected = {}
    for key, value in provided.items():
        if key in declared:
            selected[key] = str(value)
        else:
            logger.debug(f"Dropping parameter {key}: not declared by template")
    return selected
