"""
Ordered deployment and teardown of a POC's component stacks.
"""

import logging
from typing import Dict, List, Mapping, Optional, Union
from pathlib import Path

from cloudformation.stack_manager import (
    SUCCESS_STATUSES,
    StackDescriptor,
    StackManager,
    TeardownOutcome,
    is_terminal_status,
)
from cloudformation.templates import load_template, select_declared_parameters
from config import ComponentConfig, PocConfig
from exceptions import PreconditionError

from .base_deployer import BaseDeployer, DeploymentResult, DeploymentStatus

logger = logging.getLogger(__name__)


class PocDeployer(BaseDeployer):
    """Deploy a POC's components in order and tear them down in reverse."""

    def __init__(
        self,
        config: PocConfig,
        environment: str,
        component: Optional[str] = None,
        parameters: Optional[Mapping[str, str]] = None,
        template_dir: Optional[Union[str, Path]] = None,
        wait: bool = False,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        dry_run: bool = False,
        stack_manager: Optional[StackManager] = None,
    ):
        """
        Initialize POC deployer.

        Args:
            config: POC configuration
            environment: Deployment environment
            component: Only act on this component (default: all)
            parameters: Parameter overrides applied to every component
            template_dir: Directory holding the component templates
            wait: Wait for every stack to reach a terminal status
            region: AWS region (uses config default if not provided)
            profile: AWS profile to use
            dry_run: Resolve stacks and parameters without calling AWS
            stack_manager: Pre-built stack manager
        """
        super().__init__(environment, dry_run=dry_run)
        config.validate_environment(environment)

        self.config = config
        self.component = component
        self.parameters = dict(parameters or {})
        self.template_dir = template_dir
        self.wait = wait
        self.region = region or config.aws_region
        self.stack_manager = stack_manager or StackManager(region=self.region, profile=profile)

    def selected_components(self) -> List[ComponentConfig]:
        """Components this run acts on, in deployment order."""
        if self.component:
            return [self.config.get_component(self.component)]
        return list(self.config.components)

    def stack_name(self, component_name: str) -> str:
        return self.config.get_stack_name(self.environment, component_name)

    def resolve_imports(
        self,
        component: ComponentConfig,
        known_outputs: Dict[str, Dict[str, str]],
    ) -> Dict[str, str]:
        """Map a component's imported parameters to outputs of earlier stacks."""
        values = {}
        for param, ref in component.imports.items():
            source, key = ref.split(".", 1)

            if self.dry_run:
                values[param] = known_outputs.get(source, {}).get(key, f"<{ref}>")
                continue

            if source not in known_outputs:
                known_outputs[source] = self.stack_manager.get_stack_outputs(
                    self.stack_name(source)
                )
            if key not in known_outputs[source]:
                raise PreconditionError(
                    f"Component {component.name} needs output {key} from stack "
                    f"{self.stack_name(source)}; deploy '{source}' first"
                )
            values[param] = known_outputs[source][key]
        return values

    def build_descriptor(
        self,
        component: ComponentConfig,
        known_outputs: Dict[str, Dict[str, str]],
    ) -> StackDescriptor:
        """Assemble the stack descriptor for one component."""
        template_path = self.config.get_template_path(component, self.template_dir)
        template = load_template(template_path)

        provided = {
            "Environment": self.environment,
            **self.config.parameters,
            **component.parameters,
            **self.resolve_imports(component, known_outputs),
            **self.parameters,
        }

        tags = {
            "Project": self.config.name,
            "Environment": self.environment,
            "Component": component.name,
            "ManagedBy": "poc-utils",
            **self.config.tags,
        }

        return StackDescriptor(
            name=self.stack_name(component.name),
            template_path=template_path,
            region=self.region,
            parameters=select_declared_parameters(template, provided),
            tags=tags,
            template_bucket=self.config.template_bucket,
        )

    def deploy(self) -> DeploymentResult:
        """Deploy the selected components in order."""
        components = self.selected_components()
        known_outputs: Dict[str, Dict[str, str]] = {}

        logger.info(
            f"Deploying {self.config.display_name} ({self.environment}): "
            + ", ".join(c.name for c in components)
        )

        for index, component in enumerate(components):
            descriptor = self.build_descriptor(component, known_outputs)

            if self.dry_run:
                logger.info(f"DRY RUN: Would deploy {descriptor.name} with {descriptor.parameters}")
                self.add_output(f"{component.name}.StackName", descriptor.name)
                continue

            status = self.stack_manager.deploy_stack(
                descriptor,
                max_attempts=self.config.max_attempts,
                retry_delay=self.config.retry_delay,
                teardown_timeout=self.config.teardown_timeout,
                poll_interval=self.config.poll_interval,
            )

            needed_later = any(
                component.name in later.import_sources()
                for later in components[index + 1:]
            )
            if self.wait or needed_later:
                status = self.stack_manager.wait_for_stack(
                    descriptor.name,
                    timeout=self.config.stack_timeout,
                    poll_interval=self.config.poll_interval,
                )
                if status not in SUCCESS_STATUSES:
                    return self._failed_wait(descriptor.name, status)

                known_outputs[component.name] = self.stack_manager.get_stack_outputs(
                    descriptor.name
                )
                for key, value in known_outputs[component.name].items():
                    self.add_output(f"{component.name}.{key}", value)

            self.add_output(f"{component.name}.StackStatus", status)

        return DeploymentResult(
            status=DeploymentStatus.SUCCESS,
            message=f"Deployed {len(components)} stack(s) for {self.config.name}",
            duration=self.elapsed(),
        )

    def _failed_wait(self, stack_name: str, status: str) -> DeploymentResult:
        if not is_terminal_status(status):
            self.add_error(f"Timed out waiting for {stack_name} (last status {status})")
            return DeploymentResult(
                status=DeploymentStatus.TIMED_OUT,
                message=f"Timed out waiting for {stack_name}",
                duration=self.elapsed(),
            )

        diagnosis = self.stack_manager.diagnose_stack_failure(stack_name)
        self.add_error(f"Stack {stack_name} ended in {status}")
        for resource in diagnosis["failed_resources"]:
            self.add_error(
                f"Resource {resource['logical_id']} ({resource['resource_type']}) "
                f"failed: {resource['reason']}"
            )
        return DeploymentResult(
            status=DeploymentStatus.FAILED,
            message=f"Stack {stack_name} ended in {status}",
            duration=self.elapsed(),
        )

    def teardown(self, force: bool = False) -> DeploymentResult:
        """Delete the selected components in reverse order."""
        components = list(reversed(self.selected_components()))

        for component in components:
            stack_name = self.stack_name(component.name)

            if self.dry_run:
                logger.info(f"DRY RUN: Would delete {stack_name}")
                continue

            outcome = self.stack_manager.delete_stack(
                stack_name,
                force=force,
                timeout=self.config.teardown_timeout,
                poll_interval=self.config.poll_interval,
            )
            self.add_output(f"{component.name}.Teardown", outcome.value)

            if outcome is TeardownOutcome.FAILURE:
                self.add_error(f"Stack {stack_name} could not be deleted")
                return DeploymentResult(
                    status=DeploymentStatus.FAILED,
                    message=f"Teardown of {stack_name} failed",
                    duration=self.elapsed(),
                )
            if outcome is TeardownOutcome.TIMEOUT:
                self.add_error(
                    f"Stack {stack_name} was not deleted within "
                    f"{self.config.teardown_timeout}s"
                )
                return DeploymentResult(
                    status=DeploymentStatus.TIMED_OUT,
                    message=f"Teardown of {stack_name} timed out",
                    duration=self.elapsed(),
                )

        return DeploymentResult(
            status=DeploymentStatus.SUCCESS,
            message=f"Removed {len(components)} stack(s) for {self.config.name}",
            duration=self.elapsed(),
        )
