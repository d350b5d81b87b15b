"""
Deployment utilities for the POC component stacks.
"""

from .base_deployer import BaseDeployer, DeploymentResult, DeploymentStatus
from .poc_deployer import PocDeployer

__all__ = [
    "BaseDeployer",
    "DeploymentResult",
    "DeploymentStatus",
    "PocDeployer",
]
