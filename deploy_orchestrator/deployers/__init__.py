"""Deployment strategies"""

from .base import DeployerStrategy
from .simple import SimpleDeployer
from .advanced import AdvancedDeployer, activate_symlink, link_shared_resources
from .factory import DeployerFactory

__all__ = [
    "DeployerStrategy",
    "SimpleDeployer",
    "AdvancedDeployer",
    "DeployerFactory",
    "activate_symlink",
    "link_shared_resources",
]
