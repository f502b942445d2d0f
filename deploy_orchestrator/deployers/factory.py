"""Deployment strategy factory"""

from datetime import datetime
from typing import Callable, Dict, Optional, Type

from .advanced import AdvancedDeployer
from .base import DeployerStrategy
from .simple import SimpleDeployer
from ..models.config import AppConfig
from ..runner.base import ProcessRunner
from ..storage.base import StorageBackend
from ..utils.formatting import utcnow


class DeployerFactory:
    """Resolve the strategy configured for an app

    One instance per strategy is created lazily and shared between apps.
    """

    # Registry of strategies
    _strategies: Dict[str, Type[DeployerStrategy]] = {
        SimpleDeployer.name: SimpleDeployer,
        AdvancedDeployer.name: AdvancedDeployer,
    }

    def __init__(self,
                 runner: ProcessRunner,
                 store: StorageBackend,
                 timeout: Optional[float] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.runner = runner
        self.store = store
        self.timeout = timeout
        self.clock = clock
        self._instances: Dict[str, DeployerStrategy] = {}

    def get(self, strategy: str) -> DeployerStrategy:
        """
        Get the strategy instance for a name

        Raises:
            ValueError: If the strategy is not registered
        """
        if strategy not in self._strategies:
            raise ValueError(f"Unsupported deployment strategy: {strategy}")

        if strategy not in self._instances:
            self._instances[strategy] = self._strategies[strategy](
                self.runner, self.store, timeout=self.timeout, clock=self.clock
            )
        return self._instances[strategy]

    def make(self, app: AppConfig) -> DeployerStrategy:
        return self.get(app.strategy)

    @classmethod
    def register(cls, name: str, strategy_class: Type[DeployerStrategy]) -> None:
        """Register a new strategy under a name"""
        cls._strategies[name] = strategy_class

    @classmethod
    def get_supported_strategies(cls) -> list:
        return list(cls._strategies.keys())
