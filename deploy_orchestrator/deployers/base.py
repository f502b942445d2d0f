# deploy_orchestrator/deployers/base.py
"""Deployment strategy interface"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..api.exceptions import RunnerError, RunnerTimeoutError
from ..constants import LOG_TAG, DEFAULT_FAILURE_EXIT_CODE
from ..models.config import AppConfig
from ..models.deployment import DeploymentRecord
from ..models.release import ReleaseInfo
from ..models.result import DeployerResult, ProcessResult
from ..runner.base import ProcessRunner
from ..storage.base import StorageBackend
from ..utils.formatting import utcnow

logger = logging.getLogger(__name__)


class DeployerStrategy(ABC):
    """Executes deployments and rollbacks for one release strategy

    Strategies are stateless apart from their collaborators, so one instance
    serves every app configured with that strategy.
    """

    name: str = ""

    def __init__(self,
                 runner: ProcessRunner,
                 store: StorageBackend,
                 timeout: Optional[float] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.runner = runner
        self.store = store
        self.timeout = timeout
        self.clock = clock

    @abstractmethod
    async def deploy(self, app: AppConfig, record: DeploymentRecord) -> DeployerResult:
        """
        Deploy the record's ref

        Args:
            app: Application configuration
            record: Running deployment record

        Returns:
            DeployerResult; a failing story is a result, not an exception

        Raises:
            RunnerTimeoutError: If the story exceeded the timeout
        """
        pass

    @abstractmethod
    async def rollback(self,
                       app: AppConfig,
                       record: DeploymentRecord,
                       target: Optional[str] = None,
                       steps: int = 1) -> DeployerResult:
        """
        Return the app to an earlier state

        Args:
            app: Application configuration
            record: Running rollback record
            target: Explicit release name or ref
            steps: How far back to go when no target is given

        Returns:
            DeployerResult
        """
        pass

    @abstractmethod
    async def list_releases(self, app: AppConfig) -> List[ReleaseInfo]:
        """Releases available to roll back to, newest first"""
        pass

    async def cleanup(self, app: AppConfig) -> List[str]:
        """Remove releases beyond retention, returning their names"""
        return []

    async def run_story(self, story: str, params: Dict[str, str]) -> DeployerResult:
        """
        Run a story and convert its outcome into a DeployerResult

        A process that cannot be started becomes a failed result with exit
        code 1; timeouts propagate to the caller.
        """
        try:
            result: ProcessResult = await self.runner.run(story, params, timeout=self.timeout)
        except RunnerTimeoutError:
            raise
        except RunnerError as e:
            logger.error(f"{LOG_TAG} Story could not be started story={story}: {e}")
            return DeployerResult(success=False, output=str(e), exit_code=DEFAULT_FAILURE_EXIT_CODE)

        return DeployerResult.from_process(result)
