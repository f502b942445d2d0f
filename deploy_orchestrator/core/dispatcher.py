# deploy_orchestrator/core/dispatcher.py
"""Hand queued deployments to their strategy"""

import asyncio
import logging
import os
from typing import Dict, List, Optional

from .app_registry import AppRegistry
from .concurrency import ConcurrencyGuard
from .state_machine import StateMachine
from ..api.exceptions import (
    AppNotFoundError,
    DeploymentConflictError,
    DeploymentNotFoundError,
    IllegalTransitionError,
    OrchestratorError,
    RunnerTimeoutError,
)
from ..constants import (
    LOG_TAG,
    DEFAULT_FAILURE_EXIT_CODE,
    DEFAULT_RUNNER_TIMEOUT,
    RELEASES_DIR_PATH_PATTERN,
    TIMEOUT_EXIT_CODE,
)
from ..deployers.factory import DeployerFactory
from ..models.config import AppConfig, DispatchConfig
from ..models.deployment import DeploymentRecord
from ..models.result import DeployerResult
from ..utils.async_utils import AsyncPool
from ..utils.file_utils import is_writable_dir

logger = logging.getLogger(__name__)


class Dispatcher:
    """Run queued records, one attempt each

    ``queued -> running`` is claimed under the concurrency guard. The
    strategy outcome always ends in ``success`` or ``failed`` with output and
    exit code captured on the record; nothing is retried.
    """

    def __init__(self,
                 registry: AppRegistry,
                 state_machine: StateMachine,
                 guard: ConcurrencyGuard,
                 deployers: DeployerFactory,
                 config: Optional[DispatchConfig] = None,
                 runner_timeout: float = DEFAULT_RUNNER_TIMEOUT):
        self.registry = registry
        self.state_machine = state_machine
        self.guard = guard
        self.deployers = deployers
        self.config = config or DispatchConfig()
        self.runner_timeout = runner_timeout
        self._pool: Optional[AsyncPool] = None
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def store(self):
        return self.state_machine.store

    @property
    def pool(self) -> AsyncPool:
        if self._pool is None:
            self._pool = AsyncPool(max_workers=self.config.max_workers)
        return self._pool

    def submit(self, deployment_id: str) -> asyncio.Task:
        """
        Schedule a queued record on the worker pool

        Must be called from a running event loop.

        Returns:
            Task resolving to the final record, or None when refused
        """
        task = self.pool.submit(self._run_task(deployment_id), name=f"deploy-{deployment_id}")
        self._tasks[deployment_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(deployment_id, None))
        logger.debug(f"{LOG_TAG} Deployment submitted deployment_id={deployment_id} queue={self.config.queue}")
        return task

    async def _run_task(self, deployment_id: str) -> Optional[DeploymentRecord]:
        try:
            return await self.run(deployment_id)
        except (DeploymentConflictError, IllegalTransitionError, DeploymentNotFoundError) as e:
            logger.warning(f"{LOG_TAG} Deployment not started deployment_id={deployment_id}: {e}")
            return None

    def is_running(self, deployment_id: str) -> bool:
        task = self._tasks.get(deployment_id)
        return task is not None and not task.done()

    def cancel(self, deployment_id: str) -> bool:
        """
        Cancel the in-flight task of a record, killing its process group

        Returns:
            True if a task was cancelled
        """
        task = self._tasks.get(deployment_id)
        if task is None or task.done():
            return False

        task.cancel()
        logger.info(f"{LOG_TAG} Deployment task cancelled deployment_id={deployment_id}")
        return True

    async def join(self) -> List[Optional[DeploymentRecord]]:
        """Wait for every submitted deployment to finish"""
        if self._pool is None:
            return []
        return await self._pool.wait_all()

    def check_prerequisites(self, record: DeploymentRecord) -> Optional[str]:
        """
        Verify the target can be deployed before invoking the runner

        Returns:
            A message explaining the problem, or None when ready
        """
        try:
            app = self.registry.resolve(record.app_key)
        except AppNotFoundError:
            return f"App '{record.app_key}' is no longer registered"

        if not os.path.isdir(app.path):
            return f"App path does not exist: {app.path}"

        if app.is_advanced:
            if RELEASES_DIR_PATH_PATTERN.search(app.path):
                logger.warning(
                    f"{LOG_TAG} App path looks like it points inside a releases directory "
                    f"app={app.key} path={app.path}"
                )
            releases_root = app.releases_path
            if not os.path.isdir(releases_root) and not is_writable_dir(os.path.dirname(releases_root)):
                return f"Releases directory does not exist and cannot be created: {releases_root}"

        return None

    async def run(self, deployment_id: str) -> DeploymentRecord:
        """
        Execute one queued record to a terminal status

        Raises:
            DeploymentNotFoundError: If the record does not exist
            DeploymentConflictError: If another record for the same (app,
                trigger) is active; the record stays queued
            IllegalTransitionError: If the record is not queued
        """
        record = await self.store.get_deployment(deployment_id)
        if record is None:
            raise DeploymentNotFoundError(deployment_id)

        async with self.guard.claim(record.app_key, record.trigger_name, exclude_id=record.id):
            record = await self.state_machine.start(deployment_id)

        problem = self.check_prerequisites(record)
        if problem:
            logger.error(f"{LOG_TAG} Deployment prerequisites failed deployment_id={deployment_id}: {problem}")
            return await self._finish(record, DeployerResult(
                success=False, output=problem, exit_code=DEFAULT_FAILURE_EXIT_CODE
            ))

        app = self.registry.resolve(record.app_key)
        return await self._execute(app, record)

    async def _execute(self, app: AppConfig, record: DeploymentRecord) -> DeploymentRecord:
        strategy = self.deployers.make(app)
        logger.info(
            f"{LOG_TAG} Deployment started deployment_id={record.id} app={app.key} "
            f"strategy={strategy.name} story={record.story}"
        )

        try:
            if record.is_rollback:
                result = await strategy.rollback(
                    app,
                    record,
                    target=record.rollback_target,
                    steps=int(record.metadata.get("steps", 1)),
                )
            else:
                result = await strategy.deploy(app, record)

        except RunnerTimeoutError as e:
            timeout = e.timeout or self.runner_timeout
            result = DeployerResult(
                success=False,
                output=f"{e.output}\nDeployment timed out after {timeout:g} seconds; the process was killed.".lstrip(),
                exit_code=TIMEOUT_EXIT_CODE,
            )

        except OrchestratorError as e:
            logger.error(f"{LOG_TAG} Deployment failed deployment_id={record.id}: {e}")
            result = DeployerResult(success=False, output=str(e), exit_code=DEFAULT_FAILURE_EXIT_CODE)

        except asyncio.CancelledError:
            logger.warning(f"{LOG_TAG} Deployment interrupted deployment_id={record.id}")
            raise

        except Exception as e:
            logger.exception(f"{LOG_TAG} Deployment raised deployment_id={record.id}")
            result = DeployerResult(
                success=False,
                output=f"{type(e).__name__}: {e}",
                exit_code=DEFAULT_FAILURE_EXIT_CODE,
            )

        return await self._finish(record, result)

    async def _finish(self, record: DeploymentRecord, result: DeployerResult) -> DeploymentRecord:
        """Record the strategy outcome; a record cancelled meanwhile keeps its status"""
        try:
            if result.success:
                return await self.state_machine.succeed(
                    record.id, result.output, result.exit_code, result.release_name, result.release_path
                )
            return await self.state_machine.fail(
                record.id, result.output, result.exit_code, result.release_name, result.release_path
            )
        except IllegalTransitionError:
            current = await self.store.get_deployment(record.id)
            logger.info(
                f"{LOG_TAG} Deployment outcome dropped, status changed meanwhile "
                f"deployment_id={record.id} status={current.status if current else 'deleted'}"
            )
            return current or record
