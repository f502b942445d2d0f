"""In-place deployment strategy"""

import logging
from typing import Dict, List, Optional

from .base import DeployerStrategy
from ..constants import LOG_TAG, DeploymentStrategy, ROLLBACK_STORY, SIMPLE_LIST_RELEASES_STORY
from ..models.config import AppConfig
from ..models.deployment import DeploymentRecord
from ..models.release import ReleaseInfo
from ..models.result import DeployerResult
from ..utils.git_utils import parse_oneline_log

logger = logging.getLogger(__name__)


class SimpleDeployer(DeployerStrategy):
    """Update a single working directory in place

    The story fetches, checks out and hard-resets the ref, then installs,
    migrates, warms caches and restarts. Rollback checks out an earlier ref.
    """

    name = DeploymentStrategy.SIMPLE.value

    def _params(self, app: AppConfig, ref: str) -> Dict[str, str]:
        return {
            "app": app.key,
            "strategy": self.name,
            "path": app.path,
            "ref": ref,
        }

    async def deploy(self, app: AppConfig, record: DeploymentRecord) -> DeployerResult:
        ref = record.trigger_ref or record.commit_sha or "HEAD"
        logger.debug(
            f"{LOG_TAG} Starting simple deployment deployment_id={record.id} app={app.key} "
            f"ref={ref} story={record.story}"
        )
        return await self.run_story(record.story, self._params(app, ref))

    async def rollback(self,
                       app: AppConfig,
                       record: DeploymentRecord,
                       target: Optional[str] = None,
                       steps: int = 1) -> DeployerResult:
        ref = target or f"HEAD~{max(1, steps)}"
        logger.debug(f"{LOG_TAG} Starting simple rollback deployment_id={record.id} app={app.key} ref={ref}")
        return await self.run_story(ROLLBACK_STORY, self._params(app, ref))

    async def list_releases(self, app: AppConfig) -> List[ReleaseInfo]:
        """Recent commits reported as pseudo-releases"""
        result = await self.run_story(SIMPLE_LIST_RELEASES_STORY, self._params(app, "HEAD"))
        if not result.success:
            logger.warning(
                f"{LOG_TAG} Failed to get releases list app={app.key} exit_code={result.exit_code}"
            )
            return []

        return [
            ReleaseInfo(name=sha, commit_sha=sha, message=message)
            for sha, message in parse_oneline_log(result.output)
        ]
