# deploy_orchestrator/deployers/advanced.py
"""Release-directory deployment strategy with atomic symlink activation"""

import asyncio
import json
import logging
import os
import re
from typing import Dict, List, Optional, Tuple

from .base import DeployerStrategy
from ..api.exceptions import DeployError, NoPreviousReleaseError, ReleaseNotFoundError
from ..constants import (
    LOG_TAG,
    DeploymentStrategy,
    DEFAULT_FAILURE_EXIT_CODE,
    RELEASE_NAME_TIME_FORMAT,
    SHORT_SHA_LENGTH,
)
from ..models.config import AppConfig
from ..models.deployment import DeploymentRecord
from ..models.release import ReleaseInfo, ReleaseRecord
from ..models.result import DeployerResult
from ..utils.file_utils import calculate_directory_size, remove_path

logger = logging.getLogger(__name__)

_SHA_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")


def activate_symlink(target: str, link: str) -> None:
    """
    Point ``link`` at ``target`` atomically

    A symlink is created under a temporary name next to ``link`` and renamed
    over it. Until the rename succeeds the old link is untouched.

    Args:
        target: Release directory
        link: Stable "current" path
    """
    tmp_link = f"{link}.tmp-{os.getpid()}"
    if os.path.lexists(tmp_link):
        os.unlink(tmp_link)

    os.symlink(target, tmp_link)
    try:
        os.replace(tmp_link, link)
    except OSError:
        if os.path.lexists(tmp_link):
            os.unlink(tmp_link)
        raise


def link_shared_resources(release_path: str,
                          shared_path: str,
                          shared_dirs: List[str],
                          shared_files: List[str]) -> List[str]:
    """
    Replace same-named paths in a release with links into the shared location

    Missing shared directories are created; missing shared files are
    created empty so the link never dangles.

    Returns:
        Relative paths that were linked
    """
    linked = []

    for relative, is_dir in [(d, True) for d in shared_dirs] + [(f, False) for f in shared_files]:
        relative = relative.strip("/")
        if not relative:
            continue

        shared = os.path.join(shared_path, relative)
        if is_dir:
            os.makedirs(shared, exist_ok=True)
        else:
            os.makedirs(os.path.dirname(shared), exist_ok=True)
            if not os.path.exists(shared):
                open(shared, "a").close()

        in_release = os.path.join(release_path, relative)
        if os.path.lexists(in_release):
            remove_path(in_release)
        os.makedirs(os.path.dirname(in_release), exist_ok=True)
        os.symlink(shared, in_release)
        linked.append(relative)

    return linked


class AdvancedDeployer(DeployerStrategy):
    """Immutable release directories activated through a "current" symlink

    Layout under the app path::

        releases/<YYYYmmdd_HHMMSS_sha7>/
        shared/
        current -> releases/<active release>
    """

    name = DeploymentStrategy.ADVANCED.value

    async def _unique_release_name(self, app: AppConfig, commit_sha: Optional[str]) -> str:
        short_sha = _SHA_UNSAFE_CHARS.sub("", commit_sha or "")[:SHORT_SHA_LENGTH] or "manual"
        base = f"{self.clock().strftime(RELEASE_NAME_TIME_FORMAT)}_{short_sha}"

        name, counter = base, 1
        while (await self.store.get_release(app.key, name) is not None
               or os.path.lexists(os.path.join(app.releases_path, name))):
            counter += 1
            name = f"{base}_{counter}"
        return name

    def _params(self, app: AppConfig, record: DeploymentRecord, release_name: str, release_path: str) -> Dict[str, str]:
        return {
            "app": app.key,
            "strategy": self.name,
            "path": app.path,
            "ref": record.trigger_ref or record.commit_sha or "HEAD",
            "release": release_name,
            "release_path": release_path,
            "releases_path": app.releases_path,
            "shared_path": app.shared_path,
            "shared_dirs": json.dumps(app.advanced.shared_dirs),
            "shared_files": json.dumps(app.advanced.shared_files),
            "current_link": app.current_link,
            "repository": app.repository or "",
        }

    def _link_shared(self, app: AppConfig, release_path: str) -> List[str]:
        return link_shared_resources(
            release_path, app.shared_path, app.advanced.shared_dirs, app.advanced.shared_files
        )

    async def deploy(self, app: AppConfig, record: DeploymentRecord) -> DeployerResult:
        """
        Materialize a new release and activate it

        Steps: prepare the release directory and link shared resources into
        it, run the story (fetch and install into the release directory),
        link shared resources again over anything the story checked out,
        measure the release, then swap the "current" link. Any failure before
        the swap removes the new directory and leaves the previous release
        live. A failure to record the release after the swap points
        "current" back at the previous release before propagating.
        """
        release_name = await self._unique_release_name(app, record.commit_sha)
        release_path = os.path.join(app.releases_path, release_name)
        logger.debug(
            f"{LOG_TAG} Starting advanced deployment deployment_id={record.id} app={app.key} "
            f"release={release_name} story={record.story}"
        )

        os.makedirs(release_path)

        try:
            self._link_shared(app, release_path)
        except OSError as e:
            await self._discard(release_path)
            return DeployerResult(
                success=False,
                output=f"Linking shared resources into release {release_name} failed: {e}",
                exit_code=DEFAULT_FAILURE_EXIT_CODE,
                release_name=release_name,
                release_path=release_path,
            )

        try:
            result = await self.run_story(record.story, self._params(app, record, release_name, release_path))
        except BaseException:
            await self._discard(release_path)
            raise

        result.release_name = release_name
        result.release_path = release_path

        if not result.success:
            await self._discard(release_path)
            return result

        loop = asyncio.get_running_loop()
        previous_target = os.readlink(app.current_link) if os.path.islink(app.current_link) else None

        try:
            self._link_shared(app, release_path)
            size = await loop.run_in_executor(None, calculate_directory_size, release_path)
            activate_symlink(release_path, app.current_link)
        except OSError as e:
            logger.error(
                f"{LOG_TAG} Release activation failed deployment_id={record.id} "
                f"release={release_name}: {e}"
            )
            await self._discard(release_path)
            result.success = False
            result.exit_code = DEFAULT_FAILURE_EXIT_CODE
            result.output = f"{result.output}\nActivation of release {release_name} failed: {e}".lstrip()
            return result

        try:
            await self.store.add_release(
                ReleaseRecord(
                    app_key=app.key,
                    release_name=release_name,
                    path=release_path,
                    commit_sha=record.commit_sha,
                    deployment_id=record.id,
                    size_bytes=size,
                    created_at=self.clock(),
                ),
                activate=True,
            )
        except BaseException:
            logger.error(
                f"{LOG_TAG} Recording release failed, restoring previous link "
                f"deployment_id={record.id} release={release_name} previous={previous_target}"
            )
            self._restore_link(app.current_link, previous_target)
            await self._discard(release_path)
            raise

        logger.info(f"{LOG_TAG} Release activated app={app.key} release={release_name}")
        return result

    @staticmethod
    def _restore_link(link: str, previous_target: Optional[str]) -> None:
        if previous_target:
            activate_symlink(previous_target, link)
        elif os.path.lexists(link):
            os.unlink(link)

    async def _discard(self, release_path: str) -> None:
        await asyncio.get_running_loop().run_in_executor(None, remove_path, release_path)

    async def select_rollback_target(self,
                                     app: AppConfig,
                                     target: Optional[str] = None,
                                     steps: int = 1) -> ReleaseRecord:
        """
        Pick the release a rollback activates

        Args:
            app: Application configuration
            target: Explicit release name
            steps: Position among inactive releases, newest first, when no
                target is named

        Raises:
            ReleaseNotFoundError: If the named release does not exist
            NoPreviousReleaseError: If no inactive release qualifies
        """
        if target:
            release = await self.store.get_release(app.key, target)
            if release is None:
                raise ReleaseNotFoundError(app.key, target)
            return release

        inactive = [r for r in await self.store.list_releases(app.key) if not r.is_active]
        index = max(1, steps) - 1
        if index >= len(inactive):
            raise NoPreviousReleaseError(app.key)
        return inactive[index]

    async def rollback(self,
                       app: AppConfig,
                       record: DeploymentRecord,
                       target: Optional[str] = None,
                       steps: int = 1) -> DeployerResult:
        """Re-run only the activation step against an existing release"""
        release = await self.select_rollback_target(app, target, steps)

        if not os.path.isdir(release.path):
            raise DeployError(f"Release directory is missing: {release.path}")

        logger.debug(
            f"{LOG_TAG} Starting advanced rollback deployment_id={record.id} app={app.key} "
            f"release={release.release_name}"
        )

        try:
            activate_symlink(release.path, app.current_link)
        except OSError as e:
            return DeployerResult(
                success=False,
                output=f"Activation of release {release.release_name} failed: {e}",
                exit_code=DEFAULT_FAILURE_EXIT_CODE,
                release_name=release.release_name,
                release_path=release.path,
            )

        await self.store.activate_release(app.key, release.release_name)
        logger.info(f"{LOG_TAG} Rolled back app={app.key} release={release.release_name}")

        return DeployerResult(
            success=True,
            output=f"Activated release {release.release_name}",
            exit_code=0,
            release_name=release.release_name,
            release_path=release.path,
        )

    async def list_releases(self, app: AppConfig) -> List[ReleaseInfo]:
        return [ReleaseInfo.from_record(r) for r in await self.store.list_releases(app.key)]

    def plan_cleanup(self, releases: List[ReleaseRecord], keep: int) -> Tuple[List[ReleaseRecord], List[ReleaseRecord]]:
        """
        Split releases into kept and removable

        The active release is always kept and does not count towards
        ``keep``, which is floored at 1.

        Args:
            releases: Releases of one app, any order
            keep: Number of inactive releases to keep

        Returns:
            (kept, removable) with removable oldest first
        """
        keep = max(1, keep)
        ordered = sorted(releases, key=lambda r: r.sequence, reverse=True)
        active = [r for r in ordered if r.is_active]
        inactive = [r for r in ordered if not r.is_active]
        return active + inactive[:keep], list(reversed(inactive[keep:]))

    async def cleanup(self, app: AppConfig) -> List[str]:
        releases = await self.store.list_releases(app.key)
        _, removable = self.plan_cleanup(releases, app.keep_releases)

        live_target = os.path.realpath(app.current_link) if os.path.lexists(app.current_link) else None

        removed = []
        for release in removable:
            if live_target and os.path.realpath(release.path) == live_target:
                logger.warning(
                    f"{LOG_TAG} Skipping release still linked as current app={app.key} "
                    f"release={release.release_name}"
                )
                continue

            await self._discard(release.path)
            await self.store.delete_release(app.key, release.release_name)
            removed.append(release.release_name)
            logger.info(f"{LOG_TAG} Removed old release app={app.key} release={release.release_name}")

        return removed
