"""Subprocess-backed story runner"""

import asyncio
import logging
import os
import signal
from typing import Dict, List, Optional

from .base import ProcessRunner
from ..api.exceptions import RunnerError, RunnerTimeoutError
from ..constants import LOG_TAG
from ..models.config import RunnerConfig
from ..models.result import ProcessResult

logger = logging.getLogger(__name__)


class SubprocessRunner(ProcessRunner):
    """Run stories through an external command such as ``envoy run``

    The command line is ``<command...> <story> --key=value ...`` executed
    without a shell. Each run gets its own session so the whole process
    group can be killed.
    """

    def __init__(self, config: Optional[RunnerConfig] = None):
        self.config = config or RunnerConfig()

    def build_command(self, story: str, params: Dict[str, str]) -> List[str]:
        return [*self.config.command, story, *[f"--{key}={value}" for key, value in params.items()]]

    async def run(self,
                  story: str,
                  params: Dict[str, str],
                  timeout: Optional[float] = None) -> ProcessResult:
        timeout = self.config.timeout if timeout is None else timeout
        cmd = self.build_command(story, params)

        env = os.environ.copy()
        env.update(self.config.env)

        logger.debug(f"{LOG_TAG} Running story story={story} timeout={timeout:g}s")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=self.config.working_dir,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise RunnerError(f"Failed to start story '{story}': {e}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)

        except asyncio.TimeoutError:
            await self._kill(process)
            logger.error(f"{LOG_TAG} Story timed out story={story} timeout={timeout:g}s pid={process.pid}")
            raise RunnerTimeoutError(story, timeout)

        except asyncio.CancelledError:
            await self._kill(process)
            logger.warning(f"{LOG_TAG} Story cancelled story={story} pid={process.pid}")
            raise

        result = ProcessResult(
            stdout=stdout.decode(errors='replace'),
            stderr=stderr.decode(errors='replace'),
            exit_code=process.returncode,
        )
        logger.debug(f"{LOG_TAG} Story finished story={story} exit_code={result.exit_code}")
        return result

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        """Kill the story's process group and reap it"""
        if process.returncode is not None:
            return

        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError:
            process.kill()

        await process.wait()
