# deploy_orchestrator/runner/base.py
"""Process runner interface"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..models.result import ProcessResult


class ProcessRunner(ABC):
    """Executes a named story with string parameters

    Implementations must kill the underlying process when the timeout
    passes or when the calling task is cancelled.
    """

    @abstractmethod
    async def run(self,
                  story: str,
                  params: Dict[str, str],
                  timeout: Optional[float] = None) -> ProcessResult:
        """
        Run a story to completion

        Args:
            story: Story name
            params: Story parameters
            timeout: Wall-clock timeout in seconds, None for the runner default

        Returns:
            Captured output and exit code; a non-zero exit is not an error

        Raises:
            RunnerError: If the process could not be started
            RunnerTimeoutError: If the timeout passed; the process was killed
        """
        pass
