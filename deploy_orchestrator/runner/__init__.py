"""External story runners"""

from .base import ProcessRunner
from .subprocess_runner import SubprocessRunner

__all__ = [
    "ProcessRunner",
    "SubprocessRunner",
]
