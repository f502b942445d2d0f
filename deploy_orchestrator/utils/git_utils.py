"""Git output helpers"""

from typing import List, Tuple

from ..constants import RUNNER_HOST_PREFIX_PATTERN, SHORT_HASH_PATTERN


def parse_oneline_log(output: str, limit: int = 10) -> List[Tuple[str, str]]:
    """
    Parse ``git log --oneline`` output captured through the runner

    Lines may carry a ``[host]:`` prefix added by the runner; lines that do
    not start with an abbreviated hash are dropped.

    Args:
        output: Captured output
        limit: Maximum number of commits

    Returns:
        List of (hash, subject) tuples, newest first
    """
    commits = []

    for line in output.splitlines():
        line = RUNNER_HOST_PREFIX_PATTERN.sub("", line.strip())
        if not line:
            continue

        parts = line.split(" ", 1)
        if not SHORT_HASH_PATTERN.match(parts[0]):
            continue

        commits.append((parts[0], parts[1].strip() if len(parts) > 1 else ""))
        if len(commits) >= limit:
            break

    return commits
