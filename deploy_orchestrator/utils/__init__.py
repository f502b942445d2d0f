# deploy_orchestrator/utils/__init__.py
"""Utility functions for deploy-orchestrator"""

from .file_utils import (
    calculate_directory_size,
    remove_path,
    is_writable_dir,
)

from .formatting import (
    utcnow,
    format_size,
    format_duration,
    parse_datetime,
    serialize_datetime,
)

from .git_utils import parse_oneline_log

from .hash_utils import (
    calculate_content_hash,
    calculate_string_hash,
    calculate_hmac,
    keyed_string_hash,
    digests_equal,
)

from .async_utils import (
    run_async,
    AsyncPool,
)

__all__ = [
    # File utilities
    "calculate_directory_size",
    "remove_path",
    "is_writable_dir",

    # Formatting
    "utcnow",
    "format_size",
    "format_duration",
    "parse_datetime",
    "serialize_datetime",

    # Git output
    "parse_oneline_log",

    # Hashing
    "calculate_content_hash",
    "calculate_string_hash",
    "calculate_hmac",
    "keyed_string_hash",
    "digests_equal",

    # Async
    "run_async",
    "AsyncPool",
]
