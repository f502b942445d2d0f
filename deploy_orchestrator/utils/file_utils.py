# deploy_orchestrator/utils/file_utils.py
"""File system helpers"""

import os
import shutil
from pathlib import Path
from typing import Union


def calculate_directory_size(directory: Union[str, Path]) -> int:
    """
    Calculate total size of directory

    Symlinks are not followed, so shared resources linked into a release
    do not count towards its size.

    Args:
        directory: Directory path

    Returns:
        Total size in bytes
    """
    total_size = 0

    for root, _dirs, files in os.walk(directory):
        for name in files:
            path = os.path.join(root, name)
            if not os.path.islink(path):
                total_size += os.path.getsize(path)

    return total_size


def remove_path(path: Union[str, Path]) -> None:
    """Remove a file, symlink or directory tree if present"""
    path = Path(path)
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def is_writable_dir(path: Union[str, Path]) -> bool:
    """Check that a directory exists and can be written"""
    return os.path.isdir(path) and os.access(path, os.W_OK)
