"""
Filesystem helpers: glob expansion, forced removal, size estimates.

Removal follows `rm -rf` semantics: a missing target is not an error, any
other failure is. Symlinks are unlinked, never followed.
"""

import glob
import logging
import os
import shutil
from pathlib import PurePosixPath

from reclaim.exceptions import ProtectedPathError

logger = logging.getLogger(__name__)

# Never removed no matter what a task says
PROTECTED_PATHS = frozenset(
    {
        "/",
        "/bin",
        "/boot",
        "/etc",
        "/home",
        "/lib",
        "/opt",
        "/opt/hostedtoolcache",
        "/root",
        "/sbin",
        "/usr",
        "/usr/bin",
        "/usr/lib",
        "/usr/local",
        "/usr/local/bin",
        "/usr/local/lib",
        "/usr/local/share",
        "/usr/share",
        "/var",
    }
)


def is_protected(path: str) -> bool:
    normalized = str(PurePosixPath(os.path.normpath(path)))
    return normalized in PROTECTED_PATHS


def expand_path(pattern: str) -> list[str]:
    """Expand a glob pattern to the existing paths it matches.

    Literal paths are returned as-is (whether or not they exist) so that
    their absence can be reported.
    """
    if not any(ch in pattern for ch in "*?["):
        return [pattern]
    return sorted(glob.glob(pattern))


def path_exists(path: str) -> bool:
    return os.path.lexists(path)


def remove_path(path: str) -> bool:
    """Forcibly remove a file, symlink or directory tree.

    Returns:
        True if something was deleted, False if the path did not exist.

    Raises:
        ProtectedPathError: path is one of the protected system directories.
        OSError: removal failed for any reason other than absence.
    """
    if is_protected(path):
        raise ProtectedPathError(path)

    try:
        if os.path.islink(path) or not os.path.isdir(path):
            os.unlink(path)
        else:
            shutil.rmtree(path)
    except (FileNotFoundError, NotADirectoryError):
        # ENOTDIR: a parent component is a regular file, so the path cannot exist
        logger.debug(f"Already absent: {path}")
        return False

    logger.debug(f"Removed {path}")
    return True


def estimate_size(path: str) -> int:
    """Best-effort on-disk size of a path in bytes, 0 if it does not exist."""
    try:
        if os.path.islink(path) or not os.path.isdir(path):
            return os.lstat(path).st_blocks * 512
    except OSError:
        return 0

    total = 0
    for root, dirs, files in os.walk(path):
        for name in files + dirs:
            try:
                total += os.lstat(os.path.join(root, name)).st_blocks * 512
            except OSError:
                continue
    return total


def disk_free(path: str = "/") -> int | None:
    """Free bytes on the filesystem holding `path`."""
    try:
        return shutil.disk_usage(path).free
    except OSError as e:
        logger.warning(f"Could not read disk usage for {path}: {e}")
        return None


def format_bytes(num_bytes: float | None) -> str:
    """Format a byte count as a human-readable string."""
    if num_bytes is None:
        return "n/a"
    sign = "-" if num_bytes < 0 else ""
    num_bytes = abs(num_bytes)
    if num_bytes >= 1024**3:
        return f"{sign}{num_bytes / 1024**3:.1f} GB"
    elif num_bytes >= 1024**2:
        return f"{sign}{num_bytes / 1024**2:.1f} MB"
    elif num_bytes >= 1024:
        return f"{sign}{num_bytes / 1024:.1f} KB"
    else:
        return f"{sign}{num_bytes:.0f} B"
