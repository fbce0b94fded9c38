"""Startup privilege check."""

import logging
import os

from reclaim.exceptions import PrivilegeError

logger = logging.getLogger(__name__)


def has_root() -> bool:
    try:
        return os.geteuid() == 0
    except AttributeError:
        # Not a POSIX platform
        return False


def require_root() -> None:
    """Fail before any task runs if packages and system files cannot be removed.

    Raises:
        PrivilegeError: effective uid is not 0.
    """
    if not has_root():
        raise PrivilegeError(
            "reclaim must run as root to purge packages and delete system directories"
        )
    logger.debug("Running with root privileges")
