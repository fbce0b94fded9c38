"""
APT/dpkg adapter.

Wraps `apt-get purge` and `dpkg-query` behind a small interface the engine
can drive. All invocations are serialized through one lock because the dpkg
database is the only shared mutable resource between tasks.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from reclaim.retry import DPKG_LOCK_RETRY_CONFIG, RetryConfig, RetryManager
from reclaim.utils.commands import CommandResult, run_command

logger = logging.getLogger(__name__)

APT_ENV = {
    "DEBIAN_FRONTEND": "noninteractive",
    "NEEDRESTART_MODE": "a",
}

# dpkg status values that leave files of the package on disk
INSTALLED_STATES = frozenset(
    {
        "installed",
        "unpacked",
        "half-installed",
        "half-configured",
        "triggers-awaited",
        "triggers-pending",
    }
)

LOCK_ERROR_MARKERS = (
    "could not get lock",
    "unable to acquire the dpkg frontend lock",
    "unable to lock the administration directory",
    "dpkg was interrupted",
)

PURGE_TIMEOUT = 900
QUERY_TIMEOUT = 30


@dataclass(frozen=True)
class PackageState:
    """Install state of a single package as reported by dpkg."""

    name: str
    installed: bool
    size_bytes: Optional[int] = None


def is_lock_error(result: CommandResult) -> bool:
    """Whether a failed apt invocation lost a race for the dpkg lock."""
    if result.success:
        return False
    text = result.output.lower()
    return any(marker in text for marker in LOCK_ERROR_MARKERS)


class AptPackageManager:
    """Purges packages and answers install-state queries via apt/dpkg."""

    def __init__(
        self,
        runner: Callable[..., CommandResult] = run_command,
        retry_config: Optional[RetryConfig] = None,
        dry_run: bool = False,
    ):
        """
        Args:
            runner: Command runner, `run_command` unless a test injects one.
            retry_config: Backoff used when the dpkg lock is held.
            dry_run: Log purge commands instead of running them.
        """
        self._runner = runner
        self._retry = RetryManager(retry_config or DPKG_LOCK_RETRY_CONFIG)
        self._lock = threading.Lock()
        self.dry_run = dry_run

    def query(self, package: str) -> PackageState:
        """Look up a package in the dpkg database.

        A package dpkg has never heard of is reported as not installed. If
        dpkg-query itself cannot be run, the package is assumed installed so
        that a failed purge is never mistaken for an absent package.
        """
        cmd = [
            "dpkg-query",
            "--show",
            "--showformat=${db:Status-Status}\t${Installed-Size}\n",
            package,
        ]
        with self._lock:
            result = self._runner(cmd, timeout=QUERY_TIMEOUT)

        if not result.success:
            if result.return_code == 1:
                return PackageState(name=package, installed=False)
            logger.warning(f"dpkg-query failed for {package}: {result.output}")
            return PackageState(name=package, installed=True)

        # One line per architecture for multiarch packages
        installed = False
        size_bytes = None
        for line in result.stdout.splitlines():
            status, _, size = line.partition("\t")
            if status.strip() not in INSTALLED_STATES:
                continue
            installed = True
            if size.strip().isdigit():
                # Installed-Size is in KiB
                size_bytes = (size_bytes or 0) + int(size.strip()) * 1024
        return PackageState(name=package, installed=installed, size_bytes=size_bytes)

    def is_installed(self, package: str) -> bool:
        return self.query(package).installed

    def purge(self, package: str) -> CommandResult:
        """Purge a package, retrying while another process holds the dpkg lock."""
        cmd = ["apt-get", "purge", "--yes", "--quiet", package]

        if self.dry_run:
            logger.info(f"[dry run] would execute: {' '.join(cmd)}")
            return CommandResult(
                success=True, stdout="", stderr="", return_code=0, command=" ".join(cmd)
            )

        with self._lock:
            outcome = self._retry.execute(
                self._runner,
                cmd,
                timeout=PURGE_TIMEOUT,
                env=APT_ENV,
                retry_if=is_lock_error,
            )

        result: CommandResult = outcome.result
        if outcome.attempts > 1:
            logger.info(f"Purging {package} took {outcome.attempts} attempts")
        if not result.success:
            logger.debug(f"apt-get purge {package} exited {result.return_code}: {result.output}")
        return result
