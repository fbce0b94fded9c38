"""
Cleanup Registry for reclaim.

Holds the static catalog of cleanup tasks: what each one purges and deletes,
whether it runs by default, and whether its deletions are large enough to be
worth pushing to a background worker.

The built-in catalog mirrors the install locations used by the GitHub-hosted
Ubuntu runner images. Nothing here touches the toolcache entries or system
packages that `actions/setup-*` rely on.
"""

import fnmatch
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Iterable, Iterator, Mapping

from reclaim.exceptions import RegistryError, UnknownTaskError

logger = logging.getLogger(__name__)

TASK_NAME_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
GLOB_CHARS = set("*?[")


class Override(Enum):
    """User intent for a single task."""

    KEEP = "keep"
    REMOVE = "remove"
    UNSET = "unset"


@dataclass(frozen=True)
class Task:
    """A single, independently executable cleanup unit."""

    name: str
    packages: tuple[str, ...] = ()
    paths: tuple[str, ...] = ()
    default_enabled: bool = True
    background_eligible: bool = False
    description: str = ""
    reference: str | None = None

    def __post_init__(self):
        # Accept lists from callers but store tuples so tasks stay hashable
        object.__setattr__(self, "packages", tuple(self.packages))
        object.__setattr__(self, "paths", tuple(self.paths))

    @property
    def label(self) -> str:
        return self.description or self.name


@dataclass(frozen=True)
class Configuration:
    """Resolved user intent, passed into the engine once at startup.

    Attributes:
        overrides: Task name -> Override. Missing names mean UNSET.
        dry_run: Report what would be removed without touching anything.
        background: Allow background removal for eligible tasks.
        max_workers: Size of the background removal pool.
        estimate_sizes: Walk paths before deleting them to estimate freed bytes.
    """

    overrides: Mapping[str, Override] = field(default_factory=dict)
    dry_run: bool = False
    background: bool = True
    max_workers: int = 4
    estimate_sizes: bool = True

    def override_for(self, name: str) -> Override:
        return self.overrides.get(name, Override.UNSET)


def _is_glob(path: str) -> bool:
    return any(ch in GLOB_CHARS for ch in path)


def _static_prefix(path: str) -> PurePosixPath:
    """Leading components of a path that contain no glob characters."""
    parts = []
    for part in PurePosixPath(path).parts:
        if _is_glob(part):
            break
        parts.append(part)
    return PurePosixPath(*parts)


def _glob_overlaps_literal(pattern: str, literal: str) -> bool:
    path = PurePosixPath(literal)
    # The literal path sits inside something the glob matches
    if any(fnmatch.fnmatchcase(str(p), pattern) for p in (path, *path.parents)):
        return True
    # Something the glob matches could sit inside the literal path
    prefix = _static_prefix(pattern)
    return prefix == path or path in prefix.parents


def _glob_stem(path: str) -> str:
    """Literal text before the first glob character of the first glob component."""
    for part in PurePosixPath(path).parts:
        if _is_glob(part):
            return part[: min(part.index(ch) for ch in GLOB_CHARS if ch in part)]
    return ""


def _globs_overlap(a: str, b: str) -> bool:
    prefix_a, prefix_b = _static_prefix(a), _static_prefix(b)
    if prefix_a == prefix_b:
        # Matches of either glob start with its stem at the same depth
        stem_a, stem_b = _glob_stem(a), _glob_stem(b)
        return stem_a.startswith(stem_b) or stem_b.startswith(stem_a)
    return prefix_a in prefix_b.parents or prefix_b in prefix_a.parents


def _paths_overlap(a: str, b: str) -> bool:
    if a == b:
        return True
    a_glob, b_glob = _is_glob(a), _is_glob(b)
    if not a_glob and not b_glob:
        pa, pb = PurePosixPath(a), PurePosixPath(b)
        return pa in pb.parents or pb in pa.parents
    if a_glob and not b_glob:
        return _glob_overlaps_literal(a, b)
    if b_glob and not a_glob:
        return _glob_overlaps_literal(b, a)
    return _globs_overlap(a, b)


class Registry:
    """Ordered, validated catalog of cleanup tasks.

    Iteration order is the order tasks are attempted in. Tasks must target
    disjoint packages and paths so that no task depends on another task's
    deletions having finished.
    """

    def __init__(self, tasks: Iterable[Task]):
        self._tasks: dict[str, Task] = {}
        for task in tasks:
            if task.name in self._tasks:
                raise RegistryError(f"Duplicate task name: {task.name}")
            self._tasks[task.name] = task
        self._validate()

    def _validate(self) -> None:
        package_owner: dict[str, str] = {}
        path_owner: list[tuple[str, str]] = []

        for task in self._tasks.values():
            if not TASK_NAME_PATTERN.match(task.name):
                raise RegistryError(f"Invalid task name: {task.name!r}")
            if not task.packages and not task.paths:
                raise RegistryError(f"Task '{task.name}' has neither packages nor paths")

            for package in task.packages:
                owner = package_owner.get(package)
                if owner is not None and owner != task.name:
                    raise RegistryError(
                        f"Package '{package}' is targeted by both '{owner}' and '{task.name}'"
                    )
                package_owner[package] = task.name

            for path in task.paths:
                if not path.startswith("/"):
                    raise RegistryError(f"Task '{task.name}' has a relative path: {path}")
                for other_path, owner in path_owner:
                    if owner != task.name and _paths_overlap(path, other_path):
                        raise RegistryError(
                            f"Path '{path}' of '{task.name}' overlaps '{other_path}' of '{owner}'"
                        )
                path_owner.append((path, task.name))

    def get_task(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTaskError(name, self.names()) from None

    def all_tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks.values())

    def names(self) -> tuple[str, ...]:
        return tuple(self._tasks)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def check_overrides(self, configuration: Configuration) -> None:
        """Raise UnknownTaskError for the first override naming no task."""
        for name in configuration.overrides:
            if name not in self._tasks:
                raise UnknownTaskError(name, self.names())

    def resolve_enabled(self, configuration: Configuration) -> dict[str, bool]:
        """Map every task name to whether it should run.

        KEEP always disables, REMOVE always enables, UNSET falls back to the
        task's default.
        """
        self.check_overrides(configuration)

        resolved = {}
        for task in self._tasks.values():
            override = configuration.override_for(task.name)
            if override is Override.KEEP:
                resolved[task.name] = False
            elif override is Override.REMOVE:
                resolved[task.name] = True
            else:
                resolved[task.name] = task.default_enabled
        logger.debug(f"Resolved task enablement: {resolved}")
        return resolved


IMAGE_SCRIPTS = "actions/runner-images images/ubuntu/scripts/build"

DEFAULT_TASKS = (
    Task(
        name="android",
        paths=("/usr/local/lib/android",),
        background_eligible=True,
        description="Android SDK and NDKs",
        reference=f"{IMAGE_SCRIPTS}/install-android-sdk.sh",
    ),
    Task(
        name="dotnet",
        paths=("/usr/share/dotnet",),
        default_enabled=False,
        background_eligible=True,
        description=".NET SDKs",
        reference=f"{IMAGE_SCRIPTS}/install-dotnetcore-sdk.sh",
    ),
    Task(
        name="haskell",
        paths=("/opt/ghc", "/usr/local/.ghcup"),
        background_eligible=True,
        description="GHC and ghcup",
        reference=f"{IMAGE_SCRIPTS}/install-haskell.sh",
    ),
    Task(
        name="swift",
        paths=("/usr/share/swift",),
        background_eligible=True,
        description="Swift toolchain",
        reference=f"{IMAGE_SCRIPTS}/install-swift.sh",
    ),
    Task(
        name="julia",
        paths=("/usr/local/julia*",),
        description="Julia",
        reference=f"{IMAGE_SCRIPTS}/install-julia.sh",
    ),
    Task(
        name="rustup",
        paths=("/usr/share/rust/.rustup", "/usr/share/rust/.cargo"),
        background_eligible=True,
        description="Rust toolchains managed by rustup",
        reference=f"{IMAGE_SCRIPTS}/install-rust.sh",
    ),
    Task(
        name="boost",
        paths=("/usr/local/share/boost",),
        background_eligible=True,
        description="Boost libraries",
    ),
    Task(
        name="graalvm",
        paths=("/usr/local/graalvm",),
        description="GraalVM",
        reference=f"{IMAGE_SCRIPTS}/install-java-tools.sh",
    ),
    Task(
        name="miniconda",
        paths=("/usr/share/miniconda",),
        description="Miniconda",
        reference=f"{IMAGE_SCRIPTS}/install-miniconda.sh",
    ),
    Task(
        name="codeql",
        paths=("/opt/hostedtoolcache/CodeQL",),
        background_eligible=True,
        description="CodeQL bundle in the tool cache",
        reference=f"{IMAGE_SCRIPTS}/install-codeql-bundle.sh",
    ),
    Task(
        name="powershell",
        packages=("powershell",),
        paths=("/usr/local/share/powershell",),
        description="PowerShell and its modules",
        reference=f"{IMAGE_SCRIPTS}/install-powershell.sh",
    ),
    Task(
        name="azure",
        packages=("azure-cli",),
        paths=("/opt/az",),
        description="Azure CLI",
        reference=f"{IMAGE_SCRIPTS}/install-azure-cli.sh",
    ),
    Task(
        name="gcloud",
        packages=("google-cloud-cli",),
        default_enabled=False,
        description="Google Cloud CLI",
        reference=f"{IMAGE_SCRIPTS}/install-google-cloud-cli.sh",
    ),
    Task(
        name="aws",
        paths=("/usr/local/aws-cli", "/usr/local/aws-sam-cli"),
        description="AWS CLI and SAM CLI",
        reference=f"{IMAGE_SCRIPTS}/install-aws-tools.sh",
    ),
    Task(
        name="heroku",
        paths=("/usr/local/lib/heroku",),
        description="Heroku CLI",
        reference=f"{IMAGE_SCRIPTS}/install-heroku.sh",
    ),
    Task(
        name="chrome",
        packages=("google-chrome-stable",),
        paths=("/usr/local/share/chromedriver-linux64",),
        description="Google Chrome and chromedriver",
        reference=f"{IMAGE_SCRIPTS}/install-google-chrome.sh",
    ),
    Task(
        name="chromium",
        paths=("/usr/local/share/chromium",),
        description="Chromium build used by the image",
        reference=f"{IMAGE_SCRIPTS}/install-google-chrome.sh",
    ),
    Task(
        name="firefox",
        packages=("firefox",),
        paths=("/usr/local/share/gecko_driver",),
        description="Firefox and geckodriver",
        reference=f"{IMAGE_SCRIPTS}/install-firefox.sh",
    ),
    Task(
        name="edge",
        packages=("microsoft-edge-stable",),
        paths=("/usr/local/share/edge_driver",),
        description="Microsoft Edge and msedgedriver",
        reference=f"{IMAGE_SCRIPTS}/install-microsoft-edge.sh",
    ),
    Task(
        name="mono",
        packages=("mono-complete", "mono-devel", "nuget"),
        description="Mono runtime and NuGet",
        reference=f"{IMAGE_SCRIPTS}/install-mono.sh",
    ),
    Task(
        name="selenium",
        paths=("/usr/share/java/selenium-server.jar",),
        description="Selenium server",
        reference=f"{IMAGE_SCRIPTS}/install-selenium.sh",
    ),
)

DEFAULT_REGISTRY = Registry(DEFAULT_TASKS)
