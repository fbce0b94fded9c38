"""Exception hierarchy for reclaim.

Startup errors (unknown task names, bad configuration, missing privileges)
abort the run before anything is removed. Per-task failures are never raised
out of the engine; they are recorded on the task result instead.
"""


class ReclaimError(Exception):
    """Base class for all reclaim errors."""


class UnknownTaskError(ReclaimError):
    """Raised when a task name is not present in the registry."""

    def __init__(self, name: str, known: tuple[str, ...] = ()):
        self.name = name
        self.known = known
        message = f"Unknown task '{name}'"
        if known:
            message += f" (known tasks: {', '.join(known)})"
        super().__init__(message)


class RegistryError(ReclaimError):
    """Raised when the task catalog is malformed."""


class ConfigurationError(ReclaimError):
    """Raised for malformed config files or contradictory overrides."""


class PrivilegeError(ReclaimError):
    """Raised when the process cannot remove system packages and files."""


class ProtectedPathError(ReclaimError):
    """Raised when a removal targets a path that must never be deleted."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Refusing to remove protected path: {path}")
