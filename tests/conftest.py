import os

import pytest

from reclaim.apt import PackageState
from reclaim.utils.commands import CommandResult


class FakePackageManager:
    """In-memory stand-in for AptPackageManager.

    installed: package -> size in bytes
    stuck: packages whose purge fails and which stay installed
    """

    def __init__(self, installed=None, stuck=(), unknown_fails=True):
        self.installed = dict(installed or {})
        self.stuck = set(stuck)
        self.unknown_fails = unknown_fails
        self.purged = []
        self.queries = []

    def query(self, package):
        self.queries.append(package)
        if package in self.installed:
            return PackageState(name=package, installed=True, size_bytes=self.installed[package])
        return PackageState(name=package, installed=False)

    def is_installed(self, package):
        return self.query(package).installed

    def purge(self, package):
        self.purged.append(package)
        cmd = f"apt-get purge --yes --quiet {package}"
        if package in self.stuck:
            return CommandResult(
                success=False,
                stdout="",
                stderr=f"E: Sub-process /usr/bin/dpkg returned an error code (1) for {package}",
                return_code=100,
                command=cmd,
            )
        if package not in self.installed and self.unknown_fails:
            return CommandResult(
                success=False,
                stdout="",
                stderr=f"E: Unable to locate package {package}",
                return_code=100,
                command=cmd,
            )
        self.installed.pop(package, None)
        return CommandResult(success=True, stdout="", stderr="", return_code=0, command=cmd)


@pytest.fixture(autouse=True)
def clean_action_env(monkeypatch):
    """Keep the runner's own action inputs and step summary out of the tests."""
    for key in list(os.environ):
        if key.upper().startswith(("INPUT_KEEP", "INPUT_REMOVE")):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)


@pytest.fixture
def fake_apt():
    return FakePackageManager()


@pytest.fixture
def make_tree():
    """Factory creating a small directory tree with a few files."""

    def _make(root, files=3, size=1024):
        root.mkdir(parents=True, exist_ok=True)
        (root / "sub").mkdir(exist_ok=True)
        for i in range(files):
            (root / "sub" / f"file{i}.bin").write_bytes(b"x" * size)
        return root

    return _make


@pytest.fixture
def apt_factory():
    return FakePackageManager
