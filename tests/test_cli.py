"""Tests for the reclaim command line."""

import json
from unittest.mock import patch

import pytest

from reclaim.cli import EXIT_INTERRUPTED, EXIT_STARTUP_ERROR, build_parser, main
from reclaim.engine import ExecutionEngine
from reclaim.registry import Registry, Task


@pytest.fixture
def host(tmp_path, make_tree):
    make_tree(tmp_path / "android")
    make_tree(tmp_path / "dotnet")
    return tmp_path


@pytest.fixture
def registry(host):
    return Registry(
        [
            Task(name="android", paths=(str(host / "android"),), background_eligible=True),
            Task(name="dotnet", paths=(str(host / "dotnet"),), default_enabled=False),
            Task(name="rustup", paths=(str(host / "rust"),)),
        ]
    )


@pytest.fixture
def as_root():
    with patch("reclaim.privileges.os.geteuid", return_value=0):
        yield


@pytest.fixture
def as_user():
    with patch("reclaim.privileges.os.geteuid", return_value=1001):
        yield


class TestParser:
    def test_flags_generated_per_task(self, registry):
        parser = build_parser(registry)
        args = parser.parse_args(["--keep-android", "--remove-dotnet=true"])
        assert args.keep_android == "true"
        assert args.remove_dotnet == "true"
        assert args.keep_rustup is None

    def test_version(self, registry, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"], registry=registry)
        assert exc_info.value.code == 0
        assert "reclaim" in capsys.readouterr().out


class TestStartupErrors:
    def test_unknown_keep_flag(self, registry, host, as_root, capsys):
        code = main(["--keep-nonexistent-tool"], registry=registry)

        assert code == EXIT_STARTUP_ERROR
        assert "nonexistent-tool" in capsys.readouterr().err
        assert (host / "android").exists()

    def test_prefix_is_not_accepted(self, registry, host, as_root):
        assert main(["--keep-andro"], registry=registry) == EXIT_STARTUP_ERROR
        assert (host / "android").exists()

    def test_unknown_remove_flag_with_value(self, registry, as_root):
        assert main(["--remove-nope=true"], registry=registry) == EXIT_STARTUP_ERROR

    def test_other_unknown_argument(self, registry):
        with pytest.raises(SystemExit) as exc_info:
            main(["--frobnicate"], registry=registry)
        assert exc_info.value.code == 2

    def test_requires_root(self, registry, host, as_user, capsys):
        code = main([], registry=registry)

        assert code == EXIT_STARTUP_ERROR
        assert "root" in capsys.readouterr().err
        assert (host / "android").exists()

    def test_conflicting_flags(self, registry, as_root):
        assert main(["--keep-android", "--remove-android"], registry=registry) == EXIT_STARTUP_ERROR

    def test_unknown_env_input(self, registry, host, as_root, monkeypatch):
        monkeypatch.setenv("INPUT_KEEP-NONEXISTENT-TOOL", "true")
        assert main([], registry=registry) == EXIT_STARTUP_ERROR
        assert (host / "android").exists()


class TestRun:
    def test_default_run(self, registry, host, as_root, capsys):
        code = main([], registry=registry)

        assert code == 0
        assert not (host / "android").exists()
        assert (host / "dotnet").exists()
        out = capsys.readouterr().out
        assert "android" in out
        assert "already absent" in out
        assert "Cleanup complete" in out

    def test_keep_flag(self, registry, host, as_root):
        assert main(["--keep-android"], registry=registry) == 0
        assert (host / "android").exists()

    def test_keep_flag_false_value(self, registry, host, as_root):
        assert main(["--keep-android=false"], registry=registry) == 0
        assert not (host / "android").exists()

    def test_remove_flag(self, registry, host, as_root):
        assert main(["--remove-dotnet"], registry=registry) == 0
        assert not (host / "dotnet").exists()

    def test_env_input(self, registry, host, as_root, monkeypatch):
        monkeypatch.setenv("INPUT_KEEP-ANDROID", "true")
        assert main([], registry=registry) == 0
        assert (host / "android").exists()

    def test_flag_overrides_config_file(self, registry, host, as_root, tmp_path):
        config = tmp_path / "reclaim.yml"
        config.write_text("keep: [android]\nremove: [dotnet]\n")

        assert main(["--config", str(config), "--keep-dotnet"], registry=registry) == 0
        assert (host / "android").exists()
        assert (host / "dotnet").exists()

    def test_failure_exit_code(self, registry, host, as_root, capsys):
        with patch("reclaim.filesystem.shutil.rmtree", side_effect=PermissionError(13, "Permission denied")):
            code = main(["--no-background"], registry=registry)

        assert code == 1
        captured = capsys.readouterr()
        assert "android" in captured.err
        assert "Permission denied" in captured.out + captured.err

    def test_dry_run_needs_no_root(self, registry, host, as_user, capsys):
        assert main(["--dry-run"], registry=registry) == 0
        assert (host / "android").exists()
        assert "planned" in capsys.readouterr().out

    def test_list(self, registry, host, as_user, capsys):
        assert main(["--list", "--remove-dotnet"], registry=registry) == 0
        out = capsys.readouterr().out
        for name in ("android", "dotnet", "rustup"):
            assert name in out
        assert (host / "android").exists()

    def test_json_output(self, registry, as_root, capsys):
        assert main(["--json"], registry=registry) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["success"] is True
        statuses = {t["name"]: t["status"] for t in data["tasks"]}
        assert statuses == {
            "android": "REMOVED",
            "dotnet": "SKIPPED_KEPT",
            "rustup": "ALREADY_ABSENT",
        }

    def test_step_summary(self, registry, as_root, tmp_path):
        summary = tmp_path / "summary.md"
        assert main(["--summary-file", str(summary)], registry=registry) == 0
        text = summary.read_text()
        assert "### reclaim" in text
        assert "`android`" in text

    def test_interrupted(self, registry, as_root):
        with patch.object(ExecutionEngine, "run", side_effect=KeyboardInterrupt):
            assert main([], registry=registry) == EXIT_INTERRUPTED
