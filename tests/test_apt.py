import unittest
from unittest.mock import Mock, patch

from reclaim.apt import APT_ENV, AptPackageManager, PackageState, is_lock_error
from reclaim.retry import RetryConfig
from reclaim.utils.commands import CommandResult


def result(success=True, stdout="", stderr="", code=0):
    return CommandResult(
        success=success, stdout=stdout, stderr=stderr, return_code=code, command="test"
    )


LOCK_ERROR = result(
    success=False,
    stderr="E: Could not get lock /var/lib/dpkg/lock-frontend. It is held by process 1234 (unattended-upgr)",
    code=100,
)


class TestQuery(unittest.TestCase):
    def test_installed_with_size(self):
        runner = Mock(return_value=result(stdout="installed\t2048\n"))
        state = AptPackageManager(runner=runner).query("azure-cli")

        self.assertEqual(state, PackageState(name="azure-cli", installed=True, size_bytes=2048 * 1024))
        cmd = runner.call_args[0][0]
        self.assertEqual(cmd[0], "dpkg-query")
        self.assertEqual(cmd[-1], "azure-cli")

    def test_config_files_only_is_not_installed(self):
        runner = Mock(return_value=result(stdout="config-files\t\n"))
        state = AptPackageManager(runner=runner).query("firefox")
        self.assertFalse(state.installed)
        self.assertIsNone(state.size_bytes)

    def test_multiarch_installed_after_config_files(self):
        runner = Mock(return_value=result(stdout="config-files\t\ninstalled\t300\n"))
        state = AptPackageManager(runner=runner).query("libmono-2.0-1")
        self.assertTrue(state.installed)
        self.assertEqual(state.size_bytes, 300 * 1024)

    def test_multiarch_sizes_summed(self):
        runner = Mock(return_value=result(stdout="installed\t100\ninstalled\t120\n"))
        state = AptPackageManager(runner=runner).query("libmono-2.0-1")
        self.assertEqual(state.size_bytes, 220 * 1024)

    def test_unknown_package(self):
        runner = Mock(
            return_value=result(
                success=False, stderr="dpkg-query: no packages found matching nope", code=1
            )
        )
        self.assertFalse(AptPackageManager(runner=runner).is_installed("nope"))

    def test_query_failure_assumes_installed(self):
        runner = Mock(return_value=result(success=False, stderr="Command not found: dpkg-query", code=127))
        self.assertTrue(AptPackageManager(runner=runner).is_installed("azure-cli"))

    def test_half_installed_counts_as_installed(self):
        runner = Mock(return_value=result(stdout="half-configured\t10\n"))
        self.assertTrue(AptPackageManager(runner=runner).is_installed("mono-devel"))


class TestPurge(unittest.TestCase):
    def test_purge_command(self):
        runner = Mock(return_value=result())
        outcome = AptPackageManager(runner=runner).purge("azure-cli")

        self.assertTrue(outcome.success)
        args, kwargs = runner.call_args
        self.assertEqual(args[0], ["apt-get", "purge", "--yes", "--quiet", "azure-cli"])
        self.assertEqual(kwargs["env"], APT_ENV)

    def test_purge_failure_returned(self):
        runner = Mock(return_value=result(success=False, stderr="E: boom", code=100))
        outcome = AptPackageManager(runner=runner).purge("azure-cli")

        self.assertFalse(outcome.success)
        self.assertEqual(outcome.return_code, 100)
        runner.assert_called_once()

    @patch("time.sleep")
    def test_purge_retries_on_dpkg_lock(self, mock_sleep):
        runner = Mock(side_effect=[LOCK_ERROR, LOCK_ERROR, result()])
        manager = AptPackageManager(
            runner=runner, retry_config=RetryConfig(max_attempts=3, base_delay=0.1, jitter=False)
        )

        outcome = manager.purge("azure-cli")

        self.assertTrue(outcome.success)
        self.assertEqual(runner.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)

    @patch("time.sleep")
    def test_purge_gives_up_on_persistent_lock(self, mock_sleep):
        runner = Mock(return_value=LOCK_ERROR)
        manager = AptPackageManager(
            runner=runner, retry_config=RetryConfig(max_attempts=2, base_delay=0.1, jitter=False)
        )

        outcome = manager.purge("azure-cli")

        self.assertFalse(outcome.success)
        self.assertIn("Could not get lock", outcome.stderr)
        self.assertEqual(runner.call_count, 2)

    def test_dry_run_does_not_execute(self):
        runner = Mock()
        outcome = AptPackageManager(runner=runner, dry_run=True).purge("azure-cli")

        self.assertTrue(outcome.success)
        runner.assert_not_called()


class TestLockDetection(unittest.TestCase):
    def test_lock_error(self):
        self.assertTrue(is_lock_error(LOCK_ERROR))

    def test_other_error(self):
        self.assertFalse(is_lock_error(result(success=False, stderr="E: Unable to locate package x")))

    def test_success_is_never_lock_error(self):
        self.assertFalse(is_lock_error(result(stdout="Could not get lock")))


if __name__ == "__main__":
    unittest.main()
