import subprocess
import unittest
from unittest.mock import patch

from reclaim.utils.commands import CommandResult, run_command


class TestRunCommand(unittest.TestCase):
    def test_success(self):
        result = run_command(["sh", "-c", "echo hello"])
        self.assertTrue(result.success)
        self.assertEqual(result.return_code, 0)
        self.assertEqual(result.stdout.strip(), "hello")
        self.assertEqual(result.command, "sh -c echo hello")

    def test_failure_captures_stderr(self):
        result = run_command(["sh", "-c", "echo oops >&2; exit 3"])
        self.assertFalse(result.success)
        self.assertEqual(result.return_code, 3)
        self.assertEqual(result.output, "oops")

    def test_extra_env(self):
        result = run_command(["sh", "-c", "echo $RECLAIM_TEST_VAR"], env={"RECLAIM_TEST_VAR": "set"})
        self.assertEqual(result.stdout.strip(), "set")

    def test_missing_executable(self):
        result = run_command(["definitely-not-a-real-binary-xyz"])
        self.assertFalse(result.success)
        self.assertEqual(result.return_code, 127)
        self.assertIn("Command not found", result.stderr)

    @patch("reclaim.utils.commands.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="apt-get", timeout=5)
        result = run_command(["apt-get", "purge", "x"], timeout=5)
        self.assertFalse(result.success)
        self.assertIn("timed out after 5s", result.stderr)


class TestCommandResult(unittest.TestCase):
    def test_output_combines_streams(self):
        result = CommandResult(success=False, stdout="out\n", stderr="err\n", return_code=1, command="x")
        self.assertEqual(result.output, "err\nout")

    def test_output_empty(self):
        result = CommandResult(success=True, stdout="", stderr="", return_code=0, command="x")
        self.assertEqual(result.output, "")


if __name__ == "__main__":
    unittest.main()
