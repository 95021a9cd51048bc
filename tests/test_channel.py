"""
Tests for the sftp command channel.

Tests:
  - classify: benign stderr, exit-0-or-no-errors leniency, permission hints
  - connection_args: port, key and configuration errors
  - execute: batch script layout, password on stdin, temp script cleanup,
    startup failures that never spawn sftp
"""
import os
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from sftpmirror.config import ConnectionProfile
from sftpmirror.core.channel import (CommandChannel, KEY_AUTH_HINT, PASSWORD_AUTH_HINT,
                                     classify, filter_benign)
from sftpmirror.exceptions import ChannelStartupError, ConfigurationError


def _profile(**kw):
    base = dict(host="example.com", username="bob", remote_path="/srv/app",
                password="hunter2")
    base.update(kw)
    return ConnectionProfile(**base)


def _fake_popen(stdout="", stderr="", returncode=0, seen=None):
    """A Popen replacement that records the script it was given."""
    def factory(argv, **kwargs):
        if seen is not None:
            seen["argv"] = argv
            seen["kwargs"] = kwargs
            script = argv[argv.index("-b") + 1]
            seen["script_path"] = script
            seen["script"] = Path(script).read_text(encoding="utf-8")
        proc = MagicMock()
        proc.returncode = returncode

        def communicate(input=None):
            if seen is not None:
                seen["input"] = input
            return stdout, stderr

        proc.communicate.side_effect = communicate
        return proc
    return factory


class TestClassify(unittest.TestCase):
    """Tests for classify(): benign filtering, leniency and auth hints."""

    def test_benign_lines_with_exit_zero(self):
        """Expected mkdir/stat notices are not errors."""
        stderr = [
            "Couldn't create directory: Failure",
            "remote mkdir \"/srv/app/src\": Failure",
            "stat /srv/app/x: No such file or directory",
        ]
        result = classify(0, [], stderr, uses_key=False)
        self.assertTrue(result.success)
        self.assertEqual(result.errors, [])
        self.assertEqual(result.diagnostic, "")

    def test_nonzero_exit_but_only_benign_errors_is_success(self):
        """A non-zero exit with only benign stderr still succeeds."""
        result = classify(1, [], ["Couldn't create directory: Failure"], uses_key=False)
        self.assertTrue(result.success)

    def test_zero_exit_with_real_errors_is_success(self):
        """Exit 0 wins even when real error lines were printed."""
        result = classify(0, [], ["something odd"], uses_key=False)
        self.assertTrue(result.success)
        self.assertEqual(result.errors, ["something odd"])

    def test_real_failure(self):
        """Non-zero exit plus a real error line fails with that line as diagnostic."""
        result = classify(1, [], ["Couldn't stat remote file: No such file"], uses_key=False)
        self.assertFalse(result.success)
        self.assertIn("Couldn't stat remote file", result.diagnostic)

    def test_permission_hint_for_password(self):
        """Permission denied under password auth appends the password hint."""
        result = classify(255, [], ["bob@example.com: Permission denied (password)."], uses_key=False)
        self.assertFalse(result.success)
        self.assertIn(PASSWORD_AUTH_HINT, result.diagnostic)

    def test_permission_hint_for_key(self):
        """Permission denied under key auth appends the key hint."""
        result = classify(255, [], ["Permission denied (publickey)."], uses_key=True)
        self.assertIn(KEY_AUTH_HINT, result.diagnostic)

    def test_filter_benign_drops_blank_lines(self):
        """Blank stderr lines are not errors."""
        self.assertEqual(filter_benign(["", "  ", "real"]), ["real"])


class TestConnectionArgs(unittest.TestCase):
    """Tests for CommandChannel.connection_args()."""

    def test_password_default_port(self):
        """Password auth on port 22 needs only user@host."""
        self.assertEqual(CommandChannel(_profile()).connection_args(), ["bob@example.com"])

    def test_custom_port(self):
        """A non-default port adds -P."""
        args = CommandChannel(_profile(port=2222)).connection_args()
        self.assertEqual(args, ["-P", "2222", "bob@example.com"])

    def test_key_file(self):
        """A readable key adds -i and disables strict host key checking."""
        with tempfile.NamedTemporaryFile() as key:
            args = CommandChannel(_profile(private_key_path=key.name)).connection_args()
        self.assertEqual(args[:4], ["-i", key.name, "-o", "StrictHostKeyChecking=no"])

    def test_missing_key_file(self):
        """An unreadable key is a ConfigurationError."""
        channel = CommandChannel(_profile(private_key_path="/nonexistent/id_rsa"))
        with self.assertRaises(ConfigurationError):
            channel.connection_args()

    def test_missing_host(self):
        """An empty host is a ConfigurationError."""
        with self.assertRaises(ConfigurationError):
            CommandChannel(_profile(host="")).connection_args()


class TestExecute(unittest.TestCase):
    """Tests for CommandChannel.execute() with a patched Popen."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_script_layout_and_cleanup(self):
        """Preamble, payload and quit are written; the script is removed afterwards."""
        seen = {}
        channel = CommandChannel(_profile(remote_path="/srv/my app", local_root=self.root))
        with patch("sftpmirror.core.channel.subprocess.Popen",
                   side_effect=_fake_popen(stdout="sftp> pwd\n", seen=seen)):
            result = channel.execute("pwd")
        self.assertTrue(result.success)
        self.assertEqual(result.output, ["sftp> pwd"])
        self.assertEqual(seen["script"], "-mkdir '/srv/my app'\ncd '/srv/my app'\npwd\nquit\n")
        self.assertEqual(seen["argv"][0], "sftp")
        self.assertEqual(seen["kwargs"]["cwd"], str(self.root))
        self.assertFalse(os.path.exists(seen["script_path"]))

    def test_password_sent_on_stdin(self):
        """Password auth writes the password to stdin."""
        seen = {}
        with patch("sftpmirror.core.channel.subprocess.Popen",
                   side_effect=_fake_popen(seen=seen)):
            CommandChannel(_profile()).execute("pwd\n")
        self.assertEqual(seen["input"], "hunter2\n")
        self.assertEqual(seen["kwargs"]["stdin"], subprocess.PIPE)

    def test_key_wins_over_password(self):
        """With a key configured nothing is written to stdin."""
        seen = {}
        with tempfile.NamedTemporaryFile() as key:
            with patch("sftpmirror.core.channel.subprocess.Popen",
                       side_effect=_fake_popen(seen=seen)):
                CommandChannel(_profile(private_key_path=key.name)).execute("pwd\n")
        self.assertIsNone(seen["input"])
        self.assertEqual(seen["kwargs"]["stdin"], subprocess.DEVNULL)

    def test_failure_removes_script(self):
        """The script is removed when the batch fails too."""
        seen = {}
        with patch("sftpmirror.core.channel.subprocess.Popen",
                   side_effect=_fake_popen(stderr="Connection refused\n", returncode=255,
                                           seen=seen)):
            result = CommandChannel(_profile()).execute("pwd\n")
        self.assertFalse(result.success)
        self.assertEqual(result.diagnostic, "Connection refused")
        self.assertFalse(os.path.exists(seen["script_path"]))

    def test_missing_program(self):
        """A missing sftp binary is a ChannelStartupError."""
        with patch("sftpmirror.core.channel.subprocess.Popen",
                   side_effect=FileNotFoundError("sftp")):
            with self.assertRaises(ChannelStartupError):
                CommandChannel(_profile()).execute("pwd\n")

    def test_script_creation_failure(self):
        """No process is started when the script cannot be created."""
        with patch("sftpmirror.core.channel.tempfile.mkstemp", side_effect=OSError("disk full")), \
                patch("sftpmirror.core.channel.subprocess.Popen") as popen:
            with self.assertRaises(ChannelStartupError):
                CommandChannel(_profile()).execute("pwd\n")
        popen.assert_not_called()

    def test_configuration_error_spawns_nothing(self):
        """A bad profile fails before any process is started."""
        with patch("sftpmirror.core.channel.subprocess.Popen") as popen:
            with self.assertRaises(ConfigurationError):
                CommandChannel(_profile(username="")).execute("pwd\n")
        popen.assert_not_called()


if __name__ == "__main__":
    unittest.main()
