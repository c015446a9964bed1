"""Command line tests using click's CliRunner."""

import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

sys.path.insert(0, str(Path(__file__).parent.parent))

from crypto_analyzer_setup import VERSION
from crypto_analyzer_setup.cli import exit_code_for, init_logging, main
from crypto_analyzer_setup.templates import ENV_FILE
from crypto_analyzer_setup.ui import reset_status


class TestCli(unittest.TestCase):
    """Test the install, render and cron commands."""

    def setUp(self):
        reset_status()
        self.test_dir = tempfile.mkdtemp()
        self.log_file = str(Path(self.test_dir) / "setup.log")
        self.runner = CliRunner()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_version(self):
        result = self.runner.invoke(main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(VERSION, result.output)

    def test_render_writes_tree(self):
        output = Path(self.test_dir) / "out"
        result = self.runner.invoke(
            main, ["render", "--output", str(output), "--log-file", self.log_file]
        )

        self.assertEqual(result.exit_code, 0, result.output)
        root = output / "opt" / "crypto-analyzer"
        self.assertEqual((root / ".env").read_text(encoding="utf-8"), ENV_FILE)
        self.assertTrue((root / "logs").is_dir())
        self.assertTrue((output / "etc/systemd/system/crypto-analyzer.service").is_file())
        self.assertTrue((output / "etc/logrotate.d/crypto-analyzer").is_file())
        self.assertTrue(Path(self.log_file).is_file())

    def test_cron_dry_run_prints_entries(self):
        result = self.runner.invoke(
            main, ["cron", "--dry-run", "--user", "deploy", "--log-file", self.log_file]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("0 2 * * * /opt/crypto-analyzer/backup.sh", result.output)
        self.assertIn("/tmp/crypto-analyzer-status.log", result.output)

    def test_install_dry_run(self):
        runner = AsyncMock()
        with patch("crypto_analyzer_setup.provisioner.run_command_async", runner):
            result = self.runner.invoke(
                main,
                ["install", "--dry-run", "--user", "deploy", "--log-file", self.log_file],
            )

        self.assertEqual(result.exit_code, 0, result.output)
        runner.assert_not_awaited()
        self.assertIn("Installation completed!", result.output)
        self.assertIn("[dry-run] ufw allow 443/tcp", Path(self.log_file).read_text())

    def test_install_dry_run_logs_to_temp_dir(self):
        with patch("crypto_analyzer_setup.cli.init_logging", wraps=init_logging) as logging_setup, \
             patch("crypto_analyzer_setup.cli.tempfile.gettempdir", return_value=self.test_dir):
            result = self.runner.invoke(main, ["install", "--dry-run", "--user", "deploy"])

        self.assertEqual(result.exit_code, 0, result.output)
        log_file = logging_setup.call_args[0][0]
        self.assertEqual(log_file, str(Path(self.test_dir) / "crypto_analyzer_setup.log"))
        self.assertTrue(Path(log_file).is_file())

    def test_install_failure_exits_non_zero(self):
        with patch(
            "crypto_analyzer_setup.provisioner.AnalyzerSetup.phase_system_packages",
            AsyncMock(side_effect=RuntimeError("apt is locked")),
        ):
            result = self.runner.invoke(
                main, ["install", "--dry-run", "--log-file", self.log_file]
            )

        self.assertEqual(result.exit_code, 1)
        self.assertIn("system_packages", result.output)

    def test_exit_codes(self):
        import signal

        self.assertEqual(exit_code_for(signal.SIGINT), 130)
        self.assertEqual(exit_code_for(signal.SIGTERM), 143)
        self.assertEqual(exit_code_for(signal.SIGHUP), 128 + signal.SIGHUP)


if __name__ == "__main__":
    unittest.main()
