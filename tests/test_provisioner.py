"""
Provisioning flow tests.

Commands go through a mocked runner; files are written under a temporary
DESTDIR. The phases run in a fixed order and stop at the first failure.
"""

import shutil
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from crypto_analyzer_setup.config import Config
from crypto_analyzer_setup.provisioner import AnalyzerSetup, SetupError
from crypto_analyzer_setup.templates import ENV_FILE
from crypto_analyzer_setup.ui import PHASES, SETUP_STATUS, reset_status

RUNNER = "crypto_analyzer_setup.provisioner.run_command_async"


def ok(cmd=None, **kwargs):
    return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


def commands(runner):
    return [call.args[0] for call in runner.await_args_list]


class TestPhaseOrder(unittest.IsolatedAsyncioTestCase):
    """Test the ordered, fail-fast phase runner."""

    def setUp(self):
        reset_status()

    def test_phase_names_match_status_table(self):
        names = [name for name, _, _ in AnalyzerSetup(Config()).phases()]
        self.assertEqual(names, PHASES)

    async def test_dry_run_executes_nothing(self):
        setup = AnalyzerSetup(Config(DRY_RUN=True, USERNAME="deploy"))
        runner = AsyncMock(side_effect=ok)
        cron = AsyncMock()
        with patch(RUNNER, runner), \
             patch("crypto_analyzer_setup.provisioner.register_cron_entries", cron), \
             patch("crypto_analyzer_setup.provisioner.download_file_async") as download:
            await setup.run_all()

        runner.assert_not_awaited()
        cron.assert_not_awaited()
        download.assert_not_called()
        self.assertIsNone(setup.temp_dir)
        for phase in PHASES:
            self.assertEqual(SETUP_STATUS[phase]["status"], "success", phase)

    async def test_stops_at_first_failure(self):
        setup = AnalyzerSetup(Config(DRY_RUN=True))
        setup.phase_firewall = AsyncMock(
            side_effect=subprocess.CalledProcessError(1, ["ufw", "--force", "enable"])
        )
        setup.phase_redis = AsyncMock()

        with self.assertRaises(SetupError) as ctx:
            await setup.run_all()

        self.assertEqual(ctx.exception.phase, "firewall")
        self.assertIsInstance(ctx.exception.cause, subprocess.CalledProcessError)
        setup.phase_redis.assert_not_awaited()
        self.assertEqual(SETUP_STATUS["systemd_service"]["status"], "success")
        self.assertEqual(SETUP_STATUS["firewall"]["status"], "failed")
        for phase in PHASES[PHASES.index("redis"):]:
            self.assertEqual(SETUP_STATUS[phase]["status"], "skipped", phase)


class TestPhases(unittest.IsolatedAsyncioTestCase):
    """Test the commands and files of individual phases."""

    def setUp(self):
        reset_status()
        self.test_dir = tempfile.mkdtemp()
        self.config = Config(DESTDIR=self.test_dir, USERNAME="deploy")
        self.setup = AnalyzerSetup(self.config)
        self.runner = AsyncMock(side_effect=ok)
        patcher = patch(RUNNER, self.runner)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    async def test_system_packages(self):
        await self.setup.phase_system_packages()

        cmds = commands(self.runner)
        self.assertEqual(cmds[0], ["apt-get", "update"])
        self.assertEqual(cmds[1], ["apt-get", "upgrade", "-y"])
        self.assertEqual(cmds[2][:3], ["apt-get", "install", "-y"])
        self.assertEqual(cmds[2][3:], self.config.APT_PACKAGES)
        self.assertIn("redis-server", cmds[2])
        env = self.runner.await_args_list[0].kwargs["env"]
        self.assertEqual(env["DEBIAN_FRONTEND"], "noninteractive")

    async def test_docker_uses_vendor_script(self):
        with patch("crypto_analyzer_setup.provisioner.download_file_async", AsyncMock()) as download:
            await self.setup.phase_docker()
        script = self.setup.temp_dir / "get-docker.sh"
        download.assert_awaited_once_with("https://get.docker.com", script)
        self.assertEqual(
            commands(self.runner),
            [["sh", str(script)], ["usermod", "-aG", "docker", "deploy"]],
        )

        await self.setup.cleanup_async()
        self.assertFalse(script.parent.exists())

    async def test_docker_compose_pinned_release(self):
        with patch("crypto_analyzer_setup.provisioner.download_file_async", AsyncMock()) as download, \
             patch("crypto_analyzer_setup.provisioner.os.chmod") as chmod, \
             patch("crypto_analyzer_setup.provisioner.command_exists_async", AsyncMock(return_value=True)), \
             patch("crypto_analyzer_setup.provisioner.platform.system", return_value="Linux"), \
             patch("crypto_analyzer_setup.provisioner.platform.machine", return_value="x86_64"):
            await self.setup.phase_docker_compose()

        download.assert_awaited_once_with(
            "https://github.com/docker/compose/releases/download/v2.21.0/docker-compose-Linux-x86_64",
            "/usr/local/bin/docker-compose",
        )
        chmod.assert_called_once_with("/usr/local/bin/docker-compose", 0o755)

    async def test_nodejs(self):
        await self.setup.phase_nodejs()
        self.assertEqual(
            commands(self.runner),
            [
                ["bash", "-c", "curl -fsSL https://deb.nodesource.com/setup_18.x | bash -"],
                ["apt-get", "install", "-y", "nodejs"],
            ],
        )

    async def test_firewall_allows_only_web_and_ssh(self):
        await self.setup.phase_firewall()
        self.assertEqual(
            commands(self.runner),
            [
                ["ufw", "allow", "22/tcp"],
                ["ufw", "allow", "80/tcp"],
                ["ufw", "allow", "443/tcp"],
                ["ufw", "--force", "enable"],
            ],
        )

    async def test_redis_enabled(self):
        await self.setup.phase_redis()
        self.assertEqual(
            commands(self.runner),
            [["systemctl", "enable", "redis-server"], ["systemctl", "start", "redis-server"]],
        )

    async def test_app_tree_owned_by_user(self):
        await self.setup.phase_app_directory()
        await self.setup.phase_app_files()
        await self.setup.phase_monitoring()

        root = self.config.install_path
        self.assertTrue((root / "ssl").is_dir())
        self.assertTrue((root / "public" / "manifest.json").is_file())
        self.assertEqual((root / ".env").read_text(encoding="utf-8"), ENV_FILE)
        self.assertTrue((root / "monitor.sh").is_file())
        self.assertIn(["chown", "-R", "deploy:deploy", str(root)], commands(self.runner))

    async def test_system_files(self):
        await self.setup.phase_systemd_service()
        await self.setup.phase_logrotate()

        self.assertIn("RestartSec=5", self.config.unit_path.read_text(encoding="utf-8"))
        self.assertIn("daily", self.config.logrotate_path.read_text(encoding="utf-8"))
        self.assertEqual(commands(self.runner), [["systemctl", "daemon-reload"]])

    async def test_cron_registers_entries_for_user(self):
        cron = AsyncMock(return_value=self.config.cron_entries)
        with patch("crypto_analyzer_setup.provisioner.register_cron_entries", cron):
            added = await self.setup.phase_cron()
        cron.assert_awaited_once_with("deploy", self.config.cron_entries)
        self.assertEqual(added, self.config.cron_entries)

    async def test_preflight_requires_root(self):
        with patch("crypto_analyzer_setup.provisioner.os.geteuid", return_value=1000):
            with self.assertRaises(PermissionError):
                await self.setup.phase_preflight()
        self.runner.assert_not_awaited()


if __name__ == "__main__":
    unittest.main()
