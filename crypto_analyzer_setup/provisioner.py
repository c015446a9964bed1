# ----------------------------------------------------------------
# Main Setup Class
# ----------------------------------------------------------------
import os
import platform
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from crypto_analyzer_setup.artifacts import (
    ensure_directories,
    write_artifacts,
)
from crypto_analyzer_setup.commands import (
    command_exists_async,
    download_file_async,
    run_command_async,
    run_with_progress_async,
)
from crypto_analyzer_setup.config import Config
from crypto_analyzer_setup.cron import register_cron_entries
from crypto_analyzer_setup.log import get_logger
from crypto_analyzer_setup.templates import (
    Artifact,
    app_file_artifacts,
    frontend_artifacts,
    logrotate_artifact,
    monitor_artifacts,
    unit_artifact,
)
from crypto_analyzer_setup.ui import (
    NordColors,
    console,
    create_header,
    display_panel,
    print_status_report,
    reset_status,
    set_status,
)

TEMP_PREFIX = "crypto_analyzer_setup_"

NEXT_STEPS = """📋 Next steps:
1. Copy your React component to src/App.js
2. Run: ./build.sh
3. Access your application at http://your-server-ip

🔧 Useful commands:
- Start: docker-compose up -d
- Stop: docker-compose down
- Monitor: ./monitor.sh
- Backup: ./backup.sh
- Deploy: ./deploy.sh
- Logs: docker-compose logs -f crypto-analyzer

🌐 SSL Setup (optional):
sudo certbot --nginx -d your-domain.com

🚀 The application will be available at:
- HTTP: http://your-server-ip
- WebSocket: ws://your-server-ip/ws
- API: http://your-server-ip/api/"""


class SetupError(Exception):
    """A phase failed; the remaining phases were not run."""

    def __init__(self, phase: str, cause: BaseException):
        self.phase = phase
        self.cause = cause
        super().__init__(f"Phase '{phase}' failed: {cause}")


class AnalyzerSetup:
    """Provisions a Ubuntu/Debian VPS for the Crypto Trading Setup Analyzer."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.logger = get_logger()
        self.start_time = time.time()
        self.temp_dir: Optional[Path] = None

    def phases(self) -> List[Tuple[str, str, Callable[[], Awaitable[Any]]]]:
        """Ordered (task name, description, coroutine) triples."""
        return [
            ("preflight", "Running pre-flight checks", self.phase_preflight),
            ("system_packages", "Installing system packages", self.phase_system_packages),
            ("docker", "Installing Docker", self.phase_docker),
            ("docker_compose", "Installing Docker Compose", self.phase_docker_compose),
            ("nodejs", "Installing Node.js", self.phase_nodejs),
            ("app_directory", "Setting up application directory", self.phase_app_directory),
            ("systemd_service", "Creating systemd service", self.phase_systemd_service),
            ("firewall", "Configuring firewall", self.phase_firewall),
            ("redis", "Configuring Redis", self.phase_redis),
            ("app_files", "Writing environment and scripts", self.phase_app_files),
            ("logrotate", "Configuring log rotation", self.phase_logrotate),
            ("monitoring", "Creating monitoring script", self.phase_monitoring),
            ("cron", "Setting up cron jobs", self.phase_cron),
            ("final", "Finishing installation", self.phase_final),
        ]

    async def run_all(self) -> None:
        """Run every phase in order, stopping at the first failure."""
        reset_status()
        console.print(create_header())
        if self.config.DRY_RUN:
            self.logger.info("Dry run: commands are logged, nothing is changed.")

        phases = self.phases()
        for index, (task_name, description, func) in enumerate(phases):
            self.logger.info(f"--- {description} ---")
            try:
                await run_with_progress_async(description, func, task_name=task_name)
            except Exception as e:
                self.logger.error(f"{description} failed: {e}")
                for skipped, _, _ in phases[index + 1:]:
                    set_status(skipped, "skipped", f"Not run: {task_name} failed")
                print_status_report()
                raise SetupError(task_name, e) from e

        self.show_summary()

    # ----------------------------------------------------------------
    # Execution Helpers
    # ----------------------------------------------------------------
    async def run(self, cmd: List[str], **kwargs: Any) -> subprocess.CompletedProcess:
        """Run a command, or only log it during a dry run."""
        if self.config.DRY_RUN:
            self.logger.info(f"[dry-run] {' '.join(cmd)}")
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
        return await run_command_async(cmd, **kwargs)

    async def apt(self, *args: str) -> subprocess.CompletedProcess:
        env = dict(os.environ, DEBIAN_FRONTEND="noninteractive")
        return await self.run(["apt-get", *args], env=env)

    def emit(self, artifacts: List[Artifact], base: Path) -> List[Path]:
        if self.config.DRY_RUN:
            for artifact in artifacts:
                self.logger.info(f"[dry-run] write {base / artifact.path.lstrip('/')}")
            return []
        return write_artifacts(artifacts, base)

    def make_temp_dir(self) -> Path:
        if self.temp_dir is None:
            self.temp_dir = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX))
        return self.temp_dir

    async def hand_over_install_dir(self) -> None:
        """Give the install root to the invoking user."""
        user = self.config.USERNAME
        await self.run(["chown", "-R", f"{user}:{user}", str(self.config.install_path)])

    async def cleanup_async(self) -> None:
        """Remove temporary files created during the run."""
        if self.temp_dir is not None and self.temp_dir.exists():
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            self.logger.debug(f"Removed {self.temp_dir}")
        self.temp_dir = None

    # ----------------------------------------------------------------
    # Phase 0: Preflight Checks
    # ----------------------------------------------------------------
    async def phase_preflight(self) -> None:
        if self.config.DRY_RUN:
            self.logger.info("Skipping privilege and network checks in dry run.")
            return

        if os.geteuid() != 0:
            raise PermissionError("Setup must be run as root (e.g. with sudo).")
        self.logger.info("Root privileges confirmed.")

        if not await command_exists_async("ping"):
            self.logger.warning("ping not found; skipping connectivity check.")
            return
        result = await run_command_async(
            ["ping", "-c", "1", "-W", "5", "8.8.8.8"], capture_output=True, check=False
        )
        if result.returncode == 0:
            self.logger.info("Network connectivity verified.")
        else:
            self.logger.warning("Ping to 8.8.8.8 failed; downloads may not work.")

    # ----------------------------------------------------------------
    # Phase 1-4: Packages and Runtimes
    # ----------------------------------------------------------------
    async def phase_system_packages(self) -> None:
        self.logger.info("Updating system packages...")
        await self.apt("update")
        await self.apt("upgrade", "-y")

        self.logger.info(f"Installing packages: {', '.join(self.config.APT_PACKAGES)}")
        await self.apt("install", "-y", *self.config.APT_PACKAGES)

    async def phase_docker(self) -> None:
        if self.config.DRY_RUN:
            script = Path(tempfile.gettempdir()) / "get-docker.sh"
            self.logger.info(f"[dry-run] download {self.config.DOCKER_INSTALL_URL}")
        else:
            script = self.make_temp_dir() / "get-docker.sh"
            await download_file_async(self.config.DOCKER_INSTALL_URL, script)
        await self.run(["sh", str(script)])
        await self.run(["usermod", "-aG", "docker", self.config.USERNAME])
        self.logger.info(f"Added {self.config.USERNAME} to the docker group.")

    async def phase_docker_compose(self) -> None:
        url = self.config.compose_url(platform.system(), platform.machine())
        binary = self.config.COMPOSE_BINARY
        if self.config.DRY_RUN:
            self.logger.info(f"[dry-run] download {url}")
        else:
            await download_file_async(url, binary)
            os.chmod(binary, 0o755)

        if not self.config.DRY_RUN and not await command_exists_async("docker-compose"):
            self.logger.warning(f"{binary} is not on PATH.")
        self.logger.info(f"Docker Compose {self.config.COMPOSE_VERSION} installed.")

    async def phase_nodejs(self) -> None:
        await self.run(
            ["bash", "-c", f"curl -fsSL {self.config.NODE_SETUP_URL} | bash -"]
        )
        await self.apt("install", "-y", "nodejs")

    # ----------------------------------------------------------------
    # Phase 5-6: Application Directory and Service
    # ----------------------------------------------------------------
    async def phase_app_directory(self) -> None:
        root = self.config.install_path
        if self.config.DRY_RUN:
            self.logger.info(f"[dry-run] mkdir {root} ({', '.join(self.config.APP_DIRECTORIES)})")
        else:
            ensure_directories(self.config)
        self.emit(frontend_artifacts(), root)
        await self.hand_over_install_dir()

    async def phase_systemd_service(self) -> None:
        self.emit([unit_artifact(self.config)], self.config.resolve("/"))
        await self.run(["systemctl", "daemon-reload"])

    # ----------------------------------------------------------------
    # Phase 7-8: Firewall and Redis
    # ----------------------------------------------------------------
    async def phase_firewall(self) -> None:
        for port in self.config.FIREWALL_PORTS:
            await self.run(["ufw", "allow", f"{port}/tcp"])
            self.logger.info(f"Allowed TCP port {port}.")
        await self.run(["ufw", "--force", "enable"])

    async def phase_redis(self) -> None:
        await self.run(["systemctl", "enable", "redis-server"])
        await self.run(["systemctl", "start", "redis-server"])

    # ----------------------------------------------------------------
    # Phase 9-11: Application Files, Log Rotation, Monitoring
    # ----------------------------------------------------------------
    async def phase_app_files(self) -> None:
        self.emit(app_file_artifacts(), self.config.install_path)
        await self.hand_over_install_dir()

    async def phase_logrotate(self) -> None:
        self.emit([logrotate_artifact(self.config)], self.config.resolve("/"))

    async def phase_monitoring(self) -> None:
        self.emit(monitor_artifacts(), self.config.install_path)
        await self.hand_over_install_dir()

    # ----------------------------------------------------------------
    # Phase 12: Cron
    # ----------------------------------------------------------------
    async def phase_cron(self) -> List[str]:
        entries = self.config.cron_entries
        if self.config.DRY_RUN:
            for entry in entries:
                self.logger.info(f"[dry-run] crontab -u {self.config.USERNAME}: {entry}")
            return []
        return await register_cron_entries(self.config.USERNAME, entries)

    # ----------------------------------------------------------------
    # Phase 13: Summary
    # ----------------------------------------------------------------
    async def phase_final(self) -> None:
        elapsed = time.time() - self.start_time
        minutes, seconds = divmod(elapsed, 60)
        self.logger.info(f"Installation completed in {int(minutes)}m {int(seconds)}s.")

    def show_summary(self) -> None:
        display_panel(
            "✅ Installation completed!\n\n" + NEXT_STEPS,
            style=NordColors.GREEN,
            title="Success",
        )
        print_status_report()
