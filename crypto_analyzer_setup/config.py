# ----------------------------------------------------------------
# Dependencies and Imports
# ----------------------------------------------------------------
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union


def default_username() -> str:
    """Return the account that invoked the setup, even when run through sudo."""
    return os.environ.get("SUDO_USER") or os.environ.get("USER") or "root"


# ----------------------------------------------------------------
# Data Structures
# ----------------------------------------------------------------
@dataclass
class Config:
    """Configuration for the Crypto Analyzer server setup process."""

    LOG_FILE: str = "/var/log/crypto_analyzer_setup.log"
    USERNAME: str = field(default_factory=default_username)
    SERVICE_NAME: str = "crypto-analyzer"
    INSTALL_DIR: str = "/opt/crypto-analyzer"
    SYSTEMD_DIR: str = "/etc/systemd/system"
    LOGROTATE_DIR: str = "/etc/logrotate.d"
    STATUS_LOG: str = "/tmp/crypto-analyzer-status.log"

    # Prefix for every absolute output path; empty means the live system
    DESTDIR: str = ""
    DRY_RUN: bool = False

    APT_PACKAGES: List[str] = field(
        default_factory=lambda: [
            "curl",
            "wget",
            "git",
            "python3",
            "python3-pip",
            "python3-venv",
            "build-essential",
            "libssl-dev",
            "libffi-dev",
            "python3-dev",
            "nginx",
            "redis-server",
            "supervisor",
            "ufw",
            "certbot",
            "python3-certbot-nginx",
        ]
    )

    DOCKER_INSTALL_URL: str = "https://get.docker.com"
    COMPOSE_VERSION: str = "v2.21.0"
    COMPOSE_BINARY: str = "/usr/local/bin/docker-compose"
    NODE_SETUP_URL: str = "https://deb.nodesource.com/setup_18.x"

    APP_DIRECTORIES: List[str] = field(
        default_factory=lambda: ["static", "logs", "ssl", "public", "src"]
    )

    FIREWALL_PORTS: List[str] = field(default_factory=lambda: ["22", "80", "443"])

    @property
    def install_path(self) -> Path:
        return self.resolve(self.INSTALL_DIR)

    @property
    def unit_path(self) -> Path:
        return self.resolve(f"{self.SYSTEMD_DIR}/{self.SERVICE_NAME}.service")

    @property
    def logrotate_path(self) -> Path:
        return self.resolve(f"{self.LOGROTATE_DIR}/{self.SERVICE_NAME}")

    @property
    def cron_entries(self) -> List[str]:
        """Backup daily at 02:00 and a status snapshot every 5 minutes."""
        return [
            f"0 2 * * * {self.INSTALL_DIR}/backup.sh",
            f"*/5 * * * * {self.INSTALL_DIR}/monitor.sh > {self.STATUS_LOG} 2>&1",
        ]

    def compose_url(self, system: str, machine: str) -> str:
        """Release asset URL, named after `uname -s` and `uname -m`."""
        return (
            "https://github.com/docker/compose/releases/download/"
            f"{self.COMPOSE_VERSION}/docker-compose-{system}-{machine}"
        )

    def resolve(self, path: Union[str, Path]) -> Path:
        """Place an absolute system path under DESTDIR."""
        path = Path(path)
        if not self.DESTDIR:
            return path
        return Path(self.DESTDIR) / path.relative_to(path.anchor)
