# ----------------------------------------------------------------
# File Emission
# ----------------------------------------------------------------
import os
from pathlib import Path
from typing import Iterable, List

from crypto_analyzer_setup.config import Config
from crypto_analyzer_setup.log import get_logger
from crypto_analyzer_setup.templates import (
    Artifact,
    app_artifacts,
    system_artifacts,
)


def ensure_directories(config: Config) -> List[Path]:
    """Create the install root and its fixed sub-directories."""
    root = config.install_path
    created = []
    for path in [root] + [root / name for name in config.APP_DIRECTORIES]:
        path.mkdir(parents=True, exist_ok=True)
        created.append(path)
    return created


def write_artifact(artifact: Artifact, base: Path) -> Path:
    """Write one artifact below base, replacing whatever was there."""
    logger = get_logger()
    target = base / artifact.path.lstrip("/")
    target.parent.mkdir(parents=True, exist_ok=True)

    with open(target, "w", encoding="utf-8", newline="") as f:
        f.write(artifact.content)
    os.chmod(target, artifact.mode)

    logger.debug(f"Wrote {target} ({oct(artifact.mode)})")
    return target


def write_artifacts(artifacts: Iterable[Artifact], base: Path) -> List[Path]:
    return [write_artifact(artifact, base) for artifact in artifacts]


def write_app_artifacts(config: Config) -> List[Path]:
    return write_artifacts(app_artifacts(), config.install_path)


def write_system_artifacts(config: Config) -> List[Path]:
    return write_artifacts(system_artifacts(config), config.resolve("/"))
