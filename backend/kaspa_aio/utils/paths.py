"""Project-root and well-known path resolution.

Priority order for the project root:
  1. ``PROJECT_ROOT`` (set by the install scripts and systemd units)
  2. The default installation directory, when it exists
  3. Walking up from the working directory looking for a marker file
  4. The default installation directory, even if it does not exist yet
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from kaspa_aio.config import Settings, settings

logger = logging.getLogger(__name__)

_MARKERS = ("docker-compose.yml", "install.sh", ".kaspa-aio")
_MAX_SEARCH_DEPTH = 10


@dataclass(frozen=True)
class ProjectPaths:
    root: Path
    env: Path
    docker_compose: Path
    state_dir: Path
    installation_state: Path
    wizard_state: Path
    config_history: Path
    backup_dir: Path
    diagnostics_dir: Path
    logs_dir: Path


def _find_marker_root(start: Path) -> Path | None:
    current = start.resolve()
    for _ in range(_MAX_SEARCH_DEPTH):
        if any((current / marker).exists() for marker in _MARKERS):
            return current
        if current.parent == current:
            break
        current = current.parent
    return None


def resolve_project_root(config: Settings = settings, cwd: Path | None = None) -> Path:
    """Return the absolute project root following the priority order above."""
    if config.project_root:
        return Path(config.project_root)

    default_dir = Path(config.default_install_dir)
    if default_dir.is_dir():
        return default_dir

    found = _find_marker_root(cwd or Path.cwd())
    if found is not None:
        return found

    logger.debug("No project marker found, falling back to %s", default_dir)
    return default_dir


def get_paths(config: Settings = settings, cwd: Path | None = None) -> ProjectPaths:
    """Common paths relative to the project root."""
    root = resolve_project_root(config, cwd)
    state_dir = root / ".kaspa-aio"
    return ProjectPaths(
        root=root,
        env=root / ".env",
        docker_compose=root / "docker-compose.yml",
        state_dir=state_dir,
        installation_state=root / config.state_file,
        wizard_state=state_dir / "wizard-state.json",
        config_history=state_dir / "config-history.json",
        backup_dir=root / ".kaspa-backups",
        diagnostics_dir=root / ".kaspa-diagnostics",
        logs_dir=root / "logs",
    )
