"""Tests for project-root and well-known path resolution."""

from kaspa_aio.config import Settings
from kaspa_aio.state.backends import FileBackend
from kaspa_aio.state.store import StateStore
from kaspa_aio.utils.paths import get_paths, resolve_project_root


def make_settings(tmp_path, **overrides) -> Settings:
    values = {"project_root": None, "default_install_dir": str(tmp_path / "missing-install-dir")}
    values.update(overrides)
    return Settings(**values)


def test_project_root_setting_wins(tmp_path):
    config = make_settings(tmp_path, project_root=str(tmp_path / "explicit"))
    assert resolve_project_root(config, cwd=tmp_path) == tmp_path / "explicit"


def test_existing_default_install_dir(tmp_path):
    install_dir = tmp_path / "opt" / "kaspa-aio"
    install_dir.mkdir(parents=True)
    config = make_settings(tmp_path, default_install_dir=str(install_dir))

    assert resolve_project_root(config, cwd=tmp_path) == install_dir


def test_marker_search_walks_up(tmp_path):
    root = tmp_path / "kaspa-aio"
    nested = root / "services" / "dashboard" / "lib"
    nested.mkdir(parents=True)
    (root / "docker-compose.yml").write_text("services: {}\n")

    assert resolve_project_root(make_settings(tmp_path), cwd=nested) == root.resolve()


def test_falls_back_to_default_install_dir(tmp_path):
    config = make_settings(tmp_path)
    assert resolve_project_root(config, cwd=tmp_path) == tmp_path / "missing-install-dir"


def test_well_known_paths(tmp_path):
    paths = get_paths(make_settings(tmp_path, project_root=str(tmp_path)))

    assert paths.installation_state == tmp_path / ".kaspa-aio" / "installation-state.json"
    assert paths.env == tmp_path / ".env"
    assert paths.docker_compose == tmp_path / "docker-compose.yml"
    assert paths.wizard_state.parent == paths.state_dir


def test_store_from_settings_uses_state_file(tmp_path):
    store = StateStore.from_settings(make_settings(tmp_path, project_root=str(tmp_path)))

    assert isinstance(store.backend, FileBackend)
    assert store.backend.path == tmp_path / ".kaspa-aio" / "installation-state.json"
