"""Tests for XDG path resolution."""

from pathlib import Path

from rtbackup import paths


class TestXdgPaths:
    def test_env_overrides(self, tmp_path):
        # XDG_* point inside tmp_path (conftest.isolated_xdg)
        assert paths.config_file() == tmp_path / "xdg-config" / "rtbackup" / "config.toml"
        assert paths.adapters_dir() == tmp_path / "xdg-config" / "rtbackup" / "adapters"
        assert paths.exports_dir() == tmp_path / "xdg-data" / "rtbackup" / "exports"
        assert paths.mounts_dir() == tmp_path / "xdg-state" / "rtbackup" / "mounts"

    def test_defaults_under_home(self, monkeypatch):
        for var in ("XDG_CONFIG_HOME", "XDG_DATA_HOME", "XDG_STATE_HOME"):
            monkeypatch.delenv(var, raising=False)
        home = Path("~").expanduser()

        assert paths.config_dir() == home / ".config" / "rtbackup"
        assert paths.data_dir() == home / ".local" / "share" / "rtbackup"
        assert paths.state_dir() == home / ".local" / "state" / "rtbackup"

    def test_lookups_create_nothing(self, tmp_path):
        paths.config_file()
        paths.exports_dir()
        paths.mounts_dir()

        assert not (tmp_path / "xdg-config").exists()
        assert not (tmp_path / "xdg-data").exists()
        assert not (tmp_path / "xdg-state").exists()
