"""Tests for DotoringSettings — unified settings with TOML source."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from dotoring.config.settings import ConfigError, DotoringSettings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "DOTORING_CONFIG",
        "DOTORING_DATA_DIR",
        "DOTORING_NOTIFICATIONS__MAX_SCHEDULED",
        "DOTORING_IMAGES__BUCKET",
    ):
        monkeypatch.delenv(var, raising=False)


class TestDefaults:
    def test_all_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        settings = DotoringSettings.load(start=tmp_path)
        assert settings.config_path is None
        assert settings.data_dir == tmp_path / ".dotoring"
        assert settings.json_output is False
        assert settings.notifications.max_scheduled == 40
        assert settings.images.bucket == "coupon-images"

    def test_frozen(self, tmp_path: Path) -> None:
        settings = DotoringSettings.load(start=tmp_path)
        with pytest.raises(ValidationError):
            settings.verbose = True  # type: ignore[misc]


class TestTomlSource:
    def test_sparse_override(self, tmp_path: Path) -> None:
        toml = tmp_path / "dotoring.toml"
        toml.write_text('[notifications]\nmax_scheduled = 20\n[images]\nbucket = "imgs"\n')
        settings = DotoringSettings.load(start=tmp_path)
        assert settings.config_path == toml
        assert settings.notifications.max_scheduled == 20
        assert settings.notifications.trigger_hour == 9
        assert settings.images.bucket == "imgs"

    def test_explicit_config_path(self, tmp_path: Path) -> None:
        custom = tmp_path / "custom" / "my.toml"
        custom.parent.mkdir()
        custom.write_text('[backend]\nurl = "https://proj.example.co"\n')
        settings = DotoringSettings.load(config_path=str(custom))
        assert settings.backend.url == "https://proj.example.co"
        assert settings.config_path == custom

    def test_invalid_toml(self, tmp_path: Path) -> None:
        (tmp_path / "dotoring.toml").write_text("[notifications\n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            DotoringSettings.load(start=tmp_path)

    def test_invalid_value(self, tmp_path: Path) -> None:
        (tmp_path / "dotoring.toml").write_text("[notifications]\ntrigger_hour = 25\n")
        with pytest.raises(ValidationError):
            DotoringSettings.load(start=tmp_path)

    def test_unknown_timezone(self, tmp_path: Path) -> None:
        (tmp_path / "dotoring.toml").write_text('[notifications]\ntimezone = "Mars/Base"\n')
        with pytest.raises(ValidationError, match="IANA zone name"):
            DotoringSettings.load(start=tmp_path)


class TestPriority:
    def test_env_beats_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "dotoring.toml").write_text(
            "[notifications]\nmax_scheduled = 20\ntrigger_hour = 8\n"
        )
        monkeypatch.setenv("DOTORING_NOTIFICATIONS__MAX_SCHEDULED", "10")
        settings = DotoringSettings.load(start=tmp_path)
        assert settings.notifications.max_scheduled == 10
        assert settings.notifications.trigger_hour == 8

    def test_env_data_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOTORING_DATA_DIR", str(tmp_path / "state"))
        settings = DotoringSettings.load(start=tmp_path)
        assert settings.data_dir == tmp_path / "state"

    def test_overrides_beat_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOTORING_DATA_DIR", str(tmp_path / "env"))
        settings = DotoringSettings.load(
            start=tmp_path, data_dir=tmp_path / "flag", json_output=True
        )
        assert settings.data_dir == tmp_path / "flag"
        assert settings.json_output is True
