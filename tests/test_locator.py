"""Tests for DerivedData discovery."""

import errno
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from xctools import (
    DEFAULT_DERIVED_DATA,
    ENV_DERIVED_DATA,
    ArtifactsNotFoundError,
    ConfigurationError,
    find_derived_data_for_app,
    get_default_derived_data_base,
    get_derived_data_base,
    get_user_configured_derived_data_base,
)


def make_app_dir(base: Path, name: str, mtime: float) -> Path:
    path = base / name
    path.mkdir(parents=True)
    os.utime(path, (mtime, mtime))
    return path


class TestFindDerivedData:
    """Tests for find_derived_data_for_app()."""

    def test_finds_matching_folder(self, derived_data: Path):
        """The app's DerivedData folder is found."""
        result = find_derived_data_for_app("MyApp", derived_data=derived_data)
        assert result == derived_data / "MyApp-abcdefghijklmnop"

    def test_picks_most_recently_modified(self, tmp_path: Path):
        """The newest matching folder wins."""
        make_app_dir(tmp_path, "MyApp-old", 1_000_000)
        newest = make_app_dir(tmp_path, "MyApp-new", 3_000_000)
        make_app_dir(tmp_path, "MyApp-mid", 2_000_000)

        assert find_derived_data_for_app("MyApp", derived_data=tmp_path) == newest

    def test_ties_keep_path_order(self, tmp_path: Path):
        """Equal mtimes resolve to the first path."""
        first = make_app_dir(tmp_path, "MyApp-aaa", 1_000_000)
        make_app_dir(tmp_path, "MyApp-bbb", 1_000_000)

        assert find_derived_data_for_app("MyApp", derived_data=tmp_path) == first

    def test_ignores_files_and_other_apps(self, tmp_path: Path):
        """Files and other apps' folders are skipped."""
        (tmp_path / "MyApp-file").write_text("not a directory")
        make_app_dir(tmp_path, "MyAppExtras-123", 5_000_000)
        make_app_dir(tmp_path, "OtherApp-123", 5_000_000)
        expected = make_app_dir(tmp_path, "MyApp-123", 1_000_000)

        assert find_derived_data_for_app("MyApp", derived_data=tmp_path) == expected

    def test_no_match_raises(self, tmp_path: Path):
        """No matching folder is an error."""
        make_app_dir(tmp_path, "OtherApp-123", 1_000_000)
        with pytest.raises(ArtifactsNotFoundError, match="Could not find any"):
            find_derived_data_for_app("MyApp", derived_data=tmp_path)

    def test_missing_base_raises(self, tmp_path: Path):
        """A missing base directory is an error."""
        with pytest.raises(ArtifactsNotFoundError, match="build at least once"):
            find_derived_data_for_app(
                "MyApp", derived_data=tmp_path / "nonexistent"
            )

    def test_unreadable_mtime_sorts_last(self, tmp_path: Path):
        """A folder whose mtime cannot be read loses."""
        broken = make_app_dir(tmp_path, "MyApp-aaa", 9_000_000)
        readable = make_app_dir(tmp_path, "MyApp-bbb", 1_000_000)

        real_stat = Path.stat

        def flaky_stat(self, *args, **kwargs):
            if self == broken and not args and not kwargs:
                raise FileNotFoundError(errno.ENOENT, "vanished")
            return real_stat(self, *args, **kwargs)

        with patch.object(Path, "stat", flaky_stat):
            result = find_derived_data_for_app("MyApp", derived_data=tmp_path)
        assert result == readable


class TestDerivedDataBase:
    """Tests for base directory resolution."""

    def test_explicit_argument_wins(self, tmp_path: Path, monkeypatch, fake_runner):
        """An explicit base skips every other source."""
        monkeypatch.setenv(ENV_DERIVED_DATA, "/from/env")
        runner = fake_runner({"defaults": "/from/xcode\n"})

        assert get_derived_data_base(tmp_path, runner=runner) == tmp_path
        assert runner.calls == []

    def test_environment_variable(self, monkeypatch, fake_runner):
        """The environment variable beats the config."""
        monkeypatch.setenv(ENV_DERIVED_DATA, "/from/env")
        config = {"acknowledgements": {"derived_data": "/from/config"}}

        result = get_derived_data_base(config=config, runner=fake_runner())
        assert result == Path("/from/env")

    def test_config_value(self, fake_runner):
        """The config key is used when no override is set."""
        config = {"acknowledgements": {"derived_data": "/from/config"}}
        result = get_derived_data_base(config=config, runner=fake_runner())
        assert result == Path("/from/config")

    def test_blank_overrides_are_ignored(self, monkeypatch, fake_runner):
        """Blank overrides count as unset."""
        monkeypatch.setenv(ENV_DERIVED_DATA, "   ")
        runner = fake_runner({"defaults": "/from/xcode\n"})

        result = get_derived_data_base("", config={}, runner=runner)
        assert result == Path("/from/xcode")

    def test_xcode_preference(self, fake_runner):
        """Xcode's custom location preference is read."""
        runner = fake_runner({"defaults": "/Volumes/Fast/DerivedData\n"})
        result = get_derived_data_base(runner=runner)

        assert result == Path("/Volumes/Fast/DerivedData")
        assert runner.calls == [
            [
                "defaults",
                "read",
                "com.apple.dt.Xcode",
                "IDECustomDerivedDataLocation",
            ]
        ]

    def test_falls_back_to_home(self, tmp_path: Path, fake_runner):
        """Without a preference the home default is used."""
        with patch.object(Path, "home", return_value=tmp_path):
            result = get_derived_data_base(runner=fake_runner())
        assert result == tmp_path / DEFAULT_DERIVED_DATA

    def test_empty_preference_is_unset(self, tmp_path: Path, fake_runner):
        """An empty preference falls back to the home default."""
        runner = fake_runner({"defaults": "\n"})
        with patch.object(Path, "home", return_value=tmp_path):
            result = get_derived_data_base(runner=runner)
        assert result == tmp_path / "Library/Developer/Xcode/DerivedData"


class TestUserConfiguredBase:
    """Tests for reading Xcode's custom DerivedData preference."""

    def test_command_failure_returns_none(self, fake_runner):
        """A failing defaults command means no preference."""
        assert get_user_configured_derived_data_base(fake_runner()) is None

    def test_output_is_trimmed(self, fake_runner):
        """Surrounding whitespace is stripped."""
        runner = fake_runner({"defaults": "  /tmp/DD  \n"})
        assert get_user_configured_derived_data_base(runner) == Path("/tmp/DD")


class TestDefaultBase:
    """Tests for get_default_derived_data_base()."""

    def test_home_unavailable(self):
        """No home directory is a configuration error."""
        with patch.object(Path, "home", side_effect=RuntimeError("no home")):
            with pytest.raises(ConfigurationError, match="home directory"):
                get_default_derived_data_base()

    def test_unexpanded_home(self):
        """An unexpanded home directory is a configuration error."""
        with patch.object(Path, "home", return_value=Path("~")):
            with pytest.raises(ConfigurationError, match="home directory"):
                get_default_derived_data_base()

    def test_home_unavailable_with_override(self, tmp_path: Path):
        """An override means the home directory is never consulted."""
        with patch.object(Path, "home", side_effect=RuntimeError("no home")):
            assert get_derived_data_base(tmp_path) == tmp_path
