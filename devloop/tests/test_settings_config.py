from __future__ import annotations

import signal

import pytest

from devloop.config import load_specs, split_extensions
from devloop.settings import Settings, get_settings
from devloop.shared.exceptions import ConfigError


@pytest.fixture
def project(tmp_path, monkeypatch):
    """An isolated project directory without a .env and DEVLOOP_* vars."""
    root = tmp_path.resolve()
    for name in (
        "DEVLOOP_DEBOUNCE_MS",
        "DEVLOOP_GRACE_PERIOD",
        "DEVLOOP_STOP_SIGNAL",
        "DEVLOOP_IGNORE",
        "DEVLOOP_POLL_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(root)
    (root / "src").mkdir()
    return root


class TestSettings:
    def test_defaults(self, project):
        settings = Settings()
        assert settings.debounce_ms == 200
        assert settings.grace_period == 5.0
        assert settings.stop_signal == "SIGTERM"
        assert settings.poll_interval == 0.2
        assert ".git" in settings.ignore_patterns

    def test_environment_overrides(self, project, monkeypatch):
        monkeypatch.setenv("DEVLOOP_DEBOUNCE_MS", "50")
        monkeypatch.setenv("DEVLOOP_GRACE_PERIOD", "1.5")
        monkeypatch.setenv("DEVLOOP_STOP_SIGNAL", "SIGINT")
        monkeypatch.setenv("DEVLOOP_IGNORE", "target, .git")

        settings = Settings()
        assert settings.debounce_ms == 50
        assert settings.grace_period == 1.5
        assert settings.stop_signal == "SIGINT"
        assert settings.ignore_patterns == ["target", ".git"]

    def test_dotenv_file(self, project):
        (project / ".env").write_text("DEVLOOP_DEBOUNCE_MS=75\nUNRELATED=1\n")
        assert Settings().debounce_ms == 75

    def test_get_settings_returns_singleton(self):
        assert get_settings() is get_settings()


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        (None, []),
        (["rs,html", "css"], ["rs", "html", "css"]),
        (["rs, html ,"], ["rs", "html"]),
        (["."], ["."]),
    ],
)
def test_split_extensions(values, expected):
    assert split_extensions(values) == expected


class TestLoadSpecs:
    def test_options_win_over_settings(self, project):
        settings = Settings(DEVLOOP_DEBOUNCE_MS=500, DEVLOOP_GRACE_PERIOD=9)
        watch, run = load_specs(
            ["cargo", "run"],
            watch=["src"],
            exts=["rs,html"],
            debounce_ms=100,
            grace_period=2.0,
            stop_signal="INT",
            settings=settings,
        )

        assert watch.roots == (project / "src",)
        assert watch.extensions == {"rs", "html"}
        assert watch.debounce == pytest.approx(0.1)
        assert run.command == ("cargo", "run")
        assert run.grace_period == 2.0
        assert run.stop_signal == signal.SIGINT

    def test_settings_fill_gaps(self, project):
        settings = Settings(DEVLOOP_DEBOUNCE_MS=300, DEVLOOP_STOP_SIGNAL="HUP")
        watch, run = load_specs(["make"], exts=["c"], settings=settings)

        assert watch.roots == (project,)
        assert watch.debounce == pytest.approx(0.3)
        assert run.grace_period == 5.0
        assert run.stop_signal == signal.SIGHUP

    def test_ignore_patterns_merge(self, project):
        settings = Settings(DEVLOOP_IGNORE=".git")
        watch, _ = load_specs(["make"], exts=["c"], ignore=["build"], settings=settings)
        assert watch.ignore_patterns == (".git", "build")

        watch, _ = load_specs(
            ["make"], exts=["c"], ignore=["build"], use_default_ignore=False, settings=settings
        )
        assert watch.ignore_patterns == ("build",)

    def test_missing_extensions(self, project):
        with pytest.raises(ConfigError, match="extension"):
            load_specs(["make"], exts=None, settings=Settings())

    def test_missing_root(self, project):
        with pytest.raises(ConfigError, match="does not exist"):
            load_specs(["make"], watch=["nope"], exts=["c"], settings=Settings())

    def test_bad_signal(self, project):
        with pytest.raises(ConfigError, match="Unknown signal"):
            load_specs(["make"], exts=["c"], stop_signal="SIGNOPE", settings=Settings())

    def test_type_errors_become_config_errors(self, project):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_specs(["make"], exts=["c"], grace_period="soon", settings=Settings())
