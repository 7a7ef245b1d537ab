from __future__ import annotations

import signal
from unittest.mock import MagicMock

from devloop.shared.exceptions import (
    ChildExitError,
    ConfigError,
    DevloopException,
    SpawnError,
    SupervisorClosedError,
    TerminationTimeoutError,
    WatchError,
)
from devloop.shared.hints import (
    INVALID_CONFIG,
    SPAWN_FAILED,
    WATCH_FAILED,
    Hint,
    render_hints,
)
from devloop.types import ExitStatus


def test_all_hint_constants():
    for hint in [INVALID_CONFIG, WATCH_FAILED, SPAWN_FAILED]:
        assert hint.title
        assert hint.message
        assert hint.code
        assert hint.tips


class TestExceptions:
    def test_default_hints_per_class(self):
        assert ConfigError("bad").hints == [INVALID_CONFIG]
        assert WatchError("lost").hints == [WATCH_FAILED]
        assert SpawnError("missing").hints == [SPAWN_FAILED]
        assert SupervisorClosedError().hints == []

    def test_default_hints_are_not_shared(self):
        error = ConfigError("bad")
        error.hints.append(WATCH_FAILED)
        assert ConfigError("again").hints == [INVALID_CONFIG]

    def test_explicit_hints_override_defaults(self):
        custom = Hint(title="Custom", message="Something else")
        assert ConfigError("bad", hints=[custom]).hints == [custom]

    def test_str_falls_back_to_class_name(self):
        assert str(DevloopException()) == "DevloopException"
        assert str(ConfigError("Watch root does not exist: src")) == (
            "Watch root does not exist: src"
        )

    def test_watch_error_carries_root_and_fatality(self):
        error = WatchError("gone", root="/proj/src")
        assert error.root == "/proj/src"
        assert not error.fatal
        assert WatchError("dead", fatal=True).fatal

    def test_spawn_error_keeps_command(self):
        error = SpawnError("nope", command=("cargo", "run"))
        assert error.command == ["cargo", "run"]
        assert SpawnError("nope").command == []

    def test_child_exit_error_describes_status(self):
        error = ChildExitError(ExitStatus(returncode=101), command=["cargo", "run"])
        assert str(error) == "Process exited with code 101"
        assert error.status.returncode == 101
        assert error.hints == []

        killed = ChildExitError(ExitStatus(returncode=None, signal=signal.SIGKILL, forced=True))
        assert str(killed) == "Process killed by SIGKILL (forced)"

    def test_termination_timeout_message(self):
        error = TerminationTimeoutError(1234, 5.0)
        assert str(error) == "Process 1234 did not exit within 5s, forcing"
        assert error.pid == 1234


class TestRenderHints:
    def test_renders_title_tips_and_examples(self):
        design = MagicMock()
        render_hints([INVALID_CONFIG], design=design)

        design.warning.assert_called_once_with(
            f"{INVALID_CONFIG.title}: {INVALID_CONFIG.message}"
        )
        assert design.info.call_count == len(INVALID_CONFIG.tips)
        design.command_example.assert_called_once_with(INVALID_CONFIG.command_examples[0])

    def test_title_equal_to_message_is_not_repeated(self):
        design = MagicMock()
        render_hints([Hint(title="Same", message="Same")], design=design)
        design.warning.assert_called_once_with("Same")

    def test_nothing_to_render(self):
        design = MagicMock()
        render_hints(None, design=design)
        render_hints([], design=design)
        assert not design.method_calls

    def test_failing_hint_does_not_stop_the_rest(self, caplog):
        design = MagicMock()
        design.warning.side_effect = [RuntimeError("broken terminal"), None]
        render_hints([WATCH_FAILED, SPAWN_FAILED], design=design)

        assert design.warning.call_count == 2
        assert "Failed to render hint" in caplog.text
