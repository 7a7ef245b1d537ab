from __future__ import annotations

import io
import logging

import pytest
from rich.console import Console

from devloop.shared.exceptions import ConfigError, SupervisorClosedError
from devloop.utils.console import DevConsole


@pytest.fixture
def logger():
    logger = logging.getLogger("devloop.tests.console")
    logger.setLevel(logging.WARNING)
    return logger


@pytest.fixture
def buffers(logger):
    """A DevConsole whose stdout/stderr consoles write into StringIO buffers."""
    design = DevConsole(logger=logger)
    out, err = io.StringIO(), io.StringIO()
    design._stdout_console = Console(file=out, width=120, color_system=None)
    design._stderr_console = Console(file=err, width=120, color_system=None)
    return design, out, err


def test_output_goes_to_stderr_by_default(buffers):
    design, out, err = buffers
    design.info("Watching src")
    design.warning("Lost a root")
    design.command(["cargo", "run"])

    assert out.getvalue() == ""
    text = err.getvalue()
    assert "Watching src" in text
    assert "Lost a root" in text
    assert "$ cargo run" in text


def test_stdout_when_requested(buffers):
    design, out, err = buffers
    design.info("done", stderr=False)
    assert "done" in out.getvalue()
    assert err.getvalue() == ""


def test_markup_in_messages_is_escaped(buffers):
    design, _, err = buffers
    design.info("file [bold]x[/bold].rs changed")
    assert "file [bold]x[/bold].rs changed" in err.getvalue()


def test_render_exception_includes_hints(buffers):
    design, _, err = buffers
    design.render_exception(ConfigError("Watch root does not exist: src"))

    text = err.getvalue()
    assert "ConfigError: Watch root does not exist: src" in text
    assert "Invalid configuration" in text
    assert "devloop run --watch src" in text


def test_render_exception_without_message(buffers):
    design, _, err = buffers
    design.render_exception(SupervisorClosedError())
    assert "SupervisorClosedError: SupervisorClosedError" in err.getvalue()


def test_key_value_table(buffers):
    design, _, err = buffers
    design.key_value_table({"Watching": "/proj/src", "Debounce": "200ms"})
    text = err.getvalue()
    assert "Watching" in text
    assert "/proj/src" in text
    assert "200ms" in text


def test_debug_log_respects_level(buffers, logger):
    design, _, err = buffers
    design.debug_log("hidden detail")
    assert "hidden detail" not in err.getvalue()

    design.set_verbose(True)
    design.debug_log("shown detail")
    assert "shown detail" in err.getvalue()
    assert logger.level == logging.DEBUG

    design.set_verbose(False)
    assert logger.level == logging.WARNING
