import pytest
from pydantic import ValidationError

from task_engine.config import DEFAULT_GENERATOR, AgentOptions, parse_defines

# ---------------------------------------------------------------------------
# AgentOptions
# ---------------------------------------------------------------------------


@pytest.fixture
def clean_env(monkeypatch):
    import os

    for key in list(os.environ):
        if key.startswith("TASK_ENGINE_"):
            monkeypatch.delenv(key)
    return monkeypatch


def test_defaults(clean_env):
    options = AgentOptions.from_env()
    assert options.generator == DEFAULT_GENERATOR
    assert options.max_iterations == 0
    assert options.max_history == 50
    assert options.force_format is False
    assert options.variables == {}


def test_from_env(clean_env):
    clean_env.setenv("TASK_ENGINE_GENERATOR", "openai://gpt-4o")
    clean_env.setenv("TASK_ENGINE_MAX_ITERATIONS", "25")
    clean_env.setenv("TASK_ENGINE_FORCE_FORMAT", "true")
    clean_env.setenv("TASK_ENGINE_SAVE_TO", "/tmp/run.json")
    clean_env.setenv("TASK_ENGINE_VAR_HTTP_TARGET", "10.0.0.5")

    options = AgentOptions.from_env()

    assert options.generator == "openai://gpt-4o"
    assert options.max_iterations == 25
    assert options.force_format is True
    assert options.save_to == "/tmp/run.json"
    assert options.variables == {"HTTP_TARGET": "10.0.0.5"}


def test_negative_budget_rejected():
    with pytest.raises(ValidationError):
        AgentOptions(max_iterations=-1)


# ---------------------------------------------------------------------------
# parse_defines
# ---------------------------------------------------------------------------


def test_parse_defines():
    assert parse_defines(["HTTP_TARGET=localhost:8080", "TOKEN=a=b", "EMPTY="]) == {
        "HTTP_TARGET": "localhost:8080",
        "TOKEN": "a=b",
        "EMPTY": "",
    }


@pytest.mark.parametrize("define", ["NOVALUE", "=value", "  =x"])
def test_parse_defines_rejects_malformed(define):
    with pytest.raises(ValueError, match="expected KEY=VALUE"):
        parse_defines([define])


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def test_configure_logging_filters_by_level(capsys):
    import structlog

    from task_engine.log import configure_logging

    configure_logging("error")
    logger = structlog.get_logger()
    logger.info("hidden_event")
    logger.error("shown_event", step=3)

    out = capsys.readouterr().out
    assert "hidden_event" not in out
    assert "shown_event" in out

    configure_logging("WARNING")
