"""Unit tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from ops_workflow_engine.engine.config import WorkflowSettings
from ops_workflow_engine.server.config import ServerSettings

_ENV_VARS = (
    "JOBNIMBUS_BASE_URL",
    "JOBNIMBUS_API_KEY",
    "LOG_LEVEL",
    "WORKFLOW_STATE_PATH",
    "WORKFLOW_AUTOMATION_ENABLED",
    "WORKFLOW_AUTOMATION_DAILY_LIMIT",
    "WORKFLOW_AUTOMATION_HOUR",
    "ENABLE_PAYMENT_REMINDER_SMS",
    "WORKFLOW_CORS_ORIGINS",
)


@pytest.fixture
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults(clean_env: Path) -> None:
    settings = WorkflowSettings()

    assert settings.automation_enabled is False
    assert settings.daily_limit == 500
    assert settings.daily_run_hour == 4
    assert settings.payment_reminder_sms_enabled is False
    assert settings.jobnimbus_configured is False
    assert settings.state_path == Path("workflow_state")
    assert settings.action_log_file == Path("workflow_state") / "action_log.json"
    assert settings.job_state_file == Path("workflow_state") / "jobs.json"


def test_settings_load_from_dotenv(clean_env: Path) -> None:
    (clean_env / ".env").write_text(
        "\n".join(
            [
                "JOBNIMBUS_BASE_URL= https://app.jobnimbus.test/api1 ",
                "JOBNIMBUS_API_KEY=key-123",
                "LOG_LEVEL=DEBUG",
                "WORKFLOW_AUTOMATION_ENABLED=true",
                "WORKFLOW_AUTOMATION_DAILY_LIMIT=40",
                "ENABLE_PAYMENT_REMINDER_SMS=true",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = WorkflowSettings()

    assert settings.jobnimbus_base_url == "https://app.jobnimbus.test/api1"
    assert settings.jobnimbus_configured is True
    assert settings.log_level == "DEBUG"
    assert settings.automation_enabled is True
    assert settings.daily_limit == 40
    assert settings.payment_reminder_sms_enabled is True


def test_environment_overrides_dotenv(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (clean_env / ".env").write_text("WORKFLOW_AUTOMATION_DAILY_LIMIT=40\n", encoding="utf-8")
    monkeypatch.setenv("WORKFLOW_AUTOMATION_DAILY_LIMIT", "7")

    assert WorkflowSettings().daily_limit == 7


@pytest.mark.parametrize(
    ("name", "value"),
    [("WORKFLOW_AUTOMATION_DAILY_LIMIT", "0"), ("WORKFLOW_AUTOMATION_HOUR", "24")],
)
def test_invalid_values_are_rejected(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        WorkflowSettings()


def test_cors_origins_are_parsed(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORKFLOW_CORS_ORIGINS", "https://a.test, ,https://b.test")

    assert ServerSettings().parsed_cors_origins() == ["https://a.test", "https://b.test"]
