"""Unit tests for the JobNimbus REST client."""

from __future__ import annotations

import json
from datetime import date
from unittest.mock import Mock

import pytest
import requests

from ops_workflow_engine.engine.jobnimbus.client import JobNimbusClient, JobNimbusError


def _response(status_code: int, body: object) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    resp.url = "https://app.jobnimbus.test/api1/tasks"
    resp._content = json.dumps(body).encode("utf-8")
    return resp


def _client(post: Mock) -> JobNimbusClient:
    session = requests.Session()
    session.post = post  # type: ignore[method-assign]
    return JobNimbusClient(
        base_url="https://app.jobnimbus.test/api1/", api_key="secret", session=session
    )


def test_requires_credentials() -> None:
    with pytest.raises(ValueError):
        JobNimbusClient(base_url="", api_key="k")
    with pytest.raises(ValueError):
        JobNimbusClient(base_url="https://x", api_key="")


def test_sets_auth_header() -> None:
    client = _client(Mock())

    assert client._session.headers["Authorization"] == "Bearer secret"
    assert client.base_url == "https://app.jobnimbus.test/api1"


def test_create_task_payload() -> None:
    post = Mock(return_value=_response(200, {"jnid": "task-9"}))
    client = _client(post)

    created = client.create_task(
        "jn-1", title="Follow up", description="Call them", due_date=date(2025, 6, 4)
    )

    assert created.id == "task-9"
    post.assert_called_once_with(
        "https://app.jobnimbus.test/api1/tasks",
        json={
            "title": "Follow up",
            "record_id": "jn-1",
            "record_type": "job",
            "description": "Call them",
            "due_date": "2025-06-04",
        },
        timeout=30.0,
    )


def test_create_note_payload() -> None:
    post = Mock(return_value=_response(200, {"jnid": "note-1"}))
    client = _client(post)

    created = client.create_note("jn-1", text="Heads up")

    assert created.id == "note-1"
    assert post.call_args.kwargs["json"] == {
        "note": "Heads up",
        "record_id": "jn-1",
        "record_type": "job",
        "created_by": "system",
    }


@pytest.mark.parametrize(
    ("status", "auth", "rate_limited"),
    [(401, True, False), (403, True, False), (429, False, True), (404, False, False)],
)
def test_http_errors_are_classified(status: int, auth: bool, rate_limited: bool) -> None:
    client = _client(Mock(return_value=_response(status, {"message": "nope"})))

    with pytest.raises(JobNimbusError) as exc_info:
        client.create_note("jn-1", text="x")

    error = exc_info.value
    assert error.code == f"HTTP_{status}"
    assert error.status_code == status
    assert str(error) == "nope"
    assert error.is_auth_error is auth
    assert error.is_rate_limit_error is rate_limited
    assert not error.is_network_error


def test_connection_error_is_no_response() -> None:
    client = _client(Mock(side_effect=requests.ConnectionError("refused")))

    with pytest.raises(JobNimbusError) as exc_info:
        client.create_task("jn-1", title="x")

    assert exc_info.value.code == "NO_RESPONSE"
    assert exc_info.value.status_code is None
    assert exc_info.value.is_network_error


def test_non_object_response_is_rejected() -> None:
    client = _client(Mock(return_value=_response(200, ["unexpected"])))

    with pytest.raises(JobNimbusError) as exc_info:
        client.create_task("jn-1", title="x")

    assert exc_info.value.code == "BAD_RESPONSE"
