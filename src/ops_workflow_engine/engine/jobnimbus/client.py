"""JobNimbus REST client.

Wraps the two JobNimbus operations the workflow engine needs (tasks and notes)
so HTTP details stay out of rule code and tests can substitute a mock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

import requests

logger = logging.getLogger(__name__)


class JobNimbusError(Exception):
    """A JobNimbus API call failed.

    `code` is `HTTP_<status>` when the API answered, `NO_RESPONSE` when the
    request never got an answer and `REQUEST_SETUP_ERROR` otherwise.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str,
        status_code: int | None = None,
        details: object = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.details = details

    @classmethod
    def from_request_exception(cls, error: requests.RequestException) -> JobNimbusError:
        response = error.response
        if response is not None:
            details: object
            try:
                details = response.json()
            except ValueError:
                details = response.text
            message = str(error)
            if isinstance(details, dict) and isinstance(details.get("message"), str):
                message = details["message"]
            return cls(
                message,
                code=f"HTTP_{response.status_code}",
                status_code=response.status_code,
                details=details,
            )
        if isinstance(error, (requests.ConnectionError, requests.Timeout)):
            return cls("No response from JobNimbus API", code="NO_RESPONSE")
        return cls(str(error), code="REQUEST_SETUP_ERROR")

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in {401, 403}

    @property
    def is_rate_limit_error(self) -> bool:
        return self.status_code == 429

    @property
    def is_network_error(self) -> bool:
        return self.code in {"NO_RESPONSE", "REQUEST_SETUP_ERROR"}


@dataclass(frozen=True, slots=True)
class CreatedRecord:
    """Minimal metadata returned when JobNimbus creates a task or note."""

    id: str


class JobNimbusClient:
    """Small wrapper around the JobNimbus REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("JobNimbus base URL is required")
        if not api_key:
            raise ValueError("JobNimbus API key is required")

        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": "ops-workflow-engine",
            }
        )
        # Never log the key itself.
        logger.info("JobNimbus client initialized", extra={"base_url": self._base_url})

    @property
    def base_url(self) -> str:
        return self._base_url

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            resp = self._session.post(url, json=payload, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            error = JobNimbusError.from_request_exception(e)
            logger.error(
                "JobNimbus request failed",
                extra={"path": path, "code": error.code, "status_code": error.status_code},
            )
            raise error from e
        data = resp.json()
        if not isinstance(data, dict):
            raise JobNimbusError("Unexpected JobNimbus response shape", code="BAD_RESPONSE")
        return data

    def create_task(
        self,
        record_id: str,
        *,
        title: str,
        description: str = "",
        due_date: date | None = None,
    ) -> CreatedRecord:
        payload: dict[str, Any] = {
            "title": title,
            "record_id": record_id,
            "record_type": "job",
        }
        if description:
            payload["description"] = description
        if due_date is not None:
            payload["due_date"] = due_date.isoformat()

        data = self._post("/tasks", payload)
        created = CreatedRecord(id=str(data.get("jnid", "")))
        logger.debug("Created JobNimbus task", extra={"record_id": record_id, "jnid": created.id})
        return created

    def create_note(self, record_id: str, *, text: str, created_by: str = "system") -> CreatedRecord:
        payload = {
            "note": text,
            "record_id": record_id,
            "record_type": "job",
            "created_by": created_by,
        }
        data = self._post("/notes", payload)
        created = CreatedRecord(id=str(data.get("jnid", "")))
        logger.debug("Created JobNimbus note", extra={"record_id": record_id, "jnid": created.id})
        return created

    def close(self) -> None:
        self._session.close()
