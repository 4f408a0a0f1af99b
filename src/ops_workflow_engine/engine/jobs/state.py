"""Read-only access to current job state for rule conditions.

The engine never writes job data. The host application owns it and exposes it
through :class:`JobStateReader`. :class:`JsonJobStateStore` is the local-first
implementation: a single `jobs.json` document kept up to date by the host
(e.g. a CRM sync job).
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Protocol

from pydantic import AfterValidator, BaseModel, Field

logger = logging.getLogger(__name__)

INACTIVE_JOB_STATUSES: frozenset[str] = frozenset({"CANCELLED", "COMPLETE"})


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class JobSnapshot(BaseModel):
    id: str
    jobnimbus_id: str | None = None
    status: str
    customer_name: str | None = None
    updated_at: UtcDatetime


class MissingPhotoCategory(BaseModel):
    category: str
    required: int
    actual: int


class QcPhotoCheck(BaseModel):
    job_id: str
    status: str
    missing_categories: list[MissingPhotoCategory] = Field(default_factory=list)
    created_at: UtcDatetime


class MaterialOrder(BaseModel):
    job_id: str
    material_name: str
    supplier_name: str
    status: str
    expected_delivery_date: UtcDatetime | None = None
    actual_delivery_date: UtcDatetime | None = None


class Subcontractor(BaseModel):
    id: str
    name: str
    license_expires_at: UtcDatetime | None = None
    insurance_expires_at: UtcDatetime | None = None
    w9_received: bool = False
    coi_received: bool = False


class SubcontractorAssignment(BaseModel):
    job_id: str
    subcontractor: Subcontractor
    assigned_at: UtcDatetime | None = None
    unassigned_at: UtcDatetime | None = None


class SafetyIncident(BaseModel):
    id: str
    job_id: str
    type: str
    severity: str
    status: str
    occurred_at: UtcDatetime


class Warranty(BaseModel):
    job_id: str
    type: str
    status: str
    end_date: UtcDatetime


class FinancialSnapshot(BaseModel):
    job_id: str
    contract_amount: float | None = None
    margin_percent: float | None = None
    margin_amount: float | None = None
    accounting_source: str | None = None
    ar_status: str | None = None
    amount_outstanding: float | None = None
    invoice_due_date: UtcDatetime | None = None


class RiskSnapshot(BaseModel):
    job_id: str
    risk_level: str


class JobStateDocument(BaseModel):
    """Everything the rule conditions read, keyed by job id inside each record."""

    jobs: list[JobSnapshot] = Field(default_factory=list)
    qc_checks: list[QcPhotoCheck] = Field(default_factory=list)
    material_orders: list[MaterialOrder] = Field(default_factory=list)
    subcontractor_assignments: list[SubcontractorAssignment] = Field(default_factory=list)
    safety_incidents: list[SafetyIncident] = Field(default_factory=list)
    warranties: list[Warranty] = Field(default_factory=list)
    financial_snapshots: list[FinancialSnapshot] = Field(default_factory=list)
    risk_snapshots: list[RiskSnapshot] = Field(default_factory=list)


class JobStateReader(Protocol):
    """Read-only job state needed by rule conditions."""

    def get_job(self, job_id: str) -> JobSnapshot | None: ...

    def list_active_jobs(self, limit: int) -> list[JobSnapshot]: ...

    def latest_qc_check(self, job_id: str) -> QcPhotoCheck | None: ...

    def material_orders(self, job_id: str) -> list[MaterialOrder]: ...

    def subcontractor_assignments(self, job_id: str) -> list[SubcontractorAssignment]: ...

    def safety_incidents(self, job_id: str) -> list[SafetyIncident]: ...

    def active_warranty(self, job_id: str) -> Warranty | None: ...

    def financial_snapshot(self, job_id: str) -> FinancialSnapshot | None: ...

    def risk_snapshot(self, job_id: str) -> RiskSnapshot | None: ...


class JsonJobStateStore:
    """JSON-file backed :class:`JobStateReader`.

    The document is re-read on every call so rules always see the latest state
    written by the host.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> JobStateDocument:
        if not self._path.exists():
            return JobStateDocument()

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning(
                "Job state file is not valid JSON; treating as empty",
                extra={"path": str(self._path)},
            )
            return JobStateDocument()

        if not isinstance(raw, dict):
            logger.warning(
                "Job state file has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return JobStateDocument()

        return JobStateDocument.model_validate(raw)

    def save(self, document: JobStateDocument) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(document.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )

    def get_job(self, job_id: str) -> JobSnapshot | None:
        for job in self.load().jobs:
            if job.id == job_id:
                return job
        return None

    def list_active_jobs(self, limit: int) -> list[JobSnapshot]:
        active = [j for j in self.load().jobs if j.status not in INACTIVE_JOB_STATUSES]
        active.sort(key=lambda j: j.updated_at, reverse=True)
        return active[:limit]

    def latest_qc_check(self, job_id: str) -> QcPhotoCheck | None:
        checks = [c for c in self.load().qc_checks if c.job_id == job_id]
        if not checks:
            return None
        return max(checks, key=lambda c: c.created_at)

    def material_orders(self, job_id: str) -> list[MaterialOrder]:
        return [m for m in self.load().material_orders if m.job_id == job_id]

    def subcontractor_assignments(self, job_id: str) -> list[SubcontractorAssignment]:
        return [
            a
            for a in self.load().subcontractor_assignments
            if a.job_id == job_id and a.unassigned_at is None
        ]

    def safety_incidents(self, job_id: str) -> list[SafetyIncident]:
        incidents = [i for i in self.load().safety_incidents if i.job_id == job_id]
        incidents.sort(key=lambda i: i.occurred_at, reverse=True)
        return incidents

    def active_warranty(self, job_id: str) -> Warranty | None:
        for warranty in self.load().warranties:
            if warranty.job_id == job_id and warranty.status == "ACTIVE":
                return warranty
        return None

    def financial_snapshot(self, job_id: str) -> FinancialSnapshot | None:
        for snapshot in self.load().financial_snapshots:
            if snapshot.job_id == job_id:
                return snapshot
        return None

    def risk_snapshot(self, job_id: str) -> RiskSnapshot | None:
        for snapshot in self.load().risk_snapshots:
            if snapshot.job_id == job_id:
                return snapshot
        return None
