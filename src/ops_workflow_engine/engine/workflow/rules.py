"""Built-in workflow rules.

Each rule pairs a read-only condition with an effect. Conditions return a
:class:`RuleMatch` carrying the facts the effect needs; effects create the
JobNimbus tasks/notes or customer messages and describe what to log.

All rules require the job to be linked to a JobNimbus record.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import cast

from ops_workflow_engine.engine.jobs.state import (
    JobSnapshot,
    MaterialOrder,
    MissingPhotoCategory,
    SafetyIncident,
    Subcontractor,
    SubcontractorAssignment,
    Warranty,
)
from ops_workflow_engine.engine.notifications.outbox import CustomerMessage

from .action_log import ActionType
from .models import Department, RuleContext, RuleEffect, RuleMatch, WorkflowRule
from .registry import RuleRegistry

logger = logging.getLogger(__name__)

ESTIMATE_STATUSES = frozenset({"QUALIFIED", "DESIGN", "SITE_SURVEY"})
CONTRACT_REQUIRED_STATUSES = frozenset(
    {"APPROVED", "SCHEDULED", "IN_PROGRESS", "INSPECTION", "COMPLETE"}
)
PENDING_MATERIAL_STATUSES = frozenset({"ORDERED", "SHIPPED"})
OPEN_INCIDENT_STATUSES = frozenset({"OPEN", "UNDER_REVIEW"})
SEVERITY_RANK = {"HIGH": 1, "CRITICAL": 2}

ESTIMATE_STALE_HOURS = 72
LOW_MARGIN_PERCENT = 10.0
WARRANTY_WINDOW_DAYS = 30
MIN_DAYS_OVERDUE = 7


def _linked_job(ctx: RuleContext, job_id: str) -> JobSnapshot | None:
    job = ctx.jobs.get_job(job_id)
    if job is None or not job.jobnimbus_id:
        return None
    return job


def _format_currency(amount: float) -> str:
    return f"${amount:,.0f}"


def _format_long_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


# ---------------------------------------------------------------------------
# SALES
# ---------------------------------------------------------------------------


def sales_estimate_followup_condition(ctx: RuleContext, job_id: str) -> RuleMatch | None:
    job = _linked_job(ctx, job_id)
    if job is None or job.status not in ESTIMATE_STATUSES:
        return None

    hours_since_update = (ctx.now - job.updated_at) / timedelta(hours=1)
    if hours_since_update < ESTIMATE_STALE_HOURS:
        return None
    return RuleMatch(job=job, facts={"hours_since_update": int(hours_since_update)})


def sales_estimate_followup_effect(ctx: RuleContext, match: RuleMatch) -> RuleEffect:
    hours = cast(int, match.facts["hours_since_update"])
    ctx.dispatcher.create_external_task(
        match.target_id,
        "Sales Follow-up Needed",
        f"This estimate has had no activity for {hours} hours. Please follow up with customer.",
        due_in_days=2,
    )
    return RuleEffect(
        action_type=ActionType.EXTERNAL_TASK,
        metadata={"hoursSinceUpdate": hours, "status": match.job.status},
    )


# ---------------------------------------------------------------------------
# PRODUCTION
# ---------------------------------------------------------------------------


def qc_fail_photos_condition(ctx: RuleContext, job_id: str) -> RuleMatch | None:
    job = _linked_job(ctx, job_id)
    if job is None:
        return None

    check = ctx.jobs.latest_qc_check(job_id)
    if check is None or check.status != "FAIL" or not check.missing_categories:
        return None
    return RuleMatch(
        job=job, facts={"missing": check.missing_categories, "qc_status": check.status}
    )


def qc_fail_photos_effect(ctx: RuleContext, match: RuleMatch) -> RuleEffect:
    missing = cast(list[MissingPhotoCategory], match.facts["missing"])
    category_list = ", ".join(f"{m.category}: needs {m.required}, has {m.actual}" for m in missing)
    ctx.dispatcher.create_external_task(
        match.target_id,
        "QC Failed - Photos Needed",
        f"QC check failed. Missing required photos: {category_list}. "
        "Please upload photos and re-run QC.",
        due_in_days=2,
    )
    return RuleEffect(
        action_type=ActionType.EXTERNAL_TASK,
        metadata={
            "missingCategories": [m.model_dump() for m in missing],
            "qcStatus": match.facts["qc_status"],
        },
    )


def material_delay_condition(ctx: RuleContext, job_id: str) -> RuleMatch | None:
    job = _linked_job(ctx, job_id)
    if job is None:
        return None

    late = [
        order
        for order in ctx.jobs.material_orders(job_id)
        if order.status in PENDING_MATERIAL_STATUSES
        and order.expected_delivery_date is not None
        and order.expected_delivery_date < ctx.now
        and order.actual_delivery_date is None
    ]
    if not late:
        return None
    return RuleMatch(job=job, facts={"late": late})


def material_delay_effect(ctx: RuleContext, match: RuleMatch) -> RuleEffect:
    late = cast(list[MaterialOrder], match.facts["late"])
    material_list = ", ".join(f"{m.material_name} ({m.supplier_name})" for m in late)
    ctx.dispatcher.create_external_note(
        match.target_id,
        f"MATERIAL DELAY: The following materials are overdue: {material_list}. "
        "Consider rescheduling installation.",
    )
    ctx.dispatcher.create_external_task(
        match.target_id,
        "Material Delay - Schedule Review",
        f"Late materials: {material_list}. Review schedule and coordinate with supplier.",
        due_in_days=1,
    )
    return RuleEffect(
        action_type=ActionType.EXTERNAL_TASK,
        metadata={
            "lateMaterialCount": len(late),
            "materials": [{"name": m.material_name, "supplier": m.supplier_name} for m in late],
        },
    )


# ---------------------------------------------------------------------------
# ADMIN
# ---------------------------------------------------------------------------


def is_compliant(sub: Subcontractor, now: datetime) -> bool:
    license_valid = sub.license_expires_at is not None and sub.license_expires_at > now
    insurance_valid = sub.insurance_expires_at is not None and sub.insurance_expires_at > now
    return license_valid and insurance_valid and sub.w9_received and sub.coi_received


def noncompliant_sub_condition(ctx: RuleContext, job_id: str) -> RuleMatch | None:
    job = _linked_job(ctx, job_id)
    if job is None:
        return None

    flagged = [
        a
        for a in ctx.jobs.subcontractor_assignments(job_id)
        if not is_compliant(a.subcontractor, ctx.now)
    ]
    if not flagged:
        return None
    return RuleMatch(job=job, facts={"assignments": flagged})


def noncompliant_sub_effect(ctx: RuleContext, match: RuleMatch) -> RuleEffect:
    flagged = cast(list[SubcontractorAssignment], match.facts["assignments"])
    names = ", ".join(a.subcontractor.name for a in flagged)
    ctx.dispatcher.create_external_note(
        match.target_id,
        f"COMPLIANCE ALERT: Non-compliant subcontractor(s) assigned: {names}. "
        "Verify credentials before work begins.",
    )
    ctx.dispatcher.create_external_task(
        match.target_id,
        "Compliance Issue - Subcontractor",
        f"Non-compliant subcontractor assigned: {names}. Review credentials immediately.",
        due_in_days=0,
    )
    return RuleEffect(
        action_type=ActionType.EXTERNAL_TASK,
        metadata={
            "nonCompliantSubcontractors": [
                {"id": a.subcontractor.id, "name": a.subcontractor.name} for a in flagged
            ]
        },
    )


# ---------------------------------------------------------------------------
# SAFETY
# ---------------------------------------------------------------------------


def high_severity_incident_condition(ctx: RuleContext, job_id: str) -> RuleMatch | None:
    job = _linked_job(ctx, job_id)
    if job is None:
        return None

    incidents = [
        i
        for i in ctx.jobs.safety_incidents(job_id)
        if i.status in OPEN_INCIDENT_STATUSES and i.severity in SEVERITY_RANK
    ]
    if not incidents:
        return None
    incidents.sort(key=lambda i: i.occurred_at, reverse=True)
    return RuleMatch(job=job, facts={"incidents": incidents})


def high_severity_incident_effect(ctx: RuleContext, match: RuleMatch) -> RuleEffect:
    incidents = cast(list[SafetyIncident], match.facts["incidents"])
    highest = max(incidents, key=lambda i: (SEVERITY_RANK[i.severity], i.occurred_at))
    summary = "; ".join(f"{i.severity}: {i.type} ({i.occurred_at:%Y-%m-%d})" for i in incidents)
    ctx.dispatcher.create_external_task(
        match.target_id,
        "Safety Follow-up Required",
        f"Open {highest.severity} severity incidents: {summary}. "
        "Immediate safety review required.",
        due_in_days=0,
    )
    return RuleEffect(
        action_type=ActionType.EXTERNAL_TASK,
        metadata={
            "incidentCount": len(incidents),
            "highestSeverity": highest.severity,
            "incidentTypes": [i.type for i in incidents],
        },
    )


# ---------------------------------------------------------------------------
# WARRANTY
# ---------------------------------------------------------------------------


def warranty_expiring_condition(ctx: RuleContext, job_id: str) -> RuleMatch | None:
    job = _linked_job(ctx, job_id)
    if job is None:
        return None

    warranty = ctx.jobs.active_warranty(job_id)
    if warranty is None:
        return None

    days_until_expiry = (warranty.end_date - ctx.now) // timedelta(days=1)
    if days_until_expiry < 0 or days_until_expiry > WARRANTY_WINDOW_DAYS:
        return None
    return RuleMatch(job=job, facts={"warranty": warranty, "days": days_until_expiry})


def warranty_expiring_effect(ctx: RuleContext, match: RuleMatch) -> RuleEffect:
    warranty = cast(Warranty, match.facts["warranty"])
    days = cast(int, match.facts["days"])
    ctx.dispatcher.create_external_note(
        match.target_id,
        f"Warranty expiring in {days} days ({warranty.end_date:%Y-%m-%d}). "
        "Consider customer follow-up or upsell opportunity.",
    )
    ctx.dispatcher.create_external_task(
        match.target_id,
        "Warranty Expiring - Customer Follow-up",
        f"Warranty expires in {days} days. Follow up with customer for extension or upsell.",
        due_in_days=7,
    )
    return RuleEffect(
        action_type=ActionType.EXTERNAL_TASK,
        metadata={
            "daysUntilExpiry": days,
            "warrantyEndDate": warranty.end_date.isoformat(),
            "warrantyType": warranty.type,
        },
    )


# ---------------------------------------------------------------------------
# FINANCE
# ---------------------------------------------------------------------------


def low_margin_high_risk_condition(ctx: RuleContext, job_id: str) -> RuleMatch | None:
    job = _linked_job(ctx, job_id)
    if job is None:
        return None

    financial = ctx.jobs.financial_snapshot(job_id)
    if financial is None:
        return None
    if financial.margin_percent is None or financial.margin_percent >= LOW_MARGIN_PERCENT:
        return None

    risk = ctx.jobs.risk_snapshot(job_id)
    if risk is None or risk.risk_level != "HIGH":
        return None
    return RuleMatch(
        job=job,
        facts={
            "margin_percent": financial.margin_percent,
            "margin_amount": financial.margin_amount,
            "risk_level": risk.risk_level,
        },
    )


def low_margin_high_risk_effect(ctx: RuleContext, match: RuleMatch) -> RuleEffect:
    margin = cast(float, match.facts["margin_percent"])
    ctx.dispatcher.create_external_note(
        match.target_id,
        f"FINANCE ALERT: Low margin ({margin:.1f}%) + HIGH risk job. "
        "Management review recommended.",
    )
    ctx.dispatcher.create_external_task(
        match.target_id,
        "Finance Review - Low Margin High Risk",
        f"Job has {margin:.1f}% margin and HIGH risk. "
        "Review for cost overruns or mitigation.",
        due_in_days=3,
    )
    return RuleEffect(
        action_type=ActionType.EXTERNAL_NOTE,
        metadata={
            "marginPercent": margin,
            "marginAmount": match.facts["margin_amount"],
            "riskLevel": match.facts["risk_level"],
        },
    )


def missing_contract_condition(ctx: RuleContext, job_id: str) -> RuleMatch | None:
    job = _linked_job(ctx, job_id)
    if job is None or job.status not in CONTRACT_REQUIRED_STATUSES:
        return None

    financial = ctx.jobs.financial_snapshot(job_id)
    missing = (
        financial is None
        or not financial.contract_amount
        or financial.accounting_source == "PLACEHOLDER"
    )
    if not missing:
        return None
    source = financial.accounting_source if financial is not None else None
    return RuleMatch(job=job, facts={"accounting_source": source})


def missing_contract_effect(ctx: RuleContext, match: RuleMatch) -> RuleEffect:
    ctx.dispatcher.create_external_task(
        match.target_id,
        "Missing Contract Amount",
        f"Job is {match.job.status} but has no contract amount recorded. "
        "Please update QuickBooks or enter manually.",
        due_in_days=2,
    )
    return RuleEffect(
        action_type=ActionType.EXTERNAL_TASK,
        metadata={
            "status": match.job.status,
            "accountingSource": match.facts["accounting_source"],
        },
    )


def ar_overdue_condition(ctx: RuleContext, job_id: str) -> RuleMatch | None:
    job = _linked_job(ctx, job_id)
    if job is None:
        return None

    financial = ctx.jobs.financial_snapshot(job_id)
    if financial is None or financial.ar_status != "OVERDUE":
        return None
    if not financial.amount_outstanding or financial.amount_outstanding <= 0:
        return None
    if financial.invoice_due_date is None:
        return None

    # Calendar days, not elapsed 24h periods.
    days_overdue = (ctx.now.date() - financial.invoice_due_date.date()).days
    if days_overdue < MIN_DAYS_OVERDUE:
        return None
    return RuleMatch(
        job=job,
        facts={
            "amount": financial.amount_outstanding,
            "due_date": financial.invoice_due_date,
            "days_overdue": days_overdue,
        },
    )


def _payment_reminder_body(job: JobSnapshot, outstanding: str, due_date: datetime) -> str:
    greeting = f"Hi {job.customer_name}," if job.customer_name else "Hi,"
    return (
        f"{greeting}\n\n"
        "We hope your solar installation project is going well! This is a friendly reminder "
        "that we have an outstanding balance on your account.\n\n"
        f"**Outstanding Amount:** {outstanding}\n"
        f"**Invoice Due Date:** {_format_long_date(due_date)}\n\n"
        "If you've already sent payment, please disregard this message. Otherwise, please "
        "contact our office at your earliest convenience to arrange payment.\n\n"
        "Thank you for choosing us for your solar energy needs!\n\n"
        "Best regards,\n"
        "Your Green Energy Team\n\n"
        "---\n"
        "*Questions? Reply to this email or give us a call.*"
    )


def ar_overdue_effect(ctx: RuleContext, match: RuleMatch) -> RuleEffect:
    amount = cast(float, match.facts["amount"])
    due_date = cast(datetime, match.facts["due_date"])
    days_overdue = cast(int, match.facts["days_overdue"])
    outstanding = _format_currency(amount)
    job = match.job

    logger.info(
        "AR payment reminder triggered",
        extra={"job_id": job.id, "amount_outstanding": amount, "days_overdue": days_overdue},
    )

    ctx.dispatcher.send_customer_message(
        job.id,
        CustomerMessage(
            type="PAYMENT_REMINDER",
            channel="EMAIL",
            title="Friendly reminder about your outstanding balance",
            body=_payment_reminder_body(job, outstanding, due_date),
            send_email=True,
        ),
    )

    sms_requested = ctx.options.payment_reminder_sms
    if sms_requested:
        ctx.dispatcher.send_customer_message(
            job.id,
            CustomerMessage(
                type="PAYMENT_REMINDER",
                channel="SMS",
                title="Payment Reminder",
                body=(
                    f"Payment reminder: You have an outstanding balance of {outstanding} "
                    f"({days_overdue} days overdue). Please contact us to arrange payment. "
                    "- Green Energy Solar"
                ),
                send_sms=True,
            ),
        )

    ctx.dispatcher.create_external_task(
        match.target_id,
        "Follow up on overdue payment",
        f"Outstanding balance: {outstanding}, {days_overdue} days overdue. "
        "Automated reminder sent to customer. Follow up if no response within 3 days.",
        due_in_days=3,
    )
    return RuleEffect(
        action_type=ActionType.CUSTOMER_EMAIL,
        metadata={
            "amountOutstanding": amount,
            "daysOverdue": days_overdue,
            "invoiceDueDate": due_date.isoformat(),
            "smsRequested": sms_requested,
        },
    )


def build_default_rules() -> list[WorkflowRule]:
    """The production rule set, in evaluation order."""

    return [
        WorkflowRule(
            key="SALES_ESTIMATE_FOLLOWUP_72H",
            name="Sales Estimate Follow-up (72h)",
            description="Follow up on estimate sent with no update for 72 hours",
            department=Department.SALES,
            cooldown_days=7,
            condition=sales_estimate_followup_condition,
            effect=sales_estimate_followup_effect,
        ),
        WorkflowRule(
            key="PRODUCTION_QC_FAIL_NEEDS_PHOTOS",
            name="Production QC Failed - Missing Photos",
            description="QC check failed due to missing required photos",
            department=Department.PRODUCTION,
            cooldown_days=3,
            condition=qc_fail_photos_condition,
            effect=qc_fail_photos_effect,
        ),
        WorkflowRule(
            key="PRODUCTION_MATERIAL_DELAY",
            name="Production Material Delay",
            description="Material order is late and affecting production schedule",
            department=Department.PRODUCTION,
            cooldown_days=2,
            condition=material_delay_condition,
            effect=material_delay_effect,
        ),
        WorkflowRule(
            key="ADMIN_SUB_NONCOMPLIANT_ASSIGNED",
            name="Admin Non-Compliant Subcontractor Assigned",
            description="Job has non-compliant subcontractor assigned",
            department=Department.ADMIN,
            cooldown_days=1,
            condition=noncompliant_sub_condition,
            effect=noncompliant_sub_effect,
        ),
        WorkflowRule(
            key="SAFETY_OPEN_HIGH_SEVERITY_INCIDENT",
            name="Safety High Severity Incident Open",
            description="Open high or critical severity safety incident requires follow-up",
            department=Department.SAFETY,
            cooldown_days=1,
            condition=high_severity_incident_condition,
            effect=high_severity_incident_effect,
        ),
        WorkflowRule(
            key="WARRANTY_EXPIRING_SOON",
            name="Warranty Expiring Soon",
            description="Warranty expiring within 30 days - customer follow-up needed",
            department=Department.WARRANTY,
            cooldown_days=14,
            condition=warranty_expiring_condition,
            effect=warranty_expiring_effect,
        ),
        WorkflowRule(
            key="FINANCE_LOW_MARGIN_HIGH_RISK_JOB",
            name="Finance Low Margin + High Risk Job",
            description="Job has low profitability and high risk - management attention needed",
            department=Department.FINANCE,
            cooldown_days=7,
            condition=low_margin_high_risk_condition,
            effect=low_margin_high_risk_effect,
        ),
        WorkflowRule(
            key="FINANCE_MISSING_CONTRACT_AMOUNT",
            name="Finance Missing Contract Amount",
            description="Job is in progress but has no contract amount recorded",
            department=Department.FINANCE,
            cooldown_days=5,
            condition=missing_contract_condition,
            effect=missing_contract_effect,
        ),
        WorkflowRule(
            key="FINANCE_AR_OVERDUE_PAYMENT_REMINDER",
            name="Finance AR Overdue Payment Reminder",
            description="Send automated payment reminder for overdue invoices (7+ days overdue)",
            department=Department.FINANCE,
            cooldown_days=7,
            condition=ar_overdue_condition,
            effect=ar_overdue_effect,
        ),
    ]


def default_registry() -> RuleRegistry:
    return RuleRegistry(build_default_rules())
