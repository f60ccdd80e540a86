"""Compliance aggregation engine.

Pure functions over in-memory snapshots of employees, positions and
certificates. Nothing here touches the database; the service layer loads
records and hands them in, together with an explicit ``now`` so results are
deterministic.

Two different percentages are produced and both are intentional:

* the headline ``compliance_rate`` counts (employee × required certificate
  type) pairs satisfied by at least one ACTIVE certificate of that type held
  by the employee (matched by name);
* each per-position ``compliance_rate`` is the share of ACTIVE certificates
  among all certificates tagged with that position.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from certtracker.common.constants import (
    EXPIRING_SOON_DAYS,
    POSITION_BREAKDOWN_LIMIT,
    URGENT_ACTIONS_LIMIT,
    CertificateStatus,
)
from certtracker.common.refs import resolve_id, resolve_ids, same_ref
from certtracker.compliance.schemas import (
    CertificateRecord,
    ComplianceSnapshot,
    ComplianceTotals,
    EmployeeRecord,
    PositionCompliance,
    PositionRecord,
    RepairResult,
    UrgentAction,
)

_DAY_SECONDS = 86400


# ── Record predicates ───────────────────────────────────────────────

def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def status_of(certificate: Any) -> str:
    status = getattr(certificate, "status", None)
    if isinstance(status, enum.Enum):
        status = status.value
    return str(status or "").upper()


def is_active(certificate: Any) -> bool:
    return status_of(certificate) == CertificateStatus.active.value


def is_expired(certificate: Any) -> bool:
    return status_of(certificate) == CertificateStatus.expired.value


def is_expiring_within(certificate: Any, now: datetime, days: int) -> bool:
    """ACTIVE and ``now < expiration_date <= now + days``.

    Certificates without an expiration date never match.
    """
    expiration = getattr(certificate, "expiration_date", None)
    if expiration is None or not is_active(certificate):
        return False
    now = as_utc(now)
    expiration = as_utc(expiration)
    return now < expiration <= now + timedelta(days=days)


def days_until(expiration: datetime, now: datetime) -> int:
    """Whole days left, rounded up: ``ceil((expiration - now) / 1 day)``."""
    delta = as_utc(expiration) - as_utc(now)
    return math.ceil(delta.total_seconds() / _DAY_SECONDS)


def is_employee_active(employee: Any) -> bool:
    """Only an explicit ``False`` makes an employee inactive."""
    return getattr(employee, "active", None) is not False


def percent(part: int, whole: int) -> int:
    """Integer percentage, halves rounded up; 0 when *whole* is 0."""
    if whole <= 0:
        return 0
    return math.floor(part * 100 / whole + 0.5)


# ── Snapshot ────────────────────────────────────────────────────────

def compute_snapshot(
    employees: Sequence[EmployeeRecord],
    positions: Sequence[PositionRecord],
    certificates: Sequence[CertificateRecord],
    now: datetime,
) -> ComplianceSnapshot:
    """Compute the dashboard compliance snapshot as of *now*."""
    active_employees = [emp for emp in employees if is_employee_active(emp)]
    expiring = [
        cert for cert in certificates
        if is_expiring_within(cert, now, EXPIRING_SOON_DAYS)
    ]

    totals = ComplianceTotals(
        total_certificates=len(certificates),
        active_certificates=sum(1 for cert in certificates if is_active(cert)),
        expiring_soon=len(expiring),
        expired=sum(1 for cert in certificates if is_expired(cert)),
        total_employees=len(active_employees),
        compliance_rate=_requirement_coverage(active_employees, positions, certificates),
    )

    return ComplianceSnapshot(
        totals=totals,
        position_compliance=_position_breakdown(active_employees, positions, certificates),
        urgent_actions=_urgent_actions(expiring, now),
        computed_at=now,
    )


def _requirement_coverage(
    active_employees: Iterable[EmployeeRecord],
    positions: Sequence[PositionRecord],
    certificates: Iterable[CertificateRecord],
) -> int:
    positions_by_id = {resolve_id(pos.id): pos for pos in positions}
    held = {
        (cert.staff_member, cert.cert_type)
        for cert in certificates
        if is_active(cert)
    }

    required = satisfied = 0
    for emp in active_employees:
        for position_id in dict.fromkeys(resolve_ids(emp.positions)):
            position = positions_by_id.get(position_id)
            if position is None:
                continue
            for cert_type in position.required_certificate_types:
                required += 1
                if (emp.name, cert_type) in held:
                    satisfied += 1
    return percent(satisfied, required)


def _position_breakdown(
    active_employees: Sequence[EmployeeRecord],
    positions: Sequence[PositionRecord],
    certificates: Sequence[CertificateRecord],
) -> list[PositionCompliance]:
    rows: list[PositionCompliance] = []
    for position in positions:
        position_id = resolve_id(position.id)
        staffed = sum(
            1 for emp in active_employees
            if position_id in resolve_ids(emp.positions)
        )
        if not staffed:
            continue

        tagged = [cert for cert in certificates if same_ref(cert.position, position_id)]
        active_tagged = sum(1 for cert in tagged if is_active(cert))
        rows.append(
            PositionCompliance(
                position_id=position_id,
                position=position.title,
                department=position.department,
                employees=staffed,
                total_certs=len(tagged),
                active_certs=active_tagged,
                required_certs=len(position.required_certificate_types),
                compliance_rate=percent(active_tagged, len(tagged)),
            )
        )

    # sorted() is stable: ties keep the input position order
    rows = sorted(rows, key=lambda row: row.compliance_rate)
    return rows[:POSITION_BREAKDOWN_LIMIT]


def _urgent_actions(
    expiring: Sequence[CertificateRecord],
    now: datetime,
) -> list[UrgentAction]:
    soonest = sorted(expiring, key=lambda cert: as_utc(cert.expiration_date))
    return [
        UrgentAction(
            certificate_id=resolve_id(cert.id),
            employee_name=cert.staff_member,
            certificate_type=cert.cert_type,
            expiry_date=cert.expiration_date,
            days_left=days_until(cert.expiration_date, now),
        )
        for cert in soonest[:URGENT_ACTIONS_LIMIT]
    ]


# ── Position-reference repair ───────────────────────────────────────

def normalize_employee_positions(
    employee: EmployeeRecord,
    all_positions: Sequence[PositionRecord],
    *,
    assign_default: bool = True,
) -> RepairResult:
    """Repair one employee's position references against *all_positions*.

    * embedded position objects are reduced to their ids;
    * repeated references to one position are kept once, first occurrence wins;
    * references that cannot be resolved, or that name no known position,
      are dropped;
    * an employee left with no positions gets the first known position
      (when *assign_default* and one exists);
    * the primary position must be one of the remaining positions, falling
      back to the first.
    """
    known = [resolve_id(pos.id) for pos in all_positions]
    known_ids = set(known)

    raw_refs = list(employee.positions or [])
    # bare and embedded forms of one id collapse to a single entry
    resolved = list(dict.fromkeys(resolve_ids(raw_refs)))
    changed = len(resolved) != len(raw_refs)

    positions: list[str] = []
    removed: list[str] = []
    for position_id in resolved:
        if position_id in known_ids:
            positions.append(position_id)
        else:
            removed.append(position_id)
    changed = changed or bool(removed)

    added_default: Optional[str] = None
    if not positions and assign_default and known:
        added_default = known[0]
        positions.append(added_default)
        changed = True

    primary = resolve_id(employee.primary_position)
    if primary is not None and primary not in known_ids:
        primary = None
        changed = True
    if primary not in positions:
        fallback = positions[0] if positions else None
        if fallback != primary:
            primary = fallback
            changed = True

    return RepairResult(
        positions=positions,
        primary_position=primary,
        changed=changed,
        removed_positions=removed,
        added_default_position=added_default,
    )
