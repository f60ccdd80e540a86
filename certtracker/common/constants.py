"""Enums and constants for the certificate tracker."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"


# ── Certificates ────────────────────────────────────────────────────

class CertificateStatus(str, enum.Enum):
    active = "ACTIVE"
    expired = "EXPIRED"
    revoked = "REVOKED"


# ── Company documents ───────────────────────────────────────────────

DOCUMENT_CONTENT_TYPES: dict[str, str] = {
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
}

DOCUMENT_FILE_TYPES: frozenset[str] = frozenset(DOCUMENT_CONTENT_TYPES)

CERTIFICATE_ATTACHMENT_MIME_TYPES: frozenset[str] = frozenset(
    {"image/jpeg", "image/png", "image/gif", "image/webp", "application/pdf"}
)


# ── Compliance / notification windows ───────────────────────────────

# Dashboard "expiring soon" window. Fixed policy, independent of the
# notification threshold below.
EXPIRING_SOON_DAYS = 30

# Threshold used by the scheduled (cron) notification run.
SCHEDULED_THRESHOLD_DAYS = 60

# Dashboard list lengths
POSITION_BREAKDOWN_LIMIT = 5
URGENT_ACTIONS_LIMIT = 5

# Default validity for a position requirement / certificate type, in months
DEFAULT_VALIDITY_MONTHS = 12


# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%d %b %Y"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50

# Shared by the app and the scripts
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
