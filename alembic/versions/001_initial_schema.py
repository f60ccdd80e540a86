"""001 – Initial schema: users, workforce, certificates, documents, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# SQLAlchemy stores Python enum member *names* in these types.
ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["user", "admin"]),
    ("certificate_status", ["active", "expired", "revoked"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            username       VARCHAR(100) NOT NULL UNIQUE,
            email          VARCHAR(255) NOT NULL UNIQUE,
            password_hash  VARCHAR(255) NOT NULL,
            role           user_role NOT NULL DEFAULT 'user',
            is_active      BOOLEAN NOT NULL DEFAULT TRUE,
            created_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id     UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token_hash  VARCHAR(128) NOT NULL,
            user_agent  TEXT,
            expires_at  TIMESTAMPTZ NOT NULL,
            is_revoked  BOOLEAN NOT NULL DEFAULT FALSE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_user_sessions_token_hash ON user_sessions (token_hash)")

    # ── 3. certificate_types ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE certificate_types (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name             VARCHAR(200) NOT NULL UNIQUE,
            description      TEXT,
            validity_months  INTEGER NOT NULL DEFAULT 12,
            is_active        BOOLEAN NOT NULL DEFAULT TRUE,
            created_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 4. positions ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE positions (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            title        VARCHAR(200) NOT NULL UNIQUE,
            department   VARCHAR(200),
            description  TEXT,
            is_active    BOOLEAN NOT NULL DEFAULT TRUE,
            created_at   TIMESTAMPTZ DEFAULT NOW(),
            updated_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 5. position_requirements ──────────────────────────────────────────
    op.execute("""
        CREATE TABLE position_requirements (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            position_id             UUID NOT NULL REFERENCES positions(id) ON DELETE CASCADE,
            certificate_type_id     UUID NOT NULL REFERENCES certificate_types(id) ON DELETE CASCADE,
            validity_period_months  INTEGER NOT NULL DEFAULT 12,
            is_required             BOOLEAN NOT NULL DEFAULT TRUE,
            is_active               BOOLEAN NOT NULL DEFAULT TRUE,
            created_at              TIMESTAMPTZ DEFAULT NOW(),
            updated_at              TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_position_requirement UNIQUE (position_id, certificate_type_id)
        )
    """)

    # ── 6. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                 VARCHAR(200) NOT NULL,
            email                VARCHAR(255),
            phone                VARCHAR(50),
            is_active            BOOLEAN NOT NULL DEFAULT TRUE,
            primary_position_id  UUID REFERENCES positions(id) ON DELETE SET NULL,
            created_at           TIMESTAMPTZ DEFAULT NOW(),
            updated_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employees_name ON employees (name)")

    # ── 7. employee_positions ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employee_positions (
            employee_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            position_id  UUID NOT NULL REFERENCES positions(id) ON DELETE CASCADE,
            sort_order   INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (employee_id, position_id)
        )
    """)

    # ── 8. certificates ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE certificates (
            id                       UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            staff_member             VARCHAR(200) NOT NULL,
            cert_type                VARCHAR(200) NOT NULL,
            position_id              UUID REFERENCES positions(id) ON DELETE SET NULL,
            issue_date               TIMESTAMPTZ NOT NULL,
            expiration_date          TIMESTAMPTZ NOT NULL,
            status                   certificate_status NOT NULL DEFAULT 'active',
            notes                    TEXT,
            attachment_id            VARCHAR(100),
            attachment_name          VARCHAR(255),
            attachment_content_type  VARCHAR(100),
            created_at               TIMESTAMPTZ DEFAULT NOW(),
            updated_at               TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_certificates_staff_member ON certificates (staff_member)")
    op.execute("CREATE INDEX ix_certificates_cert_type ON certificates (cert_type)")
    op.execute("CREATE INDEX ix_certificates_expiration_date ON certificates (expiration_date)")

    # ── 9. certificate_revisions ──────────────────────────────────────────
    op.execute("""
        CREATE TABLE certificate_revisions (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            certificate_id   UUID NOT NULL REFERENCES certificates(id) ON DELETE CASCADE,
            issue_date       TIMESTAMPTZ NOT NULL,
            expiration_date  TIMESTAMPTZ NOT NULL,
            attachment_id    VARCHAR(100),
            attachment_name  VARCHAR(255),
            created_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 10. documents ─────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE documents (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            original_name  VARCHAR(255) NOT NULL,
            file_type      VARCHAR(10) NOT NULL,
            file_size      INTEGER NOT NULL,
            blob_id        VARCHAR(100) NOT NULL,
            description    TEXT NOT NULL DEFAULT '',
            uploaded_by    UUID REFERENCES users(id) ON DELETE SET NULL,
            uploaded_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 11. audit_trail ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID REFERENCES users(id) ON DELETE SET NULL,
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSON,
            new_values   JSON,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail (entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail (created_at)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "documents",
        "certificate_revisions",
        "certificates",
        "employee_positions",
        "employees",
        "position_requirements",
        "positions",
        "certificate_types",
        "user_sessions",
        "users",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
