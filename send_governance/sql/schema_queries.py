"""
Schema DDL for the governance tables.

The governance core owns the suppression registry, the quota counters, the
variant/experiment tables and the sweep job state. email_sends belongs to the
delivery subsystem; only the columns read by the experiment fallback
aggregation are declared here so a fresh database can run the whole service.

Constraints the services rely on:
    - UNIQUE (workspace_id, email) on email_suppressions (upsert target)
    - PRIMARY KEY (scope, scope_id) on send_quota_counters (atomic upsert target)
    - PRIMARY KEY campaign_lead_id on variant_assignments (one assignment ever)
    - Partial unique index allowing one non-archived control per campaign
"""

from typing import List


SCHEMA_STATEMENTS: List[str] = [
    # -------------------------------------------------------------------------
    # Suppression registry
    # -------------------------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS email_suppressions (
        id TEXT PRIMARY KEY,
        workspace_id TEXT NOT NULL,
        email TEXT NOT NULL CHECK (email = lower(email)),
        reason TEXT NOT NULL
            CHECK (reason IN ('unsubscribe', 'hard_bounce', 'complaint', 'manual')),
        suppressed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        campaign_id TEXT,
        lead_id TEXT,
        metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
        UNIQUE (workspace_id, email)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_email_suppressions_recent
        ON email_suppressions (workspace_id, suppressed_at DESC)
    """,
    # -------------------------------------------------------------------------
    # Daily send quota counters (one arena for both scopes)
    # -------------------------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS send_quota_counters (
        scope TEXT NOT NULL CHECK (scope IN ('campaign', 'workspace')),
        scope_id TEXT NOT NULL,
        workspace_id TEXT,
        name TEXT,
        daily_limit INTEGER NOT NULL CHECK (daily_limit >= 1),
        sent_count INTEGER NOT NULL DEFAULT 0 CHECK (sent_count >= 0),
        last_reset_date DATE,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (scope, scope_id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_send_quota_counters_workspace
        ON send_quota_counters (workspace_id)
        WHERE scope = 'campaign'
    """,
    # -------------------------------------------------------------------------
    # Variants and sticky assignments
    # -------------------------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS email_template_variants (
        id TEXT PRIMARY KEY,
        campaign_id TEXT NOT NULL,
        workspace_id TEXT,
        name TEXT NOT NULL,
        variant_key TEXT NOT NULL,
        description TEXT,
        is_control BOOLEAN NOT NULL DEFAULT FALSE,
        subject_template TEXT NOT NULL,
        body_template TEXT NOT NULL,
        weight INTEGER NOT NULL CHECK (weight BETWEEN 0 AND 100),
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('active', 'paused', 'archived')),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_email_template_variants_campaign
        ON email_template_variants (campaign_id, created_at)
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_email_template_variants_control
        ON email_template_variants (campaign_id)
        WHERE is_control AND status <> 'archived'
    """,
    """
    CREATE TABLE IF NOT EXISTS variant_assignments (
        campaign_lead_id TEXT PRIMARY KEY,
        campaign_id TEXT NOT NULL,
        variant_id TEXT NOT NULL REFERENCES email_template_variants (id),
        assigned_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    # -------------------------------------------------------------------------
    # Experiments and per-variant aggregates
    # -------------------------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS ab_experiments (
        id TEXT PRIMARY KEY,
        campaign_id TEXT NOT NULL,
        workspace_id TEXT,
        name TEXT NOT NULL,
        description TEXT,
        hypothesis TEXT,
        test_type TEXT NOT NULL DEFAULT 'subject',
        success_metric TEXT NOT NULL DEFAULT 'open_rate',
        minimum_sample_size INTEGER NOT NULL DEFAULT 100,
        confidence_level INTEGER NOT NULL DEFAULT 95,
        auto_end_on_significance BOOLEAN NOT NULL DEFAULT TRUE,
        status TEXT NOT NULL DEFAULT 'draft'
            CHECK (status IN ('draft', 'running', 'paused', 'completed', 'cancelled')),
        winner_variant_id TEXT,
        statistical_significance NUMERIC,
        result_summary JSONB,
        started_at TIMESTAMPTZ,
        ended_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CHECK (winner_variant_id IS NULL OR status = 'completed')
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS variant_stats (
        experiment_id TEXT NOT NULL REFERENCES ab_experiments (id),
        variant_id TEXT NOT NULL REFERENCES email_template_variants (id),
        emails_sent INTEGER NOT NULL DEFAULT 0,
        emails_delivered INTEGER NOT NULL DEFAULT 0,
        emails_bounced INTEGER NOT NULL DEFAULT 0,
        emails_opened INTEGER NOT NULL DEFAULT 0,
        unique_opens INTEGER NOT NULL DEFAULT 0,
        emails_clicked INTEGER NOT NULL DEFAULT 0,
        unique_clicks INTEGER NOT NULL DEFAULT 0,
        emails_replied INTEGER NOT NULL DEFAULT 0,
        open_rate NUMERIC NOT NULL DEFAULT 0,
        click_rate NUMERIC NOT NULL DEFAULT 0,
        reply_rate NUMERIC NOT NULL DEFAULT 0,
        click_to_open_rate NUMERIC NOT NULL DEFAULT 0,
        sample_size INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (experiment_id, variant_id)
    )
    """,
    # -------------------------------------------------------------------------
    # Send records (owned by the delivery subsystem)
    # -------------------------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS email_sends (
        id TEXT PRIMARY KEY,
        campaign_id TEXT NOT NULL,
        campaign_lead_id TEXT,
        variant_id TEXT,
        recipient_email TEXT NOT NULL,
        status TEXT NOT NULL,
        sent_at TIMESTAMPTZ,
        opened_at TIMESTAMPTZ,
        clicked_at TIMESTAMPTZ,
        replied_at TIMESTAMPTZ
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_email_sends_variant
        ON email_sends (variant_id)
    """,
    # -------------------------------------------------------------------------
    # Experiment sweep job state
    # -------------------------------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS job_sweep_state (
        job_type TEXT NOT NULL,
        sweep_date DATE NOT NULL,
        ran_at TIMESTAMPTZ NOT NULL,
        run_count INTEGER NOT NULL DEFAULT 1,
        PRIMARY KEY (job_type, sweep_date)
    )
    """,
]


def get_schema_statements() -> List[str]:
    """
    Return the DDL statements in dependency order.

    Every statement is idempotent (IF NOT EXISTS), so applying the list to a
    database that already has the schema is a no-op.

    Example:
        >>> async with pool.acquire() as conn:
        ...     for statement in get_schema_statements():
        ...         await conn.execute(statement)
    """
    return list(SCHEMA_STATEMENTS)
