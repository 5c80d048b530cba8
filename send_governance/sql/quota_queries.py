"""
Parameterized SQL for the daily send quota counters.

Both counter scopes live in send_quota_counters keyed by (scope, scope_id).
"Today" is always supplied by the caller as a DATE parameter computed from
the service clock; these queries never read CURRENT_DATE, so every worker
shares the same service-day definition.

The reset is lazy: a row whose last_reset_date differs from today counts as
zero sent. The slot query folds that reset into its conditional update:

    sent_count = CASE WHEN last_reset_date IS DISTINCT FROM today
                      THEN 1 ELSE sent_count + 1 END

which makes each counter update a single atomic row operation. Missing rows
are created by the same statement (INSERT ... ON CONFLICT DO UPDATE).
"""


QUOTA_COLUMNS = """
    scope, scope_id, workspace_id, name,
    daily_limit, sent_count, last_reset_date
"""

# Effective sent count of the existing row as seen from EXCLUDED.last_reset_date
_EFFECTIVE_SENT = """
    CASE WHEN send_quota_counters.last_reset_date IS DISTINCT FROM EXCLUDED.last_reset_date
         THEN 0
         ELSE send_quota_counters.sent_count
    END
"""


def get_counters_query() -> str:
    """
    SQL returning the campaign and workspace counters for one send.

    Parameters: $1 campaign_id, $2 workspace_id.
    """
    return f"""
        SELECT {QUOTA_COLUMNS}
        FROM send_quota_counters
        WHERE (scope = 'campaign' AND scope_id = $1)
           OR (scope = 'workspace' AND scope_id = $2)
    """


def get_consume_slot_query() -> str:
    """
    SQL counting one send only if the counter stays within its limit.

    The DO UPDATE carries a WHERE clause, so when the effective sent count has
    already reached daily_limit the row is left untouched and no row is
    returned. A freshly inserted row starts at 1, which every valid limit
    (>= 1) admits.

    Parameters: $1 scope, $2 scope_id, $3 workspace_id, $4 default daily
    limit, $5 today.
    """
    return f"""
        INSERT INTO send_quota_counters (
            scope, scope_id, workspace_id, daily_limit, sent_count, last_reset_date
        ) VALUES ($1, $2, $3, $4, 1, $5)
        ON CONFLICT (scope, scope_id) DO UPDATE SET
            sent_count = {_EFFECTIVE_SENT} + 1,
            last_reset_date = EXCLUDED.last_reset_date,
            updated_at = NOW()
        WHERE {_EFFECTIVE_SENT} < send_quota_counters.daily_limit
        RETURNING {QUOTA_COLUMNS}
    """


def get_set_limit_query() -> str:
    """
    SQL setting a counter's daily limit, creating the row when missing.

    Parameters: $1 scope, $2 scope_id, $3 workspace_id, $4 daily_limit.
    """
    return f"""
        INSERT INTO send_quota_counters (
            scope, scope_id, workspace_id, daily_limit, sent_count, last_reset_date
        ) VALUES ($1, $2, $3, $4, 0, NULL)
        ON CONFLICT (scope, scope_id) DO UPDATE SET
            daily_limit = EXCLUDED.daily_limit,
            workspace_id = COALESCE(EXCLUDED.workspace_id, send_quota_counters.workspace_id),
            updated_at = NOW()
        RETURNING {QUOTA_COLUMNS}
    """


def get_workspace_counters_query() -> str:
    """
    SQL returning a workspace counter plus every campaign counter under it.

    Parameters: $1 workspace_id.
    """
    return f"""
        SELECT {QUOTA_COLUMNS}
        FROM send_quota_counters
        WHERE (scope = 'workspace' AND scope_id = $1)
           OR (scope = 'campaign' AND workspace_id = $1)
        ORDER BY scope DESC, name NULLS LAST, scope_id
    """
