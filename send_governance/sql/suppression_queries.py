"""
Parameterized SQL for the suppression registry.

Addresses are lowercased by the service before they reach these queries, so
every comparison here is a plain equality on the stored (lowercase) email.
"""


SUPPRESSION_COLUMNS = """
    id, workspace_id, email, reason, suppressed_at,
    campaign_id, lead_id, metadata
"""


def get_suppression_lookup_query() -> str:
    """
    SQL returning the registry row for one address.

    Parameters: $1 workspace_id, $2 email.
    """
    return f"""
        SELECT {SUPPRESSION_COLUMNS}
        FROM email_suppressions
        WHERE workspace_id = $1
          AND email = $2
    """


def get_suppression_bulk_lookup_query() -> str:
    """
    SQL returning the registry rows for a batch of addresses.

    Parameters: $1 workspace_id, $2 text[] of emails.
    """
    return f"""
        SELECT {SUPPRESSION_COLUMNS}
        FROM email_suppressions
        WHERE workspace_id = $1
          AND email = ANY($2::text[])
    """


def get_suppression_upsert_query() -> str:
    """
    SQL inserting or overwriting one registry row.

    A re-suppressed address keeps its row id; reason, timestamp, source
    references and metadata are replaced (last write wins).

    Parameters: $1 id, $2 workspace_id, $3 email, $4 reason, $5 suppressed_at,
    $6 campaign_id, $7 lead_id, $8 metadata (jsonb).
    """
    return f"""
        INSERT INTO email_suppressions (
            id, workspace_id, email, reason, suppressed_at,
            campaign_id, lead_id, metadata
        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        ON CONFLICT (workspace_id, email) DO UPDATE SET
            reason = EXCLUDED.reason,
            suppressed_at = EXCLUDED.suppressed_at,
            campaign_id = EXCLUDED.campaign_id,
            lead_id = EXCLUDED.lead_id,
            metadata = EXCLUDED.metadata
        RETURNING {SUPPRESSION_COLUMNS}
    """


def get_suppression_delete_query() -> str:
    """
    SQL removing one registry row.

    Parameters: $1 workspace_id, $2 email.
    """
    return """
        DELETE FROM email_suppressions
        WHERE workspace_id = $1
          AND email = $2
    """


def get_suppression_list_query() -> str:
    """
    SQL returning one page of registry rows, newest first.

    Parameters: $1 workspace_id, $2 reason or NULL, $3 limit, $4 offset.
    """
    return f"""
        SELECT {SUPPRESSION_COLUMNS}
        FROM email_suppressions
        WHERE workspace_id = $1
          AND ($2::text IS NULL OR reason = $2::text)
        ORDER BY suppressed_at DESC, id
        LIMIT $3 OFFSET $4
    """


def get_suppression_count_query() -> str:
    """
    SQL counting registry rows matching the list filter.

    Parameters: $1 workspace_id, $2 reason or NULL.
    """
    return """
        SELECT COUNT(*) AS total
        FROM email_suppressions
        WHERE workspace_id = $1
          AND ($2::text IS NULL OR reason = $2::text)
    """
