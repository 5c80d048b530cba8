"""
Parameterized SQL for variants, sticky assignments and experiments.

Multi-row variant mutations (rebalance, apply winner, guarded insert) are run
by the repository inside one transaction; the queries here are the individual
statements of those transactions.
"""


VARIANT_COLUMNS = """
    id, campaign_id, workspace_id, name, variant_key, description,
    is_control, subject_template, body_template, weight, status, created_at
"""

EXPERIMENT_COLUMNS = """
    id, campaign_id, workspace_id, name, description, hypothesis,
    test_type, success_metric, minimum_sample_size, confidence_level,
    auto_end_on_significance, status, winner_variant_id,
    statistical_significance, result_summary, started_at, ended_at, created_at
"""


# =============================================================================
# Variant Queries
# =============================================================================


def get_variants_query(active_only: bool = False) -> str:
    """
    SQL returning a campaign's variants in creation order.

    Parameters: $1 campaign_id.
    """
    status_filter = "AND status = 'active'" if active_only else ""
    return f"""
        SELECT {VARIANT_COLUMNS}
        FROM email_template_variants
        WHERE campaign_id = $1
          {status_filter}
        ORDER BY created_at ASC, id ASC
    """


def get_campaign_variants_lock_query() -> str:
    """
    SQL taking a transaction-scoped advisory lock on a campaign's variant set.

    Row locks cannot serialize the first insert into an empty campaign, so
    variant writers lock the campaign key instead.

    Parameters: $1 campaign_id.
    """
    return """
        SELECT pg_advisory_xact_lock(hashtext($1))
    """


def get_variant_query() -> str:
    """
    SQL returning one variant by id.

    Parameters: $1 variant_id.
    """
    return f"""
        SELECT {VARIANT_COLUMNS}
        FROM email_template_variants
        WHERE id = $1
    """


def get_variant_insert_query() -> str:
    """
    SQL inserting a variant.

    Parameters: $1 id, $2 campaign_id, $3 workspace_id, $4 name,
    $5 variant_key, $6 description, $7 is_control, $8 subject_template,
    $9 body_template, $10 weight, $11 status, $12 created_at.
    """
    return f"""
        INSERT INTO email_template_variants (
            id, campaign_id, workspace_id, name, variant_key, description,
            is_control, subject_template, body_template, weight, status, created_at
        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
        RETURNING {VARIANT_COLUMNS}
    """


def get_variant_weight_update_query() -> str:
    """
    SQL setting one variant's weight within its campaign.

    Parameters: $1 variant_id, $2 campaign_id, $3 weight.
    """
    return """
        UPDATE email_template_variants
        SET weight = $3
        WHERE id = $1
          AND campaign_id = $2
    """


def get_promote_winner_query() -> str:
    """
    SQL giving the winning variant the whole traffic share.

    Parameters: $1 variant_id, $2 campaign_id.
    """
    return """
        UPDATE email_template_variants
        SET weight = 100, status = 'active'
        WHERE id = $1
          AND campaign_id = $2
    """


def get_pause_losers_query() -> str:
    """
    SQL pausing every other variant of the campaign at zero weight.

    Archived variants keep their status and only lose their weight.

    Parameters: $1 campaign_id, $2 winning variant_id.
    """
    return """
        UPDATE email_template_variants
        SET status = CASE WHEN status = 'archived' THEN status ELSE 'paused' END,
            weight = 0
        WHERE campaign_id = $1
          AND id <> $2
    """


# =============================================================================
# Assignment Queries
# =============================================================================


def get_assigned_variant_query() -> str:
    """
    SQL returning the variant already assigned to a recipient.

    Parameters: $1 campaign_lead_id.
    """
    return """
        SELECT v.id, v.campaign_id, v.workspace_id, v.name, v.variant_key,
               v.description, v.is_control, v.subject_template, v.body_template,
               v.weight, v.status, v.created_at
        FROM variant_assignments a
        JOIN email_template_variants v ON v.id = a.variant_id
        WHERE a.campaign_lead_id = $1
    """


def get_assignment_insert_query() -> str:
    """
    SQL recording an assignment unless one already exists.

    Returns the inserted variant_id, or no row when a concurrent caller won
    the race; the caller then re-reads the existing assignment.

    Parameters: $1 campaign_lead_id, $2 campaign_id, $3 variant_id,
    $4 assigned_at.
    """
    return """
        INSERT INTO variant_assignments (
            campaign_lead_id, campaign_id, variant_id, assigned_at
        ) VALUES ($1, $2, $3, $4)
        ON CONFLICT (campaign_lead_id) DO NOTHING
        RETURNING variant_id
    """


def get_assignment_variant_id_query() -> str:
    """
    SQL returning the variant_id of an existing assignment.

    Parameters: $1 campaign_lead_id.
    """
    return """
        SELECT variant_id
        FROM variant_assignments
        WHERE campaign_lead_id = $1
    """


# =============================================================================
# Experiment Queries
# =============================================================================


def get_experiment_insert_query() -> str:
    """
    SQL inserting a draft experiment.

    Parameters: $1 id, $2 campaign_id, $3 workspace_id, $4 name,
    $5 description, $6 hypothesis, $7 test_type, $8 success_metric,
    $9 minimum_sample_size, $10 confidence_level,
    $11 auto_end_on_significance, $12 created_at.
    """
    return f"""
        INSERT INTO ab_experiments (
            id, campaign_id, workspace_id, name, description, hypothesis,
            test_type, success_metric, minimum_sample_size, confidence_level,
            auto_end_on_significance, status, created_at
        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, 'draft', $12)
        RETURNING {EXPERIMENT_COLUMNS}
    """


def get_experiment_query() -> str:
    """
    SQL returning one experiment.

    Parameters: $1 experiment_id.
    """
    return f"""
        SELECT {EXPERIMENT_COLUMNS}
        FROM ab_experiments
        WHERE id = $1
    """


def get_campaign_experiments_query() -> str:
    """
    SQL returning a campaign's experiments, newest first.

    Parameters: $1 campaign_id.
    """
    return f"""
        SELECT {EXPERIMENT_COLUMNS}
        FROM ab_experiments
        WHERE campaign_id = $1
        ORDER BY created_at DESC, id
    """


def get_experiment_transition_query() -> str:
    """
    SQL moving an experiment to a new status if it is in an allowed one.

    The status precondition is evaluated in the same statement as the update,
    so two concurrent transitions cannot both succeed. No row is returned
    when the precondition fails. Optional columns are only overwritten when a
    non-NULL value is supplied.

    Parameters: $1 experiment_id, $2 new status, $3 text[] of allowed current
    statuses, $4 started_at, $5 ended_at, $6 winner_variant_id,
    $7 statistical_significance, $8 result_summary (jsonb).
    """
    return f"""
        UPDATE ab_experiments
        SET status = $2,
            started_at = COALESCE($4, started_at),
            ended_at = COALESCE($5, ended_at),
            winner_variant_id = COALESCE($6, winner_variant_id),
            statistical_significance = COALESCE($7, statistical_significance),
            result_summary = COALESCE($8, result_summary)
        WHERE id = $1
          AND status = ANY($3::text[])
        RETURNING {EXPERIMENT_COLUMNS}
    """


def get_auto_end_candidates_query() -> str:
    """SQL returning running experiments flagged to end on significance."""
    return f"""
        SELECT {EXPERIMENT_COLUMNS}
        FROM ab_experiments
        WHERE status = 'running'
          AND auto_end_on_significance
        ORDER BY started_at ASC NULLS LAST, id
    """


# =============================================================================
# Variant Statistics Queries
# =============================================================================


def get_experiment_variant_stats_query() -> str:
    """
    SQL returning the precomputed per-variant aggregates of an experiment.

    Parameters: $1 experiment_id.
    """
    return """
        SELECT s.variant_id, v.name, v.is_control,
               s.emails_sent, s.emails_delivered, s.emails_bounced,
               s.emails_opened, s.unique_opens, s.emails_clicked,
               s.unique_clicks, s.emails_replied,
               s.open_rate, s.click_rate, s.reply_rate, s.click_to_open_rate,
               s.sample_size
        FROM variant_stats s
        JOIN email_template_variants v ON v.id = s.variant_id
        WHERE s.experiment_id = $1
        ORDER BY v.created_at ASC, v.id ASC
    """


def get_campaign_send_counts_query() -> str:
    """
    SQL aggregating raw send records for every active variant of a campaign.

    Used when an experiment has no precomputed aggregates yet. A send counts
    as delivered unless its status is 'bounced'; opens and clicks are counted
    once per send, so they double as unique counts.

    Parameters: $1 campaign_id.
    """
    return """
        SELECT v.id AS variant_id, v.name, v.is_control,
               COUNT(s.id) AS emails_sent,
               COUNT(s.id) FILTER (WHERE s.status <> 'bounced') AS emails_delivered,
               COUNT(s.id) FILTER (WHERE s.status = 'bounced') AS emails_bounced,
               COUNT(s.opened_at) AS emails_opened,
               COUNT(s.clicked_at) AS emails_clicked,
               COUNT(s.replied_at) AS emails_replied
        FROM email_template_variants v
        LEFT JOIN email_sends s ON s.variant_id = v.id
        WHERE v.campaign_id = $1
          AND v.status = 'active'
        GROUP BY v.id, v.name, v.is_control, v.created_at
        ORDER BY v.created_at ASC, v.id ASC
    """
