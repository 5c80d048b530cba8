"""
SQL Query Module for the Send Governance backend.

Provides parameterized SQL (asyncpg $n placeholders) for:
- The suppression registry (suppression_queries)
- Daily send quota counters with guarded lazy-reset increments (quota_queries)
- Variants, sticky assignments, experiments and variant statistics
  (experiment_queries)
- Table DDL (schema_queries)

Follows the Repository Pattern: only send_governance.repositories executes
these statements.

Example usage:
    from send_governance.sql import get_consume_slot_query

    row = await conn.fetchrow(
        get_consume_slot_query(), 'campaign', campaign_id, workspace_id, 50, today
    )
"""

# =============================================================================
# SUPPRESSION QUERIES
# =============================================================================

from send_governance.sql.suppression_queries import (
    get_suppression_lookup_query,
    get_suppression_bulk_lookup_query,
    get_suppression_upsert_query,
    get_suppression_delete_query,
    get_suppression_list_query,
    get_suppression_count_query,
)

# =============================================================================
# QUOTA QUERIES
# =============================================================================

from send_governance.sql.quota_queries import (
    get_counters_query,
    get_consume_slot_query,
    get_set_limit_query,
    get_workspace_counters_query,
)

# =============================================================================
# EXPERIMENT QUERIES
# =============================================================================

from send_governance.sql.experiment_queries import (
    get_variants_query,
    get_campaign_variants_lock_query,
    get_variant_query,
    get_variant_insert_query,
    get_variant_weight_update_query,
    get_promote_winner_query,
    get_pause_losers_query,
    get_assigned_variant_query,
    get_assignment_insert_query,
    get_assignment_variant_id_query,
    get_experiment_insert_query,
    get_experiment_query,
    get_campaign_experiments_query,
    get_experiment_transition_query,
    get_auto_end_candidates_query,
    get_experiment_variant_stats_query,
    get_campaign_send_counts_query,
)

# =============================================================================
# SCHEMA
# =============================================================================

from send_governance.sql.schema_queries import get_schema_statements


__all__ = [
    # Suppression queries
    'get_suppression_lookup_query',
    'get_suppression_bulk_lookup_query',
    'get_suppression_upsert_query',
    'get_suppression_delete_query',
    'get_suppression_list_query',
    'get_suppression_count_query',
    # Quota queries
    'get_counters_query',
    'get_consume_slot_query',
    'get_set_limit_query',
    'get_workspace_counters_query',
    # Experiment queries
    'get_variants_query',
    'get_campaign_variants_lock_query',
    'get_variant_query',
    'get_variant_insert_query',
    'get_variant_weight_update_query',
    'get_promote_winner_query',
    'get_pause_losers_query',
    'get_assigned_variant_query',
    'get_assignment_insert_query',
    'get_assignment_variant_id_query',
    'get_experiment_insert_query',
    'get_experiment_query',
    'get_campaign_experiments_query',
    'get_experiment_transition_query',
    'get_auto_end_candidates_query',
    'get_experiment_variant_stats_query',
    'get_campaign_send_counts_query',
    # Schema
    'get_schema_statements',
]
