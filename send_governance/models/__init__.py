"""
Package initialization file for send_governance models.

Re-exports all Pydantic schemas and enumerations so other modules can import
them from send_governance.models directly.

Usage:
    from send_governance.models import (
        SuppressionReason,
        SendLimitsStatus,
        Variant,
        ExperimentResult,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from send_governance.models.enums import (
    SuppressionReason,
    QuotaScope,
    LimitType,
    VariantStatus,
    ExperimentTestType,
    SuccessMetric,
    ExperimentStatus,
    ExperimentOutcome,
    DecisionStatus,
    BlockReason,
)


# =============================================================================
# Schemas
# =============================================================================

from send_governance.models.schemas import (
    # Suppression registry
    SuppressionEntry,
    SuppressionResult,
    SuppressionCreate,
    SuppressionBulkCreate,
    SuppressionBulkResult,
    SuppressionCheckRequest,
    SuppressionListResponse,
    # Quota governor
    QuotaCounter,
    SendLimitsStatus,
    SlotReservation,
    DailyLimitUpdate,
    CampaignSendStats,
    WorkspaceSendStats,
    # Variants
    Variant,
    VariantCreate,
    VariantWeight,
    VariantWeightsUpdate,
    ApplyWinnerRequest,
    VariantAssignment,
    # Experiments
    ExperimentCreate,
    Experiment,
    EndExperimentRequest,
    VariantCounts,
    VariantStats,
    VariantResult,
    ExperimentResult,
    # Send decisions
    SendDecisionRequest,
    SendDecision,
)


__all__ = [
    # Enums
    "SuppressionReason",
    "QuotaScope",
    "LimitType",
    "VariantStatus",
    "ExperimentTestType",
    "SuccessMetric",
    "ExperimentStatus",
    "ExperimentOutcome",
    "DecisionStatus",
    "BlockReason",
    # Suppression registry
    "SuppressionEntry",
    "SuppressionResult",
    "SuppressionCreate",
    "SuppressionBulkCreate",
    "SuppressionBulkResult",
    "SuppressionCheckRequest",
    "SuppressionListResponse",
    # Quota governor
    "QuotaCounter",
    "SendLimitsStatus",
    "SlotReservation",
    "DailyLimitUpdate",
    "CampaignSendStats",
    "WorkspaceSendStats",
    # Variants
    "Variant",
    "VariantCreate",
    "VariantWeight",
    "VariantWeightsUpdate",
    "ApplyWinnerRequest",
    "VariantAssignment",
    # Experiments
    "ExperimentCreate",
    "Experiment",
    "EndExperimentRequest",
    "VariantCounts",
    "VariantStats",
    "VariantResult",
    "ExperimentResult",
    # Send decisions
    "SendDecisionRequest",
    "SendDecision",
]
