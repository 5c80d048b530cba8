"""
Pydantic request/response models for the Send Governance backend.

This module provides type-safe data validation and serialization for the
suppression registry, the quota governor, variant assignment, experiment
analysis and the send-decision pipeline. The same models travel between the
repository layer, the services and the API routers.

All models use Pydantic v2 syntax with field validation.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from send_governance.models.enums import (
    BlockReason,
    DecisionStatus,
    ExperimentOutcome,
    ExperimentStatus,
    ExperimentTestType,
    LimitType,
    QuotaScope,
    SuccessMetric,
    SuppressionReason,
    VariantStatus,
)


# =============================================================================
# Suppression Registry Models
# =============================================================================


class SuppressionEntry(BaseModel):
    """
    One address on a workspace's suppression registry.

    Identity is (workspace_id, email); email is always stored lowercased.
    Re-suppressing an address overwrites reason and suppressed_at.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "4f1c2f9e-0b59-4b7e-9a0a-2c1b8d7c6e11",
                "workspace_id": "ws_123",
                "email": "jane@example.com",
                "reason": "unsubscribe",
                "suppressed_at": "2026-01-28T14:03:00Z",
                "campaign_id": "cmp_42",
                "lead_id": None,
                "metadata": {"source": "unsubscribe_link"},
            }
        }
    )

    id: str = Field(..., description="Row identifier")
    workspace_id: str = Field(..., description="Owning workspace")
    email: str = Field(..., description="Lowercased email address")
    reason: SuppressionReason = Field(..., description="Why the address is suppressed")
    suppressed_at: datetime = Field(..., description="When the address was (last) suppressed")
    campaign_id: Optional[str] = Field(default=None, description="Campaign that triggered suppression")
    lead_id: Optional[str] = Field(default=None, description="Lead record that triggered suppression")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form context")


class SuppressionResult(BaseModel):
    """
    Answer to "may this address be contacted?".

    Returned for every queried address, including ones with no registry row.
    """
    email: Optional[str] = Field(default=None, description="Normalized address that was checked")
    is_suppressed: bool = Field(..., description="True when the address must not receive mail")
    reason: Optional[SuppressionReason] = Field(default=None, description="Reason when suppressed")
    suppressed_at: Optional[datetime] = Field(default=None, description="Timestamp when suppressed")


class SuppressionCreate(BaseModel):
    """Request body for adding (or re-adding) an address to the registry."""
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=3, max_length=320)
    reason: SuppressionReason = Field(default=SuppressionReason.MANUAL)
    campaign_id: Optional[str] = Field(default=None)
    lead_id: Optional[str] = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SuppressionBulkCreate(BaseModel):
    """Request body for suppressing many addresses with one reason."""
    emails: List[str] = Field(..., min_length=1, max_length=5000)
    reason: SuppressionReason = Field(default=SuppressionReason.MANUAL)


class SuppressionBulkResult(BaseModel):
    """Outcome of a bulk suppression request."""
    added: int = Field(..., ge=0, description="Addresses upserted")
    invalid: List[str] = Field(default_factory=list, description="Malformed addresses that were skipped")


class SuppressionCheckRequest(BaseModel):
    """Request body for a bulk suppression lookup."""
    emails: List[str] = Field(..., max_length=5000)


class SuppressionListResponse(BaseModel):
    """Paginated page of registry entries, newest first."""
    entries: List[SuppressionEntry]
    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    offset: int = Field(..., ge=0)


# =============================================================================
# Quota Governor Models
# =============================================================================


class QuotaCounter(BaseModel):
    """
    Daily send counter for one campaign or one workspace.

    The stored sent_count only counts toward today's ceiling when
    last_reset_date equals today; otherwise the counter is logically reset.
    """
    scope: QuotaScope
    scope_id: str
    workspace_id: Optional[str] = None
    name: Optional[str] = None
    daily_limit: int = Field(..., ge=1)
    sent_count: int = Field(default=0, ge=0)
    last_reset_date: Optional[date] = None

    def effective_sent(self, today: date) -> int:
        """Sent count that applies to `today` after the lazy reset."""
        if self.last_reset_date != today:
            return 0
        return self.sent_count

    def remaining(self, today: date) -> int:
        return max(0, self.daily_limit - self.effective_sent(today))


class SendLimitsStatus(BaseModel):
    """
    Snapshot of both daily ceilings for a campaign send.

    limit_type names the ceiling responsible for blocking (campaign first),
    and is None when sending is allowed. When the counters could not be read
    can_send is False and error describes the failure.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "can_send": False,
                "campaign_limit": 50,
                "campaign_sent": 50,
                "campaign_remaining": 0,
                "workspace_limit": 200,
                "workspace_sent": 199,
                "workspace_remaining": 1,
                "limit_reached": True,
                "limit_type": "campaign",
                "error": None,
            }
        }
    )

    can_send: bool
    campaign_limit: int = Field(default=0, ge=0)
    campaign_sent: int = Field(default=0, ge=0)
    campaign_remaining: int = Field(default=0, ge=0)
    workspace_limit: int = Field(default=0, ge=0)
    workspace_sent: int = Field(default=0, ge=0)
    workspace_remaining: int = Field(default=0, ge=0)
    limit_reached: bool = False
    limit_type: Optional[LimitType] = None
    error: Optional[str] = None


class SlotReservation(BaseModel):
    """Result of an atomic check-and-increment against both counters."""
    allowed: bool
    limit_type: Optional[LimitType] = None
    error: Optional[str] = None


class DailyLimitUpdate(BaseModel):
    """Request body for changing a daily ceiling."""
    daily_limit: int = Field(..., description="New daily ceiling")


class CampaignSendStats(BaseModel):
    """Per-campaign row of the workspace rollup."""
    id: str
    name: Optional[str] = None
    limit: int
    sent: int
    remaining: int


class WorkspaceSendStats(BaseModel):
    """Read-only rollup of today's sending for dashboards."""
    global_limit: int
    global_sent: int
    global_remaining: int
    campaigns: List[CampaignSendStats] = Field(default_factory=list)


# =============================================================================
# Variant Models
# =============================================================================


class Variant(BaseModel):
    """
    One candidate message template in a campaign experiment.

    weight is an integer percentage; the active weights of a campaign never
    sum above 100.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "var_a",
                "campaign_id": "cmp_42",
                "workspace_id": "ws_123",
                "name": "Control",
                "variant_key": "A",
                "is_control": True,
                "subject_template": "Quick question, {{first_name}}",
                "body_template": "Hi {{first_name}}, ...",
                "weight": 50,
                "status": "active",
            }
        }
    )

    id: str
    campaign_id: str
    workspace_id: Optional[str] = None
    name: str
    variant_key: str
    description: Optional[str] = None
    is_control: bool = False
    subject_template: str
    body_template: str
    weight: int = Field(..., ge=0, le=100)
    status: VariantStatus = VariantStatus.ACTIVE
    created_at: Optional[datetime] = None


class VariantCreate(BaseModel):
    """Request body for adding a variant to a campaign."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    variant_key: str = Field(..., min_length=1)
    subject_template: str
    body_template: str
    is_control: bool = False
    weight: Optional[int] = Field(default=None, ge=0, le=100, description="Defaults to 50")
    description: Optional[str] = None


class VariantWeight(BaseModel):
    """One entry of a rebalance request."""
    variant_id: str
    weight: int = Field(..., ge=0, le=100)


class VariantWeightsUpdate(BaseModel):
    """Request body for a rebalance; weights must sum to exactly 100."""
    weights: List[VariantWeight] = Field(..., min_length=1)


class ApplyWinnerRequest(BaseModel):
    winner_variant_id: str


class VariantAssignment(BaseModel):
    """Sticky variant choice for one recipient within one campaign."""
    campaign_lead_id: str
    campaign_id: str
    variant_id: str
    assigned_at: datetime


# =============================================================================
# Experiment Models
# =============================================================================


class ExperimentCreate(BaseModel):
    """Request body for creating an experiment (starts as draft)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    hypothesis: Optional[str] = None
    test_type: ExperimentTestType = ExperimentTestType.SUBJECT
    success_metric: SuccessMetric = SuccessMetric.OPEN_RATE
    minimum_sample_size: Optional[int] = Field(default=None, ge=1)
    confidence_level: Optional[int] = Field(default=None, ge=1, le=99)
    auto_end_on_significance: bool = True


class Experiment(BaseModel):
    """
    A/B experiment attached to a campaign.

    winner_variant_id is only ever set once status is completed.
    """
    id: str
    campaign_id: str
    workspace_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    hypothesis: Optional[str] = None
    test_type: ExperimentTestType = ExperimentTestType.SUBJECT
    success_metric: SuccessMetric = SuccessMetric.OPEN_RATE
    minimum_sample_size: int = Field(default=100, ge=1)
    confidence_level: int = Field(default=95, ge=1, le=99)
    auto_end_on_significance: bool = True
    status: ExperimentStatus = ExperimentStatus.DRAFT
    winner_variant_id: Optional[str] = None
    statistical_significance: Optional[float] = None
    result_summary: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class EndExperimentRequest(BaseModel):
    winner_variant_id: Optional[str] = None


class VariantCounts(BaseModel):
    """
    Raw event counts for one variant, as aggregated by the delivery system
    or computed on the fly from individual send records.
    """
    variant_id: str
    emails_sent: int = Field(default=0, ge=0)
    emails_delivered: int = Field(default=0, ge=0)
    emails_bounced: int = Field(default=0, ge=0)
    emails_opened: int = Field(default=0, ge=0)
    unique_opens: int = Field(default=0, ge=0)
    emails_clicked: int = Field(default=0, ge=0)
    unique_clicks: int = Field(default=0, ge=0)
    emails_replied: int = Field(default=0, ge=0)


class VariantStats(VariantCounts):
    """Counts plus derived percentage rates over delivered emails."""
    open_rate: float = 0.0
    click_rate: float = 0.0
    reply_rate: float = 0.0
    click_to_open_rate: float = 0.0
    sample_size: int = Field(default=0, ge=0)


class VariantResult(VariantStats):
    """Variant stats labelled for presentation in an experiment result."""
    name: str = "Unknown"
    is_control: bool = False


class ExperimentResult(BaseModel):
    """
    Verdict of analysing an experiment.

    confidence_level is the discrete confidence bucket produced by the
    two-proportion Z-test (99/95/90/80 or a value up to 70), not a p-value.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "experiment_id": "exp_1",
                "status": "winner_found",
                "winner_variant_id": "var_b",
                "winner_name": "Short subject",
                "confidence_level": 99,
                "lift_percent": 125.0,
                "variants": [],
                "recommendation": "Short subject outperforms with 125.0% lift at 99.0% confidence",
            }
        }
    )

    experiment_id: str
    status: ExperimentOutcome
    winner_variant_id: Optional[str] = None
    winner_name: Optional[str] = None
    confidence_level: float = 0.0
    lift_percent: Optional[float] = None
    variants: List[VariantResult] = Field(default_factory=list)
    recommendation: str


# =============================================================================
# Send-Decision Models
# =============================================================================


class SendDecisionRequest(BaseModel):
    """One pending send attempt presented to the governance pipeline."""
    model_config = ConfigDict(str_strip_whitespace=True)

    campaign_id: str = Field(..., min_length=1)
    workspace_id: str = Field(..., min_length=1)
    campaign_lead_id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)


class SendDecision(BaseModel):
    """
    accepted (with the chosen variant, if the campaign runs an experiment)
    or blocked with a reason. An accepted decision has consumed one slot of
    both daily counters.
    """
    status: DecisionStatus
    reason: Optional[BlockReason] = None
    detail: Optional[str] = None
    variant: Optional[Variant] = None
    suppression: Optional[SuppressionResult] = None
    limit_type: Optional[LimitType] = None

    @property
    def accepted(self) -> bool:
        return self.status == DecisionStatus.ACCEPTED
