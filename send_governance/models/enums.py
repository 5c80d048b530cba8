"""
Enumeration definitions for the Send Governance backend.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models and to store their values directly in
text columns.
"""

from enum import Enum


class SuppressionReason(str, Enum):
    """
    Why an address is on the suppression registry.

    - unsubscribe: Recipient clicked an unsubscribe link
    - hard_bounce: Delivery failed permanently
    - complaint: Recipient reported the message as spam
    - manual: Operator added the address by hand
    """
    UNSUBSCRIBE = "unsubscribe"
    HARD_BOUNCE = "hard_bounce"
    COMPLAINT = "complaint"
    MANUAL = "manual"


class QuotaScope(str, Enum):
    """
    Scope of a daily send counter.

    Each send consumes one slot from its campaign counter and one from its
    workspace counter.
    """
    CAMPAIGN = "campaign"
    WORKSPACE = "workspace"


class LimitType(str, Enum):
    """
    Which ceiling blocked a send. Campaign is reported first when both are hit.
    """
    CAMPAIGN = "campaign"
    WORKSPACE = "workspace"


class VariantStatus(str, Enum):
    """
    Lifecycle status of a message variant.

    Only active variants take part in assignment.
    """
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class ExperimentTestType(str, Enum):
    """What an experiment varies between its variants."""
    SUBJECT = "subject"
    BODY = "body"
    FULL_TEMPLATE = "full_template"
    SEND_TIME = "send_time"


class SuccessMetric(str, Enum):
    """
    Metric an experiment is judged on.

    conversion_rate has no dedicated event stream; replies are used as the
    conversion proxy.
    """
    OPEN_RATE = "open_rate"
    CLICK_RATE = "click_rate"
    REPLY_RATE = "reply_rate"
    CONVERSION_RATE = "conversion_rate"


class ExperimentStatus(str, Enum):
    """
    Experiment lifecycle status.

    draft -> running -> {paused <-> running} -> {completed, cancelled}.
    completed and cancelled are terminal.
    """
    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ExperimentOutcome(str, Enum):
    """Verdict of a statistical analysis pass."""
    INSUFFICIENT_DATA = "insufficient_data"
    NO_WINNER = "no_winner"
    WINNER_FOUND = "winner_found"


class DecisionStatus(str, Enum):
    """Final answer of the send-decision pipeline."""
    ACCEPTED = "accepted"
    BLOCKED = "blocked"


class BlockReason(str, Enum):
    """
    Why the send-decision pipeline refused a send.

    - suppressed: Address is on the workspace suppression registry
    - suppression_unavailable: Registry unreadable and the policy fails closed
    - campaign_limit: Campaign daily ceiling reached
    - workspace_limit: Workspace daily ceiling reached
    - quota_unavailable: Quota state could not be determined (always fails closed)
    """
    SUPPRESSED = "suppressed"
    SUPPRESSION_UNAVAILABLE = "suppression_unavailable"
    CAMPAIGN_LIMIT = "campaign_limit"
    WORKSPACE_LIMIT = "workspace_limit"
    QUOTA_UNAVAILABLE = "quota_unavailable"
