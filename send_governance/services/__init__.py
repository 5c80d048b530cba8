"""
Services package for the Send Governance backend.

Business logic layer sitting between the API routers and the repositories:

- suppression: SuppressionRegistry (denylist lookups and maintenance)
- quota: QuotaGovernor (daily campaign/workspace ceilings)
- variants: VariantService (variant configuration, sticky weighted assignment)
- significance: Z-test and experiment analysis (pure functions)
- experiments: ExperimentService (lifecycle and results)
- send_decision: SendDecisionPipeline (suppression -> quota -> variant)

Services receive their store, clock and settings by injection; none of them
holds module-level state.
"""

from send_governance.services.suppression import (
    SuppressionRegistry,
    normalize_email,
    is_valid_email,
)
from send_governance.services.quota import QuotaGovernor
from send_governance.services.variants import VariantService, select_weighted_variant
from send_governance.services.significance import (
    analyze_experiment,
    build_variant_stats,
    calculate_z_test_significance,
)
from send_governance.services.experiments import ExperimentService
from send_governance.services.send_decision import SendDecisionPipeline


__all__ = [
    "SuppressionRegistry",
    "normalize_email",
    "is_valid_email",
    "QuotaGovernor",
    "VariantService",
    "select_weighted_variant",
    "analyze_experiment",
    "build_variant_stats",
    "calculate_z_test_significance",
    "ExperimentService",
    "SendDecisionPipeline",
]
