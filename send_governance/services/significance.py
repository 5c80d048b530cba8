"""
Statistical significance for A/B experiments.

Pure functions, no I/O. The experiment service feeds them per-variant
statistics and persists what they decide.

Z-test to Confidence Mapping:
The two-proportion Z statistic is converted to a discrete confidence value
that consumers treat as "confidence_level":

    z >= 2.576  -> 99
    z >= 1.96   -> 95
    z >= 1.645  -> 90
    z >= 1.28   -> 80
    otherwise   -> min(z * 30, 70)

This is a lookup, not a p-value, and must stay exactly as written.

Success Metrics:
    open_rate        -> unique_opens    / emails_delivered
    click_rate       -> unique_clicks   / emails_delivered
    reply_rate       -> emails_replied  / emails_delivered
    conversion_rate  -> emails_replied  / emails_delivered  (reply as proxy)
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple

from send_governance.models import (
    Experiment,
    ExperimentOutcome,
    ExperimentResult,
    SuccessMetric,
    VariantCounts,
    VariantResult,
)


# success metric -> (rate field, conversion count field)
METRIC_FIELDS: Dict[SuccessMetric, Tuple[str, str]] = {
    SuccessMetric.OPEN_RATE: ('open_rate', 'unique_opens'),
    SuccessMetric.CLICK_RATE: ('click_rate', 'unique_clicks'),
    SuccessMetric.REPLY_RATE: ('reply_rate', 'emails_replied'),
    SuccessMetric.CONVERSION_RATE: ('reply_rate', 'emails_replied'),
}

# (minimum z, confidence) from strictest to loosest
Z_CONFIDENCE_THRESHOLDS: Tuple[Tuple[float, float], ...] = (
    (2.576, 99.0),
    (1.96, 95.0),
    (1.645, 90.0),
    (1.28, 80.0),
)

NO_WINNER_RECOMMENDATION = "No statistically significant winner yet. Continue collecting data."


def calculate_z_test_significance(
    control_conversions: int,
    control_sample: int,
    variant_conversions: int,
    variant_sample: int,
) -> float:
    """
    Confidence that two conversion rates differ.

    Returns 0 when either sample is empty or the pooled rate is 0 or 1
    (no variance to test against).

    Example:
        >>> calculate_z_test_significance(5, 1000, 50, 1000)
        99.0
        >>> calculate_z_test_significance(10, 100, 10, 100)
        0.0
    """
    if control_sample == 0 or variant_sample == 0:
        return 0.0

    p1 = control_conversions / control_sample
    p2 = variant_conversions / variant_sample
    pooled = (control_conversions + variant_conversions) / (control_sample + variant_sample)

    if pooled == 0 or pooled == 1:
        return 0.0

    se = math.sqrt(pooled * (1 - pooled) * (1 / control_sample + 1 / variant_sample))
    if se == 0:
        return 0.0

    z = abs(p1 - p2) / se

    for threshold, confidence in Z_CONFIDENCE_THRESHOLDS:
        if z >= threshold:
            return confidence
    return min(z * 30, 70.0)


def _percent(numerator: int, denominator: int) -> float:
    return (numerator / denominator) * 100 if denominator > 0 else 0.0


def build_variant_stats(
    counts: VariantCounts,
    name: str = "Unknown",
    is_control: bool = False,
) -> VariantResult:
    """
    Derive percentage rates from raw counts.

    Open, click and reply rates are over delivered emails; click-to-open is
    over opens. sample_size is the number of emails sent.
    """
    return VariantResult(
        **counts.model_dump(include=set(VariantCounts.model_fields)),
        name=name,
        is_control=is_control,
        open_rate=_percent(counts.unique_opens, counts.emails_delivered),
        click_rate=_percent(counts.unique_clicks, counts.emails_delivered),
        reply_rate=_percent(counts.emails_replied, counts.emails_delivered),
        click_to_open_rate=_percent(counts.unique_clicks, counts.unique_opens),
        sample_size=counts.emails_sent,
    )


def _metric_rate(stats: VariantResult, metric: SuccessMetric) -> float:
    return getattr(stats, METRIC_FIELDS[metric][0])


def _metric_conversions(stats: VariantResult, metric: SuccessMetric) -> int:
    return getattr(stats, METRIC_FIELDS[metric][1])


def analyze_experiment(
    experiment: Experiment, variants: Sequence[VariantResult]
) -> ExperimentResult:
    """
    Decide whether an experiment has a winner.

    Steps:
    1. Fewer total samples than minimum_sample_size -> insufficient_data.
    2. Without exactly one control no comparison is possible -> no_winner.
    3. Each non-control variant is tested against control; the candidate
       with the highest confidence that reaches the target and has positive
       lift wins.
    4. Only if step 3 found nothing, control is tested against each
       variant with lift measured in control's favour.

    Lift is (winner_rate - other_rate) / other_rate * 100, and 0 when the
    reference rate is 0.
    """
    variant_list: List[VariantResult] = list(variants)
    metric = experiment.success_metric
    target = experiment.confidence_level

    total_samples = sum(v.sample_size for v in variant_list)
    if total_samples < experiment.minimum_sample_size:
        missing = experiment.minimum_sample_size - total_samples
        return ExperimentResult(
            experiment_id=experiment.id,
            status=ExperimentOutcome.INSUFFICIENT_DATA,
            confidence_level=0,
            variants=variant_list,
            recommendation=f"Need {missing} more sends to reach minimum sample size",
        )

    controls = [v for v in variant_list if v.is_control]
    challengers = [v for v in variant_list if not v.is_control]

    if len(controls) != 1:
        problem = "no control variant" if not controls else f"{len(controls)} control variants"
        return ExperimentResult(
            experiment_id=experiment.id,
            status=ExperimentOutcome.NO_WINNER,
            confidence_level=0,
            variants=variant_list,
            recommendation=(
                f"Experiment has {problem}; mark exactly one variant as control "
                "to compare results."
            ),
        )

    control = controls[0]
    control_rate = _metric_rate(control, metric)

    best: Optional[VariantResult] = None
    best_significance = 0.0
    best_lift = 0.0

    for variant in challengers:
        significance = calculate_z_test_significance(
            _metric_conversions(control, metric),
            control.emails_delivered,
            _metric_conversions(variant, metric),
            variant.emails_delivered,
        )
        variant_rate = _metric_rate(variant, metric)
        lift = ((variant_rate - control_rate) / control_rate) * 100 if control_rate > 0 else 0.0

        if significance >= target and lift > 0 and significance > best_significance:
            best = variant
            best_significance = significance
            best_lift = lift

    if best is None:
        for variant in challengers:
            significance = calculate_z_test_significance(
                _metric_conversions(variant, metric),
                variant.emails_delivered,
                _metric_conversions(control, metric),
                control.emails_delivered,
            )
            variant_rate = _metric_rate(variant, metric)
            lift = ((control_rate - variant_rate) / variant_rate) * 100 if variant_rate > 0 else 0.0

            if significance >= target and lift > 0 and significance > best_significance:
                best = control
                best_significance = significance
                best_lift = lift

    if best is not None:
        return ExperimentResult(
            experiment_id=experiment.id,
            status=ExperimentOutcome.WINNER_FOUND,
            winner_variant_id=best.variant_id,
            winner_name=best.name,
            confidence_level=best_significance,
            lift_percent=best_lift,
            variants=variant_list,
            recommendation=(
                f"{best.name} outperforms with {best_lift:.1f}% lift at "
                f"{best_significance:.1f}% confidence"
            ),
        )

    return ExperimentResult(
        experiment_id=experiment.id,
        status=ExperimentOutcome.NO_WINNER,
        confidence_level=best_significance,
        variants=variant_list,
        recommendation=NO_WINNER_RECOMMENDATION,
    )
