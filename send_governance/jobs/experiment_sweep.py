"""
Experiment auto-end sweep with Slack summary.

Experiments created with auto_end_on_significance=True are not ended by the
send path. This job is invoked explicitly (cron, worker, operator) and, for
every such running experiment, computes the current results and completes
the experiment when a winner is found. A Slack Block Kit summary of the
sweep is posted through slack-sdk's WebhookClient when SLACK_WEBHOOK_URL is
configured.

Idempotency:
- One sweep per service day, tracked in job_sweep_state keyed by
  (job_type, sweep_date)
- force=True runs again and increments run_count
- Ending an experiment is itself a conditional transition, so an experiment
  completed concurrently by an operator is skipped, not double-completed

Usage:
    # Sweep for today's service day
    result = await run_experiment_sweep()

    # Re-run even if today's sweep already happened
    result = await run_experiment_sweep(force=True)

    # Monitoring
    status = await get_sweep_status()
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from slack_sdk.webhook import WebhookClient

from send_governance.core.clock import ServiceClock
from send_governance.core.config import get_settings
from send_governance.core.database import get_db_pool
from send_governance.core.errors import GovernanceError
from send_governance.models import ExperimentOutcome
from send_governance.repositories.postgres import PostgresExperimentStore
from send_governance.services.experiments import ExperimentService


logger = logging.getLogger(__name__)

JOB_TYPE = 'experiment_sweep'


# =============================================================================
# Idempotency Functions
# =============================================================================

async def check_already_swept(sweep_date: date) -> bool:
    """Whether a sweep has already completed for the given service day."""
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """
            SELECT sweep_date, ran_at
            FROM job_sweep_state
            WHERE job_type = $1
              AND sweep_date = $2
            """,
            JOB_TYPE,
            sweep_date,
        )
        return row is not None


async def mark_sweep_completed(sweep_date: date, ran_at) -> None:
    """Record a completed sweep; a forced re-run bumps run_count."""
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO job_sweep_state (job_type, sweep_date, ran_at, run_count)
            VALUES ($1, $2, $3, 1)
            ON CONFLICT (job_type, sweep_date)
            DO UPDATE SET
                ran_at = EXCLUDED.ran_at,
                run_count = job_sweep_state.run_count + 1
            """,
            JOB_TYPE,
            sweep_date,
            ran_at,
        )


# =============================================================================
# Slack Message Formatting
# =============================================================================

def format_sweep_message(
    sweep_date: date,
    ended: List[Dict[str, Any]],
    still_running: int,
    errors: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Build the Slack Block Kit blocks summarising one sweep."""
    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"A/B Experiment Sweep - {sweep_date.strftime('%B %d, %Y')}",
                "emoji": True,
            },
        },
        {"type": "divider"},
    ]

    if ended:
        lines = []
        for item in ended:
            lift = item.get('lift_percent')
            lift_str = f"{lift:.1f}% lift" if lift is not None else "no lift data"
            lines.append(
                f"• *{item['experiment_name']}*: {item['winner_name']} wins "
                f"({lift_str}, {item['confidence_level']:.0f}% confidence)"
            )
        text = f"*Winners declared ({len(ended)})*\n\n" + "\n".join(lines)
    else:
        text = "*No experiment reached significance today.*"

    blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": text}})

    blocks.append({
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": f"Still collecting data: *{still_running}* experiment(s)",
        },
    })

    if errors:
        error_lines = "\n".join(f"• {item['experiment_id']}: {item['error']}" for item in errors)
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Sweep errors*\n\n{error_lines}"},
        })

    return blocks


def post_to_slack(webhook_url: str, blocks: List[Dict[str, Any]]) -> Optional[str]:
    """Send blocks to Slack; returns an error string, or None on success."""
    client = WebhookClient(webhook_url)
    response = client.send(blocks=blocks)
    if response.status_code != 200:
        return f"Slack API returned status {response.status_code}: {response.body}"
    return None


# =============================================================================
# Main Entry Points
# =============================================================================

async def run_experiment_sweep(
    sweep_date: Optional[date] = None,
    force: bool = False,
    service: Optional[ExperimentService] = None,
    clock: Optional[ServiceClock] = None,
) -> Dict[str, Any]:
    """
    End every auto-end experiment that has a significant winner.

    Args:
        sweep_date: Service day being swept (default: today on the service clock).
        force: Run even if a sweep already completed for sweep_date.
        service: ExperimentService to use (default: PostgreSQL-backed).
        clock: ServiceClock to use (default: SERVICE_TIMEZONE).

    Returns:
        Dict with success, skipped/reason when skipped, the ids of ended
        experiments, how many remain running, per-experiment errors and
        whether a Slack summary was posted.
    """
    settings = get_settings()
    clock = clock or ServiceClock()
    service = service or ExperimentService(PostgresExperimentStore(), clock=clock)
    target_date = sweep_date or clock.today()

    if not force and await check_already_swept(target_date):
        return {
            'success': True,
            'skipped': True,
            'reason': f'Sweep already ran for {target_date}',
            'date': str(target_date),
        }

    candidates = await service.list_auto_end_candidates()
    ended: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    still_running = 0

    for experiment in candidates:
        try:
            results = await service.get_experiment_results(experiment.id)
            if results is None or results.status != ExperimentOutcome.WINNER_FOUND:
                still_running += 1
                continue

            completed = await service.complete_with_results(experiment.id, results)
        except GovernanceError as e:
            logger.warning(f"Sweep could not process experiment {experiment.id}: {e.message}")
            errors.append({'experiment_id': experiment.id, 'error': e.message})
            continue

        if completed is None:
            continue

        logger.info(
            f"Auto-ended experiment {experiment.id}: winner {results.winner_variant_id} "
            f"at {results.confidence_level:.0f}% confidence"
        )
        ended.append({
            'experiment_id': experiment.id,
            'experiment_name': experiment.name,
            'winner_variant_id': results.winner_variant_id,
            'winner_name': results.winner_name,
            'confidence_level': results.confidence_level,
            'lift_percent': results.lift_percent,
        })

    await mark_sweep_completed(target_date, clock.now())

    result: Dict[str, Any] = {
        'success': True,
        'date': str(target_date),
        'ended': [item['experiment_id'] for item in ended],
        'still_running': still_running,
        'errors': errors,
        'notified': False,
    }

    if settings.slack_webhook_url:
        blocks = format_sweep_message(target_date, ended, still_running, errors)
        try:
            slack_error = post_to_slack(settings.slack_webhook_url, blocks)
        except Exception as e:
            logger.exception("Failed to post experiment sweep summary to Slack")
            slack_error = f'Failed to send Slack message: {e}'

        if slack_error:
            result['slack_error'] = slack_error
        else:
            result['notified'] = True

    return result


async def get_sweep_status() -> Dict[str, Any]:
    """Most recent sweep runs, for monitoring."""
    settings = get_settings()
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            SELECT sweep_date, ran_at, run_count
            FROM job_sweep_state
            WHERE job_type = $1
            ORDER BY sweep_date DESC
            LIMIT 7
            """,
            JOB_TYPE,
        )

    recent = [
        {
            'date': str(row['sweep_date']),
            'ran_at': row['ran_at'].isoformat() if row['ran_at'] else None,
            'run_count': row['run_count'],
        }
        for row in rows
    ]
    return {
        'last_sweep_date': recent[0]['date'] if recent else None,
        'recent': recent,
        'slack_configured': bool(settings.slack_webhook_url),
    }
