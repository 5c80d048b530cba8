"""
Explicitly invoked jobs for the Send Governance backend.

- experiment_sweep: Ends auto-end experiments that reached a significant
  winner, once per service day, with an optional Slack summary.

Environment Requirements:
- SLACK_WEBHOOK_URL (optional): Slack incoming webhook for sweep summaries,
  format https://hooks.slack.com/services/xxx/yyy/zzz

Usage:
    from send_governance.jobs import run_experiment_sweep

    result = await run_experiment_sweep()
"""

from send_governance.jobs.experiment_sweep import (
    run_experiment_sweep,
    check_already_swept,
    get_sweep_status,
)


__all__ = [
    'run_experiment_sweep',
    'check_already_swept',
    'get_sweep_status',
]
