"""
Notifications — Slack webhook integration for pipeline sessions.

Notification failure never blocks the pipeline.
"""
import logging
import requests

from leadgen.config import SLACK_WEBHOOK_URL

logger = logging.getLogger('services.notifications')


def _method_label(session) -> str:
    method = (session.params or {}).get('method', '')
    return method.replace('_', ' ').title() or 'Unknown'


def notify_session_complete(session, grade_counts=None):
    """Post session completion summary to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        fields = [
            {"type": "mrkdwn", "text": f"*Leads:* {session.total_leads or 0}"},
            {"type": "mrkdwn", "text": f"*Method:* {_method_label(session)}"},
        ]
        for grade, count in (grade_counts or {}).items():
            fields.append({"type": "mrkdwn", "text": f"*{grade}:* {count}"})

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"Lead Generation Completed — {_method_label(session)}",
                }
            },
            {"type": "section", "fields": fields[:10]},
        ]

        if session.summary:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"_{session.summary}_"}
            })

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Session %s completion notification sent", session.id[:8])

    except Exception:
        logger.error("Failed to send notification for session %s", session.id[:8], exc_info=True)


def notify_session_failed(session, message: str = ''):
    """Post session failure alert to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        failed_stage = ''
        if session.latest_event is not None:
            failed_stage = session.latest_event.payload.get('stage', '')

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"Lead Generation FAILED — {_method_label(session)}",
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Stage:* {failed_stage or 'unknown'}"},
                    {"type": "mrkdwn", "text": f"*Session:* {session.id}"},
                ]
            },
        ]

        error = message or session.summary
        if error:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Error:* ```{error[:500]}```"}
            })

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Session %s failure notification sent", session.id[:8])

    except Exception:
        logger.error("Failed to send failure notification for session %s", session.id[:8], exc_info=True)
