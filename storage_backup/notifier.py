"""Slack notifications for finished backup runs."""

import json
import logging
import urllib.error
import urllib.request
from typing import Any, Dict, Optional

from .backup_manager import RunMetrics, format_duration, format_size
from .errors import NotificationError


def build_backup_message(metrics: RunMetrics) -> Dict[str, Any]:
    """Build a Slack Block Kit message from run metrics."""
    if metrics.total_files == 0:
        return {
            "text": "Storage Backup - Nothing to do",
            "blocks": [
                {
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": "Storage Backup: no files found to back up.",
                    },
                }
            ],
        }

    status = "Success" if not metrics.has_errors else "Completed with errors"
    status_emoji = "✅" if not metrics.has_errors else "⚠️"
    end_time = metrics.end_time or metrics.start_time

    message: Dict[str, Any] = {
        "text": f"Storage Backup - {status}",
        "blocks": [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"Storage Backup {status_emoji}"},
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"Backup Status: *{status}*"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Total Files:*\n{metrics.total_files}"},
                    {"type": "mrkdwn", "text": f"*Duration:*\n{format_duration(metrics.duration)}"},
                    {"type": "mrkdwn", "text": f"*Backed Up:*\n{metrics.success_count}"},
                    {"type": "mrkdwn", "text": f"*Skipped:*\n{metrics.skip_count}"},
                    {"type": "mrkdwn", "text": f"*Errors:*\n{metrics.error_count}"},
                    {"type": "mrkdwn", "text": f"*Total Size:*\n{format_size(metrics.total_bytes)}"},
                ],
            },
            {
                "type": "section",
                "fields": [
                    {
                        "type": "mrkdwn",
                        "text": f"*Started:*\n{metrics.start_time:%Y-%m-%d %H:%M:%S}",
                    },
                    {
                        "type": "mrkdwn",
                        "text": f"*Completed:*\n{end_time:%Y-%m-%d %H:%M:%S}",
                    },
                ],
            },
        ],
    }

    if metrics.has_errors:
        message["blocks"].append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        f"⚠️ *Warning:* {metrics.error_count} file(s) failed to backup. "
                        "Check logs for details."
                    ),
                },
            }
        )

    return message


class SlackNotifier:
    """Posts run summaries to a Slack incoming webhook."""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def send(self, metrics: RunMetrics) -> None:
        """
        Send a backup completion notification.

        Raises:
            NotificationError: If the webhook could not be reached or rejected the message
        """
        if not self.webhook_url:
            self.logger.info("Slack webhook URL not configured, skipping notification")
            return

        body = json.dumps(build_backup_message(metrics)).encode("utf-8")
        request = urllib.request.Request(
            self.webhook_url,
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                if response.getcode() >= 400:
                    raise NotificationError(f"Slack API error: HTTP {response.getcode()}")
        except urllib.error.HTTPError as e:
            raise NotificationError(f"Slack API error: {e.code} - {e.reason}") from e
        except (urllib.error.URLError, OSError) as e:
            raise NotificationError(f"Could not reach Slack webhook: {e}") from e

        self.logger.info("Slack notification sent successfully")
