"""Discord webhook notifications for install and server lifecycle events."""

import logging
from datetime import datetime, timezone

import requests

GREEN = 3066993
BLUE = 3447003
RED = 15158332


def send_discord_notification(webhook_url, message, title="Nomad Server", color=BLUE):
    """Send a notification to Discord webhook.

    Args:
        webhook_url: Webhook to post to; nothing is sent when empty
        message: The message content
        title: Embed title
        color: Embed color (decimal)

    Returns True if Discord accepted the message. Failures are logged, never raised.
    """
    if not webhook_url:
        return False

    embed = {
        "title": title,
        "description": message,
        "color": color,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "footer": {
            "text": "Nomad Egg"
        }
    }

    try:
        response = requests.post(webhook_url, json={"embeds": [embed]}, timeout=5)
    except requests.RequestException as e:
        logging.error(f"Failed to send Discord notification: {e}")
        return False

    if response.status_code not in [200, 204]:
        logging.error(f"Discord webhook failed with status {response.status_code}: {response.text}")
        return False

    return True
