from __future__ import annotations

"""
Message catalog for notification payloads, sink output and chat buttons.
"""

MESSAGES = {
    # Notification payload
    "notify_title": "Time to take {name}",
    "notify_body": (
        "Dosage: {dosage}\n"
        "Scheduled: {time}\n\n"
        "Click to mark as taken or snooze"
    ),
    # Telegram rendering of a notification
    "telegram_line": "💊 {title}\n{body}",
    "btn_taken": "✅ Taken",
    "btn_snooze": "⏰ Snooze {minutes} min",
    "btn_missed": "Skip",
    "cb_taken": "Marked as taken",
    "cb_snoozed": "Snoozed for {minutes} min",
    "cb_missed": "Marked as missed",
    "cb_unknown": "This reminder no longer exists",
    "startup_greeting": "Medication reminders are running.",
    # Log sink
    "log_line": "{title} | {body}",
}


def fmt(key: str, **kwargs) -> str:
    return MESSAGES[key].format(**kwargs)
