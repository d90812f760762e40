"""
Notifications

Fire-and-forget message delivery (Telegram).
"""

from statarb.notifications.notifier import (
    Notifier,
    NullNotifier,
    TelegramNotifier,
    build_notifier,
)

__all__ = [
    'Notifier',
    'NullNotifier',
    'TelegramNotifier',
    'build_notifier',
]
