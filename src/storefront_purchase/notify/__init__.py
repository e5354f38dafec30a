from .notifier import (
    CompositeNotifier,
    LogNotifier,
    NotificationReason,
    Notifier,
    WebhookNotifier,
    build_notifier,
)
