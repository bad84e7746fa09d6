import logging
from typing import Callable

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """A user-facing toast: short title, human-readable description."""
    title: str
    description: str = ""
    variant: str = "default"  # default | destructive


Notifier = Callable[[Notification], None]


def log_notifier(notification: Notification) -> None:
    """Default notifier: turns toasts into log lines."""
    level = logging.WARNING if notification.variant == "destructive" else logging.INFO
    logger.log(level, f"[NOTIFY] {notification.title}: {notification.description}")


def notify(notifier: Notifier, title: str, description: str = "", variant: str = "default") -> None:
    """Fire-and-forget: a failing notifier is logged and never interrupts the caller."""
    try:
        notifier(Notification(title=title, description=description, variant=variant))
    except Exception as e:
        logger.warning(f"[NOTIFY] Notifier failed: {e}")
