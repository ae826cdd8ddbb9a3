"""User-visible notifications.

The vault reports outcomes ("version saved", "restore failed") through a
:class:`Notifier`. Notifications are fire-and-forget: a notifier must never
raise into the caller or block it for long.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from rich.console import Console

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Protocol for notification sinks."""

    def notify(self, message: str, duration: float | None = None) -> None:
        """Show ``message``.

        Args:
            message: Short text for the user.
            duration: How long the message should stay visible, in seconds.
                A hint only; sinks without a display may ignore it.
        """
        ...


class NullNotifier:
    """Discards every notification."""

    def notify(self, message: str, duration: float | None = None) -> None:
        pass


class LoggingNotifier:
    """Sends notifications to a logger."""

    def __init__(self, level: int = logging.INFO, name: str = __name__) -> None:
        self._logger = logging.getLogger(name)
        self._level = level

    def notify(self, message: str, duration: float | None = None) -> None:
        self._logger.log(self._level, "%s", message)


class ConsoleNotifier:
    """Prints notifications with rich, to stderr by default."""

    def __init__(self, console: Console | None = None, style: str = "cyan") -> None:
        self._console = console or Console(stderr=True)
        self._style = style

    def notify(self, message: str, duration: float | None = None) -> None:
        try:
            self._console.print(message, style=self._style, markup=False)
        except OSError:
            logger.debug("Could not print notification: %s", message, exc_info=True)


@dataclass(frozen=True)
class Notification:
    message: str
    duration: float | None = None


class CollectingNotifier:
    """Keeps every notification in memory.

    Useful in tests and for hosts that render notifications themselves.

    Example:
        >>> notifier = CollectingNotifier()
        >>> notifier.notify("Saved")
        >>> notifier.messages
        ['Saved']
    """

    def __init__(self) -> None:
        self._items: list[Notification] = []
        self._lock = threading.Lock()

    def notify(self, message: str, duration: float | None = None) -> None:
        with self._lock:
            self._items.append(Notification(message, duration))

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._items)

    @property
    def messages(self) -> list[str]:
        return [n.message for n in self.notifications]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
