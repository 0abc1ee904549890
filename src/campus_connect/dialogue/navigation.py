from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

from campus_connect.config import SETTINGS
from campus_connect.data_models import ClassificationResult, Intent, Navigation, NavigationTarget

logger = logging.getLogger(__name__)

TUTORS_ROUTE = "/tutors"
TEAMMATES_ROUTE = "/teammates"


def navigation_for(result: ClassificationResult) -> Navigation | None:
    """Map an action intent and its slots to a route plus query parameters."""
    if result.intent == Intent.FIND_TUTOR:
        return Navigation(
            target=NavigationTarget.TUTOR_LISTING,
            route=TUTORS_ROUTE,
            params=_params(mode="find", subject=result.subject, department=result.department),
        )
    if result.intent == Intent.HELP_REQUEST:
        return Navigation(
            target=NavigationTarget.REQUEST_POSTING,
            route=TUTORS_ROUTE,
            params=_params(mode="student", subject=result.subject, department=result.department),
        )
    if result.intent == Intent.BECOME_TUTOR:
        return Navigation(
            target=NavigationTarget.TUTOR_REGISTRATION,
            route=TUTORS_ROUTE,
            params=_params(mode="tutor"),
        )
    if result.intent == Intent.FIND_TEAMMATE:
        return Navigation(
            target=NavigationTarget.TEAMMATE_LISTING,
            route=TEAMMATES_ROUTE,
            params=_params(skill=result.subject, department=result.department),
        )
    return None


def _params(**values: str | None) -> dict[str, str]:
    return {key: value for key, value in values.items() if value}


class Navigator(Protocol):
    def schedule(self, navigation: Navigation) -> None: ...


class DelayedNavigator:
    """Performs a navigation after a fixed delay on a background timer.

    The caller never waits on the timer; a failing callback is logged and
    dropped.
    """

    def __init__(
        self,
        navigate: Callable[[Navigation], None],
        delay_seconds: float | None = None,
    ) -> None:
        self.navigate = navigate
        self.delay_seconds = SETTINGS.navigation_delay_seconds if delay_seconds is None else delay_seconds
        self._timers: list[threading.Timer] = []

    def schedule(self, navigation: Navigation) -> threading.Timer:
        timer = threading.Timer(self.delay_seconds, self._fire, args=(navigation,))
        timer.daemon = True
        self._timers = [t for t in self._timers if t.is_alive()]
        self._timers.append(timer)
        timer.start()
        return timer

    def cancel_pending(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    def _fire(self, navigation: Navigation) -> None:
        try:
            self.navigate(navigation)
        except Exception:
            logger.exception("Navigation to %s failed", navigation.url())

