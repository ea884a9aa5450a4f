"""
Injectable time provider.

Status projection and signing timestamps read "now" through a Clock so the
same inputs always give the same outputs. The app keeps one on
``app.extensions["clock"]``; tests swap in a ``FixedClock``.
"""
from datetime import date, datetime, timezone

from flask import current_app


class Clock:
    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    def __init__(self, moment):
        if isinstance(moment, date) and not isinstance(moment, datetime):
            moment = datetime(moment.year, moment.month, moment.day)
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, delta):
        self.moment = self.moment + delta


def get_clock() -> Clock:
    return current_app.extensions.get("clock") or SystemClock()
