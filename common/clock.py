"""Injectable time source for expiry checks and the sweeper."""

from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string


class SystemClock:
    """Wall-clock time, timezone-aware (UTC)."""

    def now(self):
        return timezone.now()


class FrozenClock:
    """Clock that only moves when told to.

    Usage::

        clock = FrozenClock()
        token = create_token(requester, timedelta(seconds=1), clock=clock)
        clock.advance(seconds=2)
        sweep(clock=clock)
    """

    def __init__(self, now=None):
        self._now = now or timezone.now()

    def now(self):
        return self._now

    def set(self, now):
        self._now = now

    def advance(self, **kwargs):
        """Move the clock forward by ``timedelta(**kwargs)``."""
        self._now = self._now + timedelta(**kwargs)
        return self._now


def get_clock(clock=None):
    """Return ``clock`` if given, else an instance of ``settings.VRAC_CLOCK``."""
    if clock is not None:
        return clock
    clock_path = settings.VRAC_CLOCK
    return import_string(clock_path)()
