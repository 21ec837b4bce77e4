"""Session-level accumulator shared by every event of one navigation session."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock

from .device import ApplicationState, Orientation
from .progress import Route

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed(start: datetime, end: datetime) -> float:
    return abs((end - start).total_seconds())


@dataclass(frozen=True)
class SessionSnapshot:
    """Consistent copy of the accumulator, taken under its lock."""

    identifier: str
    original_route: Route
    current_route: Route
    total_distance_completed: float = 0.0
    reroute_count: int = 0
    departure_timestamp: datetime | None = None
    arrival_timestamp: datetime | None = None
    last_reroute_timestamp: datetime | None = None
    time_in_portrait: float = 0.0
    time_in_landscape: float = 0.0
    last_time_in_portrait: datetime = field(default_factory=_now)
    last_time_in_landscape: datetime = field(default_factory=_now)
    time_in_foreground: float = 0.0
    time_in_background: float = 0.0
    last_time_in_foreground: datetime = field(default_factory=_now)
    last_time_in_background: datetime = field(default_factory=_now)


class SessionState:
    """Counters that outlive a single route: reroutes, distance, time buckets.

    ``last_time_in_*`` marks the start of the interval currently being spent in
    that bucket; the interval is committed to the bucket on the next transition.
    """

    def __init__(
        self,
        route: Route,
        identifier: str | None = None,
        started_at: datetime | None = None,
        orientation: Orientation = Orientation.PORTRAIT,
        application_state: ApplicationState = ApplicationState.ACTIVE,
    ) -> None:
        now = started_at or _now()
        self._lock = Lock()
        self._identifier = identifier or str(uuid.uuid4())
        self._original_route = route
        self._current_route = route
        self._total_distance_completed = 0.0
        self._reroute_count = 0
        self._departure_timestamp: datetime | None = None
        self._arrival_timestamp: datetime | None = None
        self._last_reroute_timestamp: datetime | None = None
        self._orientation = orientation
        self._application_state = application_state
        self._time_in_portrait = 0.0
        self._time_in_landscape = 0.0
        self._last_time_in_portrait = now
        self._last_time_in_landscape = now
        self._time_in_foreground = 0.0
        self._time_in_background = 0.0
        self._last_time_in_foreground = now
        self._last_time_in_background = now

    @classmethod
    def restore(
        cls,
        snapshot: SessionSnapshot,
        orientation: Orientation = Orientation.PORTRAIT,
        application_state: ApplicationState = ApplicationState.ACTIVE,
    ) -> "SessionState":
        """Rebuild an accumulator from a previously captured snapshot."""
        state = cls(
            snapshot.original_route,
            identifier=snapshot.identifier,
            orientation=orientation,
            application_state=application_state,
        )
        with state._lock:
            state._current_route = snapshot.current_route
            state._total_distance_completed = snapshot.total_distance_completed
            state._reroute_count = snapshot.reroute_count
            state._departure_timestamp = snapshot.departure_timestamp
            state._arrival_timestamp = snapshot.arrival_timestamp
            state._last_reroute_timestamp = snapshot.last_reroute_timestamp
            state._time_in_portrait = snapshot.time_in_portrait
            state._time_in_landscape = snapshot.time_in_landscape
            state._last_time_in_portrait = snapshot.last_time_in_portrait
            state._last_time_in_landscape = snapshot.last_time_in_landscape
            state._time_in_foreground = snapshot.time_in_foreground
            state._time_in_background = snapshot.time_in_background
            state._last_time_in_foreground = snapshot.last_time_in_foreground
            state._last_time_in_background = snapshot.last_time_in_background
        return state

    @property
    def identifier(self) -> str:
        return self._identifier

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                identifier=self._identifier,
                original_route=self._original_route,
                current_route=self._current_route,
                total_distance_completed=self._total_distance_completed,
                reroute_count=self._reroute_count,
                departure_timestamp=self._departure_timestamp,
                arrival_timestamp=self._arrival_timestamp,
                last_reroute_timestamp=self._last_reroute_timestamp,
                time_in_portrait=self._time_in_portrait,
                time_in_landscape=self._time_in_landscape,
                last_time_in_portrait=self._last_time_in_portrait,
                last_time_in_landscape=self._last_time_in_landscape,
                time_in_foreground=self._time_in_foreground,
                time_in_background=self._time_in_background,
                last_time_in_foreground=self._last_time_in_foreground,
                last_time_in_background=self._last_time_in_background,
            )

    def record_departure(self, now: datetime) -> None:
        with self._lock:
            if self._departure_timestamp is None:
                self._departure_timestamp = now

    def record_arrival(self, now: datetime) -> None:
        with self._lock:
            self._arrival_timestamp = now

    def record_reroute(self, new_route: Route, distance_traveled: float, now: datetime) -> None:
        """Swap in ``new_route``, banking the distance covered on the old one."""
        with self._lock:
            self._total_distance_completed += max(0.0, float(distance_traveled))
            self._reroute_count += 1
            self._current_route = new_route
            self._last_reroute_timestamp = now
            count = self._reroute_count
        logger.debug("Session %s rerouted (count=%d)", self._identifier, count)

    def record_orientation(self, orientation: Orientation, now: datetime) -> None:
        with self._lock:
            previous = self._orientation
            if previous.is_portrait:
                self._time_in_portrait += _elapsed(self._last_time_in_portrait, now)
            elif previous.is_landscape:
                self._time_in_landscape += _elapsed(self._last_time_in_landscape, now)
            if orientation.is_portrait:
                self._last_time_in_portrait = now
            elif orientation.is_landscape:
                self._last_time_in_landscape = now
            self._orientation = orientation

    def record_application_state(self, state: ApplicationState, now: datetime) -> None:
        with self._lock:
            was_foreground = self._application_state is ApplicationState.ACTIVE
            is_foreground = state is ApplicationState.ACTIVE
            if was_foreground == is_foreground:
                self._application_state = state
                return
            if was_foreground:
                self._time_in_foreground += _elapsed(self._last_time_in_foreground, now)
                self._last_time_in_background = now
            else:
                self._time_in_background += _elapsed(self._last_time_in_background, now)
                self._last_time_in_foreground = now
            self._application_state = state
