"""Event snapshot construction.

``EventSnapshotBuilder.build`` is total: every missing input maps to an absent
field, a zero or a sentinel, never to an exception. NaN and infinite
measures are carried into the snapshot unchanged and rejected at serialization;
naive datetimes are read as UTC.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from .config import Settings, settings as default_settings
from .device import ApplicationState, DeviceState, DeviceStateProvider
from .events import EventSnapshot, EventType, FeedbackEvent, StepSnapshot
from .geometry import POLYLINE_PRECISION, Polyline, haversine_distance, round_half_away, truncate
from .progress import Route, RouteProgress
from .session import SessionSnapshot, SessionState

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # Naive datetimes are taken as UTC, matching the serializer.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _elapsed(start: datetime, now: datetime) -> float:
    return abs((_aware(now) - _aware(start)).total_seconds())


def percent_of_total(part: float, other: float) -> int | float:
    """``part / (part + other) * 100`` truncated; 100 when both are zero.

    A NaN bucket yields NaN so the serializer can reject it.
    """
    total = part + other
    if total <= 0:
        return 100
    ratio = truncate(part / total * 100)
    if isinstance(ratio, float):
        return ratio
    return max(0, min(100, ratio))


def percent_time_in_portrait(session: SessionSnapshot, device: DeviceState, now: datetime) -> int | float:
    portrait = session.time_in_portrait
    landscape = session.time_in_landscape
    if device.orientation.is_portrait:
        portrait += _elapsed(session.last_time_in_portrait, now)
    elif device.orientation.is_landscape:
        landscape += _elapsed(session.last_time_in_landscape, now)
    return percent_of_total(portrait, landscape)


def percent_time_in_foreground(session: SessionSnapshot, device: DeviceState, now: datetime) -> int | float:
    foreground = session.time_in_foreground
    background = session.time_in_background
    if device.application_state is ApplicationState.ACTIVE:
        foreground += _elapsed(session.last_time_in_foreground, now)
    else:
        background += _elapsed(session.last_time_in_background, now)
    return percent_of_total(foreground, background)


def _route_fields(route: Route, prefix: str, step_key: str, precision: int) -> dict:
    if not route.has_geometry:
        return {}
    return {
        f"{prefix}geometry": Polyline(tuple(route.coordinates), precision),
        f"{prefix}distance": round_half_away(route.distance),
        f"{prefix}estimated_duration": round_half_away(route.expected_travel_time),
        step_key: route.step_count,
    }


def build_step_snapshot(progress: RouteProgress) -> StepSnapshot | None:
    """Maneuver context for the current step; None when there is no current step."""
    current = progress.current_step
    if current is None:
        return None
    upcoming = progress.upcoming_step
    return StepSnapshot(
        upcoming_instruction=upcoming.instruction if upcoming else None,
        upcoming_type=upcoming.maneuver_type if upcoming else None,
        upcoming_modifier=upcoming.maneuver_direction if upcoming else None,
        upcoming_name=upcoming.joined_names if upcoming else None,
        previous_instruction=current.instruction,
        previous_type=current.maneuver_type,
        previous_modifier=current.maneuver_direction,
        previous_name=current.joined_names,
        distance=truncate(current.distance),
        duration=truncate(current.expected_travel_time),
        distance_remaining=truncate(progress.step_distance_remaining),
        duration_remaining=truncate(progress.step_duration_remaining),
    )


class EventSnapshotBuilder:
    """Assembles :class:`EventSnapshot` values from live session inputs."""

    def __init__(
        self,
        sdk_version: str,
        sdk_identifier: str,
        polyline_precision: int = POLYLINE_PRECISION,
    ) -> None:
        self.sdk_version = sdk_version
        self.sdk_identifier = sdk_identifier
        self.polyline_precision = int(polyline_precision)

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "EventSnapshotBuilder":
        config = config or default_settings
        return cls(
            sdk_version=config.sdk_version,
            sdk_identifier=config.sdk_identifier,
            polyline_precision=config.polyline_precision,
        )

    def build(
        self,
        session: SessionState,
        progress: RouteProgress,
        device: DeviceStateProvider,
        now: datetime,
    ) -> EventSnapshot:
        snapshot, _ = self._capture(session, progress, device, now)
        return snapshot

    def _capture(
        self,
        session: SessionState,
        progress: RouteProgress,
        device: DeviceStateProvider,
        now: datetime,
    ) -> tuple[EventSnapshot, SessionSnapshot]:
        state = session.snapshot()
        return self._assemble(state, progress, device.read(), now), state

    def _assemble(
        self,
        state: SessionSnapshot,
        progress: RouteProgress,
        facts: DeviceState,
        now: datetime,
    ) -> EventSnapshot:
        provider = facts.location_provider
        destination = state.current_route.destination
        location = facts.location
        distance_to_destination = None
        if location is not None and destination is not None:
            distance_to_destination = haversine_distance(location, destination)

        snapshot = EventSnapshot(
            session_identifier=state.identifier,
            original_request_identifier=state.original_route.identifier,
            request_identifier=state.current_route.identifier,
            coordinate=location,
            user_absolute_distance_to_destination=distance_to_destination,
            **_route_fields(state.original_route, "original_", "original_step_count", self.polyline_precision),
            **_route_fields(state.current_route, "", "current_step_count", self.polyline_precision),
            created=_aware(now),
            start_timestamp=state.departure_timestamp,
            sdk_identifier=self.sdk_identifier,
            sdk_version=self.sdk_version,
            profile=state.current_route.profile,
            simulation=bool(provider and provider.is_simulated),
            distance_completed=round_half_away(state.total_distance_completed + progress.distance_traveled),
            distance_remaining=round_half_away(progress.distance_remaining),
            duration_remaining=round_half_away(progress.duration_remaining),
            reroute_count=state.reroute_count,
            volume_level=facts.volume_level,
            audio_type=facts.audio_type,
            screen_brightness=facts.brightness_level,
            battery_plugged_in=facts.battery_plugged_in,
            battery_level=facts.battery_level_percent,
            application_state=facts.application_state,
            location_engine=provider.name if provider else None,
            location_manager_desired_accuracy=provider.desired_accuracy if provider else None,
            percent_time_in_portrait=percent_time_in_portrait(state, facts, now),
            percent_time_in_foreground=percent_time_in_foreground(state, facts, now),
            step_index=progress.step_index,
            step_count=progress.step_count,
            leg_index=progress.leg_index,
            leg_count=progress.leg_count,
            total_step_count=progress.total_step_count,
        )
        logger.debug(
            "Built event snapshot for session %s (leg %d/%d, step %d/%d)",
            snapshot.session_identifier,
            snapshot.leg_index,
            snapshot.leg_count,
            snapshot.step_index,
            snapshot.step_count,
        )
        return snapshot

    # ------------------------------------------------------------------
    # Overlay events
    # ------------------------------------------------------------------

    def depart(
        self,
        session: SessionState,
        progress: RouteProgress,
        device: DeviceStateProvider,
        now: datetime,
    ) -> FeedbackEvent:
        snapshot, _ = self._capture(session, progress, device, now)
        return FeedbackEvent(snapshot=snapshot, event=EventType.DEPART.value)

    def arrive(
        self,
        session: SessionState,
        progress: RouteProgress,
        device: DeviceStateProvider,
        now: datetime,
    ) -> FeedbackEvent:
        snapshot, _ = self._capture(session, progress, device, now)
        return FeedbackEvent(snapshot=snapshot, event=EventType.ARRIVE.value, arrival_timestamp=now)

    def cancel(
        self,
        session: SessionState,
        progress: RouteProgress,
        device: DeviceStateProvider,
        now: datetime,
        rating: int | None = None,
        comment: str | None = None,
    ) -> FeedbackEvent:
        snapshot, state = self._capture(session, progress, device, now)
        return FeedbackEvent(
            snapshot=snapshot,
            event=EventType.CANCEL.value,
            arrival_timestamp=state.arrival_timestamp,
            rating=rating,
            comment=comment,
        )

    def reroute(
        self,
        session: SessionState,
        progress: RouteProgress,
        device: DeviceStateProvider,
        now: datetime,
        new_route: Route,
    ) -> FeedbackEvent:
        """Reroute event; call before the session records ``new_route``.

        ``seconds_since_last_reroute`` is -1 when this is the first reroute.
        """
        snapshot, state = self._capture(session, progress, device, now)
        last = state.last_reroute_timestamp
        seconds = round_half_away(_elapsed(last, now)) if last is not None else -1
        new_geometry = None
        if new_route.has_geometry:
            new_geometry = Polyline(tuple(new_route.coordinates), self.polyline_precision)
        return FeedbackEvent(
            snapshot=snapshot,
            event=EventType.REROUTE.value,
            seconds_since_last_reroute=seconds,
            new_distance_remaining=round_half_away(new_route.distance),
            new_duration_remaining=round_half_away(new_route.expected_travel_time),
            new_geometry=new_geometry,
            step=build_step_snapshot(progress),
        )

    def feedback(
        self,
        session: SessionState,
        progress: RouteProgress,
        device: DeviceStateProvider,
        now: datetime,
        feedback_type: str,
        description: str | None = None,
        screenshot: str | None = None,
        user_id: str | None = None,
    ) -> FeedbackEvent:
        snapshot, _ = self._capture(session, progress, device, now)
        return FeedbackEvent(
            snapshot=snapshot,
            event=EventType.FEEDBACK.value,
            feedback_type=feedback_type,
            description=description,
            screenshot=screenshot,
            user_id=user_id,
            step=build_step_snapshot(progress),
        )
