"""Event serialization to the analytics field-name contract.

Field names, their order and the ``;``-joined name convention are consumed by
downstream analytics; renaming any of them is a breaking change.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from .events import EventSnapshot, FeedbackEvent, StepSnapshot
from .geometry import Polyline

logger = logging.getLogger(__name__)


class EncodingFailure(Exception):
    """The event could not be turned into a JSON-compatible mapping."""


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _put(payload: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        payload[key] = value


def _encoded(geometry: Polyline | None) -> str | None:
    return geometry.encoded if geometry is not None else None


def _step_fields(step: StepSnapshot) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    _put(payload, "upcomingInstruction", step.upcoming_instruction)
    _put(payload, "upcomingType", step.upcoming_type)
    _put(payload, "upcomingModifier", step.upcoming_modifier)
    _put(payload, "upcomingName", step.upcoming_name)
    payload["previousInstruction"] = step.previous_instruction
    payload["previousType"] = step.previous_type
    payload["previousModifier"] = step.previous_modifier
    _put(payload, "previousName", step.previous_name)
    payload["distance"] = step.distance
    payload["duration"] = step.duration
    payload["distanceRemaining"] = step.distance_remaining
    payload["durationRemaining"] = step.duration_remaining
    return payload


def _snapshot_fields(snapshot: EventSnapshot) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    _put(payload, "originalRequestIdentifier", snapshot.original_request_identifier)
    _put(payload, "requestIdentifier", snapshot.request_identifier)
    if snapshot.coordinate is not None:
        payload["lat"] = snapshot.coordinate.latitude
        payload["lng"] = snapshot.coordinate.longitude
    _put(payload, "originalGeometry", _encoded(snapshot.original_geometry))
    _put(payload, "originalDistance", snapshot.original_distance)
    _put(payload, "originalEstimatedDuration", snapshot.original_estimated_duration)
    _put(payload, "originalStepCount", snapshot.original_step_count)
    _put(payload, "geometry", _encoded(snapshot.geometry))
    _put(payload, "distance", snapshot.distance)
    _put(payload, "estimatedDuration", snapshot.estimated_duration)
    _put(payload, "currentStepCount", snapshot.current_step_count)
    payload["created"] = _iso(snapshot.created)
    if snapshot.start_timestamp is not None:
        payload["startTimestamp"] = _iso(snapshot.start_timestamp)
    payload["sdkIdentifier"] = snapshot.sdk_identifier
    payload["sdkVersion"] = snapshot.sdk_version
    payload["profile"] = snapshot.profile
    payload["simulation"] = snapshot.simulation
    payload["sessionIdentifier"] = snapshot.session_identifier
    payload["distanceCompleted"] = snapshot.distance_completed
    payload["distanceRemaining"] = snapshot.distance_remaining
    payload["durationRemaining"] = snapshot.duration_remaining
    payload["rerouteCount"] = snapshot.reroute_count
    payload["volumeLevel"] = snapshot.volume_level
    payload["audioType"] = snapshot.audio_type.value
    payload["screenBrightness"] = snapshot.screen_brightness
    payload["batteryPluggedIn"] = snapshot.battery_plugged_in
    payload["batteryLevel"] = snapshot.battery_level
    payload["applicationState"] = snapshot.application_state.value
    _put(payload, "userAbsoluteDistanceToDestination", snapshot.user_absolute_distance_to_destination)
    _put(payload, "locationEngine", snapshot.location_engine)
    payload["percentTimeInPortrait"] = snapshot.percent_time_in_portrait
    payload["percentTimeInForeground"] = snapshot.percent_time_in_foreground
    _put(payload, "locationManagerDesiredAccuracy", snapshot.location_manager_desired_accuracy)
    payload["stepIndex"] = snapshot.step_index
    payload["stepCount"] = snapshot.step_count
    payload["legIndex"] = snapshot.leg_index
    payload["legCount"] = snapshot.leg_count
    payload["totalStepCount"] = snapshot.total_step_count
    return payload


def _overlay_fields(event: FeedbackEvent) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    _put(payload, "event", event.event)
    if event.arrival_timestamp is not None:
        payload["arrivalTimestamp"] = _iso(event.arrival_timestamp)
    _put(payload, "rating", event.rating)
    _put(payload, "comment", event.comment)
    _put(payload, "userId", event.user_id)
    _put(payload, "feedbackType", event.feedback_type)
    _put(payload, "description", event.description)
    _put(payload, "screenshot", event.screenshot)
    _put(payload, "secondsSinceLastReroute", event.seconds_since_last_reroute)
    _put(payload, "newDistanceRemaining", event.new_distance_remaining)
    _put(payload, "newDurationRemaining", event.new_duration_remaining)
    _put(payload, "newGeometry", _encoded(event.new_geometry))
    if event.step is not None:
        payload["step"] = _step_fields(event.step)
    return payload


def serialize(event: EventSnapshot | FeedbackEvent) -> dict[str, Any]:
    """Map an event to its wire fields. Absent optionals are omitted, not null."""
    try:
        if isinstance(event, FeedbackEvent):
            payload = _snapshot_fields(event.snapshot)
            payload.update(_overlay_fields(event))
        elif isinstance(event, EventSnapshot):
            payload = _snapshot_fields(event)
        else:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")
        # NaN/inf and non-JSON values are rejected here rather than by the transport.
        json.dumps(payload, allow_nan=False)
    except (AttributeError, TypeError, ValueError, OverflowError) as exc:
        logger.error("Failed to encode event details: %s", exc)
        raise EncodingFailure("Failed to encode event details") from exc
    return payload


def dumps(event: EventSnapshot | FeedbackEvent, indent: int | None = None) -> str:
    payload = serialize(event)
    if indent is None:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True)
    return json.dumps(payload, indent=indent, ensure_ascii=True)
