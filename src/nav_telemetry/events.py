"""Immutable event snapshot types."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from .device import ApplicationState, AudioType
from .geometry import Coordinate, Polyline


class EventType(str, Enum):
    DEPART = "navigation.depart"
    ARRIVE = "navigation.arrive"
    CANCEL = "navigation.cancel"
    FEEDBACK = "navigation.feedback"
    REROUTE = "navigation.reroute"


class StepSnapshot(BaseModel):
    """Current and upcoming maneuver at event time."""

    model_config = ConfigDict(frozen=True)

    upcoming_instruction: str | None = None
    upcoming_type: str | None = None
    upcoming_modifier: str | None = None
    upcoming_name: str | None = None
    previous_instruction: str
    previous_type: str
    previous_modifier: str
    previous_name: str | None = None
    distance: int | float
    duration: int | float
    distance_remaining: int | float
    duration_remaining: int | float


class EventSnapshot(BaseModel):
    """What is happening right now, as of ``created``.

    Numeric measures are ints. A NaN or infinite input stays a float here and
    is rejected by the serializer.
    """

    model_config = ConfigDict(frozen=True)

    session_identifier: str
    original_request_identifier: str | None = None
    request_identifier: str | None = None

    coordinate: Coordinate | None = None
    user_absolute_distance_to_destination: float | None = None

    original_geometry: Polyline | None = None
    original_distance: int | float | None = None
    original_estimated_duration: int | float | None = None
    original_step_count: int | None = None
    geometry: Polyline | None = None
    distance: int | float | None = None
    estimated_duration: int | float | None = None
    current_step_count: int | None = None

    created: datetime
    start_timestamp: datetime | None = None
    sdk_identifier: str
    sdk_version: str
    profile: str
    simulation: bool
    distance_completed: int | float
    distance_remaining: int | float
    duration_remaining: int | float
    reroute_count: int

    volume_level: int | float
    audio_type: AudioType
    screen_brightness: int | float
    battery_plugged_in: bool
    battery_level: int | float
    application_state: ApplicationState
    location_engine: str | None = None
    location_manager_desired_accuracy: float | None = None
    percent_time_in_portrait: int | float
    percent_time_in_foreground: int | float

    step_index: int
    step_count: int
    leg_index: int
    leg_count: int
    total_step_count: int


class FeedbackEvent(BaseModel):
    """A snapshot plus the overlay fields of a specific event kind."""

    model_config = ConfigDict(frozen=True)

    snapshot: EventSnapshot
    event: str | None = None
    arrival_timestamp: datetime | None = None
    rating: int | None = None
    comment: str | None = None
    user_id: str | None = None
    feedback_type: str | None = None
    description: str | None = None
    screenshot: str | None = None
    seconds_since_last_reroute: int | None = None
    new_distance_remaining: int | float | None = None
    new_duration_remaining: int | float | None = None
    new_geometry: Polyline | None = None
    step: StepSnapshot | None = None

    def with_overlay(self, **changes) -> "FeedbackEvent":
        """Copy with overlay fields replaced, validated like a freshly built event."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown overlay fields: {', '.join(sorted(unknown))}")
        return type(self).model_validate({**dict(self), **changes})
