"""Scenario loading: session, progress and device inputs from YAML or JSON."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from .device import (
    ApplicationState,
    AudioPort,
    BatteryState,
    DeviceState,
    LocationProvider,
    LocationProviderKind,
    Orientation,
    StaticDeviceStateProvider,
)
from .geometry import Coordinate
from .progress import Route, RouteLeg, RouteProgress, RouteStep
from .session import SessionSnapshot, SessionState


@dataclass
class Scenario:
    session: SessionState
    progress: RouteProgress
    device: StaticDeviceStateProvider
    now: datetime
    new_route: Route | None = None
    overlay: dict[str, Any] = field(default_factory=dict)


def load_scenario(path: str) -> Scenario:
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    ext = p.suffix.lower()
    try:
        if ext in (".yaml", ".yml"):
            payload = yaml.safe_load(text)
        elif ext == ".json":
            payload = json.loads(text)
        else:
            # Fallback: try JSON first then YAML.
            try:
                payload = json.loads(text)
            except ValueError:
                payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid scenario file {p.name}: {exc}") from exc
    return scenario_from_dict(payload)


def parse_timestamp(value: Any, key: str) -> datetime:
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        try:
            ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"`{key}` must be an ISO-8601 timestamp.") from None
    else:
        raise ValueError(f"`{key}` must be an ISO-8601 timestamp.")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _optional_timestamp(data: dict, key: str) -> datetime | None:
    value = data.get(key)
    return parse_timestamp(value, key) if value is not None else None


def _coordinate(value: Any, key: str) -> Coordinate:
    if not (isinstance(value, (list, tuple)) and len(value) == 2):
        raise ValueError(f"`{key}` must be a [lat, lng] pair.")
    return Coordinate(_number(value[0], key), _number(value[1], key))


def _enum(enum_cls, value: Any, key: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(str(m.value) for m in enum_cls)
        raise ValueError(f"`{key}` must be one of: {allowed}.") from None


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"`{key}` must be a number.")
    return float(value)


def _integer(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"`{key}` must be an integer.")
    return value


def _optional_number(data: dict, key: str, prefix: str) -> float | None:
    value = data.get(key)
    return _number(value, f"{prefix}.{key}") if value is not None else None


def _route(data: Any, key: str) -> Route:
    if not isinstance(data, dict):
        raise ValueError(f"`{key}` must be an object.")
    legs = []
    for i, leg in enumerate(data.get("legs") or []):
        if not isinstance(leg, dict):
            raise ValueError(f"`{key}.legs[{i}]` must be an object.")
        steps = []
        for j, s in enumerate(leg.get("steps") or []):
            step_key = f"{key}.legs[{i}].steps[{j}]"
            if not isinstance(s, dict):
                raise ValueError(f"`{step_key}` must be an object.")
            if "instruction" not in s:
                raise ValueError(f"`{step_key}` needs an `instruction`.")
            names = s.get("names")
            steps.append(
                RouteStep(
                    instruction=str(s["instruction"]),
                    maneuver_type=str(s.get("type", "turn")),
                    maneuver_direction=str(s.get("modifier", "straight")),
                    distance=_number(s.get("distance", 0.0), f"{step_key}.distance"),
                    expected_travel_time=_number(s.get("duration", 0.0), f"{step_key}.duration"),
                    names=tuple(str(n) for n in names) if names is not None else None,
                )
            )
        legs.append(RouteLeg(steps=tuple(steps)))
    return Route(
        identifier=data.get("identifier"),
        profile=str(data.get("profile", "driving")),
        coordinates=tuple(_coordinate(c, f"{key}.coordinates") for c in data.get("coordinates") or []),
        distance=_number(data.get("distance", 0.0), f"{key}.distance"),
        expected_travel_time=_number(data.get("expected_travel_time", 0.0), f"{key}.expected_travel_time"),
        legs=tuple(legs),
    )


def _device(data: dict) -> DeviceState:
    provider = None
    provider_data = data.get("location_provider")
    if provider_data is not None:
        if not isinstance(provider_data, dict):
            raise ValueError("`device.location_provider` must be an object.")
        provider = LocationProvider(
            kind=_enum(LocationProviderKind, provider_data.get("kind", "live"), "device.location_provider.kind"),
            name=provider_data.get("name"),
            desired_accuracy=_optional_number(provider_data, "desired_accuracy", "device.location_provider"),
        )
    location = data.get("location")
    return DeviceState(
        volume=_number(data.get("volume", 0.0), "device.volume"),
        screen_brightness=_number(data.get("screen_brightness", 0.0), "device.screen_brightness"),
        battery_state=_enum(BatteryState, data.get("battery_state", "unknown"), "device.battery_state"),
        battery_level=_optional_number(data, "battery_level", "device"),
        application_state=_enum(
            ApplicationState, data.get("application_state", "Foreground"), "device.application_state"
        ),
        orientation=_enum(Orientation, data.get("orientation", "unknown"), "device.orientation"),
        audio_outputs=tuple(_enum(AudioPort, p, "device.audio_outputs") for p in data.get("audio_outputs") or []),
        location_provider=provider,
        location=_coordinate(location, "device.location") if location is not None else None,
    )


def _section(payload: dict, key: str) -> dict:
    value = payload.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"`{key}` must be an object.")
    return value


def scenario_from_dict(payload: Any) -> Scenario:
    if not isinstance(payload, dict):
        raise ValueError("Scenario must be a JSON object.")
    if "route" not in payload:
        raise ValueError("Scenario must contain `route`.")
    now = parse_timestamp(payload.get("now"), "now") if "now" in payload else datetime.now(timezone.utc)
    route = _route(payload["route"], "route")
    original = _route(payload["original_route"], "original_route") if "original_route" in payload else route

    session_data = _section(payload, "session")
    started_at = _optional_timestamp(session_data, "started_at") or now

    def session_number(key: str) -> float:
        return _number(session_data.get(key, 0.0), f"session.{key}")

    snapshot = SessionSnapshot(
        identifier=str(session_data.get("identifier") or uuid.uuid4()),
        original_route=original,
        current_route=route,
        total_distance_completed=session_number("total_distance_completed"),
        reroute_count=_integer(session_data.get("reroute_count", 0), "session.reroute_count"),
        departure_timestamp=_optional_timestamp(session_data, "departure_timestamp"),
        arrival_timestamp=_optional_timestamp(session_data, "arrival_timestamp"),
        last_reroute_timestamp=_optional_timestamp(session_data, "last_reroute_timestamp"),
        time_in_portrait=session_number("time_in_portrait"),
        time_in_landscape=session_number("time_in_landscape"),
        last_time_in_portrait=_optional_timestamp(session_data, "last_time_in_portrait") or started_at,
        last_time_in_landscape=_optional_timestamp(session_data, "last_time_in_landscape") or started_at,
        time_in_foreground=session_number("time_in_foreground"),
        time_in_background=session_number("time_in_background"),
        last_time_in_foreground=_optional_timestamp(session_data, "last_time_in_foreground") or started_at,
        last_time_in_background=_optional_timestamp(session_data, "last_time_in_background") or started_at,
    )

    progress_data = _section(payload, "progress")

    def progress_number(key: str, default: float = 0.0) -> float:
        return _number(progress_data.get(key, default), f"progress.{key}")

    progress = RouteProgress(
        route=route,
        leg_index=_integer(progress_data.get("leg_index", 0), "progress.leg_index"),
        step_index=_integer(progress_data.get("step_index", 0), "progress.step_index"),
        distance_traveled=progress_number("distance_traveled"),
        distance_remaining=progress_number("distance_remaining", route.distance),
        duration_remaining=progress_number("duration_remaining", route.expected_travel_time),
        step_distance_remaining=progress_number("step_distance_remaining"),
        step_duration_remaining=progress_number("step_duration_remaining"),
    )

    device = _device(_section(payload, "device"))
    new_route = _route(payload["new_route"], "new_route") if "new_route" in payload else None
    overlay = _section(payload, "overlay")
    return Scenario(
        session=SessionState.restore(snapshot, orientation=device.orientation, application_state=device.application_state),
        progress=progress,
        device=StaticDeviceStateProvider(device),
        now=now,
        new_route=new_route,
        overlay=dict(overlay),
    )
