import json
from datetime import datetime, timedelta, timezone

import pytest

from nav_telemetry.builder import EventSnapshotBuilder
from nav_telemetry.device import (
    ApplicationState,
    AudioPort,
    BatteryState,
    DeviceState,
    LocationProvider,
    LocationProviderKind,
    Orientation,
    StaticDeviceStateProvider,
)
from nav_telemetry.geometry import Coordinate, decode_polyline
from nav_telemetry.progress import Route, RouteLeg, RouteProgress, RouteStep
from nav_telemetry.serializer import EncodingFailure, dumps, serialize
from nav_telemetry.session import SessionState

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
COORDS = (Coordinate(38.5, -120.2), Coordinate(40.7, -120.95), Coordinate(43.252, -126.453))


def _route(coordinates=COORDS) -> Route:
    steps = (
        RouteStep("Head north", "depart", "straight", 12.9, 5.5, ("Main St", "CA-1")),
        RouteStep("Turn right", "turn", "right", 400.0, 30.0, ("Elm St",)),
        RouteStep("Arrive", "arrive", "left", 0.0, 0.0, None),
    )
    return Route(
        identifier="req-1",
        profile="driving",
        coordinates=tuple(coordinates),
        distance=1234.6,
        expected_travel_time=89.4,
        legs=(RouteLeg(steps=steps),),
    )


def _device(**overrides) -> StaticDeviceStateProvider:
    fields = {
        "volume": 0.5,
        "screen_brightness": 0.25,
        "battery_state": BatteryState.UNPLUGGED,
        "battery_level": 0.5,
        "application_state": ApplicationState.ACTIVE,
        "orientation": Orientation.PORTRAIT,
        "audio_outputs": (AudioPort.HEADPHONES, AudioPort.BUILT_IN_SPEAKER),
        "location_provider": LocationProvider(kind=LocationProviderKind.REPLAY, desired_accuracy=10.0),
        "location": Coordinate(40.0, -121.0),
    }
    fields.update(overrides)
    return StaticDeviceStateProvider(DeviceState(**fields))


def _builder() -> EventSnapshotBuilder:
    return EventSnapshotBuilder(sdk_version="1.2.3", sdk_identifier="navigation-python")


def _session(route: Route) -> SessionState:
    session = SessionState(route, identifier="session-1", started_at=NOW - timedelta(minutes=10))
    session.record_departure(NOW - timedelta(minutes=9))
    return session


def test_serialized_field_values() -> None:
    route = _route()
    snapshot = _builder().build(_session(route), RouteProgress(route=route), _device(), NOW)
    payload = serialize(snapshot)

    assert payload["distance"] == 1235
    assert payload["estimatedDuration"] == 89
    assert payload["originalDistance"] == 1235
    assert payload["originalEstimatedDuration"] == 89
    assert payload["originalStepCount"] == 3
    assert payload["currentStepCount"] == 3
    assert payload["geometry"] == "_p~iF~ps|U_ulLnnqC_mqNvxq`@"
    assert payload["originalGeometry"] == payload["geometry"]
    assert payload["lat"] == 40.0
    assert payload["lng"] == -121.0
    assert "coordinate" not in payload
    assert payload["created"] == "2024-05-01T12:00:00.000Z"
    assert payload["startTimestamp"] == "2024-05-01T11:51:00.000Z"
    assert payload["applicationState"] == "Foreground"
    assert payload["audioType"] == "headphones"
    assert payload["locationEngine"] == "ReplayLocationProvider"
    assert payload["simulation"] is True
    assert payload["batteryLevel"] == 50
    assert payload["volumeLevel"] == 50
    assert payload["screenBrightness"] == 25
    assert payload["stepCount"] == 3
    assert payload["totalStepCount"] == 3


def test_absent_optionals_are_omitted() -> None:
    route = _route(coordinates=())
    device = _device(location=None, location_provider=None)
    snapshot = _builder().build(SessionState(route, identifier="s"), RouteProgress(route=route), device, NOW)
    payload = serialize(snapshot)

    for key in (
        "lat",
        "lng",
        "geometry",
        "distance",
        "estimatedDuration",
        "currentStepCount",
        "originalGeometry",
        "originalDistance",
        "originalEstimatedDuration",
        "originalStepCount",
        "startTimestamp",
        "userAbsoluteDistanceToDestination",
        "locationEngine",
        "locationManagerDesiredAccuracy",
        "event",
        "step",
    ):
        assert key not in payload
    assert None not in payload.values()


def test_unknown_battery_survives_as_minus_one() -> None:
    route = _route()
    device = _device(battery_level=None, battery_state=BatteryState.UNKNOWN)
    payload = serialize(_builder().build(_session(route), RouteProgress(route=route), device, NOW))
    assert payload["batteryLevel"] == -1
    assert json.loads(json.dumps(payload))["batteryLevel"] == -1
    assert payload["batteryPluggedIn"] is False


def test_application_state_strings() -> None:
    route = _route()
    builder = _builder()
    progress = RouteProgress(route=route)
    expected = {
        ApplicationState.ACTIVE: "Foreground",
        ApplicationState.INACTIVE: "Inactive",
        ApplicationState.BACKGROUND: "Background",
    }
    for state, text in expected.items():
        payload = serialize(builder.build(_session(route), progress, _device(application_state=state), NOW))
        assert payload["applicationState"] == text


def test_step_is_truncated_while_route_is_rounded() -> None:
    route = _route()
    progress = RouteProgress(route=route, step_distance_remaining=8.9, step_duration_remaining=4.99)
    event = _builder().feedback(_session(route), progress, _device(), NOW, feedback_type="general")
    payload = serialize(event)

    assert payload["distance"] == 1235
    assert payload["estimatedDuration"] == 89
    step = payload["step"]
    assert step["distance"] == 12
    assert step["duration"] == 5
    assert step["distanceRemaining"] == 8
    assert step["durationRemaining"] == 4
    assert step["previousName"] == "Main St;CA-1"
    assert step["upcomingName"] == "Elm St"
    assert step["upcomingType"] == "turn"
    assert step["upcomingModifier"] == "right"
    assert list(payload)[-1] == "step"


def test_last_step_has_no_upcoming_fields() -> None:
    route = _route()
    progress = RouteProgress(route=route, step_index=2)
    payload = serialize(_builder().feedback(_session(route), progress, _device(), NOW, feedback_type="general"))
    step = payload["step"]
    assert "upcomingInstruction" not in step
    assert "upcomingType" not in step
    assert "upcomingModifier" not in step
    assert "upcomingName" not in step
    assert "previousName" not in step
    assert step["previousInstruction"] == "Arrive"


def test_round_trip_with_all_optionals() -> None:
    route = _route()
    new_route = _route(coordinates=COORDS[:2])
    session = _session(route)
    session.record_arrival(NOW)
    builder = _builder()
    progress = RouteProgress(route=route, distance_traveled=10.0, distance_remaining=1200.0, duration_remaining=80.0)
    event = builder.reroute(session, progress, _device(), NOW, new_route=new_route).with_overlay(
        arrival_timestamp=NOW,
        rating=80,
        comment="fine",
        user_id="user-1",
        feedback_type="routing_error",
        description="wrong turn",
        screenshot="c2NyZWVu",
    )
    payload = serialize(event)
    parsed = json.loads(dumps(event))
    assert parsed == payload

    snapshot = event.snapshot
    assert parsed["sessionIdentifier"] == snapshot.session_identifier
    assert parsed["originalRequestIdentifier"] == "req-1"
    assert parsed["requestIdentifier"] == "req-1"
    assert Coordinate(parsed["lat"], parsed["lng"]) == snapshot.coordinate
    assert tuple(decode_polyline(parsed["geometry"])) == snapshot.geometry.coordinates
    assert tuple(decode_polyline(parsed["newGeometry"])) == COORDS[:2]
    assert datetime.fromisoformat(parsed["created"].replace("Z", "+00:00")) == snapshot.created
    assert datetime.fromisoformat(parsed["arrivalTimestamp"].replace("Z", "+00:00")) == NOW
    assert parsed["userAbsoluteDistanceToDestination"] == snapshot.user_absolute_distance_to_destination
    assert parsed["locationManagerDesiredAccuracy"] == 10.0
    assert parsed["event"] == "navigation.reroute"
    assert parsed["rating"] == 80
    assert parsed["comment"] == "fine"
    assert parsed["userId"] == "user-1"
    assert parsed["feedbackType"] == "routing_error"
    assert parsed["description"] == "wrong turn"
    assert parsed["screenshot"] == "c2NyZWVu"
    assert parsed["secondsSinceLastReroute"] == -1
    assert parsed["newDistanceRemaining"] == 1235
    assert parsed["newDurationRemaining"] == 89
    assert parsed["distanceCompleted"] == 10
    assert parsed["distanceRemaining"] == 1200
    assert parsed["durationRemaining"] == 80
    assert parsed["percentTimeInPortrait"] == 100
    assert parsed["percentTimeInForeground"] == 100


def test_field_order_is_stable() -> None:
    route = _route()
    payload = serialize(_builder().build(_session(route), RouteProgress(route=route), _device(), NOW))
    keys = list(payload)
    assert keys[:4] == ["originalRequestIdentifier", "requestIdentifier", "lat", "lng"]
    assert keys[-5:] == ["stepIndex", "stepCount", "legIndex", "legCount", "totalStepCount"]


def test_non_finite_value_raises_encoding_failure() -> None:
    route = _route()
    provider = LocationProvider(kind=LocationProviderKind.LIVE, desired_accuracy=float("nan"))
    snapshot = _builder().build(_session(route), RouteProgress(route=route), _device(location_provider=provider), NOW)
    with pytest.raises(EncodingFailure) as excinfo:
        serialize(snapshot)
    assert isinstance(excinfo.value.__cause__, ValueError)


def test_non_finite_geometry_raises_encoding_failure() -> None:
    route = _route(coordinates=(Coordinate(38.5, -120.2), Coordinate(float("inf"), -120.95)))
    snapshot = _builder().build(_session(route), RouteProgress(route=route), _device(), NOW)
    with pytest.raises(EncodingFailure):
        serialize(snapshot)


def test_unsupported_object_raises_encoding_failure() -> None:
    with pytest.raises(EncodingFailure):
        serialize({"not": "an event"})


def test_dumps_indent() -> None:
    route = _route()
    snapshot = _builder().build(_session(route), RouteProgress(route=route), _device(), NOW)
    compact = dumps(snapshot)
    pretty = dumps(snapshot, indent=2)
    assert ", " not in compact
    assert '": ' not in compact
    assert json.loads(compact) == json.loads(pretty)
    assert "\n" in pretty
