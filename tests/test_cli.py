import json
from pathlib import Path

from nav_telemetry.cli import main

COMMUTE = str(Path(__file__).resolve().parent.parent / "scenarios" / "commute.yaml")

MINIMAL = """\
now: "2024-05-01T12:00:00Z"
route:
  identifier: "r1"
  distance: 10.0
  coordinates: [[0.0, 0.0], [0.0, 0.0001]]
"""


def _render(capsys, *argv: str) -> dict:
    assert main(["render", *argv]) == 0
    return json.loads(capsys.readouterr().out)


def test_render_snapshot(capsys) -> None:
    payload = _render(capsys, COMMUTE)
    assert "event" not in payload
    assert payload["sessionIdentifier"] == "7d5c2a0e-3f1b-4c47-9a51-0c6f8f3b1d22"
    assert payload["distanceCompleted"] == 970
    assert payload["audioType"] == "bluetooth"
    assert payload["locationEngine"] == "ReplayLocationProvider"
    assert payload["percentTimeInPortrait"] == 75


def test_render_overlay_events(capsys) -> None:
    reroute = _render(capsys, COMMUTE, "--event", "reroute")
    assert reroute["event"] == "navigation.reroute"
    assert reroute["secondsSinceLastReroute"] == 600

    cancel = _render(capsys, COMMUTE, "--event", "cancel")
    assert cancel["event"] == "navigation.cancel"
    assert cancel["rating"] == 4
    assert cancel["comment"] == "Smooth ride"

    feedback = _render(capsys, COMMUTE, "--event", "feedback", "--indent", "2")
    assert feedback["event"] == "navigation.feedback"
    assert feedback["feedbackType"] == "road_closed"
    assert feedback["step"]["previousInstruction"] == "Turn right onto Elm St"


def test_missing_file_returns_error(tmp_path: Path, capsys) -> None:
    assert main(["render", str(tmp_path / "absent.yaml")]) == 1
    assert "error:" in capsys.readouterr().err


def test_reroute_without_new_route(tmp_path: Path, capsys) -> None:
    path = tmp_path / "minimal.yaml"
    path.write_text(MINIMAL, encoding="utf-8")
    assert main(["render", str(path), "--event", "reroute"]) == 1
    assert "new_route" in capsys.readouterr().err


def test_unencodable_event_returns_2(tmp_path: Path, capsys) -> None:
    path = tmp_path / "nan.yaml"
    path.write_text(
        MINIMAL + "device:\n  location_provider:\n    kind: live\n    desired_accuracy: .nan\n",
        encoding="utf-8",
    )
    assert main(["render", str(path)]) == 2
    assert "Failed to encode event details" in capsys.readouterr().err


def test_now_override(capsys) -> None:
    payload = _render(capsys, COMMUTE, "--event", "reroute", "--now", "2024-05-01T12:05:00Z")
    assert payload["created"] == "2024-05-01T12:05:00.000Z"
    assert payload["secondsSinceLastReroute"] == 900
    assert payload["percentTimeInPortrait"] == 80


def test_malformed_scenario_values_return_1(tmp_path: Path, capsys) -> None:
    legs = tmp_path / "legs.yaml"
    legs.write_text(MINIMAL + "  legs: [[a, b]]\n", encoding="utf-8")
    assert main(["render", str(legs)]) == 1
    assert "route.legs[0]" in capsys.readouterr().err

    battery = tmp_path / "battery.yaml"
    battery.write_text(MINIMAL + "device:\n  battery_level: high\n", encoding="utf-8")
    assert main(["render", str(battery)]) == 1
    assert "device.battery_level" in capsys.readouterr().err
