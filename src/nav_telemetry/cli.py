"""Command line entry point: render the event a scenario file would produce."""

from __future__ import annotations

import argparse
import logging
import sys

from .builder import EventSnapshotBuilder
from .config import settings
from .scenario import Scenario, load_scenario, parse_timestamp
from .serializer import EncodingFailure, dumps

logger = logging.getLogger(__name__)

EVENT_CHOICES = ("snapshot", "depart", "arrive", "cancel", "reroute", "feedback")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=settings.service_name, description="Navigation telemetry event assembler")
    sub = parser.add_subparsers(dest="command", required=True)
    render = sub.add_parser("render", help="Build and print the serialized event for a scenario file")
    render.add_argument("path", help="Scenario file (.yaml, .yml or .json)")
    render.add_argument("--event", choices=EVENT_CHOICES, default="snapshot")
    render.add_argument("--now", default=None, help="Override the scenario clock (ISO-8601)")
    render.add_argument("--indent", type=int, default=None)
    render.add_argument("--log-level", default=settings.log_level)
    return parser


def render_event(builder: EventSnapshotBuilder, scenario: Scenario, event: str):
    args = (scenario.session, scenario.progress, scenario.device, scenario.now)
    overlay = scenario.overlay
    if event == "snapshot":
        return builder.build(*args)
    if event == "depart":
        return builder.depart(*args)
    if event == "arrive":
        return builder.arrive(*args)
    if event == "cancel":
        return builder.cancel(*args, rating=overlay.get("rating"), comment=overlay.get("comment"))
    if event == "reroute":
        if scenario.new_route is None:
            raise ValueError("Reroute events need `new_route` in the scenario.")
        return builder.reroute(*args, new_route=scenario.new_route)
    if event == "feedback":
        if not overlay.get("feedback_type"):
            raise ValueError("Feedback events need `overlay.feedback_type` in the scenario.")
        return builder.feedback(
            *args,
            feedback_type=str(overlay["feedback_type"]),
            description=overlay.get("description"),
            screenshot=overlay.get("screenshot"),
            user_id=overlay.get("user_id"),
        )
    raise ValueError(f"Unsupported event: {event}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    builder = EventSnapshotBuilder.from_settings(settings)
    try:
        scenario = load_scenario(args.path)
        if args.now:
            scenario.now = parse_timestamp(args.now, "--now")
        event = render_event(builder, scenario, args.event)
        text = dumps(event, indent=args.indent)
    except EncodingFailure as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except (OSError, ValueError) as exc:
        logger.warning("Could not render %s: %s", args.path, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
