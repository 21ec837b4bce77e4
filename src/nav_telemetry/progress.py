"""Route and route-progress values consumed by the event builder.

These are read-only views produced by the navigation engine. Nothing here
computes routes or tracks locations.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .geometry import Coordinate


@dataclass(frozen=True)
class RouteStep:
    """One maneuver-to-maneuver segment within a leg."""

    instruction: str
    maneuver_type: str                      # "depart" | "turn" | "arrive" | ...
    maneuver_direction: str                 # "left" | "sharp right" | "straight" | ...
    distance: float = 0.0                   # metres
    expected_travel_time: float = 0.0       # seconds
    names: tuple[str, ...] | None = None

    @property
    def joined_names(self) -> str | None:
        if self.names is None:
            return None
        return ";".join(self.names)


@dataclass(frozen=True)
class RouteLeg:
    steps: tuple[RouteStep, ...] = ()


@dataclass(frozen=True)
class Route:
    """A route as offered by the directions service."""

    identifier: str | None = None
    profile: str = "driving"
    coordinates: tuple[Coordinate, ...] = ()
    distance: float = 0.0
    expected_travel_time: float = 0.0
    legs: tuple[RouteLeg, ...] = ()

    @property
    def step_count(self) -> int:
        return sum(len(leg.steps) for leg in self.legs)

    @property
    def has_geometry(self) -> bool:
        return len(self.coordinates) > 0

    @property
    def destination(self) -> Coordinate | None:
        if not self.coordinates:
            return None
        return self.coordinates[-1]


@dataclass(frozen=True)
class RouteProgress:
    """Position of the user along the active route at one instant."""

    route: Route = field(default_factory=Route)
    leg_index: int = 0
    step_index: int = 0
    distance_traveled: float = 0.0
    distance_remaining: float = 0.0
    duration_remaining: float = 0.0
    step_distance_remaining: float = 0.0
    step_duration_remaining: float = 0.0

    @property
    def leg_count(self) -> int:
        return len(self.route.legs)

    @property
    def total_step_count(self) -> int:
        return self.route.step_count

    @property
    def current_leg(self) -> RouteLeg | None:
        if 0 <= self.leg_index < len(self.route.legs):
            return self.route.legs[self.leg_index]
        return None

    @property
    def step_count(self) -> int:
        leg = self.current_leg
        return len(leg.steps) if leg is not None else 0

    @property
    def current_step(self) -> RouteStep | None:
        leg = self.current_leg
        if leg is None or not 0 <= self.step_index < len(leg.steps):
            return None
        return leg.steps[self.step_index]

    @property
    def upcoming_step(self) -> RouteStep | None:
        """Next step in this leg, else the first step of the next leg."""
        leg = self.current_leg
        if leg is None or self.current_step is None:
            return None
        if self.step_index + 1 < len(leg.steps):
            return leg.steps[self.step_index + 1]
        for next_leg in self.route.legs[self.leg_index + 1 :]:
            if next_leg.steps:
                return next_leg.steps[0]
        return None
