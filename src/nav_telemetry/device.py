"""Device state read at event construction time.

The host platform implements :class:`DeviceStateProvider`; the builder calls
``read()`` once per event so every device field comes from the same instant.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol

from .geometry import Coordinate, truncate


class ApplicationState(Enum):
    ACTIVE = "Foreground"
    INACTIVE = "Inactive"
    BACKGROUND = "Background"


class Orientation(Enum):
    UNKNOWN = "unknown"
    PORTRAIT = "portrait"
    PORTRAIT_UPSIDE_DOWN = "portrait_upside_down"
    LANDSCAPE_LEFT = "landscape_left"
    LANDSCAPE_RIGHT = "landscape_right"
    FACE_UP = "face_up"
    FACE_DOWN = "face_down"

    @property
    def is_portrait(self) -> bool:
        return self in (Orientation.PORTRAIT, Orientation.PORTRAIT_UPSIDE_DOWN)

    @property
    def is_landscape(self) -> bool:
        return self in (Orientation.LANDSCAPE_LEFT, Orientation.LANDSCAPE_RIGHT)


class BatteryState(Enum):
    UNKNOWN = "unknown"
    UNPLUGGED = "unplugged"
    CHARGING = "charging"
    FULL = "full"


class AudioPort(Enum):
    BLUETOOTH_A2DP = "bluetooth_a2dp"
    BLUETOOTH_LE = "bluetooth_le"
    BLUETOOTH_HFP = "bluetooth_hfp"
    HEADPHONES = "headphones"
    LINE_OUT = "line_out"
    AIRPLAY = "airplay"
    HDMI = "hdmi"
    BUILT_IN_SPEAKER = "built_in_speaker"
    BUILT_IN_RECEIVER = "built_in_receiver"
    USB_AUDIO = "usb_audio"
    CAR_AUDIO = "car_audio"


class AudioType(Enum):
    BLUETOOTH = "bluetooth"
    HEADPHONES = "headphones"
    SPEAKER = "speaker"
    UNKNOWN = "unknown"


# Checked in order, first category with a matching output wins.
_AUDIO_PRIORITY: tuple[tuple[AudioType, frozenset[AudioPort]], ...] = (
    (AudioType.BLUETOOTH, frozenset({AudioPort.BLUETOOTH_A2DP, AudioPort.BLUETOOTH_LE})),
    (
        AudioType.HEADPHONES,
        frozenset({AudioPort.HEADPHONES, AudioPort.AIRPLAY, AudioPort.HDMI, AudioPort.LINE_OUT}),
    ),
    (AudioType.SPEAKER, frozenset({AudioPort.BUILT_IN_SPEAKER, AudioPort.BUILT_IN_RECEIVER})),
)


def classify_audio_output(outputs: Iterable[AudioPort]) -> AudioType:
    ports = set(outputs)
    for audio_type, members in _AUDIO_PRIORITY:
        if ports & members:
            return audio_type
    return AudioType.UNKNOWN


class LocationProviderKind(Enum):
    LIVE = "live"
    REPLAY = "replay"
    SIMULATED = "simulated"
    OTHER = "other"


_DEFAULT_PROVIDER_NAMES = {
    LocationProviderKind.LIVE: "LiveLocationProvider",
    LocationProviderKind.REPLAY: "ReplayLocationProvider",
    LocationProviderKind.SIMULATED: "SimulatedLocationProvider",
}

_SIMULATED_KINDS = frozenset({LocationProviderKind.REPLAY, LocationProviderKind.SIMULATED})


@dataclass(frozen=True)
class LocationProvider:
    """Tag describing the active location source (not a handle to it)."""

    kind: LocationProviderKind = LocationProviderKind.LIVE
    name: str | None = None
    desired_accuracy: float | None = None

    def __post_init__(self) -> None:
        if self.name is None:
            if self.kind is LocationProviderKind.OTHER:
                raise ValueError("`name` is required for an `other` location provider.")
            object.__setattr__(self, "name", _DEFAULT_PROVIDER_NAMES[self.kind])

    @property
    def is_simulated(self) -> bool:
        return self.kind in _SIMULATED_KINDS


def percent_level(fraction: float) -> int | float:
    """Map a 0..1 level to an integer percentage, truncated and clamped.

    Non-finite readings are kept as-is.
    """
    scaled = truncate(fraction * 100)
    if isinstance(scaled, float):
        return scaled
    return max(0, min(100, scaled))


def battery_percent(level: float | None) -> int | float:
    """-1 when the sensor reports unknown (None or negative), else 0..100."""
    if level is None or level < 0:
        return -1
    return percent_level(level)


@dataclass(frozen=True)
class DeviceState:
    """Point-in-time device facts. Levels are 0..1 fractions as the OS reports them."""

    volume: float = 0.0
    screen_brightness: float = 0.0
    battery_state: BatteryState = BatteryState.UNKNOWN
    battery_level: float | None = None
    application_state: ApplicationState = ApplicationState.ACTIVE
    orientation: Orientation = Orientation.UNKNOWN
    audio_outputs: tuple[AudioPort, ...] = ()
    location_provider: LocationProvider | None = None
    location: Coordinate | None = None

    @property
    def volume_level(self) -> int | float:
        return percent_level(self.volume)

    @property
    def brightness_level(self) -> int | float:
        return percent_level(self.screen_brightness)

    @property
    def battery_plugged_in(self) -> bool:
        return self.battery_state in (BatteryState.CHARGING, BatteryState.FULL)

    @property
    def battery_level_percent(self) -> int | float:
        return battery_percent(self.battery_level)

    @property
    def audio_type(self) -> AudioType:
        return classify_audio_output(self.audio_outputs)


class DeviceStateProvider(Protocol):
    def read(self) -> DeviceState: ...


class StaticDeviceStateProvider:
    """Provider returning a fixed state; used by scenarios and tests."""

    def __init__(self, state: DeviceState | None = None) -> None:
        self._state = state or DeviceState()
        self.reads = 0

    def read(self) -> DeviceState:
        self.reads += 1
        return self._state
