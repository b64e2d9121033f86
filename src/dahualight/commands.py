"""Light commands: mapping raw command payloads to a mode and brightness."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class LightMode(StrEnum):
    """Values accepted by the ``Mode`` field of a Lighting_V2 entry."""

    OFF = "Off"
    MANUAL = "Manual"
    AUTO = "Auto"


@dataclass(frozen=True)
class Command:
    """A parsed light command."""

    mode: LightMode
    """Target lighting mode."""

    brightness: int
    """Brightness percentage written to ``PercentOfMaxBrightness``."""


FULL_BRIGHTNESS = 100

OFF = Command(LightMode.OFF, 0)


def _parse_int(token: str) -> int | None:
    try:
        return int(token)
    except ValueError:
        return None


def parse_command(raw: object) -> Command:
    """Turn a raw command payload into a :class:`Command`.

    Accepted forms (case-insensitive, surrounding whitespace ignored):

    * ``"75"``: manual mode at that brightness
    * ``"on"``: manual mode at full brightness
    * ``"off"``: light off
    * ``"auto"`` / ``"auto 60"``: automatic mode, brightness defaults to 100

    Anything else, including an empty or ``None`` payload or a number too
    long to convert, turns the light off.  Brightness is passed through as
    parsed, not clamped.
    """
    text = "" if raw is None else str(raw).strip()
    lowered = text.lower()

    if text.isascii() and text.isdigit():
        brightness = _parse_int(text)
        return OFF if brightness is None else Command(LightMode.MANUAL, brightness)
    if lowered == "on":
        return Command(LightMode.MANUAL, FULL_BRIGHTNESS)
    if lowered.startswith("auto"):
        parts = lowered.split()
        brightness = _parse_int(parts[1]) if len(parts) > 1 else None
        return Command(
            LightMode.AUTO, FULL_BRIGHTNESS if brightness is None else brightness
        )
    return OFF
