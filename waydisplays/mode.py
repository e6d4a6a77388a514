"""Selection and grouping of display modes."""

from __future__ import annotations

import math
import re
import struct
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from waydisplays.models import Mode, UserMode

_FLOAT_PREFIX = re.compile(
    r"\s*[+-]?(?:inf(?:inity)?|nan|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)",
    re.IGNORECASE,
)


@dataclass
class ModesResRefresh:
    """Modes sharing a resolution and a refresh rounded to whole Hz."""

    width: int
    height: int
    refresh_mhz: int
    modes: list[Mode] = field(default_factory=list)


def _failed(mode: Mode, modes_failed: Optional[Iterable[Mode]]) -> bool:
    return any(failed is mode for failed in modes_failed or ())


def mode_preferred(modes: Iterable[Optional[Mode]],
                   modes_failed: Optional[Iterable[Mode]] = None) -> Optional[Mode]:
    """First preferred mode that has not failed."""
    failed = list(modes_failed or ())
    for mode in modes:
        if mode is not None and mode.preferred and not _failed(mode, failed):
            return mode
    return None


def mode_max_preferred(modes: Sequence[Optional[Mode]],
                       modes_failed: Optional[Iterable[Mode]] = None) -> Optional[Mode]:
    """Highest refresh mode at the preferred mode's resolution."""
    failed = list(modes_failed or ())
    preferred = mode_preferred(modes, failed)
    if preferred is None:
        return None

    best: Optional[Mode] = None
    for mode in modes:
        if mode is None or _failed(mode, failed):
            continue
        if (mode.width, mode.height) != (preferred.width, preferred.height):
            continue
        if best is None or mode.refresh_mhz > best.refresh_mhz:
            best = mode
    return best


def mhz_to_hz_str(mhz: int) -> str:
    """Refresh in Hz, up to six significant digits."""
    hz = struct.unpack("f", struct.pack("f", mhz / 1000))[0]
    return f"{hz:g}"


def _atof(text: str) -> float:
    match = _FLOAT_PREFIX.match(text)
    return float(match.group()) if match else 0.0


def hz_str_to_mhz(hz_str: Optional[str]) -> int:
    """Hz string to milliHz; 0 when it does not start with a number."""
    if hz_str is None:
        return 0
    value = _atof(hz_str) * 1000
    if not math.isfinite(value):
        return 0
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def mhz_to_hz_rounded(mhz: int) -> int:
    """Refresh rounded to whole Hz."""
    total = mhz + 500
    quotient = abs(total) // 1000
    return quotient if total >= 0 else -quotient


def _equal_res_hz(lhs: Mode, rhs: Mode) -> bool:
    return (lhs.width == rhs.width and lhs.height == rhs.height
            and mhz_to_hz_rounded(lhs.refresh_mhz) == mhz_to_hz_rounded(rhs.refresh_mhz))


def _satisfies(mrr: ModesResRefresh, user_mode: UserMode) -> bool:
    if user_mode.max:
        return True
    return (mrr.width == user_mode.width and mrr.height == user_mode.height
            and (user_mode.refresh_mhz == -1
                 or mhz_to_hz_rounded(mrr.refresh_mhz) == mhz_to_hz_rounded(user_mode.refresh_mhz)))


def mode_dpi(mode: Optional[Mode]) -> float:
    """Mean of horizontal and vertical DPI; 0 when physical size is unknown."""
    if mode is None or mode.head is None or not mode.head.width_mm or not mode.head.height_mm:
        return 0.0
    horiz = mode.width / mode.head.width_mm * 25.4
    vert = mode.height / mode.head.height_mm * 25.4
    return (horiz + vert) / 2


def mode_scale(mode: Optional[Mode]) -> float:
    """Scale relative to 96 DPI; 1 when DPI is unknown."""
    dpi = mode_dpi(mode)
    return 1.0 if dpi == 0 else dpi / 96


def modes_res_refresh(modes: Iterable[Optional[Mode]]) -> list[ModesResRefresh]:
    """Group modes by resolution and rounded refresh, highest first."""
    ordered = sorted((m for m in modes if m is not None),
                     key=lambda m: (m.width, m.height, m.refresh_mhz),
                     reverse=True)
    groups: list[ModesResRefresh] = []
    for mode in ordered:
        if not groups or not _equal_res_hz(mode, groups[-1].modes[0]):
            groups.append(ModesResRefresh(mode.width, mode.height, mode.refresh_mhz))
        groups[-1].modes.append(mode)
    return groups


def mode_user_mode(modes: Sequence[Optional[Mode]],
                   modes_failed: Optional[Iterable[Mode]],
                   user_mode: Optional[UserMode]) -> Optional[Mode]:
    """Mode best satisfying the user's requested mode, skipping failed ones."""
    if not modes or user_mode is None:
        return None
    failed = list(modes_failed or ())

    exact = next((m for m in modes if m is not None
                  and m.width == user_mode.width
                  and m.height == user_mode.height
                  and m.refresh_mhz == user_mode.refresh_mhz), None)
    if exact is not None and not _failed(exact, failed):
        return exact

    for mrr in modes_res_refresh(modes):
        if _satisfies(mrr, user_mode):
            for mode in mrr.modes:
                if not _failed(mode, failed):
                    return mode
    return None