"""Core data types: configuration, heads, modes, lid, logging and IPC records."""

from __future__ import annotations

import socket
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, TypeVar

AUTO_SCALE_MIN_DEFAULT = 1.0
AUTO_SCALE_MAX_DEFAULT = -1.0

IPC_RC_SUCCESS = 0
IPC_RC_WARN = 1
IPC_RC_ERROR = 2
IPC_RC_BAD_REQUEST = 11
IPC_RC_BAD_RESPONSE = 12
IPC_RC_REQUEST_IN_PROGRESS = 13


class Arrange(Enum):
    ROW = 1
    COL = 2

    @property
    def label(self) -> str:
        return "COLUMN" if self is Arrange.COL else self.name


ARRANGE_DEFAULT = Arrange.ROW


class Align(Enum):
    TOP = 1
    MIDDLE = 2
    BOTTOM = 3
    LEFT = 4
    RIGHT = 5

    @property
    def label(self) -> str:
        return self.name


ALIGN_DEFAULT = Align.TOP


class OnOff(Enum):
    ON = 1
    OFF = 2

    @property
    def label(self) -> str:
        return self.name


SCALING_DEFAULT = OnOff.ON
AUTO_SCALE_DEFAULT = OnOff.ON


class LogThreshold(IntEnum):
    DEBUG = 1
    INFO = 2
    WARNING = 3
    ERROR = 4

    @property
    def label(self) -> str:
        return self.name


LOG_THRESHOLD_DEFAULT = LogThreshold.INFO


class Transform(IntEnum):
    NORMAL = 0
    ROTATE_90 = 1
    ROTATE_180 = 2
    ROTATE_270 = 3
    FLIPPED = 4
    FLIPPED_90 = 5
    FLIPPED_180 = 6
    FLIPPED_270 = 7

    @property
    def label(self) -> Optional[str]:
        """Configuration name; the normal transform has none."""
        return _TRANSFORM_LABELS.get(self)


_TRANSFORM_LABELS = {
    Transform.ROTATE_90: "90",
    Transform.ROTATE_180: "180",
    Transform.ROTATE_270: "270",
    Transform.FLIPPED: "flipped",
    Transform.FLIPPED_90: "flipped-90",
    Transform.FLIPPED_180: "flipped-180",
    Transform.FLIPPED_270: "flipped-270",
}


class AdaptiveSync(IntEnum):
    DISABLED = 0
    ENABLED = 1


class CfgElement(Enum):
    ARRANGE = 1
    ALIGN = 2
    ORDER = 3
    SCALING = 4
    AUTO_SCALE = 5
    SCALE = 6
    MODE = 7
    TRANSFORM = 8
    VRR_OFF = 9
    LAPTOP_DISPLAY_PREFIX = 10
    MAX_PREFERRED_REFRESH = 11
    LOG_THRESHOLD = 12
    DISABLED = 13
    ARRANGE_ALIGN = 14
    AUTO_SCALE_MIN = 15
    AUTO_SCALE_MAX = 16


class IpcCommand(Enum):
    GET = 1
    CFG_SET = 2
    CFG_DEL = 3
    CFG_WRITE = 4

    @property
    def label(self) -> str:
        return self.name


_E = TypeVar("_E", bound=Enum)


def _parse_start(enum_cls: type[_E], text: Optional[str]) -> Optional[_E]:
    if not text:
        return None
    wanted = text.upper()
    for member in enum_cls:
        if member.label.upper().startswith(wanted):
            return member
    return None


def _parse_exact(enum_cls: type[_E], text: Optional[str]) -> Optional[_E]:
    if not text:
        return None
    wanted = text.upper()
    for member in enum_cls:
        label = member.label
        if label is not None and label.upper() == wanted:
            return member
    return None


def parse_arrange(text: Optional[str]) -> Optional[Arrange]:
    """Arrangement whose name starts with text, case-insensitive."""
    return _parse_start(Arrange, text)


def parse_align(text: Optional[str]) -> Optional[Align]:
    """Alignment whose name starts with text, case-insensitive."""
    return _parse_start(Align, text)


def parse_transform(text: Optional[str]) -> Optional[Transform]:
    """Transform by configuration name; None for unknown or normal."""
    return _parse_exact(Transform, text)


def parse_log_threshold(text: Optional[str]) -> Optional[LogThreshold]:
    return _parse_exact(LogThreshold, text)


def parse_ipc_command(text: Optional[str]) -> Optional[IpcCommand]:
    return _parse_exact(IpcCommand, text)


@dataclass
class UserScale:
    name_desc: str
    scale: float = 0.0


@dataclass
class UserMode:
    name_desc: str
    max: bool = False
    width: int = -1
    height: int = -1
    refresh_mhz: int = -1
    warned_no_mode: bool = field(default=False, compare=False)

    @classmethod
    def default(cls, name_desc: str = "") -> "UserMode":
        """A user mode with no resolution or refresh specified."""
        return cls(name_desc=name_desc)


@dataclass
class UserTransform:
    name_desc: str
    transform: Transform = Transform.NORMAL


@dataclass
class Cfg:
    dir_path: Optional[str] = field(default=None, compare=False)
    file_path: Optional[str] = field(default=None, compare=False)
    file_name: Optional[str] = field(default=None, compare=False)
    resolved_from: Optional[str] = field(default=None, compare=False)
    updated: bool = field(default=False, compare=False)

    laptop_display_prefix: Optional[str] = None
    order_name_desc: list[str] = field(default_factory=list)
    arrange: Optional[Arrange] = None
    align: Optional[Align] = None
    scaling: Optional[OnOff] = None
    auto_scale: Optional[OnOff] = None
    user_scales: list[UserScale] = field(default_factory=list)
    user_modes: list[UserMode] = field(default_factory=list)
    adaptive_sync_off_name_desc: list[str] = field(default_factory=list)
    max_preferred_refresh_name_desc: list[str] = field(default_factory=list)
    disabled_name_desc: list[str] = field(default_factory=list)
    user_transforms: list[UserTransform] = field(default_factory=list)
    log_threshold: Optional[LogThreshold] = None

    auto_scale_min: float = 0.0
    auto_scale_max: float = 0.0


@dataclass
class Mode:
    width: int = 0
    height: int = 0
    refresh_mhz: int = 0
    preferred: bool = False
    head: Optional["Head"] = field(default=None, compare=False, repr=False)


@dataclass
class HeadState:
    mode: Optional[Mode] = None
    scale: float = 0.0
    enabled: bool = False
    x: int = 0
    y: int = 0
    transform: Transform = Transform.NORMAL
    adaptive_sync: AdaptiveSync = AdaptiveSync.DISABLED


@dataclass
class Head:
    name: Optional[str] = None
    description: Optional[str] = None
    width_mm: int = 0
    height_mm: int = 0
    make: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    modes: list[Mode] = field(default_factory=list)
    current: HeadState = field(default_factory=HeadState)
    desired: HeadState = field(default_factory=HeadState)
    modes_failed: list[Mode] = field(default_factory=list, compare=False)
    adaptive_sync_failed: bool = field(default=False, compare=False)
    scaled_width: int = field(default=0, compare=False)
    scaled_height: int = field(default=0, compare=False)
    warned_no_preferred: bool = field(default=False, compare=False)
    warned_no_mode: bool = field(default=False, compare=False)


@dataclass
class Lid:
    closed: bool = False
    device_path: Optional[str] = None


@dataclass
class LogCapLine:
    line: str
    threshold: Optional[LogThreshold]


@dataclass
class IpcRequest:
    command: Optional[IpcCommand] = None
    log_threshold: Optional[LogThreshold] = None
    cfg: Optional[Cfg] = None
    yaml: bool = False
    socket_client: Optional[socket.socket] = None
    bad: bool = False


@dataclass
class IpcOperation:
    request: IpcRequest
    socket_client: Optional[socket.socket] = None
    done: bool = False
    rc: int = IPC_RC_SUCCESS
    send_logs: bool = False
    send_state: bool = False


@dataclass
class IpcResponse:
    done: bool = False
    rc: int = IPC_RC_SUCCESS
    cfg: Optional[Cfg] = None
    heads: list[Head] = field(default_factory=list)
    lid: Optional[Lid] = None
    log_cap_lines: list[LogCapLine] = field(default_factory=list)