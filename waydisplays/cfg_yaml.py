"""YAML marshalling of configuration: strict validation and lenient reading."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Optional

import yaml

from waydisplays.mode import hz_str_to_mhz, mhz_to_hz_str
from waydisplays.models import (
    ALIGN_DEFAULT,
    ARRANGE_DEFAULT,
    LOG_THRESHOLD_DEFAULT,
    Cfg,
    CfgElement,
    OnOff,
    Transform,
    UserMode,
    UserScale,
    UserTransform,
    parse_align,
    parse_arrange,
    parse_log_threshold,
    parse_transform,
)

logger = logging.getLogger(__name__)

_MISSING = object()

_TRUE_WORDS = {"y", "Y", "yes", "Yes", "YES", "true", "True", "TRUE", "on", "On", "ON"}
_FALSE_WORDS = {"n", "N", "no", "No", "NO", "false", "False", "FALSE", "off", "Off", "OFF"}


class CfgParseError(ValueError):
    """Configuration YAML could not be parsed."""


class _BadConversion(CfgParseError):
    """A YAML value does not convert to the wanted type."""


class _Dumper(yaml.SafeDumper):
    """Block style, indented sequences, upper case booleans."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        return super().increase_indent(flow, False)


def _represent_bool(dumper: yaml.SafeDumper, value: bool) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:bool", "TRUE" if value else "FALSE")


_Dumper.add_representer(bool, _represent_bool)


def _as_str(value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise _BadConversion("expected a scalar")
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in _TRUE_WORDS:
            return True
        if value in _FALSE_WORDS:
            return False
    raise _BadConversion(f"not a boolean: {value!r}")


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise _BadConversion(f"not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise _BadConversion(f"not an integer: {value!r}")


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        raise _BadConversion(f"not a number: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise _BadConversion(f"not a number: {value!r}")


def _as_transform(value: Any) -> Transform:
    transform = parse_transform(_as_str(value))
    if transform is None:
        raise _BadConversion(f"not a transform: {value!r}")
    return transform


def _words(*parts: str) -> str:
    return " ".join(part for part in parts if part)


def _display(value: Any) -> str:
    try:
        return _as_str(value)
    except CfgParseError:
        return repr(value)


def _field(node: Any, key: str, convert: Callable[[Any], Any], *desc: str) -> Any:
    """Convert node[key], warning and returning _MISSING when absent or invalid."""
    if not isinstance(node, dict) or key not in node:
        logger.warning("Ignoring missing %s", _words(*desc, key))
        return _MISSING
    try:
        return convert(node[key])
    except CfgParseError:
        logger.warning("Ignoring invalid %s %s", _words(*desc, key), _display(node[key]))
        return _MISSING


def _sequence(value: Any, key: str) -> list:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        raise CfgParseError(f"{key}: expected a sequence")
    return []


def _replace_named(items: list, item: Any) -> None:
    items[:] = [existing for existing in items if existing.name_desc != item.name_desc]
    items.append(item)


def validate_regex(pattern: str, element: CfgElement) -> bool:
    """False, with a warning, when a '!' prefixed pattern is not a valid regex."""
    if not pattern.startswith("!"):
        return True
    try:
        re.compile(pattern[1:])
    except re.error as exc:
        logger.warning("Ignoring bad %s regex '%s':  %s", element.name, pattern[1:], exc)
        return False
    return True


def _hz_value(mhz: int) -> int | float:
    text = mhz_to_hz_str(mhz)
    try:
        return int(text)
    except ValueError:
        return float(text)


def cfg_to_dict(cfg: Cfg) -> dict[str, Any]:
    """Configuration as an ordered mapping of its set elements."""
    out: dict[str, Any] = {}

    if cfg.arrange:
        out["ARRANGE"] = cfg.arrange.label
    if cfg.align:
        out["ALIGN"] = cfg.align.label
    if cfg.order_name_desc:
        out["ORDER"] = list(cfg.order_name_desc)
    if cfg.scaling:
        out["SCALING"] = cfg.scaling is OnOff.ON
    if cfg.auto_scale:
        out["AUTO_SCALE"] = cfg.auto_scale is OnOff.ON
    if cfg.auto_scale_min:
        out["AUTO_SCALE_MIN"] = cfg.auto_scale_min
    if cfg.auto_scale_max:
        out["AUTO_SCALE_MAX"] = cfg.auto_scale_max

    if cfg.user_scales:
        out["SCALE"] = [{"NAME_DESC": s.name_desc, "SCALE": s.scale} for s in cfg.user_scales]

    if cfg.user_modes:
        modes = []
        for user_mode in cfg.user_modes:
            entry: dict[str, Any] = {"NAME_DESC": user_mode.name_desc}
            if user_mode.max:
                entry["MAX"] = True
            else:
                entry["WIDTH"] = user_mode.width
                entry["HEIGHT"] = user_mode.height
                if user_mode.refresh_mhz != -1:
                    entry["HZ"] = _hz_value(user_mode.refresh_mhz)
            modes.append(entry)
        out["MODE"] = modes

    transforms = [
        {"NAME_DESC": t.name_desc, "TRANSFORM": t.transform.label}
        for t in cfg.user_transforms
        if t.transform.label
    ]
    if transforms:
        out["TRANSFORM"] = transforms

    if cfg.adaptive_sync_off_name_desc:
        out["VRR_OFF"] = list(cfg.adaptive_sync_off_name_desc)
    if cfg.max_preferred_refresh_name_desc:
        out["MAX_PREFERRED_REFRESH"] = list(cfg.max_preferred_refresh_name_desc)
    if cfg.laptop_display_prefix:
        out["LAPTOP_DISPLAY_PREFIX"] = cfg.laptop_display_prefix
    if cfg.log_threshold:
        out["LOG_THRESHOLD"] = cfg.log_threshold.label
    if cfg.disabled_name_desc:
        out["DISABLED"] = list(cfg.disabled_name_desc)

    return out


def _dump(data: Any) -> str:
    text = yaml.dump(data, Dumper=_Dumper, sort_keys=False, default_flow_style=False,
                     allow_unicode=True)
    return text if text.endswith("\n") else text + "\n"


def marshal_cfg(cfg: Cfg) -> str:
    """Configuration as a YAML document ending with a newline."""
    return _dump(cfg_to_dict(cfg))


def _extend_unique(target: list[str], data: dict, key: str, element: CfgElement) -> None:
    if key not in data:
        return
    for item in _sequence(data[key], key):
        text = _as_str(item)
        if text in target or not validate_regex(text, element):
            continue
        target.append(text)


def cfg_from_validated(data: Any, cfg: Optional[Cfg] = None) -> Cfg:
    """Merge parsed YAML into cfg, warning about and skipping invalid values."""
    if not isinstance(data, dict):
        raise CfgParseError("empty cfg, expected map")
    if cfg is None:
        cfg = Cfg()

    if "LOG_THRESHOLD" in data:
        text = _as_str(data["LOG_THRESHOLD"])
        cfg.log_threshold = parse_log_threshold(text)
        if cfg.log_threshold is None:
            logger.warning("Ignoring invalid LOG_THRESHOLD %s, using default %s",
                           text, LOG_THRESHOLD_DEFAULT.label)

    if "LAPTOP_DISPLAY_PREFIX" in data:
        cfg.laptop_display_prefix = _as_str(data["LAPTOP_DISPLAY_PREFIX"])

    _extend_unique(cfg.order_name_desc, data, "ORDER", CfgElement.ORDER)

    if "ARRANGE" in data:
        text = _as_str(data["ARRANGE"])
        arrange = parse_arrange(text)
        cfg.arrange = arrange or ARRANGE_DEFAULT
        if arrange is None:
            logger.warning("Ignoring invalid ARRANGE %s, using default %s", text, cfg.arrange.label)

    if "ALIGN" in data:
        text = _as_str(data["ALIGN"])
        align = parse_align(text)
        cfg.align = align or ALIGN_DEFAULT
        if align is None:
            logger.warning("Ignoring invalid ALIGN %s, using default %s", text, cfg.align.label)

    if "SCALING" in data:
        scaling = _field(data, "SCALING", _as_bool)
        if scaling is not _MISSING:
            cfg.scaling = OnOff.ON if scaling else OnOff.OFF

    if "AUTO_SCALE" in data:
        auto_scale = _field(data, "AUTO_SCALE", _as_bool)
        if auto_scale is not _MISSING:
            cfg.auto_scale = OnOff.ON if auto_scale else OnOff.OFF

    if "AUTO_SCALE_MIN" in data:
        value = _field(data, "AUTO_SCALE_MIN", _as_float, "AUTO_SCALE_MIN")
        if value is not _MISSING:
            cfg.auto_scale_min = value

    if "AUTO_SCALE_MAX" in data:
        value = _field(data, "AUTO_SCALE_MAX", _as_float, "AUTO_SCALE_MAX")
        if value is not _MISSING:
            cfg.auto_scale_max = value

    for entry in _sequence(data.get("SCALE"), "SCALE"):
        name = _field(entry, "NAME_DESC", _as_str, "SCALE")
        if name is _MISSING or not validate_regex(name, CfgElement.SCALE):
            continue
        scale = _field(entry, "SCALE", _as_float, "SCALE", name)
        if scale is _MISSING:
            continue
        _replace_named(cfg.user_scales, UserScale(name_desc=name, scale=scale))

    for entry in _sequence(data.get("MODE"), "MODE"):
        user_mode = _validated_user_mode(entry)
        if user_mode is not None:
            _replace_named(cfg.user_modes, user_mode)

    for entry in _sequence(data.get("TRANSFORM"), "TRANSFORM"):
        name = _field(entry, "NAME_DESC", _as_str, "TRANSFORM")
        if name is _MISSING or not validate_regex(name, CfgElement.TRANSFORM):
            continue
        transform = _field(entry, "TRANSFORM", _as_transform, "TRANSFORM", name)
        if transform is _MISSING:
            continue
        _replace_named(cfg.user_transforms, UserTransform(name_desc=name, transform=transform))

    _extend_unique(cfg.adaptive_sync_off_name_desc, data, "VRR_OFF", CfgElement.VRR_OFF)
    _extend_unique(cfg.max_preferred_refresh_name_desc, data, "MAX_PREFERRED_REFRESH",
                   CfgElement.MAX_PREFERRED_REFRESH)
    _extend_unique(cfg.disabled_name_desc, data, "DISABLED", CfgElement.DISABLED)

    return cfg


def _validated_user_mode(entry: Any) -> Optional[UserMode]:
    name = _field(entry, "NAME_DESC", _as_str, "MODE")
    if name is _MISSING or not validate_regex(name, CfgElement.MODE):
        return None
    user_mode = UserMode.default(name)

    for key, attr, convert in (("MAX", "max", _as_bool),
                               ("WIDTH", "width", _as_int),
                               ("HEIGHT", "height", _as_int)):
        if key in entry:
            value = _field(entry, key, convert, "MODE", name)
            if value is _MISSING:
                return None
            setattr(user_mode, attr, value)

    if "HZ" in entry:
        if _field(entry, "HZ", _as_float, "MODE", name) is _MISSING:
            return None
        user_mode.refresh_mhz = hz_str_to_mhz(_as_str(entry["HZ"]))

    return user_mode


def _lenient(node: Any, key: str, convert: Callable[[Any], Any]) -> Any:
    if not isinstance(node, dict) or key not in node:
        return _MISSING
    try:
        return convert(node[key])
    except CfgParseError:
        return _MISSING


def _lenient_strings(node: dict, key: str) -> list[str]:
    value = node.get(key)
    if not isinstance(value, list):
        return []
    strings = []
    for item in value:
        try:
            strings.append(_as_str(item))
        except CfgParseError:
            continue
    return strings


def _lenient_user_scale(node: Any) -> Optional[UserScale]:
    if not isinstance(node, dict):
        return None
    name = _lenient(node, "NAME_DESC", _as_str)
    scale = _lenient(node, "SCALE", _as_float)
    return UserScale(name_desc=None if name is _MISSING else name,
                     scale=0.0 if scale is _MISSING else scale)


def _lenient_user_mode(node: Any) -> UserMode:
    user_mode = UserMode.default()
    if not isinstance(node, dict):
        return user_mode
    for key, attr, convert in (("NAME_DESC", "name_desc", _as_str),
                               ("WIDTH", "width", _as_int),
                               ("HEIGHT", "height", _as_int),
                               ("HZ", "refresh_mhz", lambda v: hz_str_to_mhz(_as_str(v))),
                               ("MAX", "max", _as_bool)):
        value = _lenient(node, key, convert)
        if value is not _MISSING:
            setattr(user_mode, attr, value)
    return user_mode


def _lenient_user_transform(node: Any) -> Optional[UserTransform]:
    transform = _lenient(node, "TRANSFORM", _as_transform)
    if transform is _MISSING:
        return None
    name = _lenient(node, "NAME_DESC", _as_str)
    return UserTransform(name_desc=None if name is _MISSING else name, transform=transform)


def cfg_from_lenient(data: Any) -> Optional[Cfg]:
    """Configuration from parsed YAML, silently ignoring bad values; None if not a map."""
    if not isinstance(data, dict):
        return None
    cfg = Cfg()

    arrange = _lenient(data, "ARRANGE", _as_str)
    if arrange is not _MISSING:
        cfg.arrange = parse_arrange(arrange)

    align = _lenient(data, "ALIGN", _as_str)
    if align is not _MISSING:
        cfg.align = parse_align(align)

    cfg.order_name_desc.extend(_lenient_strings(data, "ORDER"))

    scaling = _lenient(data, "SCALING", _as_bool)
    if scaling is not _MISSING:
        cfg.scaling = OnOff.ON if scaling else OnOff.OFF

    auto_scale = _lenient(data, "AUTO_SCALE", _as_bool)
    if auto_scale is not _MISSING:
        cfg.auto_scale = OnOff.ON if auto_scale else OnOff.OFF

    auto_scale_min = _lenient(data, "AUTO_SCALE_MIN", _as_float)
    if auto_scale_min is not _MISSING:
        cfg.auto_scale_min = auto_scale_min

    auto_scale_max = _lenient(data, "AUTO_SCALE_MAX", _as_float)
    if auto_scale_max is not _MISSING:
        cfg.auto_scale_max = auto_scale_max

    if isinstance(data.get("SCALE"), list):
        cfg.user_scales.extend(
            scale for scale in map(_lenient_user_scale, data["SCALE"]) if scale is not None)

    if isinstance(data.get("MODE"), list):
        cfg.user_modes.extend(_lenient_user_mode(node) for node in data["MODE"])

    if isinstance(data.get("TRANSFORM"), list):
        cfg.user_transforms.extend(
            t for t in map(_lenient_user_transform, data["TRANSFORM"]) if t is not None)

    cfg.adaptive_sync_off_name_desc.extend(_lenient_strings(data, "VRR_OFF"))

    prefix = _lenient(data, "LAPTOP_DISPLAY_PREFIX", _as_str)
    if prefix is not _MISSING:
        cfg.laptop_display_prefix = prefix

    threshold = _lenient(data, "LOG_THRESHOLD", _as_str)
    if threshold is not _MISSING:
        cfg.log_threshold = parse_log_threshold(threshold)

    cfg.disabled_name_desc.extend(_lenient_strings(data, "DISABLED"))

    return cfg


def unmarshal_cfg_from_file(cfg: Cfg) -> Cfg:
    """Merge the YAML file at cfg.file_path into cfg."""
    if not cfg.file_path:
        raise CfgParseError("no configuration file path")
    try:
        with open(cfg.file_path, encoding="utf-8") as stream:
            data = yaml.safe_load(stream)
        return cfg_from_validated(data, cfg)
    except (OSError, yaml.YAMLError, CfgParseError) as exc:
        logger.error("parsing file %s %s", cfg.file_path, exc)
        raise CfgParseError(f"parsing file {cfg.file_path}: {exc}") from exc