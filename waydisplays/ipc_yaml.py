"""YAML marshalling of IPC requests and responses exchanged by client and server."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

import yaml

from waydisplays.cfg_yaml import CfgParseError, cfg_from_lenient, cfg_from_validated, cfg_to_dict
from waydisplays.models import (
    IPC_RC_ERROR,
    IPC_RC_WARN,
    AdaptiveSync,
    Cfg,
    Head,
    HeadState,
    IpcCommand,
    IpcOperation,
    IpcRequest,
    IpcResponse,
    Lid,
    LogCapLine,
    LogThreshold,
    Mode,
    Transform,
    parse_ipc_command,
    parse_log_threshold,
    parse_transform,
)

logger = logging.getLogger(__name__)

_MISSING = object()

_TRUE_WORDS = {"y", "Y", "yes", "Yes", "YES", "true", "True", "TRUE", "on", "On", "ON"}
_FALSE_WORDS = {"n", "N", "no", "No", "NO", "false", "False", "FALSE", "off", "Off", "OFF"}


class MarshalError(ValueError):
    """An IPC message could not be marshalled or unmarshalled."""


class _Dumper(yaml.SafeDumper):
    """Block style, indented sequences, upper case booleans."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        return super().increase_indent(flow, False)


def _represent_bool(dumper: yaml.SafeDumper, value: bool) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:bool", "TRUE" if value else "FALSE")


_Dumper.add_representer(bool, _represent_bool)


def _dump(data: Any) -> str:
    text = yaml.dump(data, Dumper=_Dumper, sort_keys=False, default_flow_style=False,
                     allow_unicode=True)
    return text if text.endswith("\n") else text + "\n"


def _load(text: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise MarshalError(str(exc)) from exc


def _to_str(value: Any) -> str:
    if isinstance(value, (dict, list)) or value is None:
        raise TypeError("expected a scalar")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in _TRUE_WORDS:
            return True
        if value in _FALSE_WORDS:
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    raise ValueError(f"not an integer: {value!r}")


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise ValueError(f"not a number: {value!r}")


def _get(node: dict, key: str, convert: Callable[[Any], Any]) -> Any:
    """Converted node[key], or _MISSING when absent or not convertible."""
    if key not in node:
        return _MISSING
    try:
        return convert(node[key])
    except (TypeError, ValueError):
        return _MISSING


def _set(target: Any, attr: str, node: dict, key: str, convert: Callable[[Any], Any]) -> None:
    value = _get(node, key, convert)
    if value is not _MISSING:
        setattr(target, attr, value)


def _fixed(value: float) -> float:
    """Scale as held by the compositor: 24.8 fixed point."""
    return round(value * 256) / 256


def _mode_to_dict(mode: Mode) -> dict[str, Any]:
    return {
        "WIDTH": mode.width,
        "HEIGHT": mode.height,
        "REFRESH_MHZ": mode.refresh_mhz,
        "PREFERRED": mode.preferred,
    }


def _state_to_dict(state: HeadState) -> dict[str, Any]:
    out: dict[str, Any] = {
        "SCALE": float(state.scale),
        "ENABLED": state.enabled,
        "X": state.x,
        "Y": state.y,
        "VRR": state.adaptive_sync is AdaptiveSync.ENABLED,
    }
    if state.transform.label:
        out["TRANSFORM"] = state.transform.label
    if state.mode is not None:
        out["MODE"] = _mode_to_dict(state.mode)
    return out


def head_to_dict(head: Head) -> dict[str, Any]:
    """Head as an ordered mapping, as sent in the STATE of a response."""
    out: dict[str, Any] = {}
    for key, value in (("NAME", head.name),
                       ("DESCRIPTION", head.description),
                       ("MAKE", head.make),
                       ("MODEL", head.model),
                       ("SERIAL_NUMBER", head.serial_number)):
        if value:
            out[key] = value
    out["WIDTH_MM"] = head.width_mm
    out["HEIGHT_MM"] = head.height_mm
    out["CURRENT"] = _state_to_dict(head.current)
    out["DESIRED"] = _state_to_dict(head.desired)
    modes = [_mode_to_dict(mode) for mode in head.modes if mode is not None]
    if modes:
        out["MODES"] = modes
    return out


def _mode_from_dict(data: Any, mode: Optional[Mode] = None) -> Optional[Mode]:
    if not isinstance(data, dict):
        return mode
    if mode is None:
        mode = Mode()
    _set(mode, "width", data, "WIDTH", _to_int)
    _set(mode, "height", data, "HEIGHT", _to_int)
    _set(mode, "refresh_mhz", data, "REFRESH_MHZ", _to_int)
    _set(mode, "preferred", data, "PREFERRED", _to_bool)
    return mode


def _state_from_dict(data: Any, state: HeadState) -> None:
    if not isinstance(data, dict):
        return
    _set(state, "enabled", data, "ENABLED", _to_bool)
    _set(state, "scale", data, "SCALE", lambda v: _fixed(_to_float(v)))
    _set(state, "x", data, "X", _to_int)
    _set(state, "y", data, "Y", _to_int)

    name = _get(data, "TRANSFORM", _to_str)
    if name is not _MISSING:
        state.transform = parse_transform(name) or Transform.NORMAL

    vrr = _get(data, "VRR", _to_bool)
    state.adaptive_sync = AdaptiveSync.ENABLED if vrr is True else AdaptiveSync.DISABLED

    state.mode = _mode_from_dict(data.get("MODE"), state.mode)


def head_from_dict(data: Any) -> Optional[Head]:
    """Head from a parsed mapping, ignoring bad values; None if not a map."""
    if not isinstance(data, dict):
        return None
    head = Head()
    for key, attr in (("NAME", "name"),
                      ("DESCRIPTION", "description"),
                      ("MAKE", "make"),
                      ("MODEL", "model"),
                      ("SERIAL_NUMBER", "serial_number")):
        _set(head, attr, data, key, _to_str)
    _set(head, "width_mm", data, "WIDTH_MM", _to_int)
    _set(head, "height_mm", data, "HEIGHT_MM", _to_int)

    _state_from_dict(data.get("CURRENT"), head.current)
    _state_from_dict(data.get("DESIRED"), head.desired)

    if isinstance(data.get("MODES"), list):
        head.modes.extend(
            mode for mode in map(_mode_from_dict, data["MODES"]) if mode is not None)
    return head


def marshal_ipc_request(request: Optional[IpcRequest]) -> str:
    """Request as a YAML document ending with a newline."""
    if request is None or request.command is None:
        raise MarshalError("marshalling ipc request: missing OP")

    out: dict[str, Any] = {"OP": request.command.label}
    if request.log_threshold:
        out["LOG_THRESHOLD"] = request.log_threshold.label
    if request.cfg is not None:
        out["CFG"] = cfg_to_dict(request.cfg)
    return _dump(out)


def unmarshal_ipc_request(text: Optional[str]) -> IpcRequest:
    """Request from YAML; the configuration is validated strictly."""
    if text is None:
        raise MarshalError("unmarshalling ipc request: no request")
    try:
        data = _load(text)
        if not isinstance(data, dict):
            raise MarshalError("empty request")

        if "OP" not in data or data["OP"] is None:
            raise MarshalError("missing OP")
        op = _to_str(data["OP"])
        command = parse_ipc_command(op)
        if command is None:
            raise MarshalError(f"invalid OP '{op}'")
        request = IpcRequest(command=command)

        if data.get("LOG_THRESHOLD") is not None:
            request.log_threshold = parse_log_threshold(_to_str(data["LOG_THRESHOLD"]))

        if isinstance(data.get("CFG"), dict):
            request.cfg = cfg_from_validated(data["CFG"])

        return request
    except (MarshalError, CfgParseError, TypeError, ValueError) as exc:
        logger.error("unmarshalling ipc request: %s", exc)
        raise MarshalError(f"unmarshalling ipc request: {exc}") from exc


def _messages(operation: IpcOperation, log_lines: Iterable[LogCapLine]) -> list[dict[str, str]]:
    """Captured lines at or above the request's threshold; raises the operation's rc."""
    threshold = operation.request.log_threshold
    messages = []
    for cap_line in log_lines:
        if cap_line is None or not cap_line.line or cap_line.threshold is None:
            continue
        if threshold is not None and cap_line.threshold < threshold:
            continue
        messages.append({cap_line.threshold.label: cap_line.line})
        if cap_line.threshold is LogThreshold.WARNING and operation.rc < IPC_RC_WARN:
            operation.rc = IPC_RC_WARN
        if cap_line.threshold is LogThreshold.ERROR and operation.rc < IPC_RC_ERROR:
            operation.rc = IPC_RC_ERROR
    return messages


def marshal_ipc_response(operation: IpcOperation,
                         cfg: Optional[Cfg] = None,
                         heads: Optional[list[Head]] = None,
                         lid: Optional[Lid] = None,
                         log_lines: Optional[list[LogCapLine]] = None) -> str:
    """Response YAML: a map for GET, a one-element sequence otherwise.

    Sent log lines are cleared from log_lines.
    """
    if operation is None:
        raise MarshalError("marshalling ipc response: no operation")

    response: dict[str, Any] = {"DONE": operation.done}

    if operation.send_state:
        if cfg is not None:
            response["CFG"] = cfg_to_dict(cfg)
        if lid is not None or heads:
            state: dict[str, Any] = {}
            if lid is not None:
                state["LID"] = {"CLOSED": lid.closed, "DEVICE_PATH": lid.device_path}
            if heads:
                state["HEADS"] = [head_to_dict(head) for head in heads if head is not None]
            response["STATE"] = state

    if operation.send_logs and log_lines is not None:
        messages = _messages(operation, log_lines)
        if messages:
            response["MESSAGES"] = messages
        log_lines.clear()

    response["RC"] = operation.rc

    seq = operation.request.command is not IpcCommand.GET
    return _dump([response] if seq else response)


def _log_cap_lines(data: Any) -> list[LogCapLine]:
    if not isinstance(data, list):
        return []
    lines = []
    for message in data:
        if not isinstance(message, dict):
            continue
        for key, value in message.items():
            lines.append(LogCapLine(line=_to_str(value),
                                    threshold=parse_log_threshold(_to_str(key))))
    return lines


def _response_from_dict(data: dict) -> IpcResponse:
    if "DONE" not in data:
        raise MarshalError("DONE missing")
    if "RC" not in data:
        raise MarshalError("RC missing")

    response = IpcResponse(done=_to_bool(data["DONE"]), rc=_to_int(data["RC"]))
    response.cfg = cfg_from_lenient(data.get("CFG"))

    state = data.get("STATE")
    if isinstance(state, dict):
        lid_data = state.get("LID")
        if isinstance(lid_data, dict):
            response.lid = Lid()
            _set(response.lid, "closed", lid_data, "CLOSED", _to_bool)
            _set(response.lid, "device_path", lid_data, "DEVICE_PATH", _to_str)
        if isinstance(state.get("HEADS"), list):
            response.heads.extend(head_from_dict(node) for node in state["HEADS"])

    response.log_cap_lines.extend(_log_cap_lines(data.get("MESSAGES")))
    return response


def unmarshal_ipc_responses(text: Optional[str]) -> list[IpcResponse]:
    """All responses in a YAML document: a sequence of maps, or a single map."""
    if text is None:
        return []
    try:
        data = _load(text)
        if isinstance(data, list):
            responses = []
            for node in data:
                if not isinstance(node, dict):
                    raise MarshalError("expected map")
                responses.append(_response_from_dict(node))
            return responses
        if isinstance(data, dict):
            return [_response_from_dict(data)]
        raise MarshalError("expected sequence or map")
    except (MarshalError, TypeError, ValueError) as exc:
        logger.error("unmarshalling ipc response: %s", exc)
        raise MarshalError(f"unmarshalling ipc response: {exc}") from exc