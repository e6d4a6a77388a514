# waydisplays

Building blocks for a Wayland display arrangement daemon and its client:
the configuration model, choosing a mode for a display, YAML marshalling of
the configuration and of the IPC messages, the single-instance pid file and
the Unix socket used between client and server.

The package needs PyYAML and a POSIX system (`fcntl` is used for the pid
file lock and for reading socket data).

## Install

```
pip install waydisplays
```

## Modules

### `waydisplays.models`

Enums `Arrange`, `Align`, `OnOff`, `LogThreshold`, `Transform`,
`AdaptiveSync`, `CfgElement` and `IpcCommand`, and the dataclasses `Cfg`,
`UserScale`, `UserMode`, `UserTransform`, `Mode`, `HeadState`, `Head`, `Lid`,
`LogCapLine`, `IpcRequest`, `IpcOperation` and `IpcResponse`.

Configuration strings become enum members through:

- `parse_arrange` and `parse_align` – case-insensitive prefix match
  (`"col"` gives `Arrange.COL`, whose label is `COLUMN`);
- `parse_transform` – exact, case-insensitive names `90`, `180`, `270`,
  `flipped`, `flipped-90`, `flipped-180`, `flipped-270`;
- `parse_log_threshold` and `parse_ipc_command` – exact, case-insensitive names.

Each returns `None` for text it does not recognise. `UserMode.default(name_desc)`
gives a user mode with width, height and refresh all `-1`.

### `waydisplays.mode`

- `mode_preferred(modes, modes_failed)` – first preferred mode not in
  `modes_failed`.
- `mode_max_preferred(modes, modes_failed)` – highest refresh mode at the
  preferred mode's resolution.
- `mode_user_mode(modes, modes_failed, user_mode)` – an exact match of
  resolution and refresh if it has not failed, otherwise the highest mode
  satisfying the user mode (any mode when `max` is set; refresh compared in
  whole Hz, or ignored when `-1`).
- `modes_res_refresh(modes)` – groups (`ModesResRefresh`) of modes sharing a
  resolution and rounded refresh, highest first.
- `mode_dpi(mode)` and `mode_scale(mode)` – DPI from the head's physical size
  and the scale relative to 96 DPI (1 when the size is unknown).
- `mhz_to_hz_str`, `hz_str_to_mhz`, `mhz_to_hz_rounded` – refresh conversions.

### `waydisplays.cfg_yaml`

- `cfg_to_dict(cfg)` and `marshal_cfg(cfg)` – the set elements of a `Cfg` as
  an ordered mapping or as YAML.
- `cfg_from_validated(data, cfg)` – merges parsed YAML into a `Cfg`, logging a
  warning and skipping each invalid value; duplicate names replace earlier
  entries, and `!`-prefixed regular expressions that do not compile are
  dropped (`validate_regex`). Raises `CfgParseError` when `data` is not a map.
- `cfg_from_lenient(data)` – reads a configuration, silently ignoring bad
  values; `None` when `data` is not a map.
- `unmarshal_cfg_from_file(cfg)` – merges the file at `cfg.file_path` into
  `cfg`; raises `CfgParseError` on a missing path, unreadable file or bad YAML.

### `waydisplays.ipc_yaml`

- `marshal_ipc_request(request)` / `unmarshal_ipc_request(text)` – a request
  with its `OP`, optional `LOG_THRESHOLD` and optional `CFG` (validated
  strictly on receipt).
- `marshal_ipc_response(operation, cfg, heads, lid, log_lines)` – a map for
  `GET`, a one-element sequence otherwise. Log lines at or above the request's
  threshold are sent as `MESSAGES`, raise the operation's `rc` to
  `IPC_RC_WARN` or `IPC_RC_ERROR`, and are cleared from `log_lines`.
- `unmarshal_ipc_responses(text)` – a list of `IpcResponse` from either form.
- `head_to_dict(head)` / `head_from_dict(data)` – a head as sent in `STATE`.

Failures raise `MarshalError`.

### `waydisplays.process`

- `pid_path()` – `/tmp/way-displays.pid`, or `/tmp/way-displays.<XDG_VTNR>.pid`.
- `pid_active_server(path)` – the pid in the file if that process is alive,
  otherwise 0.
- `pid_file_create(path)` – locks the file, writes this process's pid and
  returns the open descriptor that holds the lock; raises `PidFileError` when
  another instance runs or the file cannot be claimed.

### `waydisplays.sockets`

- `socket_path()` – `way-displays.sock` (or `way-displays.<XDG_VTNR>.sock`)
  in `XDG_RUNTIME_DIR`, falling back to `/tmp`.
- `create_socket_server(path)`, `create_socket_client(path)`,
  `socket_accept(server)` – server reads time out after 2 seconds, client
  reads after 10.
- `socket_read(client)` – waits for data, then returns everything available
  at that moment; `None` when the peer sent nothing.
- `socket_write(client, data)` – one write, returning the bytes written.

Failures raise `SocketError`.

## Example

```python
from waydisplays.cfg_yaml import cfg_from_validated, marshal_cfg
from waydisplays.models import Cfg

cfg = cfg_from_validated({"ARRANGE": "COLUMN", "ORDER": ["DP-1", "eDP-1"]}, Cfg())
print(marshal_cfg(cfg))
```

```python
from waydisplays.ipc_yaml import marshal_ipc_request
from waydisplays.models import IpcCommand, IpcRequest

print(marshal_ipc_request(IpcRequest(command=IpcCommand.GET)))
```

## What this package does not do

It has no command-line program, no daemon and no event loop. It does not
connect to a Wayland compositor, discover or configure outputs, lay displays
out, watch the configuration file or detect the laptop lid. Those parts are
left to the application built on these modules.

## Tests

```
pip install "waydisplays[test]"
pytest
```