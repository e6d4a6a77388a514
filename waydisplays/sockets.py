"""Unix domain sockets carrying IPC between client and server."""

from __future__ import annotations

import fcntl
import os
import socket
import struct
import termios
from typing import Optional, Union

SERVER_TIMEOUT_SEC = 2
CLIENT_TIMEOUT_SEC = 10

_SUN_PATH_SIZE = 108
_NAME_SIZE = _SUN_PATH_SIZE - 4
_BACKLOG = 3


class SocketError(OSError):
    """A socket operation failed."""


def socket_path() -> str:
    """Path of the server socket, in the runtime directory when it fits."""
    vtnr = os.environ.get("XDG_VTNR")
    name = f"/way-displays.{vtnr}.sock" if vtnr is not None else "/way-displays.sock"
    name = name[:_NAME_SIZE - 1]

    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir is None or len(name) + len(runtime_dir) > _SUN_PATH_SIZE:
        path = f"/tmp{name}"
    else:
        path = f"{runtime_dir}{name}"
    return path[:_SUN_PATH_SIZE - 1]


def create_socket_server(path: Optional[str] = None) -> socket.socket:
    """Bound, listening server socket; any stale socket file is replaced."""
    path = path or socket_path()
    try:
        server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    except OSError as exc:
        raise SocketError(exc.errno, "Server socket failed, clients unavailable") from exc

    try:
        os.unlink(path)
    except OSError:
        pass

    try:
        server.bind(path)
    except OSError as exc:
        server.close()
        raise SocketError(exc.errno, "Server socket bind failed, clients unavailable") from exc

    try:
        server.listen(_BACKLOG)
    except OSError as exc:
        server.close()
        raise SocketError(exc.errno, "Server socket listen failed, clients unavailable") from exc

    server.settimeout(SERVER_TIMEOUT_SEC)
    return server


def create_socket_client(path: Optional[str] = None) -> socket.socket:
    """Client socket connected to the server."""
    path = path or socket_path()
    try:
        client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    except OSError as exc:
        raise SocketError(exc.errno, "Socket create failed") from exc

    try:
        client.connect(path)
    except OSError as exc:
        client.close()
        raise SocketError(exc.errno, "Socket connect failed") from exc

    client.settimeout(CLIENT_TIMEOUT_SEC)
    return client


def socket_accept(server: socket.socket) -> socket.socket:
    """Accept a client connection with the server read timeout."""
    try:
        client, _ = server.accept()
    except OSError as exc:
        raise SocketError(exc.errno, "Socket accept failed") from exc
    client.settimeout(SERVER_TIMEOUT_SEC)
    return client


def socket_read(client: socket.socket) -> Optional[str]:
    """Everything available once data arrives; None when the peer sent nothing."""
    # peek, as the sender may experience delay between connecting and sending
    try:
        peeked = client.recv(1, socket.MSG_PEEK)
    except socket.timeout as exc:
        raise SocketError("Socket read timeout") from exc
    except OSError as exc:
        raise SocketError(exc.errno, "Socket recv failed") from exc
    if not peeked:
        return None

    # total message size right now; further data will be disregarded
    try:
        raw = fcntl.ioctl(client.fileno(), termios.FIONREAD, b"\0\0\0\0")
    except OSError as exc:
        raise SocketError(exc.errno, "Server FIONREAD failed") from exc
    (available,) = struct.unpack("i", raw)
    if available == 0:
        return None

    try:
        data = client.recv(available)
    except OSError as exc:
        raise SocketError(getattr(exc, "errno", None), "Socket recv failed") from exc
    return data.decode("utf-8", errors="replace")


def socket_write(client: socket.socket, data: Union[str, bytes]) -> int:
    """Write data once, returning the number of bytes written."""
    payload = data.encode("utf-8") if isinstance(data, str) else data
    try:
        return client.send(payload)
    except OSError as exc:
        raise SocketError(getattr(exc, "errno", None), "Socket write failed") from exc