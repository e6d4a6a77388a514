"""Single-instance enforcement through a locked pid file."""

from __future__ import annotations

import errno
import fcntl
import os
import re
from typing import Optional

_PID_PREFIX = re.compile(rb"\s*([+-]?\d+)")
_PID_READ_SIZE = 11


class PidFileError(OSError):
    """The pid file could not be claimed for this process."""


def pid_path() -> str:
    """Path of the pid file, distinct per virtual terminal."""
    vtnr = os.environ.get("XDG_VTNR")
    if vtnr is not None:
        return f"/tmp/way-displays.{vtnr}.pid"
    return "/tmp/way-displays.pid"


def pid_active_server(path: Optional[str] = None) -> int:
    """Pid recorded in the pid file if that process is alive, otherwise 0."""
    path = path or pid_path()
    try:
        with open(path, "rb") as stream:
            content = stream.read(_PID_READ_SIZE)
    except OSError:
        return 0

    match = _PID_PREFIX.match(content)
    if not match:
        return 0
    pid = int(match.group(1))
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return 0
    return pid


def pid_file_create(path: Optional[str] = None) -> int:
    """Claim the pid file: lock it and write this process's pid.

    Returns the open descriptor, which must stay open to hold the lock.
    """
    path = path or pid_path()

    pid = pid_active_server(path)
    if pid:
        raise PidFileError(f"another instance {pid} is running")

    # attempt to use an existing file, regardless of owner
    try:
        fd = os.open(path, os.O_RDWR | os.O_CLOEXEC)
    except OSError as exc:
        if exc.errno != errno.ENOENT:
            raise PidFileError(
                exc.errno, f"unable to open existing pid file for writing {path}") from exc
        previous = os.umask(0)
        try:
            fd = os.open(path, os.O_RDWR | os.O_CLOEXEC | os.O_CREAT, 0o666)
        except OSError as create_exc:
            raise PidFileError(
                create_exc.errno, f"unable to create pid file {path}") from create_exc
        finally:
            os.umask(previous)

    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError as exc:
        os.close(fd)
        raise PidFileError(exc.errno, f"unable to lock pid file {path}") from exc

    try:
        os.ftruncate(fd, 0)
    except OSError as exc:
        os.close(fd)
        raise PidFileError(exc.errno, f"unable to truncate pid file {path}") from exc

    try:
        written = os.write(fd, str(os.getpid()).encode())
    except OSError as exc:
        os.close(fd)
        raise PidFileError(exc.errno, f"unable to write to pid file {path}") from exc
    if written <= 0:
        os.close(fd)
        raise PidFileError(f"unable to write to pid file {path}")

    return fd