import pytest

from waydisplays.sockets import (
    SocketError,
    create_socket_client,
    create_socket_server,
    socket_accept,
    socket_path,
    socket_read,
    socket_write,
)


@pytest.fixture
def server(tmp_path):
    path = str(tmp_path / "s.sock")
    srv = create_socket_server(path)
    yield path, srv
    srv.close()


def test_socket_path_defaults(monkeypatch):
    monkeypatch.delenv("XDG_VTNR", raising=False)
    monkeypatch.delenv("XDG_RUNTIME_DIR", raising=False)
    assert socket_path() == "/tmp/way-displays.sock"


def test_socket_path_runtime_dir(monkeypatch):
    monkeypatch.setenv("XDG_VTNR", "3")
    monkeypatch.setenv("XDG_RUNTIME_DIR", "/run/user/1000")
    assert socket_path() == "/run/user/1000/way-displays.3.sock"


def test_socket_path_runtime_dir_too_long(monkeypatch):
    monkeypatch.delenv("XDG_VTNR", raising=False)
    monkeypatch.setenv("XDG_RUNTIME_DIR", "/" + "d" * 120)
    assert socket_path() == "/tmp/way-displays.sock"


def test_round_trip(server):
    path, srv = server
    client = create_socket_client(path)
    try:
        conn = socket_accept(srv)
        try:
            message = "OP: GET\n"
            assert socket_write(client, message) == len(message)
            assert socket_read(conn) == message
            assert socket_write(conn, b"DONE: TRUE\n") == len(b"DONE: TRUE\n")
            assert socket_read(client) == "DONE: TRUE\n"
        finally:
            conn.close()
    finally:
        client.close()


def test_read_after_peer_closed(server):
    path, srv = server
    client = create_socket_client(path)
    conn = socket_accept(srv)
    try:
        client.close()
        assert socket_read(conn) is None
    finally:
        conn.close()


def test_read_timeout(server):
    path, srv = server
    client = create_socket_client(path)
    conn = socket_accept(srv)
    try:
        conn.settimeout(0.1)
        with pytest.raises(SocketError, match="timeout"):
            socket_read(conn)
    finally:
        conn.close()
        client.close()


def test_connect_without_server(tmp_path):
    with pytest.raises(SocketError, match="connect failed"):
        create_socket_client(str(tmp_path / "none.sock"))


def test_server_replaces_stale_file(tmp_path):
    path = tmp_path / "s.sock"
    path.write_text("stale")
    srv = create_socket_server(str(path))
    try:
        client = create_socket_client(str(path))
        conn = socket_accept(srv)
        socket_write(client, "x")
        assert socket_read(conn) == "x"
        conn.close()
        client.close()
    finally:
        srv.close()


def test_accept_timeout(server):
    _, srv = server
    srv.settimeout(0.1)
    with pytest.raises(SocketError, match="accept failed"):
        socket_accept(srv)