import logging
import socket

from db_server.handler import ConnectionHandler, HandleResult
from db_server.logging import configure_logging
from db_server.metrics import (
    request_latency_ms,
    requests_dropped_total,
    requests_rejected_total,
    requests_total,
    response_failures_total,
    store_keys,
)
from db_server.responses import ResponseRenderer
from db_server.store import Found, KeyValueStore
from tests.fakes.fake_connection import FakeConnection
from tests.fakes.responses import GET_BODY, NOT_FOUND_BODY, SET_BODY


def _handler(responses_dir, store=None, buffer_size=1024):
    store = store if store is not None else KeyValueStore()
    return ConnectionHandler(store, ResponseRenderer(responses_dir), buffer_size=buffer_size)


def test_set_then_get(responses_dir):
    store = KeyValueStore()
    handler = _handler(responses_dir, store)

    conn = FakeConnection(b"GET /set?color=red HTTP/1.1\r\n\r\n")
    assert handler.handle(conn, ("127.0.0.1", 1)) is HandleResult.RESPONDED
    assert conn.sent == f"HTTP/1.1 200 OK\r\n\r\n{SET_BODY}".encode()
    assert conn.closed
    assert store.get("color") == Found("red")
    assert store_keys.value == 1

    conn = FakeConnection(b"GET /get?key=color HTTP/1.1\r\n\r\n")
    assert handler.handle(conn) is HandleResult.RESPONDED
    assert conn.sent == f"HTTP/1.1 200 OK\r\n\r\n{GET_BODY}red".encode()


def test_get_missing_key_is_404(responses_dir):
    conn = FakeConnection(b"GET /get?key=missing HTTP/1.1\r\n")
    assert _handler(responses_dir).handle(conn) is HandleResult.RESPONDED
    assert conn.sent == f"HTTP/1.1 404 NOT FOUND\r\n\r\n{NOT_FOUND_BODY}".encode()


def test_single_read_of_buffer_size(responses_dir):
    conn = FakeConnection(b"GET /get?key=k HTTP/1.1\r\n")
    _handler(responses_dir, buffer_size=1024).handle(conn)
    assert conn.recv_sizes[0] == 1024


def test_request_past_buffer_is_truncated(responses_dir):
    store = KeyValueStore()
    prefix = b"GET /set?k="
    value = b"v" * 2000
    conn = FakeConnection(prefix + value + b" HTTP/1.1\r\n")
    assert _handler(responses_dir, store).handle(conn) is HandleResult.RESPONDED
    assert store.get("k") == Found("v" * (1024 - len(prefix)))
    assert conn.sent.startswith(b"HTTP/1.1 200 OK\r\n\r\n")
    # Unread input is drained after a half-close.
    assert conn.shut_down == socket.SHUT_WR
    assert conn.recv(4096) == b""


def test_unrecognized_request_gets_no_response(responses_dir, caplog):
    store = KeyValueStore()
    conn = FakeConnection(b"GET /other HTTP/1.1\r\n")
    with caplog.at_level(logging.INFO):
        result = _handler(responses_dir, store).handle(conn)
    assert result is HandleResult.DROPPED
    assert conn.sent == b""
    assert conn.closed
    assert len(store) == 0
    assert requests_dropped_total.value == 1
    assert requests_total.value == 1


def test_malformed_request_is_answered_with_404(responses_dir):
    store = KeyValueStore()
    conn = FakeConnection(b"GET /set?ab HTTP/1.1\r\n")
    assert _handler(responses_dir, store).handle(conn) is HandleResult.REJECTED
    assert conn.sent.startswith(b"HTTP/1.1 404 NOT FOUND\r\n\r\n")
    assert len(store) == 0
    assert requests_rejected_total.value == 1


def test_missing_key_is_answered_with_404(responses_dir, caplog):
    conn = FakeConnection(b"GET /get?key= HTTP/1.1\r\n")
    with caplog.at_level(logging.WARNING):
        assert _handler(responses_dir).handle(conn) is HandleResult.REJECTED
    assert conn.sent.startswith(b"HTTP/1.1 404 NOT FOUND")
    rejected = [
        rec for rec in caplog.records if getattr(rec, "event_type", None) == "request_rejected"
    ]
    assert rejected and rejected[0].code == 0


def test_empty_request_is_answered_with_404(responses_dir):
    conn = FakeConnection(b"")
    assert _handler(responses_dir).handle(conn) is HandleResult.REJECTED
    assert conn.sent.startswith(b"HTTP/1.1 404 NOT FOUND")


def test_missing_body_file_closes_without_response(responses_dir, caplog):
    (responses_dir / "set_success.html").unlink()
    store = KeyValueStore()
    conn = FakeConnection(b"GET /set?a=b HTTP/1.1\r\n")
    with caplog.at_level(logging.ERROR):
        assert _handler(responses_dir, store).handle(conn) is HandleResult.FAILED
    assert conn.sent == b""
    assert conn.closed
    # The write itself was applied before rendering failed.
    assert store.get("a") == Found("b")
    assert response_failures_total.value == 1
    assert any(
        getattr(rec, "event_type", None) == "response_unavailable" for rec in caplog.records
    )


def test_socket_errors_are_contained(responses_dir):
    handler = _handler(responses_dir)

    conn = FakeConnection(recv_error=ConnectionResetError("reset"))
    assert handler.handle(conn) is HandleResult.FAILED
    assert conn.closed

    conn = FakeConnection(b"GET /get?key=a HTTP/1.1\r\n", send_error=BrokenPipeError("pipe"))
    assert handler.handle(conn) is HandleResult.FAILED
    assert conn.closed
    assert response_failures_total.value == 2


def test_rejection_output_names_reason(responses_dir, capsys):
    configure_logging("INFO", "plain")
    _handler(responses_dir).handle(FakeConnection(b"GET /set?ab HTTP/1.1\r\n"))
    lines = [line for line in capsys.readouterr().err.splitlines() if "request_rejected" in line]
    assert lines
    assert "code=3" in lines[0]
    assert "improperly formatted" in lines[0]


def test_every_request_is_timed(responses_dir):
    handler = _handler(responses_dir)
    handler.handle(FakeConnection(b"GET /set?a=b HTTP/1.1\r\n"))
    handler.handle(FakeConnection(b"GET /other HTTP/1.1\r\n"))
    assert request_latency_ms.count == 2
    assert request_latency_ms.mean_ms is not None
