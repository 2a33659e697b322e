import pytest

from db_server.errors import (
    MalformedRequest,
    MissingKey,
    NoRequestFound,
    ParseError,
    UnrecognizedRequest,
)
from db_server.protocol import Get, Set, parse_line, parse_request


def test_get_request_yields_key():
    assert parse_request(b"GET /get?key=foo HTTP/1.1\r\nHost: x\r\n\r\n") == Get("foo")


def test_set_request_yields_key_and_value():
    assert parse_request(b"GET /set?a=b HTTP/1.1\r\n") == Set("a", "b")


def test_only_first_line_is_considered():
    buffer = b"GET /get?key=first HTTP/1.1\nGET /set?x=y HTTP/1.1\n"
    assert parse_request(buffer) == Get("first")


def test_line_without_trailing_text():
    assert parse_line("GET /get?key=solo") == Get("solo")
    assert parse_line("GET /set?k=v") == Set("k", "v")


def test_empty_value_is_accepted():
    assert parse_line("GET /set?a= HTTP/1.1") == Set("a", "")


def test_missing_key_is_distinct_from_empty_key():
    with pytest.raises(MissingKey) as info:
        parse_line("GET /get?key= HTTP/1.1")
    assert isinstance(info.value, ParseError)
    assert info.value.code == 0


def test_missing_key_at_end_of_line():
    with pytest.raises(MissingKey):
        parse_request(b"GET /get?key=")


def test_repeated_key_marker_is_malformed():
    with pytest.raises(MalformedRequest) as info:
        parse_line("GET /get?key=a&key=b HTTP/1.1")
    assert info.value.code == 1


def test_set_without_equals_is_malformed():
    with pytest.raises(MalformedRequest) as info:
        parse_line("GET /set?ab HTTP/1.1")
    assert info.value.code == 3


def test_set_with_two_equals_is_malformed():
    with pytest.raises(MalformedRequest) as info:
        parse_line("GET /set?a=b=c HTTP/1.1")
    assert info.value.code == 3


def test_set_marker_twice_is_malformed():
    with pytest.raises(MalformedRequest) as info:
        parse_line("GET /set?a=set?b HTTP/1.1")
    assert info.value.code == 2


def test_set_without_payload_is_malformed():
    with pytest.raises(MalformedRequest) as info:
        parse_line("GET /set?")
    assert info.value.code == 4


@pytest.mark.parametrize(
    "line",
    [
        "GET /other HTTP/1.1",
        "POST /set?a=b HTTP/1.1",
        "GET /get?name=foo HTTP/1.1",
        "get /get?key=foo HTTP/1.1",
    ],
)
def test_unrecognized_lines(line):
    with pytest.raises(UnrecognizedRequest) as info:
        parse_line(line)
    assert not isinstance(info.value, ParseError)


def test_empty_buffer_has_no_request():
    with pytest.raises(NoRequestFound):
        parse_request(b"")


def test_invalid_utf8_is_replaced_not_fatal():
    assert parse_request(b"GET /get?key=caf\xff HTTP/1.1\r\n") == Get("caf\ufffd")


def test_no_url_decoding():
    assert parse_line("GET /get?key=a%20b HTTP/1.1") == Get("a%20b")


def test_blank_first_line_is_unrecognized():
    with pytest.raises(UnrecognizedRequest):
        parse_request(b"\r\nGET /get?key=foo HTTP/1.1\r\n")
