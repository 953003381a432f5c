"""
Tests for the raw and line framings and the outbound message formats.
"""

import pytest

from chatrelay import messages as m
from chatrelay.framing import LINE, RAW, LineReader, RawReader, encode_chat_line, make_reader
from tests.mocks.socket_mocks import FakeSocket


class TestRawReader:
    """One receive is one message."""

    def test_returns_each_receive(self):
        reader = RawReader(FakeSocket([b"first", b"second"]))
        assert reader.read(256) == b"first"
        assert reader.read(256) == b"second"
        assert reader.read(256) == b""

    def test_bounded_by_limit(self):
        sock = FakeSocket([b"abcdef"])
        reader = RawReader(sock)
        assert reader.read(4) == b"abcd"
        assert sock.recv_sizes == [4]

    def test_errors_propagate(self):
        reader = RawReader(FakeSocket([ConnectionResetError(104, "reset")]))
        with pytest.raises(ConnectionResetError):
            reader.read(256)


class TestLineReader:
    """Newline-delimited messages."""

    def test_splits_lines_across_receives(self):
        reader = LineReader(FakeSocket([b"hel", b"lo\nwor", b"ld\n"]))
        assert reader.read(256) == b"hello"
        assert reader.read(256) == b"world"
        assert reader.read(256) == b""

    def test_strips_carriage_return(self):
        reader = LineReader(FakeSocket([b"hi\r\n"]))
        assert reader.read(256) == b"hi"

    def test_skips_blank_lines(self):
        reader = LineReader(FakeSocket([b"\n\r\n\nok\n"]))
        assert reader.read(256) == b"ok"

    def test_long_line_cut_at_limit(self):
        reader = LineReader(FakeSocket([b"abcdefghij\n"]))
        assert reader.read(4) == b"abcd"
        assert reader.read(4) == b"efgh"
        assert reader.read(4) == b"ij"

    def test_line_exactly_at_limit(self):
        reader = LineReader(FakeSocket([b"abcd\nef\n"]))
        assert reader.read(4) == b"abcd"
        assert reader.read(4) == b"ef"

    def test_partial_line_at_eof(self):
        reader = LineReader(FakeSocket([b"done\nno newline"]))
        assert reader.read(256) == b"done"
        assert reader.read(256) == b"no newline"
        assert reader.read(256) == b""
        assert reader.read(256) == b""

    def test_eof_without_data(self):
        assert LineReader(FakeSocket([])).read(256) == b""


class TestMakeReader:
    def test_known_framings(self):
        sock = FakeSocket()
        assert isinstance(make_reader(sock, RAW), RawReader)
        assert isinstance(make_reader(sock, LINE), LineReader)

    def test_unknown_framing(self):
        with pytest.raises(ValueError):
            make_reader(FakeSocket(), "json")


class TestOutboundFormats:
    def test_chat_line(self):
        assert m.chat_line(b"alice", b"hello") == b"alice: hello"

    def test_notices(self):
        assert m.join_notice(b"alice") == b"*** alice has connected ***\n"
        assert m.leave_notice(b"alice") == b"*** alice has disconnected ***\n"

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            m.status_notice(b"alice", "away")

    def test_raw_chat_line_has_no_terminator(self):
        assert encode_chat_line(b"alice: hi", RAW) == b"alice: hi"

    def test_line_chat_line_terminated_once(self):
        assert encode_chat_line(b"alice: hi", LINE) == b"alice: hi\n"
        assert encode_chat_line(b"alice: hi\n", LINE) == b"alice: hi\n"
