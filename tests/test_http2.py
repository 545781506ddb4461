"""Tests for facsimile.http2 module."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import h2.config
import h2.connection
import h2.events
import pytest
from h2.settings import SettingCodes

from facsimile.descriptor import Http2Config
from facsimile.errors import ConfigurationError, ProtocolError
from facsimile.http2 import AsyncHTTP2Connection, local_settings
from facsimile.impersonation.profiles import BrowserProfile, lookup


def chrome_config():
    defaults = lookup(BrowserProfile.CHROME_133)
    return Http2Config(
        settings=tuple(defaults.h2_settings.items()),
        pseudo_header_order=defaults.pseudo_header_order,
        connection_flow=defaults.connection_flow,
    )


class H2Server:
    """Server side of an in-memory HTTP/2 connection."""

    def __init__(self, reader, behaviour="respond", body=b"hello"):
        self.reader = reader
        self.behaviour = behaviour
        self.body = body
        self.events = []
        self.request_headers = None
        self.request_body = b""
        self.closed = False
        self.conn = h2.connection.H2Connection(
            config=h2.config.H2Configuration(client_side=False, header_encoding="utf-8")
        )
        self.conn.initiate_connection()
        self.reader.feed_data(self.conn.data_to_send())

    def write(self, data):
        if self.closed:
            return
        for event in self.conn.receive_data(data):
            self.events.append(event)
            if isinstance(event, h2.events.RequestReceived):
                self.request_headers = event.headers
            elif isinstance(event, h2.events.DataReceived):
                self.request_body += event.data
                self.conn.acknowledge_received_data(event.flow_controlled_length, event.stream_id)
            elif isinstance(event, h2.events.StreamEnded):
                self._answer(event.stream_id)
        out = self.conn.data_to_send()
        if out:
            self.reader.feed_data(out)
        if self.behaviour in ("eof", "goaway") and self.request_headers is not None:
            self.closed = True
            if self.behaviour == "eof":
                self.reader.feed_eof()

    def _answer(self, stream_id):
        if self.behaviour == "reset":
            self.conn.reset_stream(stream_id)
        elif self.behaviour == "eof":
            return
        elif self.behaviour == "goaway":
            self.conn.close_connection()
        else:
            self.conn.send_headers(stream_id, [(":status", "201"), ("content-type", "text/plain"), ("x-a", "1")])
            self.conn.send_data(stream_id, self.body, end_stream=True)

    def of_type(self, kind):
        return [e for e in self.events if isinstance(e, kind)]


def make_pair(behaviour="respond"):
    reader = asyncio.StreamReader()
    server = H2Server(reader, behaviour)
    writer = MagicMock()
    writer.write.side_effect = server.write
    writer.drain = AsyncMock()
    writer.is_closing = MagicMock(return_value=False)
    return reader, writer, server


class TestLocalSettings:
    """Tests for local_settings."""

    def test_codes(self):
        """Test names map to setting codes."""
        settings = local_settings(chrome_config())
        assert settings[SettingCodes.HEADER_TABLE_SIZE] == 65536
        assert settings[SettingCodes.MAX_HEADER_LIST_SIZE] == 262144
        assert len(settings) == 6

    def test_unknown_skipped(self):
        """Test unknown setting names are ignored."""
        config = Http2Config((("NO_SUCH_SETTING", 1), ("ENABLE_PUSH", 0)), (), 0)
        assert local_settings(config) == {SettingCodes.ENABLE_PUSH: 0}


class TestAsyncHTTP2Connection:
    """Tests for the HTTP/2 client connection."""

    @pytest.mark.asyncio
    async def test_preface_settings_and_window(self):
        """Test the SETTINGS values and connection WINDOW_UPDATE follow the profile."""
        reader, writer, server = make_pair()
        conn = AsyncHTTP2Connection(reader, writer, chrome_config())
        await conn.start()

        changed = server.of_type(h2.events.RemoteSettingsChanged)[0].changed_settings
        assert changed[SettingCodes.HEADER_TABLE_SIZE].new_value == 65536
        assert changed[SettingCodes.INITIAL_WINDOW_SIZE].new_value == 6291456
        assert changed[SettingCodes.MAX_CONCURRENT_STREAMS].new_value == 1000
        updates = [e for e in server.of_type(h2.events.WindowUpdated) if e.stream_id == 0]
        assert updates[0].delta == 15663105

    @pytest.mark.asyncio
    async def test_decoder_follows_local_settings(self):
        """Test the HPACK decoder and frame limits track the advertised SETTINGS."""
        reader, writer, _ = make_pair()
        conn = AsyncHTTP2Connection(reader, writer, chrome_config())
        assert conn.conn.decoder.max_allowed_table_size == 65536
        assert conn.conn.decoder.max_header_list_size == 262144
        assert conn.conn.max_inbound_frame_size == conn.conn.local_settings.max_frame_size

    @pytest.mark.asyncio
    async def test_invalid_setting_value(self):
        """Test an out-of-range SETTINGS value raises ConfigurationError."""
        config = Http2Config((("INITIAL_WINDOW_SIZE", 2**31),), (), 0)
        with pytest.raises(ConfigurationError, match="Invalid HTTP/2 setting"):
            AsyncHTTP2Connection(asyncio.StreamReader(), MagicMock(), config)

    @pytest.mark.asyncio
    async def test_get_request(self):
        """Test pseudo-header order, header casing and the response."""
        reader, writer, server = make_pair()
        conn = AsyncHTTP2Connection(reader, writer, chrome_config())
        await conn.start()
        response = await conn.request(
            "GET", "example.com", "/a?b=1", [("Host", "example.com"), ("User-Agent", "UA"), ("X-Trace", "1")]
        )

        names = [name for name, _ in server.request_headers]
        assert names[:4] == [":method", ":authority", ":scheme", ":path"]
        assert "host" not in names
        assert ("user-agent", "UA") in server.request_headers
        assert response.status_code == 201
        assert response.http_version == "2"
        assert ("x-a", "1") in response.headers
        assert response.body == b"hello"

    @pytest.mark.asyncio
    async def test_firefox_pseudo_order(self):
        """Test a different profile order reaches the wire."""
        reader, writer, server = make_pair()
        defaults = lookup(BrowserProfile.FIREFOX)
        config = Http2Config(tuple(defaults.h2_settings.items()), defaults.pseudo_header_order, defaults.connection_flow)
        conn = AsyncHTTP2Connection(reader, writer, config)
        await conn.start()
        await conn.request("GET", "example.com", "/", [])
        assert [name for name, _ in server.request_headers] == [":method", ":path", ":authority", ":scheme"]

    @pytest.mark.asyncio
    async def test_post_body(self):
        """Test request bodies are sent as DATA frames."""
        reader, writer, server = make_pair()
        conn = AsyncHTTP2Connection(reader, writer, chrome_config())
        await conn.start()
        payload = b"x" * 40000
        response = await conn.request("POST", "example.com", "/upload", [("Content-Type", "text/plain")], payload)
        assert server.request_body == payload
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_stream_reset(self):
        """Test a reset stream raises ProtocolError."""
        reader, writer, _ = make_pair("reset")
        conn = AsyncHTTP2Connection(reader, writer, chrome_config())
        await conn.start()
        with pytest.raises(ProtocolError, match="Stream reset"):
            await conn.request("GET", "example.com", "/", [])

    @pytest.mark.asyncio
    async def test_goaway(self):
        """Test a GOAWAY raises ProtocolError."""
        reader, writer, _ = make_pair("goaway")
        conn = AsyncHTTP2Connection(reader, writer, chrome_config())
        await conn.start()
        with pytest.raises(ProtocolError, match="terminated"):
            await conn.request("GET", "example.com", "/", [])

    @pytest.mark.asyncio
    async def test_eof(self):
        """Test EOF before the stream ends raises ProtocolError."""
        reader, writer, _ = make_pair("eof")
        conn = AsyncHTTP2Connection(reader, writer, chrome_config())
        await conn.start()
        with pytest.raises(ProtocolError, match="closed before stream"):
            await conn.request("GET", "example.com", "/", [])
