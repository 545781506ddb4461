from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

import h2.config
import h2.connection
import h2.events
import h2.exceptions
import h2.settings

from .connection import RawResponse
from .descriptor import Http2Config
from .errors import ConfigurationError, ProtocolError

logger = logging.getLogger(__name__)

READ_SIZE = 65536


def _decode(value: bytes | str) -> str:
    return value.decode("latin-1") if isinstance(value, bytes) else value


def local_settings(config: Http2Config) -> dict[int, int]:
    """SETTINGS values keyed by h2 setting code; unknown names are skipped."""
    values: dict[int, int] = {}
    for name, value in config.settings:
        try:
            code = h2.settings.SettingCodes[name.upper()]
        except KeyError:
            logger.debug("Unknown HTTP/2 setting %s ignored", name)
            continue
        values[code] = int(value)
    return values


class AsyncHTTP2Connection:
    """
    Single-stream HTTP/2 client over an established TLS stream pair, sending
    the profile's SETTINGS values, connection-flow increment and
    pseudo-header order.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, config: Http2Config) -> None:
        self.reader = reader
        self.writer = writer
        self.config = config
        self.conn = h2.connection.H2Connection(config=h2.config.H2Configuration(client_side=True))
        try:
            settings = h2.settings.Settings(client=True, initial_values=local_settings(config))
        except h2.exceptions.InvalidSettingsValueError as exc:
            raise ConfigurationError(f"Invalid HTTP/2 setting: {exc}") from exc
        # Replacing the settings object skips the ACK path that resizes the decoder.
        self.conn.local_settings = settings
        self.conn.decoder.max_allowed_table_size = settings.header_table_size
        self.conn.decoder.max_header_list_size = settings.max_header_list_size
        self.conn.max_inbound_frame_size = settings.max_frame_size

    async def start(self) -> None:
        self.conn.initiate_connection()
        if self.config.connection_flow:
            self.conn.increment_flow_control_window(self.config.connection_flow)
        await self._flush()

    async def request(
        self,
        method: str,
        authority: str,
        path: str,
        headers: Iterable[tuple[str, str]],
        body: bytes | None = None,
        scheme: str = "https",
    ) -> RawResponse:
        pseudo = {":method": method, ":authority": authority, ":scheme": scheme, ":path": path}
        order = [name for name in self.config.pseudo_header_order if name in pseudo]
        order += [name for name in pseudo if name not in order]
        request_headers = [(name, pseudo[name]) for name in order]
        request_headers += [(name.lower(), value) for name, value in headers if name.lower() != "host"]

        stream_id = self.conn.get_next_available_stream_id()
        try:
            self.conn.send_headers(stream_id, request_headers, end_stream=not body)
            await self._flush()
            if body:
                await self._send_body(stream_id, body)
            return await self._read_response(stream_id)
        except h2.exceptions.ProtocolError as exc:
            raise ProtocolError(f"HTTP/2 protocol error: {exc}") from exc

    async def _send_body(self, stream_id: int, body: bytes) -> None:
        view = memoryview(body)
        while view:
            window = min(self.conn.local_flow_control_window(stream_id), self.conn.max_outbound_frame_size)
            if window <= 0:
                # Peer has to open the window before more data can go out.
                await self._receive(stream_id)
                continue
            chunk, view = view[:window], view[window:]
            self.conn.send_data(stream_id, bytes(chunk), end_stream=not view)
            await self._flush()

    async def _read_response(self, stream_id: int) -> RawResponse:
        status = 0
        resp_headers: list[tuple[str, str]] = []
        resp_body = bytearray()
        while True:
            for event in await self._receive(stream_id):
                if isinstance(event, h2.events.ResponseReceived) and event.stream_id == stream_id:
                    for name, value in event.headers:
                        name, value = _decode(name), _decode(value)
                        if name == ":status":
                            status = int(value)
                        elif not name.startswith(":"):
                            resp_headers.append((name, value))
                elif isinstance(event, h2.events.DataReceived) and event.stream_id == stream_id:
                    resp_body.extend(event.data)
                    self.conn.acknowledge_received_data(event.flow_controlled_length, stream_id)
                elif isinstance(event, h2.events.StreamEnded) and event.stream_id == stream_id:
                    await self._flush()
                    return RawResponse(status, "", "2", resp_headers, bytes(resp_body))
                elif isinstance(event, h2.events.StreamReset) and event.stream_id == stream_id:
                    raise ProtocolError(f"Stream reset: {event.error_code}")
                elif isinstance(event, h2.events.ConnectionTerminated):
                    raise ProtocolError(f"Connection terminated by peer: {event.error_code}")
            await self._flush()

    async def _receive(self, stream_id: int) -> list[h2.events.Event]:
        data = await self.reader.read(READ_SIZE)
        if not data:
            raise ProtocolError(f"Connection closed before stream {stream_id} ended")
        events = self.conn.receive_data(data)
        await self._flush()
        return events

    async def _flush(self) -> None:
        data = self.conn.data_to_send()
        if data:
            self.writer.write(data)
            await self.writer.drain()

    def close(self) -> None:
        try:
            self.conn.close_connection()
        except h2.exceptions.ProtocolError:
            return
        data = self.conn.data_to_send()
        if data and not self.writer.is_closing():
            self.writer.write(data)
