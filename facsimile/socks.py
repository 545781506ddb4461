from __future__ import annotations

import asyncio
import ipaddress
import socket
import struct

from .errors import ProxyError
from .proxy import Proxy, ProxyType

SOCKS5_ERRORS = {
    0x01: "General SOCKS server failure",
    0x02: "Connection not allowed by ruleset",
    0x03: "Network unreachable",
    0x04: "Host unreachable",
    0x05: "Connection refused",
    0x06: "TTL expired",
    0x07: "Command not supported",
    0x08: "Address type not supported",
}

SOCKS4_ERRORS = {
    0x5B: "Request rejected or failed",
    0x5C: "Identd unreachable",
    0x5D: "Identd user mismatch",
}


async def _socks5_greeting(writer, reader, username: str | None, password: str | None) -> None:
    """Send SOCKS5 greeting and choose auth method."""
    if username:
        writer.write(b"\x05\x02\x00\x02")
    else:
        writer.write(b"\x05\x01\x00")
    await writer.drain()
    response = await reader.readexactly(2)
    if response[0] != 0x05:
        raise ProxyError("Invalid SOCKS5 greeting response")
    method = response[1]
    if method == 0x00:
        return
    if method == 0x02:
        if not username:
            raise ProxyError("Server requested username/password auth but none provided")
        await _socks5_username_password_auth(writer, reader, username, password or "")
    elif method == 0xFF:
        raise ProxyError("SOCKS5 server rejected all auth methods")
    else:
        raise ProxyError(f"SOCKS5 server selected unsupported auth method: {method}")


async def _socks5_username_password_auth(writer, reader, username: str, password: str) -> None:
    """Perform SOCKS5 username/password authentication (RFC 1929)."""
    user_bytes = username.encode("utf-8")
    pass_bytes = password.encode("utf-8")
    writer.write(bytes([0x01, len(user_bytes)]) + user_bytes + bytes([len(pass_bytes)]) + pass_bytes)
    await writer.drain()
    response = await reader.readexactly(2)
    if response[0] != 0x01:
        raise ProxyError("Invalid username/password auth response")
    if response[1] != 0x00:
        raise ProxyError("SOCKS5 username/password authentication failed")


def _socks5_address(host: str) -> bytes:
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        encoded = host.encode("idna")
        return bytes([0x03, len(encoded)]) + encoded
    if ip.version == 4:
        return b"\x01" + ip.packed
    return b"\x04" + ip.packed


async def _socks5_read_response(reader) -> tuple[int, int]:
    """Read a SOCKS5 CONNECT reply; returns (version, reply code)."""
    ver, rep, _, atyp = struct.unpack("!BBBB", await reader.readexactly(4))
    if atyp == 0x01:
        await reader.readexactly(4)
    elif atyp == 0x03:
        length = (await reader.readexactly(1))[0]
        await reader.readexactly(length)
    elif atyp == 0x04:
        await reader.readexactly(16)
    else:
        raise ProxyError(f"Unknown ATYP {atyp} in SOCKS5 response")
    await reader.readexactly(2)
    return ver, rep


async def socks5_handshake_async(writer, reader, proxy: Proxy, target_host: str, target_port: int) -> None:
    """
    Perform a full SOCKS5 handshake over asyncio streams. The target host
    name is handed to the proxy for resolution.
    """
    await _socks5_greeting(writer, reader, proxy.username, proxy.password)
    writer.write(b"\x05\x01\x00" + _socks5_address(target_host) + struct.pack("!H", target_port))
    await writer.drain()
    ver, rep = await _socks5_read_response(reader)
    if ver != 0x05:
        raise ProxyError(f"Invalid SOCKS5 response version: {ver}")
    if rep != 0x00:
        raise ProxyError(f"SOCKS5 connect failed: {SOCKS5_ERRORS.get(rep, f'SOCKS5 error code {rep}')}")


async def _resolve_ipv4(host: str, port: int) -> bytes:
    try:
        return ipaddress.IPv4Address(host).packed
    except ValueError:
        pass
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port, family=socket.AF_INET, proto=socket.IPPROTO_TCP)
    except socket.gaierror as exc:
        raise ProxyError(f"Failed to resolve {host} for SOCKS4: {exc}") from exc
    if not infos:
        raise ProxyError(f"No IPv4 address for {host}")
    return socket.inet_aton(infos[0][4][0])


async def socks4_handshake_async(writer, reader, proxy: Proxy, target_host: str, target_port: int) -> None:
    """
    SOCKS4 CONNECT. Plain SOCKS4 resolves the target locally (IPv4 only);
    SOCKS4a sends the host name for the proxy to resolve.
    """
    user_id = (proxy.username or "").encode("utf-8") + b"\x00"
    if proxy.type is ProxyType.SOCKS4A:
        request = (
            b"\x04\x01"
            + struct.pack("!H", target_port)
            + b"\x00\x00\x00\x01"
            + user_id
            + target_host.encode("idna")
            + b"\x00"
        )
    else:
        address = await _resolve_ipv4(target_host, target_port)
        request = b"\x04\x01" + struct.pack("!H", target_port) + address + user_id
    writer.write(request)
    await writer.drain()
    response = await reader.readexactly(8)
    if response[0] != 0x00:
        raise ProxyError(f"Invalid SOCKS4 response version: {response[0]}")
    if response[1] != 0x5A:
        raise ProxyError(f"SOCKS4 connect failed: {SOCKS4_ERRORS.get(response[1], f'code {response[1]}')}")


async def socks_handshake_async(writer, reader, proxy: Proxy, target_host: str, target_port: int) -> None:
    if proxy.type is ProxyType.SOCKS5:
        await socks5_handshake_async(writer, reader, proxy, target_host, target_port)
    elif proxy.type in (ProxyType.SOCKS4, ProxyType.SOCKS4A):
        await socks4_handshake_async(writer, reader, proxy, target_host, target_port)
    else:
        raise ProxyError(f"Not a SOCKS proxy: {proxy.type.value}")
