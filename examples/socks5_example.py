#!/usr/bin/env python3
"""
Example: Routing requests through a SOCKS5 proxy.

Requires a running SOCKS5 proxy at localhost:1080.
You can start one with:
  ssh -D 1080 localhost
or use tools like Dante, ss-local, etc.
"""

import asyncio

from facsimile import AsyncClient, FacsimileError, Proxy, ProxyType


async def main():
    print("=== SOCKS5 example ===")
    async with AsyncClient() as client:
        try:
            # The proxy resolves the target host name
            resp = await client.get("https://httpbin.org/ip", proxy="socks5://127.0.0.1:1080")
            print("Response via socks5://:", resp.json(), f"[{resp.engine}]")

            # Structured proxy with credentials
            proxy = Proxy(ProxyType.SOCKS5, "127.0.0.1", 1080, username="user", password="pass")
            resp = await client.get("https://httpbin.org/ip", proxy=proxy)
            print("Response via socks5:// with auth:", resp.json())
        except FacsimileError as e:
            print("Proxy error:", e)


if __name__ == "__main__":
    asyncio.run(main())
