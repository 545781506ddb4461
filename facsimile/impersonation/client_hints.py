"""
Sec-CH-UA Client Hints generation.

Chromium-based profiles announce their brand list and platform through
``Sec-CH-UA*`` headers. The values produced here must agree with the
profile's User-Agent string, otherwise the application layer contradicts
the TLS layer.
"""

from __future__ import annotations

# Low-entropy hints, sent by Chromium on every request.
BASIC_HINTS = ("Sec-CH-UA", "Sec-CH-UA-Mobile", "Sec-CH-UA-Platform")

# High-entropy hints, normally only sent after an Accept-CH opt-in.
HIGH_ENTROPY_HINTS = (
    "Sec-CH-UA-Platform-Version",
    "Sec-CH-UA-Arch",
    "Sec-CH-UA-Bitness",
    "Sec-CH-UA-Full-Version",
    "Sec-CH-UA-Full-Version-List",
    "Sec-CH-UA-Model",
)


def generate_sec_ch_ua(
    browser: str,
    version: str,
    chromium_version: str | None = None,
    grease_brand: str = "Not A(Brand",
    grease_version: str = "8",
) -> str:
    """
    Generate a Sec-CH-UA header value.

    Args:
        browser: Browser name (e.g., "Google Chrome", "Microsoft Edge")
        version: Browser major version (e.g., "133")
        chromium_version: Chromium version if different from browser version
        grease_brand: The GREASE brand Chromium places first
        grease_version: Version announced for the GREASE brand

    Returns:
        Formatted Sec-CH-UA header value
    """
    chromium_ver = chromium_version or version
    return f'"{grease_brand}";v="{grease_version}", "Chromium";v="{chromium_ver}", "{browser}";v="{version}"'


def generate_sec_ch_ua_full_version_list(
    browser: str,
    full_version: str,
    chromium_full_version: str | None = None,
    grease_brand: str = "Not A(Brand",
    grease_version: str = "8",
) -> str:
    """
    Generate a Sec-CH-UA-Full-Version-List header value.

    Args:
        browser: Browser name (e.g., "Google Chrome", "Microsoft Edge")
        full_version: Full browser version (e.g., "133.0.6943.127")
        chromium_full_version: Full Chromium version if different
        grease_brand: The GREASE brand Chromium places first
        grease_version: Major version of the GREASE brand, padded to four parts

    Returns:
        Formatted Sec-CH-UA-Full-Version-List header value
    """
    chromium_ver = chromium_full_version or full_version
    return (
        f'"{grease_brand}";v="{grease_version}.0.0.0", '
        f'"Chromium";v="{chromium_ver}", '
        f'"{browser}";v="{full_version}"'
    )


def build_client_hints_for_platform(
    browser: str,
    full_version: str,
    platform: str,
    mobile: bool = False,
    platform_version: str = "",
    arch: str = "",
    bitness: str = "64",
    model: str = "",
    chromium_full_version: str | None = None,
    grease_brand: str = "Not A(Brand",
    grease_version: str = "8",
) -> dict[str, str]:
    """
    Build a complete set of Chromium client hints for a given platform.

    Args:
        browser: Browser brand (e.g., "Google Chrome")
        full_version: Full browser version; its major part feeds Sec-CH-UA
        platform: Platform name (e.g., "macOS", "Windows", "Android")
        mobile: Whether this is a mobile device
        platform_version: Platform version (e.g., "15.0.0" for Windows 11)
        arch: Architecture (e.g., "arm", "x86")
        bitness: Bitness (e.g., "64", "32")
        model: Device model (e.g., "Pixel 7" for Android)
        chromium_full_version: Full Chromium version if different from the browser's

    Returns:
        Dictionary of all client hints headers, low-entropy ones first
    """
    major = full_version.split(".")[0]
    chromium_full = chromium_full_version or full_version
    return {
        "Sec-CH-UA": generate_sec_ch_ua(
            browser, major, chromium_full.split(".")[0], grease_brand, grease_version
        ),
        "Sec-CH-UA-Mobile": "?1" if mobile else "?0",
        "Sec-CH-UA-Platform": f'"{platform}"',
        "Sec-CH-UA-Platform-Version": f'"{platform_version}"',
        "Sec-CH-UA-Arch": f'"{arch}"',
        "Sec-CH-UA-Bitness": f'"{bitness}"',
        "Sec-CH-UA-Full-Version": f'"{full_version}"',
        "Sec-CH-UA-Full-Version-List": generate_sec_ch_ua_full_version_list(
            browser, full_version, chromium_full, grease_brand, grease_version
        ),
        "Sec-CH-UA-Model": f'"{model}"',
    }


def is_client_hint(name: str) -> bool:
    return name.lower().startswith("sec-ch-ua")
