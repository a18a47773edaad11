"""Execution-environment probes used to enrich session payloads."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol


class BrowserName:
    EDGE = "Edge"
    OPERA = "Opera"
    CHROME = "Chrome"
    FIREFOX = "Firefox"
    SAFARI = "Safari"
    IE = "IE"
    UNKNOWN = "Unknown"


class DeviceType:
    MOBILE = "Mobile"
    TABLET = "Tablet"
    DESKTOP = "Desktop"


class OSType:
    WINDOWS = "Windows"
    MACOS = "MacOS"
    IOS = "iOS"
    ANDROID = "Android"
    LINUX = "Linux"
    UNKNOWN = "Unknown"


class EnvironmentProbe(Protocol):
    """Describes the browser-like context a chat is started from."""

    def is_available(self) -> bool: ...

    def browser_name(self) -> str: ...

    def device_type(self) -> str: ...

    def os_type(self) -> str: ...

    def page_url(self) -> str: ...


class HeadlessEnvironment:
    """No browser context. Enrichment requests against it are rejected."""

    def is_available(self) -> bool:
        return False

    def browser_name(self) -> str:
        return BrowserName.UNKNOWN

    def device_type(self) -> str:
        return DeviceType.DESKTOP

    def os_type(self) -> str:
        return OSType.UNKNOWN

    def page_url(self) -> str:
        return ""


# Order matters: Edge and Opera also advertise Chrome, Chrome advertises Safari
_BROWSER_PATTERNS = [
    (re.compile(r"Edg(e|A|iOS)?/", re.I), BrowserName.EDGE),
    (re.compile(r"OPR/|Opera", re.I), BrowserName.OPERA),
    (re.compile(r"Chrome/|CriOS/", re.I), BrowserName.CHROME),
    (re.compile(r"Firefox/|FxiOS/", re.I), BrowserName.FIREFOX),
    (re.compile(r"Safari/", re.I), BrowserName.SAFARI),
    (re.compile(r"MSIE |Trident/", re.I), BrowserName.IE),
]

_OS_PATTERNS = [
    (re.compile(r"iPhone|iPad|iPod", re.I), OSType.IOS),
    (re.compile(r"Android", re.I), OSType.ANDROID),
    (re.compile(r"Windows", re.I), OSType.WINDOWS),
    (re.compile(r"Mac OS X|Macintosh", re.I), OSType.MACOS),
    (re.compile(r"Linux|X11", re.I), OSType.LINUX),
]

_TABLET = re.compile(r"iPad|Tablet|(Android(?!.*Mobile))", re.I)
_MOBILE = re.compile(r"Mobi|iPhone|iPod|Android.*Mobile|Windows Phone", re.I)


@dataclass(frozen=True)
class UserAgentEnvironment:
    """Environment described by a browser User-Agent string and page URL."""
    user_agent: str
    url: str = ""

    def is_available(self) -> bool:
        return bool(self.user_agent)

    def browser_name(self) -> str:
        for pattern, name in _BROWSER_PATTERNS:
            if pattern.search(self.user_agent):
                return name
        return BrowserName.UNKNOWN

    def device_type(self) -> str:
        if _TABLET.search(self.user_agent):
            return DeviceType.TABLET
        if _MOBILE.search(self.user_agent):
            return DeviceType.MOBILE
        return DeviceType.DESKTOP

    def os_type(self) -> str:
        for pattern, name in _OS_PATTERNS:
            if pattern.search(self.user_agent):
                return name
        return OSType.UNKNOWN

    def page_url(self) -> str:
        return self.url
