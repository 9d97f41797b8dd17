"""Heuristic device classification from user-agent strings.

Results are low-confidence and purely descriptive. They populate subscriber
columns for reporting and must never feed a security or business decision.
"""

import re
from dataclasses import dataclass, replace

from pushbeacon.models.enums import DeviceType

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DeviceInfo:
    """Best-effort description of the subscribing device."""

    browser: str = UNKNOWN
    browser_version: str = ""
    device_type: DeviceType = DeviceType.DESKTOP
    os: str = UNKNOWN
    confidence: str = "low"


def _version(pattern: str, ua: str) -> str:
    match = re.search(pattern, ua)
    return match.group(1) if match else ""


def classify_user_agent(ua: str | None) -> DeviceInfo:
    """Classify browser, OS and device class from a user-agent string."""
    ua = ua or ""

    # Order matters: Edge and Chrome UAs both mention Chrome and Safari.
    if "Firefox/" in ua:
        browser, version = "Firefox", _version(r"Firefox/(\d+)", ua)
    elif "Edg/" in ua:
        browser, version = "Edge", _version(r"Edg/(\d+)", ua)
    elif "Chrome/" in ua:
        browser, version = "Chrome", _version(r"Chrome/(\d+)", ua)
    elif "Safari/" in ua:
        browser, version = "Safari", _version(r"Version/(\d+)", ua)
    else:
        browser, version = UNKNOWN, ""

    # Android and iOS UAs also contain "Linux" / "Mac OS", check them first.
    if "Android" in ua:
        os_name = "Android"
    elif "iPhone" in ua or "iPad" in ua or "iOS" in ua:
        os_name = "iOS"
    elif "Windows" in ua:
        os_name = "Windows"
    elif "Mac OS" in ua:
        os_name = "macOS"
    elif "Linux" in ua:
        os_name = "Linux"
    else:
        os_name = UNKNOWN

    if "iPad" in ua or "Tablet" in ua:
        device_type = DeviceType.TABLET
    elif "Mobile" in ua or "Android" in ua or "iPhone" in ua:
        device_type = DeviceType.MOBILE
    else:
        device_type = DeviceType.DESKTOP

    return DeviceInfo(
        browser=browser,
        browser_version=version,
        device_type=device_type,
        os=os_name,
    )


def resolve_device_info(
    user_agent: str | None,
    browser: str | None = None,
    browser_version: str | None = None,
    device_type: DeviceType | None = None,
    os: str | None = None,
) -> DeviceInfo:
    """Merge caller-supplied hints over user-agent parsing.

    Older clients only send a user agent, newer ones send flattened hints.
    Each hint that is present wins over the parsed value for that field.
    """
    info = classify_user_agent(user_agent)
    overrides = {
        "browser": browser,
        "browser_version": browser_version,
        "device_type": device_type,
        "os": os,
    }
    return replace(info, **{k: v for k, v in overrides.items() if v})
