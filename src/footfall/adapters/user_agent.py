"""Keyword based User-Agent classification.

Coarse on purpose: it tells browsers, operating systems and device classes
apart well enough for dashboard breakdowns, and flags anything that calls
itself a bot, crawler or spider.
"""

import re

from footfall.core.models import UserAgent

# Checked in order, first match wins. Chromium derivatives must precede Chrome,
# and Chrome must precede Safari because Chrome UAs also contain "Safari/".
_BROWSERS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Edge", re.compile(r"Edg(?:e|A|iOS)?/([\d.]+)")),
    ("Opera", re.compile(r"(?:OPR|Opera)/([\d.]+)")),
    ("Samsung Browser", re.compile(r"SamsungBrowser/([\d.]+)")),
    ("Firefox", re.compile(r"(?:Firefox|FxiOS)/([\d.]+)")),
    ("Chrome", re.compile(r"(?:Chrome|CriOS)/([\d.]+)")),
    ("Safari", re.compile(r"Version/([\d.]+).*Safari/")),
    ("Internet Explorer", re.compile(r"(?:MSIE |Trident/.*rv:)([\d.]+)")),
)

_OPERATING_SYSTEMS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Windows", re.compile(r"Windows NT ([\d.]+)")),
    ("Windows Phone", re.compile(r"Windows Phone(?: OS)? ([\d.]+)")),
    ("iOS", re.compile(r"(?:iPhone|CPU) OS ([\d_]+)")),
    ("Android", re.compile(r"Android ([\d.]+)")),
    ("ChromeOS", re.compile(r"CrOS \S+ ([\d.]+)")),
    ("macOS", re.compile(r"Mac OS X ([\d_.]+)")),
    ("Linux", re.compile(r"Linux()")),
)

_DEVICES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("iPad", re.compile(r"iPad")),
    ("iPhone", re.compile(r"iPhone")),
    ("iPod", re.compile(r"iPod")),
    ("Macintosh", re.compile(r"Macintosh")),
)

_BOT_PATTERN = re.compile(
    r"bot\b|bot/|crawl|spider|slurp|scrapy|headless|lighthouse|pingdom"
    r"|uptime|monitor|facebookexternalhit|embedly|preview|bingpreview",
    re.IGNORECASE,
)
_TABLET_PATTERN = re.compile(r"iPad|Tablet|Kindle|Silk/|PlayBook", re.IGNORECASE)
_MOBILE_PATTERN = re.compile(
    r"Mobi|iPhone|iPod|Android.*Mobile|Windows Phone|Opera Mini", re.IGNORECASE
)
_DESKTOP_PATTERN = re.compile(r"Windows NT|Macintosh|X11|CrOS|Linux x86_64")
_ANDROID_DEVICE = re.compile(
    r"Android [\d.]+; (?:[a-z]{2}-[a-z]{2}; )?([^;)]+?)(?: Build/|\))"
)


def _first_match(
    table: tuple[tuple[str, re.Pattern[str]], ...], ua: str
) -> tuple[str, str]:
    for name, pattern in table:
        match = pattern.search(ua)
        if match:
            return name, match.group(1).replace("_", ".") if match.groups() else ""
    return "", ""


class HeuristicUserAgentParser:
    """UserAgentParserPort based on ordered keyword and regex tables."""

    def parse(self, user_agent: str) -> UserAgent:
        if not user_agent:
            return UserAgent()

        name, version = _first_match(_BROWSERS, user_agent)
        os_name, os_version = _first_match(_OPERATING_SYSTEMS, user_agent)
        device, _ = _first_match(_DEVICES, user_agent)
        if not device:
            match = _ANDROID_DEVICE.search(user_agent)
            if match and match.group(1).strip() not in ("K", "Linux"):
                device = match.group(1).strip()

        is_bot = bool(_BOT_PATTERN.search(user_agent))
        if is_bot and not name:
            # Crawlers identify themselves by the first product token.
            name = user_agent.split("/", 1)[0].split(" ", 1)[0].strip("(;")
            version_match = re.match(r"[^/\s]+/([\w.]+)", user_agent)
            version = version_match.group(1) if version_match else ""

        is_tablet = bool(_TABLET_PATTERN.search(user_agent)) or (
            "Android" in user_agent and "Mobile" not in user_agent
        )
        is_mobile = not is_tablet and bool(_MOBILE_PATTERN.search(user_agent))
        is_desktop = (
            not is_tablet
            and not is_mobile
            and bool(_DESKTOP_PATTERN.search(user_agent))
        )

        return UserAgent(
            name=name,
            version=version,
            device=device,
            os=os_name,
            os_version=os_version,
            is_desktop=is_desktop,
            is_mobile=is_mobile,
            is_tablet=is_tablet,
            is_bot=is_bot,
        )
