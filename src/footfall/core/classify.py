"""Request classification: turns a tracked HTTP request into a label set.

Classification never raises because of an enrichment failure. Geo lookup and
user-agent parsing errors degrade to empty labels and the request is still
tracked.
"""

import hashlib
from collections.abc import Callable, Mapping
from urllib.parse import urlsplit

from footfall.core import labels as lbl
from footfall.core.config import FootfallOptions
from footfall.core.logs import get_logger
from footfall.core.models import Classification, Labels, TrackedRequest, UserAgent
from footfall.core.ports import GeoLookupPort, UserAgentParserPort

logger = get_logger(__name__)

FAVICON_PATH = "/favicon.ico"

COMMON_ASSET_PREFIXES = (
    "/.",
    "/_",
    # bad bots probing for wordpress
    "/wp-",
    "/public",
)

COMMON_ASSET_SUFFIXES = (
    ".js",
    ".css",
    ".png",
    ".jpg",
    ".jpeg",
    ".webp",
    ".gif",
    ".svg",
    ".woff",
    ".woff2",
    ".otf",
    ".ttf",
    ".tff",
    ".ico",
    ".mov",
    ".mpg",
    ".mp3",
    ".mp4",
    ".wav",
    ".ogg",
    # bad bots
    ".php",
    ".asp",
    ".aspx",
)

# Lower-case User-Agent prefixes of HTTP libraries, scripts and probes.
HTTP_CLIENT_LIBRARIES = (
    # go
    "go-http-client",
    "github.com/monaco-io",
    "gentleman",
    # node.js
    "node-fetch",
    "undici",
    "axios",
    # objective-c and swift
    "alamofire",
    "nsurlconnection",
    "nsurlsession",
    "urlsession",
    "swifthttp",
    # python-requests, python-urllib3, python-httpx
    "python-",
    "aiohttp",
    "httpx",
    # java
    "apache-httpclient",
    "okhttp",
    # php
    "php-",
    "zend",
    "laminas",
    "guzzlehttp",
    # command line and api tools
    "curl",
    "wget",
    "rapidapi",
    "postman",
    "insomnia",
    # apple app site association
    "aasa",
    # rss readers
    "linkship",
    "feedbin",
    "feedly",
    "artykul",
    "x11",
    # render.com health check
    "render",
    "dataprovider.com",
    "researchscan",
    "zgrab",
    "netcraftsurveyagent",
)

UTM_PARAMETERS = {
    lbl.UTM_CONTENT_LABEL: "utm_content",
    lbl.UTM_MEDIUM_LABEL: "utm_medium",
    lbl.UTM_SOURCE_LABEL: "utm_source",
    lbl.UTM_CAMPAIGN_LABEL: "utm_campaign",
    lbl.UTM_TERM_LABEL: "utm_term",
    lbl.CLICK_ID_GOOGLE_LABEL: "gclid",
    lbl.CLICK_ID_FB_LABEL: "fbclid",
    lbl.CLICK_ID_MS_LABEL: "msclkid",
    lbl.CLICK_ID_TW_LABEL: "twclid",
}

FormFactorRule = tuple[Callable[[UserAgent, str], bool], str]


def is_http_client_library(user_agent: str) -> bool:
    """Return True for empty User-Agents and known non-browser clients."""
    if not user_agent:
        return True
    lowered = user_agent.lower()
    return lowered.startswith(HTTP_CLIENT_LIBRARIES)


# Evaluated in order, the last matching rule wins: bot always has final say.
FORM_FACTOR_RULES: tuple[FormFactorRule, ...] = (
    (lambda ua, raw: ua.is_desktop, lbl.FORM_FACTOR_DESKTOP),
    (lambda ua, raw: ua.is_mobile, lbl.FORM_FACTOR_MOBILE),
    (lambda ua, raw: ua.is_tablet, lbl.FORM_FACTOR_TABLET),
    (lambda ua, raw: ua.is_bot or is_http_client_library(raw), lbl.FORM_FACTOR_BOT),
)


def form_factor(ua: UserAgent, raw_user_agent: str) -> str:
    """Classify a parsed User-Agent into desktop, mobile, tablet or bot.

    Returns an empty string if no rule matches.
    """
    result = ""
    for predicate, value in FORM_FACTOR_RULES:
        if predicate(ua, raw_user_agent):
            result = value
    return result


def visitor_id(ip: str, request: TrackedRequest) -> str:
    """Return the anonymous visitor fingerprint for a request.

    The fingerprint is a SHA-256 hex digest of the client IP and the
    User-Agent, Accept, Accept-Encoding and Accept-Language headers joined
    with ``|``. Identical inputs always give the same fingerprint.
    """
    raw = "|".join(
        (
            ip,
            request.header("user-agent"),
            request.header("accept"),
            request.header("accept-encoding"),
            request.header("accept-language"),
        )
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _strip_port(remote_addr: str) -> str:
    if remote_addr.startswith("["):
        host, _, _ = remote_addr[1:].partition("]")
        return host
    if remote_addr.count(":") == 1:
        host, _, _ = remote_addr.partition(":")
        return host
    return remote_addr


def client_ip(request: TrackedRequest) -> str:
    """Resolve the client address of a request.

    Tries, in order: an address already set by the host, CF-Connecting-IP,
    the first X-Forwarded-For entry, X-Real-IP, and finally the transport
    peer address with the port stripped.
    """
    if request.client_ip:
        return request.client_ip

    if ip := request.header("cf-connecting-ip").strip():
        return ip

    forwarded_for = request.header("x-forwarded-for")
    if first := forwarded_for.split(",")[0].strip():
        return first

    if ip := request.header("x-real-ip").strip():
        return ip

    return _strip_port(request.remote_addr)


def referrer_labels(request: TrackedRequest) -> Labels:
    referrer = request.header("referer")
    host = ""
    if referrer:
        try:
            host = urlsplit(referrer).hostname or ""
        except ValueError:
            host = ""
    return {lbl.REFERRER_LABEL: referrer, lbl.REFERRER_DOMAIN_LABEL: host}


def utm_labels(request: TrackedRequest) -> Labels:
    return {
        label: request.query_param(param) for label, param in UTM_PARAMETERS.items()
    }


class RequestClassifier:
    """Builds label sets for tracked requests and applies exclusion policy."""

    def __init__(
        self,
        options: FootfallOptions,
        user_agent_parser: UserAgentParserPort,
        geo_lookup: GeoLookupPort | None = None,
    ) -> None:
        """Initialize the classifier.

        Args:
            options: Tracking policy (dashboard path, asset/bot/DNT handling).
            user_agent_parser: Parser used for browser and form factor labels.
            geo_lookup: Optional IP geolocation. None disables geo labels.
        """
        self.options = options
        self.user_agent_parser = user_agent_parser
        self.geo_lookup = geo_lookup

    def should_track(self, path: str) -> bool:
        """Return False for paths that must never be recorded.

        The dashboard and everything below it are always excluded. With
        ignore_common_paths, the favicon, asset prefixes and asset suffixes
        are excluded as well. Configured ignored prefixes always apply.
        """
        if path.startswith(self.options.dashboard_path):
            return False

        if self.options.ignored_prefixes and path.startswith(
            self.options.ignored_prefixes
        ):
            return False

        if self.options.ignore_common_paths:
            if path == FAVICON_PATH:
                return False
            if path.startswith(COMMON_ASSET_PREFIXES):
                return False
            if path.endswith(COMMON_ASSET_SUFFIXES):
                return False

        return True

    def classify(
        self,
        request: TrackedRequest,
        labels: Mapping[str, str] | None = None,
    ) -> Classification:
        """Compute the label set of a request.

        Args:
            request: The request to classify.
            labels: Caller supplied labels. Built-in labels with a non-empty
                value take precedence over them.

        Returns:
            Classification with the merged labels. ``dropped`` is True when
            the request opted out with DNT or was classified as a bot while
            bots are ignored.
        """
        if not self.options.ignore_dnt and request.header("dnt").strip() == "1":
            return Classification(labels={}, dropped=True, reason="dnt")

        ip = client_ip(request)
        merged = lbl.merge_labels(
            labels,
            {
                lbl.HTTP_METHOD_LABEL: request.method,
                lbl.HTTP_PATH_LABEL: request.path,
                lbl.HTTP_ROUTE_LABEL: request.route,
            },
            {lbl.VISITOR_ID_LABEL: visitor_id(ip, request)},
            self.location_labels(ip),
            self.user_agent_labels(request),
            referrer_labels(request),
            utm_labels(request),
        )

        if (
            self.options.ignore_bots
            and merged.get(lbl.BROWSER_FORM_FACTOR_LABEL) == lbl.FORM_FACTOR_BOT
        ):
            return Classification(labels=merged, dropped=True, reason="bot")

        return Classification(labels=merged)

    def location_labels(self, ip: str) -> Labels:
        if self.geo_lookup is None:
            return {}

        empty = {lbl.COUNTRY_LABEL: "", lbl.REGION_LABEL: "", lbl.CITY_LABEL: ""}
        if not ip:
            return empty
        try:
            location = self.geo_lookup.lookup(ip)
        except Exception:
            logger.debug("Geo lookup failed for client address", exc_info=True)
            return empty
        if location is None:
            return empty

        return {
            lbl.COUNTRY_LABEL: location.country,
            lbl.REGION_LABEL: location.region,
            lbl.CITY_LABEL: location.city,
        }

    def user_agent_labels(self, request: TrackedRequest) -> Labels:
        raw = request.header("user-agent")
        try:
            ua = self.user_agent_parser.parse(raw)
        except Exception:
            logger.debug("User-Agent parsing failed", exc_info=True)
            ua = UserAgent()

        return {
            lbl.BROWSER_NAME_LABEL: ua.name,
            lbl.BROWSER_VERSION_LABEL: ua.version,
            lbl.BROWSER_DEVICE_LABEL: ua.device,
            lbl.BROWSER_OS_LABEL: ua.os,
            lbl.BROWSER_OS_VERSION_LABEL: ua.os_version,
            lbl.BROWSER_FORM_FACTOR_LABEL: form_factor(ua, raw),
        }
