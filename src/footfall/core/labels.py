"""Label vocabulary, label merging and filter-to-matcher translation."""

from collections.abc import Mapping

from footfall.core.errors import QueryError
from footfall.core.models import LabelMatcher, Labels, MatchType

METRIC_NAME = "__name__"

HTTP_REQ_METRIC = "http_req"
HTTP_REQ_DURATION_METRIC = "http_req_dur"

HTTP_METHOD_LABEL = "$http_method"
HTTP_PATH_LABEL = "$http_path"
HTTP_ROUTE_LABEL = "$http_route"
BROWSER_NAME_LABEL = "$browser_name"
BROWSER_VERSION_LABEL = "$browser_version"
BROWSER_DEVICE_LABEL = "$browser_device"
BROWSER_OS_LABEL = "$browser_os"
BROWSER_OS_VERSION_LABEL = "$browser_os_version"
BROWSER_FORM_FACTOR_LABEL = "$browser_form_factor"
REFERRER_LABEL = "$referrer"
REFERRER_DOMAIN_LABEL = "$referrer_domain"
UTM_CONTENT_LABEL = "$utm_content"
UTM_MEDIUM_LABEL = "$utm_medium"
UTM_SOURCE_LABEL = "$utm_source"
UTM_CAMPAIGN_LABEL = "$utm_campaign"
UTM_TERM_LABEL = "$utm_term"
CLICK_ID_GOOGLE_LABEL = "$clid_go"
CLICK_ID_FB_LABEL = "$clid_fb"
CLICK_ID_MS_LABEL = "$clid_ms"
CLICK_ID_TW_LABEL = "$clid_tw"
COUNTRY_LABEL = "$country"
REGION_LABEL = "$region"
CITY_LABEL = "$city"
VISITOR_ID_LABEL = "$visitor_id"

FORM_FACTOR_DESKTOP = "desktop"
FORM_FACTOR_MOBILE = "mobile"
FORM_FACTOR_TABLET = "tablet"
FORM_FACTOR_BOT = "bot"

NOT_EQUAL_SUFFIX = "!="

CATCH_ALL_MATCHER = LabelMatcher(MatchType.REGEX, METRIC_NAME, ".*")


def not_equal(key: str) -> str:
    """Return the filter key that selects points where ``key`` differs."""
    return key + NOT_EQUAL_SUFFIX


def merge_labels(*groups: Mapping[str, str] | None) -> Labels:
    """Merge label groups in order.

    A later group's value replaces an earlier one only when it is non-empty,
    and empty values are never stored. Request classification passes the
    groups in this order: caller labels, method/path/route, visitor id,
    geography, browser, referrer, UTM/click ids.
    """
    merged: Labels = {}
    for group in groups:
        if not group:
            continue
        for key, value in group.items():
            if value:
                merged[key] = value
    return merged


def matchers_for_labels(
    metric: str, filters: Mapping[str, str] | None
) -> list[LabelMatcher]:
    """Build store matchers for a metric name and a label filter.

    Filter keys ending in ``!=`` produce NOT_EQUAL matchers, all others
    EQUAL. With neither metric nor filters the catch-all matcher is returned.

    Raises:
        QueryError: if a filter key is empty or a value is not a string.
    """
    matchers: list[LabelMatcher] = []
    if metric:
        matchers.append(LabelMatcher(MatchType.EQUAL, METRIC_NAME, metric))

    for key, value in (filters or {}).items():
        match_type = MatchType.EQUAL
        if key.endswith(NOT_EQUAL_SUFFIX):
            match_type = MatchType.NOT_EQUAL
            key = key.removesuffix(NOT_EQUAL_SUFFIX)
        if not key:
            raise QueryError("label filter key must not be empty")
        if not isinstance(value, str):
            raise QueryError(
                f"label filter value for {key!r} must be a string, "
                f"got {type(value).__name__}"
            )
        matchers.append(LabelMatcher(match_type, key, value))

    if not matchers:
        matchers.append(CATCH_ALL_MATCHER)
    return matchers
