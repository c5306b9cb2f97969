"""Dashboard data assembly.

A Dashboard is an immutable declaration of stats. DashboardAssembler runs
each stat through the query engine and returns a new Report; the declaration
itself is never modified, so one instance can serve every request.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

from footfall.core import labels as lbl
from footfall.core.errors import FootfallError, QueryError, StatValidationError
from footfall.core.histogram import HistogramBuilder
from footfall.core.logs import get_logger
from footfall.core.models import AggregatedResult, AggregationMethod
from footfall.core.query import GroupBy, QueryEngine, group_by_label, group_by_route

logger = get_logger(__name__)

LabelFormatter = Callable[[AggregatedResult], str]

BOT_FILTER: Mapping[str, str] = MappingProxyType(
    {lbl.not_equal(lbl.BROWSER_FORM_FACTOR_LABEL): lbl.FORM_FACTOR_BOT}
)

FORM_FACTOR_EMOJIS = {
    lbl.FORM_FACTOR_BOT: "\U0001f916 Bot",
    lbl.FORM_FACTOR_MOBILE: "\U0001f4f1 Mobile",
    lbl.FORM_FACTOR_TABLET: "\U0001f4bb Tablet",
    lbl.FORM_FACTOR_DESKTOP: "\U0001f5a5\ufe0f Desktop",
}


def country_flag(row: AggregatedResult) -> str:
    """Prefix a two-letter ISO country code with its flag emoji."""
    code = row.label.upper()
    if len(code) != 2 or not code.isascii() or not code.isalpha():
        return row.label
    flag = "".join(chr(0x1F1E6 + ord(char) - ord("A")) for char in code)
    return f"{flag} {code}"


def form_factor_emoji(row: AggregatedResult) -> str:
    return FORM_FACTOR_EMOJIS.get(row.label, row.label)


@dataclass(frozen=True)
class DashboardStat:
    """Declaration of one "top N" table.

    Exactly one of ``label`` and ``group_by`` must be set.

    Attributes:
        title: Table heading.
        unit_label: Column heading for the group key.
        count_label: Column heading for the value.
        metric: Metric to query.
        label: Group by this label.
        group_by: Group by a custom key function.
        filters: Label filter applied to the query.
        by_visitor: Count distinct visitors instead of aggregating values.
        aggregate_by: Reducer used when ``by_visitor`` is False.
        exclude_bots: Add a not-bot filter to the query.
        format_label: Applied to every result row after the query.
    """

    title: str
    unit_label: str = ""
    count_label: str = ""
    metric: str = ""
    label: str = ""
    group_by: GroupBy | None = None
    filters: Mapping[str, str] = field(default_factory=dict)
    by_visitor: bool = False
    aggregate_by: AggregationMethod = AggregationMethod.COUNT
    exclude_bots: bool = False
    format_label: LabelFormatter | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", MappingProxyType(dict(self.filters)))

    def validate(self) -> None:
        """Raise StatValidationError if the declaration cannot be queried."""
        if not self.metric:
            raise StatValidationError(f"stat {self.title!r}: missing metric")
        if not self.label and self.group_by is None:
            raise StatValidationError(
                f"stat {self.title!r}: missing label or group_by function"
            )
        if self.label and self.group_by is not None:
            raise StatValidationError(
                f"stat {self.title!r}: label and group_by are mutually exclusive"
            )

    def query_filters(self) -> dict[str, str]:
        """Return a fresh filter dict, including the bot filter if requested."""
        filters = dict(self.filters)
        if self.exclude_bots:
            filters.update(BOT_FILTER)
        return filters


@dataclass(frozen=True)
class Dashboard:
    """Immutable dashboard declaration: a title and rows of stats."""

    title: str = "App stats"
    show_footer: bool = True
    rows: tuple[tuple[DashboardStat, ...], ...] = ()


@dataclass(frozen=True)
class BarChartData:
    """One histogram bucket prepared for a bar chart."""

    timestamp: int
    value: int
    percent: float

    def formatted_timestamp(self) -> str:
        moment = datetime.fromtimestamp(self.timestamp).astimezone()
        if moment.hour == 0:
            return moment.strftime("%b %d, %Y")
        return moment.strftime("%b %d, %Y %H:%M")


@dataclass(frozen=True)
class Trend:
    """Current value compared with the previous period of equal length."""

    current_value: int = 0
    previous_value: int = 0

    @property
    def percent_change(self) -> float | None:
        """Relative change in percent, None when the previous value is zero.

        The previous period is the equal-length window right before the
        current one, so the comparison is approximate.
        """
        if self.previous_value == 0:
            return None
        return (self.current_value - self.previous_value) / self.previous_value * 100


@dataclass(frozen=True)
class StatResult:
    """Rows produced for one DashboardStat, or the error that prevented them."""

    title: str
    unit_label: str
    count_label: str
    rows: list[AggregatedResult] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class Report:
    """Presentation-ready dashboard data for one timeframe."""

    title: str
    show_footer: bool
    start: int
    end: int
    visitors_chart: list[BarChartData]
    visitors_trend: Trend
    views_chart: list[BarChartData]
    views_trend: Trend
    rows: list[list[StatResult]]


def prepare_chart_data(
    buckets: list[tuple[int, int]],
) -> tuple[int, list[BarChartData]]:
    """Return the total of all buckets and per-bucket bar data.

    Each bar's percent is relative to the largest bucket.
    """
    total = sum(value for _, value in buckets)
    largest = max((value for _, value in buckets), default=0)
    chart = [
        BarChartData(
            timestamp=timestamp,
            value=value,
            percent=(value / largest * 100) if largest else 0.0,
        )
        for timestamp, value in buckets
    ]
    return total, chart


class DashboardAssembler:
    """Runs a dashboard declaration and builds a Report."""

    def __init__(self, engine: QueryEngine, histograms: HistogramBuilder) -> None:
        self.engine = engine
        self.histograms = histograms

    async def build(self, dashboard: Dashboard, start: int, end: int) -> Report:
        """Build the report for [start, end).

        A failing stat is reported with an error and empty rows; the other
        stats are still computed.
        """
        # not exact: the previous period is simply the same length shifted back
        previous_start = start - (end - start)

        visitors = await self.histograms.visitors_histogram(
            lbl.HTTP_REQ_METRIC, BOT_FILTER, start, end
        )
        visitors_total, visitors_chart = prepare_chart_data(visitors)
        try:
            visitors_previous = await self.engine.count_visitors(
                lbl.HTTP_REQ_METRIC, BOT_FILTER, previous_start, start
            )
        except QueryError:
            logger.warning("Counting previous period visitors failed", exc_info=True)
            visitors_previous = 0

        try:
            views = await self.histograms.count_histogram(
                lbl.HTTP_REQ_METRIC, start, end
            )
            views_previous = await self.engine.count(
                lbl.HTTP_REQ_METRIC, previous_start, start
            )
        except QueryError:
            logger.warning("Counting page views failed", exc_info=True)
            views, views_previous = [], 0
        views_total, views_chart = prepare_chart_data(views)

        rows = [
            [await self.run_stat(stat, start, end) for stat in row]
            for row in dashboard.rows
        ]

        return Report(
            title=dashboard.title,
            show_footer=dashboard.show_footer,
            start=start,
            end=end,
            visitors_chart=visitors_chart,
            visitors_trend=Trend(visitors_total, visitors_previous),
            views_chart=views_chart,
            views_trend=Trend(views_total, views_previous),
            rows=rows,
        )

    async def run_stat(self, stat: DashboardStat, start: int, end: int) -> StatResult:
        """Run one stat. Validation and query failures end up in ``error``."""
        try:
            stat.validate()
            data = await self._query(stat, start, end)
        except FootfallError as exc:
            logger.warning(
                "Dashboard stat failed", extra={"stat": stat.title, "error": str(exc)}
            )
            return StatResult(
                title=stat.title,
                unit_label=stat.unit_label,
                count_label=stat.count_label,
                error=str(exc),
            )

        if stat.format_label is not None:
            data = [
                AggregatedResult(label=stat.format_label(row), value=row.value)
                for row in data
            ]

        return StatResult(
            title=stat.title,
            unit_label=stat.unit_label,
            count_label=stat.count_label,
            rows=data,
        )

    async def _query(
        self, stat: DashboardStat, start: int, end: int
    ) -> list[AggregatedResult]:
        filters = stat.query_filters()
        if stat.group_by is not None:
            if stat.by_visitor:
                return await self.engine.count_distinct_by_visitor(
                    stat.metric, stat.group_by, filters, start, end
                )
            group_by = stat.group_by
        elif stat.by_visitor:
            return await self.engine.count_distinct_by_visitor_and_label(
                stat.metric, stat.label, filters, start, end
            )
        else:
            group_by = group_by_label(stat.label)

        return await self.engine.aggregate_distinct(
            stat.metric, group_by, filters, stat.aggregate_by, start, end
        )


DEFAULT_DASHBOARD = Dashboard(
    title="App stats",
    show_footer=True,
    rows=(
        (
            DashboardStat(
                title="Top pages",
                unit_label="Page",
                count_label="Visitors",
                metric=lbl.HTTP_REQ_METRIC,
                label=lbl.HTTP_PATH_LABEL,
                by_visitor=True,
                exclude_bots=True,
            ),
            DashboardStat(
                title="Top referrals",
                unit_label="Site",
                count_label="Visitors",
                metric=lbl.HTTP_REQ_METRIC,
                label=lbl.REFERRER_DOMAIN_LABEL,
                by_visitor=True,
                exclude_bots=True,
            ),
            DashboardStat(
                title="Top locations",
                unit_label="Country",
                count_label="Visitors",
                metric=lbl.HTTP_REQ_METRIC,
                label=lbl.COUNTRY_LABEL,
                by_visitor=True,
                exclude_bots=True,
                format_label=country_flag,
            ),
        ),
        (
            DashboardStat(
                title="Top form factors",
                unit_label="Form factor",
                count_label="Visitors",
                metric=lbl.HTTP_REQ_METRIC,
                label=lbl.BROWSER_FORM_FACTOR_LABEL,
                by_visitor=True,
                format_label=form_factor_emoji,
            ),
            DashboardStat(
                title="Top browsers",
                unit_label="Browser",
                count_label="Visitors",
                metric=lbl.HTTP_REQ_METRIC,
                label=lbl.BROWSER_NAME_LABEL,
                by_visitor=True,
                exclude_bots=True,
            ),
            DashboardStat(
                title="Top operating systems",
                unit_label="Operating system",
                count_label="Visitors",
                metric=lbl.HTTP_REQ_METRIC,
                label=lbl.BROWSER_OS_LABEL,
                by_visitor=True,
                exclude_bots=True,
            ),
        ),
        (
            DashboardStat(
                title="Top routes",
                unit_label="Route",
                count_label="Visitors",
                metric=lbl.HTTP_REQ_METRIC,
                label=lbl.HTTP_ROUTE_LABEL,
                by_visitor=True,
            ),
            DashboardStat(
                title="Slowest routes",
                unit_label="Route",
                count_label="avg ms",
                metric=lbl.HTTP_REQ_DURATION_METRIC,
                group_by=group_by_route,
                aggregate_by=AggregationMethod.AVG,
            ),
            DashboardStat(
                title="Top bots and libraries",
                unit_label="Bot",
                count_label="Rqs",
                metric=lbl.HTTP_REQ_METRIC,
                label=lbl.BROWSER_NAME_LABEL,
                filters={lbl.BROWSER_FORM_FACTOR_LABEL: lbl.FORM_FACTOR_BOT},
            ),
        ),
    ),
)
