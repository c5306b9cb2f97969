"""JSON encoders for dashboard reports and raw points."""

import json
from collections.abc import Iterable
from typing import Any

from footfall.core.dashboard import BarChartData, Report, StatResult, Trend
from footfall.core.models import Point


def _chart(chart: list[BarChartData]) -> list[dict[str, Any]]:
    return [
        {
            "timestamp": bar.timestamp,
            "label": bar.formatted_timestamp(),
            "value": bar.value,
            "percent": bar.percent,
        }
        for bar in chart
    ]


def _trend(trend: Trend) -> dict[str, Any]:
    return {
        "current": trend.current_value,
        "previous": trend.previous_value,
        "percent_change": trend.percent_change,
    }


def _stat(stat: StatResult) -> dict[str, Any]:
    return {
        "title": stat.title,
        "unit_label": stat.unit_label,
        "count_label": stat.count_label,
        "rows": [{"label": row.label, "value": row.value} for row in stat.rows],
        "error": stat.error,
    }


def encode_report(report: Report) -> str:
    """Encode a dashboard report as a JSON document.

    Args:
        report: The report built by DashboardAssembler.

    Returns:
        JSON string (UTF-8 characters are kept, not escaped).
    """
    obj = {
        "title": report.title,
        "show_footer": report.show_footer,
        "start": report.start,
        "end": report.end,
        "visitors": {
            "chart": _chart(report.visitors_chart),
            "trend": _trend(report.visitors_trend),
        },
        "views": {
            "chart": _chart(report.views_chart),
            "trend": _trend(report.views_trend),
        },
        "rows": [[_stat(stat) for stat in row] for row in report.rows],
    }
    return json.dumps(obj, ensure_ascii=False)


def encode_points(points: Iterable[Point]) -> str:
    """Encode points to newline-delimited JSON.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if there are no points.
    """
    lines = [
        json.dumps(
            {
                "timestamp": point.timestamp,
                "name": point.name,
                "value": point.value,
                "labels": point.labels,
            }
        )
        for point in points
    ]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
