from __future__ import annotations

import csv
import io
import math
from datetime import date, timedelta

from .formatting import break_status, format_time, to_minutes, work_status
from .history import HistoryLedger
from .models import DailyTimeRecord, WeeklyReport

CSV_HEADERS = ["Date", "Check In", "Check Out", "Work Time", "Break Time", "Efficiency"]
WORK_RATINGS = ("Excellent", "Good", "Fair", "Needs Improvement")
HISTORY_SORT_KEYS = {
    "date": lambda record: record.date,
    "efficiency": lambda record: record.efficiency,
    "work": lambda record: record.total_work_time.total_seconds(),
}


def round_half_up(value: float, digits: int = 0) -> float:
    # Dashboard figures round .5 upwards rather than to even.
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def week_start_for(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


class Reporter:
    """Read-only summaries over the history ledger, recomputed on every call."""

    def __init__(self, ledger: HistoryLedger) -> None:
        self.ledger = ledger

    def records_for_week(self, week_start: date) -> list[DailyTimeRecord]:
        week_end = week_start + timedelta(days=7)
        return [
            record
            for record in self.ledger.read()
            if week_start <= date.fromisoformat(record.date) < week_end
        ]

    def generate_weekly_report(self, week_start: date) -> WeeklyReport:
        records = self.records_for_week(week_start)

        if not records:
            return WeeklyReport(
                week_start_date=week_start.isoformat(),
                total_work_hours=0.0,
                average_efficiency=0,
                total_break_time=0,
                most_productive_day="-",
            )

        total_work_hours = sum(r.total_work_time.hours + r.total_work_time.minutes / 60 for r in records)
        average_efficiency = sum(r.efficiency for r in records) / len(records)
        total_break_minutes = sum(to_minutes(r.total_break_time) for r in records)

        # Ledger order is newest first, so ties keep the most recent day.
        best = records[0]
        for record in records[1:]:
            if record.efficiency > best.efficiency:
                best = record

        return WeeklyReport(
            week_start_date=week_start.isoformat(),
            total_work_hours=round_half_up(total_work_hours, 2),
            average_efficiency=int(round_half_up(average_efficiency)),
            total_break_time=int(round_half_up(total_break_minutes)),
            most_productive_day=best.date,
        )

    def select_history(
        self,
        *,
        since: date | None = None,
        until: date | None = None,
        rating: str | None = None,
        sort_by: str = "date",
        descending: bool = True,
    ) -> list[DailyTimeRecord]:
        """Filter the ledger by inclusive date range and work rating, then sort."""
        if sort_by not in HISTORY_SORT_KEYS:
            raise ValueError(f"Unknown sort key: {sort_by}")

        selected = []
        for record in self.ledger.read():
            day = date.fromisoformat(record.date)
            if since is not None and day < since:
                continue
            if until is not None and day > until:
                continue
            if rating is not None and work_status(record.efficiency) != rating:
                continue
            selected.append(record)

        selected.sort(key=HISTORY_SORT_KEYS[sort_by], reverse=descending)
        return selected

    def export_csv(self, records: list[DailyTimeRecord] | None = None) -> str:
        rows = self.ledger.read() if records is None else records

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for record in rows:
            writer.writerow(
                [
                    record.date,
                    record.check_in_time,
                    record.check_out_time or "-",
                    format_time(record.total_work_time),
                    format_time(record.total_break_time),
                    f"{record.efficiency}%",
                ]
            )
        return buffer.getvalue()

    def build_report_content(self, report: WeeklyReport) -> str:
        header = f"**Weekly Time Report - week of {report.week_start_date}**"
        if report.most_productive_day == "-":
            return f"{header}\nNo tracked activity for this week."

        lines = [
            header,
            f"Total work: `{report.total_work_hours:.2f}h`",
            f"Total breaks: `{report.total_break_time} min`",
            f"Average efficiency: `{report.average_efficiency}%` ({work_status(report.average_efficiency)})",
            f"Most productive day: `{report.most_productive_day}`",
        ]
        return "\n".join(lines)

    def build_history_content(self, records: list[DailyTimeRecord], limit: int = 7) -> str:
        if not records:
            return "No finalized days yet."

        lines = ["**Recent days**"]
        for record in records[:limit]:
            average_break = to_minutes(record.total_break_time) / len(record.breaks) if record.breaks else 0
            lines.append(
                f"- {record.date}: worked `{format_time(record.total_work_time)}`, "
                f"breaks `{format_time(record.total_break_time)}` ({break_status(average_break)}), "
                f"efficiency `{record.efficiency}%`"
            )
        return "\n".join(lines)
