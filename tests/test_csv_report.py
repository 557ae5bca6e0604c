import csv
import io
import json
import unittest
from datetime import datetime, timezone

from playscout.analytics.publishers import PublisherAggregate
from playscout.config import EmptyFallbackPolicy
from playscout.reporting.csv_report import (
    MAX_DIAGNOSTIC_ERRORS,
    RunDiagnostics,
    format_update,
    render_csv,
    render_report,
)

HEADER_LINE = '"developerId","developerName","appCount","latestUpdate","sampleApps"'


def _ts(*args):
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


class TestRenderCsv(unittest.TestCase):
    def test_quotes_are_doubled(self):
        agg = PublisherAggregate(
            "dev.1",
            name='He said "hi"',
            app_count=1,
            most_recent_update_ms=_ts(2021, 3, 5, 10),
            sample_apps=[("com.quote", 'The "Best" App')],
        )
        text = render_csv([agg])
        lines = text.splitlines()
        self.assertEqual(lines[0], HEADER_LINE)
        self.assertEqual(
            lines[1],
            '"dev.1","He said ""hi""","1","2021-03-05","The ""Best"" App (com.quote)"',
        )

    def test_round_trip_through_csv_reader(self):
        tricky = 'Comma, "quote" and\nnewline'
        agg = PublisherAggregate(
            "dev,2",
            name=tricky,
            app_count=2,
            sample_apps=[("com.a", "A"), ("com.b", "")],
        )
        rows = list(csv.reader(io.StringIO(render_csv([agg]))))
        self.assertEqual(rows[0], ["developerId", "developerName", "appCount", "latestUpdate", "sampleApps"])
        self.assertEqual(rows[1], ["dev,2", tricky, "2", "unknown", "A (com.a) |  (com.b)"])

    def test_dates(self):
        self.assertEqual(format_update(_ts(2021, 3, 5, 10)), "2021-03-05")
        self.assertEqual(format_update(0), "unknown")
        self.assertEqual(format_update(10**17), "unknown")

    def test_unrenderable_timestamp_does_not_sink_report(self):
        rows = [
            PublisherAggregate("bad", name="Bad", app_count=1, most_recent_update_ms=10**17),
            PublisherAggregate("good", name="Good", app_count=1, most_recent_update_ms=_ts(2021, 3, 5)),
        ]
        parsed = list(csv.reader(io.StringIO(render_csv(rows))))
        self.assertEqual(parsed[1][3], "unknown")
        self.assertEqual(parsed[2][3], "2021-03-05")


class TestEmptyFallbacks(unittest.TestCase):
    def setUp(self):
        self.diag = RunDiagnostics(
            keywords=("zz_nonexistent_kw_xyz",),
            per_keyword=5,
            total_apps_seen=5,
            total_developers=0,
            errors=tuple(f"com.app{i}: not found" for i in range(40)),
        )

    def test_rows_present_ignores_fallback(self):
        report = render_report([PublisherAggregate("p", app_count=1)], EmptyFallbackPolicy.DIAGNOSTIC_JSON, self.diag)
        self.assertEqual(report.content_type, "text/csv")
        self.assertFalse(report.is_fallback)

    def test_plain_empty_csv(self):
        report = render_report([], EmptyFallbackPolicy.PLAIN_EMPTY_CSV, self.diag)
        self.assertEqual(report.body, HEADER_LINE + "\n")
        self.assertTrue(report.is_fallback)
        self.assertEqual(report.extension, "csv")

    def test_placeholder_rows(self):
        report = render_report([], EmptyFallbackPolicy.PLACEHOLDER_ROWS, self.diag)
        rows = list(csv.reader(io.StringIO(report.body)))
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][0], "none")
        self.assertEqual(rows[1][2], "0")
        self.assertIn("zz_nonexistent_kw_xyz", rows[1][4])

    def test_diagnostic_json(self):
        report = render_report([], EmptyFallbackPolicy.DIAGNOSTIC_JSON, self.diag)
        self.assertEqual(report.content_type, "application/json")
        self.assertEqual(report.extension, "json")
        payload = json.loads(report.body)
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["keywords"], ["zz_nonexistent_kw_xyz"])
        self.assertEqual(payload["appsPerKeyword"], 5)
        self.assertEqual(payload["totalAppsSeen"], 5)
        self.assertEqual(payload["totalDevelopers"], 0)
        self.assertEqual(len(payload["errors"]), MAX_DIAGNOSTIC_ERRORS)
        self.assertTrue(payload["message"])


if __name__ == "__main__":
    unittest.main()
