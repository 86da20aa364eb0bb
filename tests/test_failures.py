"""
Tests for the translation failure report.

Run with: pytest tests/test_failures.py -v
"""

import json

from jsontrans_llms.failures import FailureReporter


class TestFailureReporter:
    """Tests for recording and reporting failed keys."""

    def test_no_failures_no_report(self, tmp_path):
        reporter = FailureReporter()
        assert reporter.generate_report(tmp_path / "report.json") is None
        assert not (tmp_path / "report.json").exists()

    def test_counts(self):
        reporter = FailureReporter()
        reporter.record_failure("es.json", "hero.title", "Welcome")
        reporter.record_failure("es.json", "footer", "Footer")
        reporter.record_failure("de.json", "footer", "Footer")
        assert reporter.total_failures == 3
        assert reporter.failure_count("es.json") == 2
        assert reporter.failure_count("fr.json") == 0
        assert reporter.target_files() == ["de.json", "es.json"]

    def test_report_layout(self, tmp_path):
        reporter = FailureReporter()
        reporter.record_failure("es.json", "hero.title", "Welcome")
        reporter.record_failure("de.json", "footer", "Footer")

        path = reporter.generate_report(tmp_path / "out" / "report.json")
        report = json.loads(path.read_text(encoding="utf-8"))

        assert report["summary"]["totalFailures"] == 2
        assert report["summary"]["targetFiles"] == ["de.json", "es.json"]
        assert "generatedAt" in report["summary"]
        assert report["failures"] == [
            {"flattenedKey": "footer", "fallbackTranslation": "Footer", "targetFile": "de.json"},
            {"flattenedKey": "hero.title", "fallbackTranslation": "Welcome", "targetFile": "es.json"},
        ]

    def test_clear(self):
        reporter = FailureReporter()
        reporter.record_failure("es.json", "a", "A")
        reporter.clear()
        assert reporter.total_failures == 0
        assert reporter.all_failures() == []
