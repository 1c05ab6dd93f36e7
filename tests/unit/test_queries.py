"""Unit tests for catalogue queries."""

import json
import math

import pytest

from intelligence.report_catalogue.queries import (
    BUG_TYPE,
    PROGRAM,
    ReportFilters,
    filter_reports,
    list_categories,
    list_reports,
    parse_limit,
    parse_min_bounty,
    parse_page,
    top_rankings,
)
from intelligence.report_catalogue.store import decode_store


@pytest.fixture
def dataset(catalogue_document):
    return decode_store(json.dumps(catalogue_document))


def _titles(reports):
    return [report.title for report in reports]


class TestReportFilters:
    """Tests for the report filter chain."""

    def test_no_filters_returns_everything(self, dataset):
        """Test that an empty filter set keeps store order."""
        assert filter_reports(dataset.reports, ReportFilters()) == list(dataset.reports)

    def test_program_prefers_exact_match(self, dataset):
        """Test that an exact program name wins over substring matches."""
        matched = filter_reports(dataset.reports, ReportFilters(program="acme"))

        assert {r.program for r in matched} == {"Acme"}
        assert _titles(matched) == ["Reflected XSS on login", "Login CSRF"]

    def test_program_falls_back_to_substring(self, dataset):
        """Test substring matching when no program matches exactly."""
        matched = filter_reports(dataset.reports, ReportFilters(program="ACM"))

        assert {r.program for r in matched} == {"Acme", "Acme Corp"}

    def test_vuln_type_is_substring_only(self, dataset):
        """Test that vuln_type matches any type containing the needle."""
        matched = filter_reports(dataset.reports, ReportFilters(vuln_type="xss"))

        assert {r.vuln_type for r in matched} == {"Cross-site Scripting (XSS)", "Stored XSS"}

    def test_min_bounty_threshold_is_inclusive(self, dataset):
        """Test the bounty threshold."""
        matched = filter_reports(dataset.reports, ReportFilters(min_bounty=750))

        assert [r.bounty for r in matched] == [2500, 750, 10000]

    def test_search_matches_title_program_or_vuln_type(self, dataset):
        """Test the free-text search across fields."""
        assert _titles(filter_reports(dataset.reports, ReportFilters(search="csrf"))) == ["Login CSRF"]
        assert len(filter_reports(dataset.reports, ReportFilters(search="globex"))) == 1
        assert len(filter_reports(dataset.reports, ReportFilters(search="sql injection"))) == 3

    def test_filters_compose_conjunctively(self, dataset):
        """Test program AND min_bounty."""
        matched = filter_reports(dataset.reports, ReportFilters(program="Acme", min_bounty=500))

        assert all(r.program == "Acme" and r.bounty >= 500 for r in matched)
        assert _titles(matched) == ["Reflected XSS on login"]

    def test_program_exact_match_is_decided_before_other_filters(self, dataset):
        """Test that the exact-or-substring choice only looks at program names."""
        matched = filter_reports(dataset.reports, ReportFilters(program="acme", vuln_type="sql"))

        assert matched == []

    def test_no_match_is_empty_not_error(self, dataset):
        """Test that unmatched filters yield an empty result."""
        assert filter_reports(dataset.reports, ReportFilters(program="initech")) == []


class TestListReports:
    """Tests for paginated report listing."""

    def test_first_page(self, dataset):
        """Test slicing and pagination metadata."""
        page = list_reports(dataset, page=1, limit=3)

        assert _titles(page.reports) == _titles(dataset.reports[:3])
        assert page.pagination.current_page == 1
        assert page.pagination.total_pages == 3
        assert page.pagination.total_reports == 7
        assert page.pagination.per_page == 3

    @pytest.mark.parametrize("limit", [1, 2, 3, 5, 7, 10])
    def test_pagination_invariant(self, dataset, limit):
        """Test slice length and page count across all pages and one past the end."""
        count = len(dataset.reports)
        for page_number in range(1, math.ceil(count / limit) + 2):
            page = list_reports(dataset, page=page_number, limit=limit)

            expected = min(limit, max(0, count - (page_number - 1) * limit))
            assert len(page.reports) == expected
            assert page.pagination.total_pages == math.ceil(count / limit)

    def test_out_of_range_page_is_empty(self, dataset):
        """Test that a page past the end returns no reports."""
        page = list_reports(dataset, page=50, limit=10)

        assert page.reports == []
        assert page.pagination.total_reports == 7

    def test_empty_result_has_zero_pages(self, dataset):
        """Test pagination for an empty filtered set."""
        page = list_reports(dataset, ReportFilters(min_bounty=1_000_000), page=1, limit=10)

        assert page.reports == []
        assert page.pagination.total_pages == 0
        assert page.pagination.total_reports == 0

    def test_does_not_mutate_dataset(self, dataset):
        """Test that querying leaves the snapshot untouched."""
        before = dataset.reports
        list_reports(dataset, ReportFilters(search="xss"), page=1, limit=1)

        assert dataset.reports is before
        assert len(dataset.reports) == 7

    def test_single_report_scenario(self):
        """Test the minimal one-report catalogue end to end."""
        dataset = decode_store(
            json.dumps(
                {"programs": ["Acme"], "vulnTypes": ["XSS"], "reports": [[0, "Sample bug", "123", 10, 500, 0]]}
            )
        )

        everything = list_reports(dataset)
        by_program = list_reports(dataset, ReportFilters(program="acme"))
        too_rich = list_reports(dataset, ReportFilters(min_bounty=501))

        assert len(everything.reports) == 1
        report = everything.reports[0]
        assert (report.program, report.title, report.upvotes, report.bounty, report.vuln_type) == (
            "Acme",
            "Sample bug",
            10,
            500,
            "XSS",
        )
        assert report.link.endswith("/reports/123")
        assert by_program.reports == everything.reports
        assert too_rich.reports == []
        assert too_rich.pagination.total_reports == 0


class TestListCategories:
    """Tests for category listings."""

    def test_bug_type_categories(self, dataset):
        """Test names, identifiers and truncated previews."""
        categories = list_categories(dataset, BUG_TYPE, preview_length=20)

        assert [c.name for c in categories] == ["Cross-site Scripting (XSS)", "SQL Injection", "Stored XSS"]
        assert [c.filename for c in categories] == ["vuln_0", "vuln_1", "vuln_2"]
        assert categories[1].preview == "Vulnerability type: ..."

    def test_program_categories(self, dataset):
        """Test the program grouping with the default preview length."""
        categories = list_categories(dataset, PROGRAM)

        assert [c.filename for c in categories] == ["program_0", "program_1", "program_2", "program_3"]
        assert categories[0].preview.endswith("Acme bug bounty program....")

    def test_unknown_kind_has_no_categories(self, dataset):
        """Test that unsupported kinds return an empty list."""
        assert list_categories(dataset, "severity") == []


class TestTopRankings:
    """Tests for the ranking view."""

    def test_truncates_to_requested_count(self, dataset):
        """Test that rankings are cut to n."""
        rankings = top_rankings(dataset, 2)

        assert [r.bounty for r in rankings.top_by_bounty] == [10000, 2500]
        assert [r.upvotes for r in rankings.top_by_upvotes] == [90, 40]

    def test_bounded_by_precomputed_length(self, dataset):
        """Test that asking for more than exists returns what exists."""
        rankings = top_rankings(dataset, 50)

        assert len(rankings.top_by_bounty) == 3
        assert len(rankings.top_by_upvotes) == 3

    def test_negative_count_is_empty(self, dataset):
        """Test that a negative count yields no entries."""
        assert top_rankings(dataset, -1).top_by_bounty == ()


class TestParameterParsing:
    """Tests for lenient query parameter coercion."""

    @pytest.mark.parametrize("raw,expected", [(None, 1), ("3", 3), ("0", 1), ("-2", 1), ("abc", 1), (" 4 ", 4)])
    def test_parse_page(self, raw, expected):
        """Test page coercion."""
        assert parse_page(raw) == expected

    @pytest.mark.parametrize("raw,expected", [(None, 10), ("25", 25), ("0", 10), ("x", 10), ("500", 100)])
    def test_parse_limit(self, raw, expected):
        """Test limit coercion with a default and a maximum."""
        assert parse_limit(raw, default=10, maximum=100) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [(None, 0), ("500", 500), ("12.5", 12.5), ("lots", 0), ("-10", 0), ("nan", 0), ("inf", 0)],
    )
    def test_parse_min_bounty(self, raw, expected):
        """Test that malformed thresholds disable the filter."""
        assert parse_min_bounty(raw) == expected
