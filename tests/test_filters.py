"""Tests for the filter engine."""
import pytest

from app.models.incident import Category, Status
from app.services.filters import (
    apply_filters,
    located,
    map_markers,
    parse_category_filter,
    parse_status_filter,
    status_counts,
)


class TestApplyFilters:
    def test_all_all_is_order_preserving_identity(self, sample_incidents):
        assert apply_filters(sample_incidents, "all", "all") == sample_incidents

    def test_defaults_are_all(self, sample_incidents):
        assert apply_filters(sample_incidents) == sample_incidents

    @pytest.mark.parametrize("category", list(Category))
    def test_category_filter_only_keeps_matching(self, sample_incidents, category):
        for status in ["all", *Status]:
            for inc in apply_filters(sample_incidents, category, status):
                assert inc.category == category

    def test_category_and_status_are_and_combined(self, sample_incidents):
        result = apply_filters(sample_incidents, Category.THEFT, Status.RESOLVED)
        assert [i.id for i in result] == ["inc-5"]

    def test_status_only(self, sample_incidents):
        result = apply_filters(sample_incidents, "all", Status.NEW)
        assert [i.id for i in result] == ["inc-1", "inc-4"]

    def test_input_order_is_preserved(self, sample_incidents):
        result = apply_filters(sample_incidents, Category.THEFT, "all")
        assert [i.id for i in result] == ["inc-1", "inc-3", "inc-5"]

    def test_idempotent(self, sample_incidents):
        for category in ["all", *Category]:
            for status in ["all", *Status]:
                once = apply_filters(sample_incidents, category, status)
                assert apply_filters(once, category, status) == once

    def test_does_not_mutate_input(self, sample_incidents):
        before = list(sample_incidents)
        apply_filters(sample_incidents, Category.THEFT, Status.NEW)
        assert sample_incidents == before

    def test_no_match_returns_empty(self, sample_incidents):
        assert apply_filters(sample_incidents, Category.ACCIDENT, "all") == []

    def test_accepts_any_iterable(self, sample_incidents):
        result = apply_filters(iter(sample_incidents), Category.EMERGENCY)
        assert [i.id for i in result] == ["inc-4"]


class TestParseFilters:
    def test_all_and_empty(self):
        assert parse_category_filter("all") == "all"
        assert parse_category_filter("") == "all"
        assert parse_status_filter(None) == "all"

    def test_enum_values(self):
        assert parse_category_filter("suspicious") is Category.SUSPICIOUS
        assert parse_status_filter("investigating") is Status.INVESTIGATING

    def test_unknown_value_raises(self):
        with pytest.raises(ValueError):
            parse_category_filter("arson")
        with pytest.raises(ValueError):
            parse_status_filter("closed")


class TestDerivedViews:
    def test_located(self, sample_incidents):
        assert [i.id for i in located(sample_incidents)] == ["inc-2", "inc-3"]

    def test_status_counts(self, sample_incidents):
        counts = status_counts(sample_incidents)
        assert (counts.total, counts.new, counts.investigating, counts.resolved) == (5, 2, 1, 2)

    def test_status_counts_empty(self):
        assert status_counts([]).total == 0

    def test_map_markers_capped_and_spread(self, sample_incidents, make_incident):
        incidents = sample_incidents + [make_incident()]
        markers = map_markers(incidents)
        assert len(markers) == 5
        assert [(m.left_pct, m.top_pct) for m in markers[:2]] == [(20, 30), (35, 40)]
        assert markers[0].incident is incidents[0]
