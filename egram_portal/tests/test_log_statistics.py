# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for event log statistics.
"""

import pytest
from datetime import datetime, timezone

from egram_portal.domain.log_statistics import compute_log_statistics, is_duration, parse_timestamp


def entry(level, message, timestamp="2024-02-10T09:15:00.000Z", user_id=None, data=None):
    context = {"sessionId": "session_1"}
    if user_id:
        context["userId"] = user_id
    return {"level": level, "message": message, "timestamp": timestamp, "context": context, "data": data}


class TestComputeLogStatistics:
    """Test log statistics aggregation."""

    def test_top_errors_by_count(self):
        """Three errors 'X' and one 'Y' rank X first."""
        entries = [entry("ERROR", "X"), entry("ERROR", "Y"), entry("ERROR", "X"), entry("ERROR", "X")]

        stats = compute_log_statistics(entries)

        assert stats["topErrors"] == [{"message": "X", "count": 3}, {"message": "Y", "count": 1}]
        assert stats["errorRate"] == 1.0

    def test_ties_keep_first_seen_order(self):
        """Errors with equal counts stay in the order they were first seen."""
        entries = [entry("ERROR", "B"), entry("ERROR", "A")]

        assert [item["message"] for item in compute_log_statistics(entries)["topErrors"]] == ["B", "A"]

    def test_top_errors_capped_at_ten(self):
        """At most ten distinct errors are reported."""
        entries = [entry("ERROR", f"error {i}") for i in range(15)]

        assert len(compute_log_statistics(entries)["topErrors"]) == 10

    def test_breakdowns(self):
        """Counts by level, UTC hour and user."""
        entries = [
            entry("INFO", "a", "2024-02-10T09:15:00.000Z", "u1"),
            entry("INFO", "b", "2024-02-10T09:45:00.000Z", "u2"),
            entry("WARN", "c", "2024-02-10T15:30:00.000+05:30", "u1"),
            entry("ERROR", "d", "2024-02-10T23:59:59.000Z")
        ]

        stats = compute_log_statistics(entries)

        assert stats["total"] == 4
        assert stats["byLevel"] == {"INFO": 2, "WARN": 1, "ERROR": 1}
        assert stats["byHour"] == {9: 2, 10: 1, 23: 1}
        assert stats["byUser"] == {"u1": 2, "u2": 1}
        assert stats["errorRate"] == 0.25

    def test_performance(self):
        """Average and slowest operations from PERFORMANCE entries."""
        entries = [
            entry("PERFORMANCE", "load", data={"operation": "load", "duration": 120}),
            entry("PERFORMANCE", "save", data={"operation": "save", "duration": 40.5}),
            entry("PERFORMANCE", "odd", data={"operation": "odd", "duration": True}),
            entry("INFO", "other", data={"operation": "ignored", "duration": 999})
        ]

        performance = compute_log_statistics(entries)["performance"]

        assert performance["averageResponseTime"] == pytest.approx(80.25)
        assert performance["slowestOperations"] == [
            {"operation": "load", "duration": 120},
            {"operation": "save", "duration": 40.5}
        ]

    def test_empty(self):
        """No entries give zeroed statistics."""
        stats = compute_log_statistics([])

        assert stats["total"] == 0
        assert stats["errorRate"] == 0
        assert stats["topErrors"] == []
        assert stats["performance"] == {"averageResponseTime": 0, "slowestOperations": []}


class TestHelpers:
    """Test timestamp and duration helpers."""

    def test_parse_timestamp(self):
        """Z suffix, offsets and naive values all come back in UTC."""
        expected = datetime(2024, 2, 10, 9, 15, tzinfo=timezone.utc)

        assert parse_timestamp("2024-02-10T09:15:00.000Z") == expected
        assert parse_timestamp("2024-02-10T14:45:00+05:30") == expected
        assert parse_timestamp(datetime(2024, 2, 10, 9, 15)) == expected
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None

    def test_is_duration(self):
        """Numbers count as durations, booleans and strings do not."""
        assert is_duration(3)
        assert is_duration(2.5)
        assert not is_duration(False)
        assert not is_duration("10")
