"""Tests for ghwatch.scheduler."""

from __future__ import annotations

import logging

import pytest

from ghwatch.scheduler import Scheduler


class TestScheduler:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            Scheduler(lambda: None, interval=0)

    def test_runs_immediately_and_stops(self):
        scheduler = None

        def job():
            scheduler.stop()

        scheduler = Scheduler(job, interval=3600)
        scheduler.start()

        assert scheduler.runs == 1
        assert scheduler.stopped

    def test_repeats_until_stopped(self):
        calls = []

        def job():
            calls.append(1)
            if len(calls) == 3:
                scheduler.stop()

        scheduler = Scheduler(job, interval=0.01)
        scheduler.start()

        assert scheduler.runs == 3

    def test_failure_is_logged_not_raised(self, caplog):
        def job():
            raise RuntimeError("boom")

        scheduler = Scheduler(job, interval=60)
        with caplog.at_level(logging.ERROR):
            scheduler.run_once()

        assert scheduler.runs == 1
        assert "Error during monitor check" in caplog.text
