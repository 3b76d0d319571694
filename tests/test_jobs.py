"""Tests for the in-memory job registry."""

import pytest

from tubezip.models.item import JobStatus
from tubezip.storage.jobs import JobRegistry


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def jobs(clock):
    return JobRegistry(ttl_seconds=600, clock=clock)


def test_unknown_job(jobs):
    assert jobs.get_status("nope") is JobStatus.UNKNOWN
    assert jobs.get_status(None) is JobStatus.UNKNOWN


def test_set_and_get(jobs):
    jobs.set_status("a", JobStatus.RUNNING)
    assert jobs.get_status("a") is JobStatus.RUNNING
    jobs.set_status("a", JobStatus.DONE)
    assert jobs.get_status("a") is JobStatus.DONE


def test_set_without_id_is_ignored(jobs):
    jobs.set_status(None, JobStatus.RUNNING)
    jobs.set_status("", JobStatus.RUNNING)
    assert len(jobs) == 0


def test_accepts_plain_strings(jobs):
    jobs.set_status("a", "cancelled")
    assert jobs.get_status("a") is JobStatus.CANCELLED


def test_terminal_status_is_sticky(jobs):
    jobs.set_status("a", JobStatus.RUNNING)
    jobs.set_status("a", JobStatus.CANCELLED)
    jobs.set_status("a", JobStatus.DONE)
    jobs.set_status("a", JobStatus.ERROR)
    assert jobs.get_status("a") is JobStatus.CANCELLED


def test_running_restarts_a_finished_job(jobs):
    jobs.set_status("a", JobStatus.DONE)
    jobs.set_status("a", JobStatus.RUNNING)
    assert jobs.get_status("a") is JobStatus.RUNNING


def test_expired_entries_read_as_unknown(jobs, clock):
    jobs.set_status("a", JobStatus.DONE)
    clock.now += 601
    assert jobs.get_status("a") is JobStatus.UNKNOWN


def test_entries_within_ttl_survive(jobs, clock):
    jobs.set_status("a", JobStatus.DONE)
    clock.now += 599
    assert jobs.get_status("a") is JobStatus.DONE


def test_writes_evict_expired_entries(jobs, clock):
    jobs.set_status("old", JobStatus.DONE)
    jobs.set_status("older", JobStatus.ERROR)
    clock.now += 700
    jobs.set_status("new", JobStatus.RUNNING)
    assert len(jobs) == 1
    assert jobs.get_status("new") is JobStatus.RUNNING


def test_updates_refresh_the_ttl(jobs, clock):
    jobs.set_status("a", JobStatus.RUNNING)
    clock.now += 500
    jobs.set_status("a", JobStatus.DONE)
    clock.now += 500
    assert jobs.get_status("a") is JobStatus.DONE


def test_expired_terminal_entry_can_be_overwritten(jobs, clock):
    jobs.set_status("a", JobStatus.CANCELLED)
    clock.now += 601
    jobs.set_status("a", JobStatus.ERROR)
    assert jobs.get_status("a") is JobStatus.ERROR
