import threading

import pytest

from upsc_digest.core.errors import CooldownActiveError, GovernorBusyError
from upsc_digest.services.governor_service import GovernorState, RequestGovernor


class Clock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def test_second_request_while_processing_is_busy():
    clock = Clock()
    gov = RequestGovernor(cooldown_seconds=3.0, busy_retry_after=30, clock=clock)
    gov.acquire()
    clock.now += 10
    with pytest.raises(GovernorBusyError) as exc:
        gov.acquire()
    assert exc.value.retry_after == 30
    assert exc.value.code == "CONCURRENT_REQUEST_BLOCKED"
    assert gov.status().state is GovernorState.PROCESSING


def test_cooldown_after_release():
    clock = Clock()
    gov = RequestGovernor(cooldown_seconds=3.0, clock=clock)
    with gov.admit():
        pass
    clock.now += 1.2
    with pytest.raises(CooldownActiveError) as exc:
        gov.acquire()
    assert exc.value.retry_after == 2
    clock.now += 2.0
    gov.acquire()
    gov.release()


def test_cooldown_counts_from_start_not_finish():
    clock = Clock()
    gov = RequestGovernor(cooldown_seconds=3.0, clock=clock)
    with gov.admit():
        clock.now += 5
    gov.acquire()


def test_admit_releases_on_error():
    gov = RequestGovernor(cooldown_seconds=0.0)
    with pytest.raises(RuntimeError):
        with gov.admit():
            raise RuntimeError("boom")
    assert gov.status().state is GovernorState.IDLE
    with gov.admit():
        pass


def test_status_reports_remaining_cooldown():
    clock = Clock()
    gov = RequestGovernor(cooldown_seconds=3.0, clock=clock)
    assert gov.status().cooldown_remaining == 0.0
    with gov.admit():
        pass
    clock.now += 1.0
    status = gov.status()
    assert status.state is GovernorState.IDLE
    assert status.cooldown_remaining == pytest.approx(2.0)


def test_only_one_concurrent_acquire_wins():
    gov = RequestGovernor(cooldown_seconds=0.0)
    barrier = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def attempt():
        barrier.wait()
        try:
            gov.acquire()
            outcome = "ok"
        except GovernorBusyError:
            outcome = "busy"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count("ok") == 1
    assert results.count("busy") == 7
