"""
Unit tests for the service's transient-failure retry policy.

Uses a stub repository and a recording sleep, so no database or real delays.
"""

import pytest

from civicbook.errors import FatalStorageError, NotFoundError, TransientStorageError
from civicbook.service import InteractiveElementService


class FlakyRepository:
    """Fails the first `failures` calls with `error`, then succeeds."""

    def __init__(self, failures, error=TransientStorageError):
        self.failures = failures
        self.error = error
        self.calls = 0

    def get_elements_by_section(self, section_id):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error("storage hiccup")
        return []

    def get_topic(self, topic_id):
        return None


def make_service(repository, delays):
    service = InteractiveElementService(repository=repository, sleep=delays.append)
    service.retry_attempts = 3
    service.retry_base_delay = 0.05
    service.retry_factor = 2.0
    service.retry_jitter = 0.25
    return service


def assert_backoff(delays):
    for attempt, delay in enumerate(delays):
        nominal = 0.05 * 2 ** attempt
        assert nominal * 0.75 <= delay <= nominal * 1.25


class TestRetryPolicy:
    def test_recovers_after_transient_failures(self):
        delays = []
        repository = FlakyRepository(failures=2)
        assert make_service(repository, delays).list_elements(1) == []
        assert repository.calls == 3
        assert len(delays) == 2
        assert_backoff(delays)

    def test_gives_up_after_three_retries(self):
        delays = []
        repository = FlakyRepository(failures=100)
        with pytest.raises(TransientStorageError):
            make_service(repository, delays).list_elements(1)
        assert repository.calls == 4
        assert len(delays) == 3
        assert_backoff(delays)

    @pytest.mark.parametrize("error", [NotFoundError, FatalStorageError])
    def test_other_errors_not_retried(self, error):
        delays = []
        repository = FlakyRepository(failures=1, error=error)
        with pytest.raises(error):
            make_service(repository, delays).list_elements(1)
        assert repository.calls == 1
        assert delays == []

    def test_zero_attempts_configured(self):
        delays = []
        repository = FlakyRepository(failures=1)
        service = make_service(repository, delays)
        service.retry_attempts = 0
        with pytest.raises(TransientStorageError):
            service.list_elements(1)
        assert repository.calls == 1
        assert delays == []

    def test_defaults_from_settings(self):
        service = InteractiveElementService(repository=FlakyRepository(failures=0))
        assert service.retry_attempts == 3
        assert service.retry_base_delay == pytest.approx(0.05)
        assert service.retry_factor == pytest.approx(2.0)
        assert service.retry_jitter == pytest.approx(0.25)
