#!/usr/bin/env python3
"""
Unit tests for the rate-limit backoff policy.
"""

import unittest

import sys
import os
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from sync.errors import (
    AuthError, NetworkError, RateLimitError, ServerError, error_for_status
)
from sync.retry import backoff_delay, retry_delay


class TestBackoffDelay(unittest.TestCase):

    def test_doubles_each_retry(self):
        self.assertEqual([backoff_delay(n, 1, 30) for n in (1, 2, 3, 4)], [1, 2, 4, 8])

    def test_capped_at_max_backoff(self):
        self.assertEqual(backoff_delay(10, 1, 30), 30)

    def test_attempt_is_one_based(self):
        with self.assertRaises(ValueError):
            backoff_delay(0, 1, 30)


class TestRetryDelay(unittest.TestCase):

    def test_rate_limit_retried_until_max(self):
        error = RateLimitError('429')
        self.assertEqual(retry_delay(1, error, 3, 1, 30), 1)
        self.assertEqual(retry_delay(3, error, 3, 1, 30), 4)
        self.assertIsNone(retry_delay(4, error, 3, 1, 30))

    def test_other_errors_not_retried(self):
        for error in (ServerError('500', status_code=500), AuthError('401', status_code=401),
                      NetworkError('down')):
            self.assertIsNone(retry_delay(1, error, 3, 1, 30))

    def test_no_error_no_retry(self):
        self.assertIsNone(retry_delay(1, None, 3, 1, 30))

    def test_total_wait_is_bounded(self):
        error = RateLimitError('429')
        total = 0
        attempt = 1
        while True:
            delay = retry_delay(attempt, error, 5, 10, 30)
            if delay is None:
                break
            total += delay
            attempt += 1
        self.assertLessEqual(total, 5 * 30)


class TestErrorForStatus(unittest.TestCase):

    def test_mapping(self):
        self.assertIsInstance(error_for_status(401), AuthError)
        self.assertIsInstance(error_for_status(403), AuthError)
        self.assertIsInstance(error_for_status(429), RateLimitError)
        self.assertIsInstance(error_for_status(502), ServerError)
        self.assertEqual(type(error_for_status(400)).__name__, 'APIError')


if __name__ == '__main__':
    unittest.main()
