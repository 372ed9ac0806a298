from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from sqlalchemy.exc import IntegrityError, OperationalError

from tests import db_support  # noqa: F401

from oil_delivery.db import is_transient_store_error, run_with_retry


def _operational(message: str) -> OperationalError:
    return OperationalError('SELECT 1', {}, Exception(message))


class RunWithRetryTests(unittest.TestCase):
    def test_transient_errors_are_retried_with_doubling_delay(self) -> None:
        db = MagicMock()
        sleeps: list[float] = []
        operation = MagicMock(side_effect=[_operational('server unavailable'), _operational('database is locked'), 'ok'])

        result = run_with_retry(db, operation, attempts=3, base_delay=1.0, sleep=sleeps.append)

        self.assertEqual(result, 'ok')
        self.assertEqual(sleeps, [1.0, 2.0])
        self.assertEqual(db.rollback.call_count, 2)

    def test_gives_up_after_the_last_attempt(self) -> None:
        db = MagicMock()
        sleeps: list[float] = []
        operation = MagicMock(side_effect=_operational('could not connect to server'))

        with self.assertRaises(OperationalError):
            run_with_retry(db, operation, attempts=3, base_delay=1.0, sleep=sleeps.append)

        self.assertEqual(operation.call_count, 3)
        self.assertEqual(sleeps, [1.0, 2.0])

    def test_non_transient_errors_propagate_immediately(self) -> None:
        db = MagicMock()
        sleeps: list[float] = []
        operation = MagicMock(side_effect=_operational('syntax error at or near "SELEC"'))

        with self.assertRaises(OperationalError):
            run_with_retry(db, operation, attempts=3, base_delay=1.0, sleep=sleeps.append)

        self.assertEqual(operation.call_count, 1)
        self.assertEqual(sleeps, [])
        db.rollback.assert_not_called()

    def test_validation_errors_are_not_retried(self) -> None:
        operation = MagicMock(side_effect=ValueError('Missing Information'))

        with self.assertRaises(ValueError):
            run_with_retry(MagicMock(), operation, sleep=lambda _: None)

        self.assertEqual(operation.call_count, 1)


class TransientErrorTests(unittest.TestCase):
    def test_classification(self) -> None:
        self.assertTrue(is_transient_store_error(_operational('Service Unavailable')))
        self.assertFalse(is_transient_store_error(IntegrityError('INSERT', {}, Exception('unavailable'))))
        self.assertFalse(is_transient_store_error(RuntimeError('unavailable')))

        invalidated = OperationalError('SELECT 1', {}, Exception('boom'), connection_invalidated=True)
        self.assertTrue(is_transient_store_error(invalidated))


if __name__ == '__main__':
    unittest.main()
