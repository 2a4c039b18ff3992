"""
Wait for PostgreSQL to leave recovery mode.

WAL replay runs inside the server and can last hours. The waiter polls
pg_is_in_recovery() at a fixed interval. "Still recovering" is the only
retryable outcome; any error raised by the poll itself ends the wait at once.
The default policy has no ceiling: the caller blocks until replay ends, and
bounding the wait is up to whoever runs the workflow.
"""

import logging
import time
from typing import Callable, Optional

import psycopg2

from pg_recovery.utils.errors import ConnectionFailure, InstanceInRecovery

logger = logging.getLogger(__name__)

RECOVERY_STATUS_QUERY = "SELECT pg_is_in_recovery()"


def is_instance_in_recovery(error: BaseException) -> bool:
    return isinstance(error, InstanceInRecovery)


class RecoveryWaitPolicy:
    """Fixed interval polling. max_attempts=None means no ceiling."""

    def __init__(self,
                 interval: float = 5.0,
                 max_attempts: Optional[int] = None,
                 is_retryable: Callable[[BaseException], bool] = is_instance_in_recovery):
        if interval < 0:
            raise ValueError("interval must not be negative")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts
        self.is_retryable = is_retryable

    def __repr__(self):
        return f"RecoveryWaitPolicy(interval={self.interval}, max_attempts={self.max_attempts})"


DEFAULT_POLICY = RecoveryWaitPolicy()


def retry_on_error(policy: RecoveryWaitPolicy, fn: Callable[[], object], sleep=time.sleep):
    """
    Call fn until it returns, sleeping policy.interval after each retryable error.

    Non-retryable errors propagate from the attempt that raised them. When
    the ceiling is reached the last retryable error is raised.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except Exception as e:
            if not policy.is_retryable(e):
                raise
            if policy.max_attempts is not None and attempt >= policy.max_attempts:
                raise
        sleep(policy.interval)


def is_in_recovery(connection) -> bool:
    """Poll the live instance. Any database error is a ConnectionFailure."""
    try:
        with connection.cursor() as cursor:
            cursor.execute(RECOVERY_STATUS_QUERY)
            row = cursor.fetchone()
    except psycopg2.Error as e:
        raise ConnectionFailure(f"error while reading results of pg_is_in_recovery: {e}") from e
    if row is None:
        raise ConnectionFailure("pg_is_in_recovery returned no rows")
    return bool(row[0])


def check_recovery_status(poll: Callable[[], bool]):
    status = poll()
    logger.info(f"Checking if the server is still in recovery: recovery={status}")
    if status:
        raise InstanceInRecovery()


def wait_until_recovery_finishes(poll: Callable[[], bool],
                                 policy: RecoveryWaitPolicy = DEFAULT_POLICY,
                                 sleep=time.sleep):
    """Block until poll() reports the server is out of recovery."""
    logger.info(f"Waiting for recovery to finish ({policy!r})")
    retry_on_error(policy, lambda: check_recovery_status(poll), sleep=sleep)
    logger.info("Recovery finished")
