# storefront/utils/retry.py
import logging

import redis
import requests
from sqlalchemy.exc import IntegrityError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _is_transient_http(exc: BaseException) -> bool:
    # a 4xx from the mail API will not get better on retry
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code >= 500 or exc.response.status_code == 429
    return isinstance(exc, requests.RequestException)


def http_retry(attempts: int = 3):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception(_is_transient_http),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


def redis_retry(attempts: int = 3):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type((redis.ConnectionError, redis.TimeoutError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


def write_conflict_retry(attempts: int = 3):
    # a concurrent writer got the same unique key first; re-read and try again
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_random(min=0, max=0.05),
        retry=retry_if_exception_type(IntegrityError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
