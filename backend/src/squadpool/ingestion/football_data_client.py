"""HTTP client for the football-data.org v4 API."""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import requests
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

from squadpool.config import get_settings
from squadpool.errors import ProviderError

logger = logging.getLogger(__name__)

_session: requests.Session | None = None


class RetryableStatus(Exception):
    """HTTP response worth retrying (429 or 5xx)."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"provider request failed ({status_code}): {body[:240]}")
        self.status_code = status_code


def _get_session() -> requests.Session:
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, (RetryableStatus, requests.ConnectionError, requests.Timeout))


def backoff_delay(attempt: int, base_s: float | None = None) -> float:
    """Linear backoff: wait ``attempt × base`` seconds after the n-th failure."""
    base = get_settings().provider_backoff_s if base_s is None else base_s
    return attempt * base


def _wait(retry_state: RetryCallState) -> float:
    return backoff_delay(retry_state.attempt_number)


def _get_json(url: str, headers: dict[str, str], timeout_s: float) -> Any:
    resp = _get_session().get(url, headers=headers, timeout=timeout_s)
    if resp.ok:
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"provider returned invalid JSON: {e}") from e
    if resp.status_code == 429 or resp.status_code >= 500:
        raise RetryableStatus(resp.status_code, resp.text)
    raise ProviderError(
        f"provider request failed ({resp.status_code}): {resp.text[:240]}",
        status_code=resp.status_code,
    )


def get_with_retry(
    url: str,
    headers: dict[str, str],
    timeout_s: float,
    max_retries: int,
) -> Any:
    """GET ``url`` with a per-attempt timeout and a bounded retry budget.

    ``timeout_s`` is handed to requests as both the connect and the read
    timeout. The read timer restarts on every received chunk, so it bounds
    stalls rather than the total wall-clock time of one attempt.

    Only 429/5xx responses and network-level failures are retried; anything
    else, or running out of attempts, raises ``ProviderError``.
    """
    try:
        for attempt in Retrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=_wait,
            retry=retry_if_exception(is_retryable),
            sleep=time.sleep,
            reraise=True,
        ):
            with attempt:
                n = attempt.retry_state.attempt_number
                if n > 1:
                    logger.warning("Retrying provider request (attempt %d/%d)", n, max_retries + 1)
                return _get_json(url, headers, timeout_s)
    except RetryableStatus as e:
        raise ProviderError(str(e), status_code=e.status_code) from e
    except requests.RequestException as e:
        raise ProviderError(f"provider request failed: {e}") from e
    raise ProviderError("provider request failed.")


def fetch_competition_matches(token: str) -> dict[str, Any]:
    """GET /competitions/{competition}/matches?status={statuses}

    Returns raw JSON response.
    """
    s = get_settings()
    base = s.football_data_api_base.rstrip("/")
    url = (
        f"{base}/competitions/{quote(s.football_data_competition, safe='')}"
        f"/matches?status={quote(','.join(s.statuses), safe='')}"
    )
    logger.info("Fetching matches for competition %s", s.football_data_competition)
    payload = get_with_retry(
        url,
        headers={"X-Auth-Token": token, "Accept": "application/json"},
        timeout_s=s.provider_timeout_s,
        max_retries=max(0, s.provider_max_retries),
    )
    return payload if isinstance(payload, dict) else {}
