"""
Utility helpers for the questionnaire engine

ID and filename generation, plus bounded calls to external collaborators.
"""

import concurrent.futures
import uuid
from datetime import datetime

# Shared pool for bounded external calls. Threads of timed-out calls are not
# cancelled; they finish in the background and their results are dropped.
_EXTERNAL_CALL_POOL = concurrent.futures.ThreadPoolExecutor(
    max_workers=16,
    thread_name_prefix="external-call"
)


def generate_session_id(short=False):
    """
    Generate unique session identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID hex.

    Returns:
        str: Session ID

    Examples:
        >>> generate_session_id(short=True)
        'a3f7e2b9'

        >>> generate_session_id()
        'a3f7e2b9c1d2e3f4a5b6c7d8e9f0a1b2'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def generate_submission_filename(prefix="submission", extension="json"):
    """
    Generate timestamped filename with unique ID

    Format: {prefix}_{YYYYMMDD_HHMMSS}_{short_uuid}.{extension}

    Examples:
        >>> generate_submission_filename()
        'submission_20251126_153045_a3f7e2b9.json'
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    short_id = generate_session_id(short=True)
    return f"{prefix}_{timestamp}_{short_id}.{extension}"


def call_with_timeout(fn, timeout, *args, **kwargs):
    """
    Run fn(*args, **kwargs) and wait at most `timeout` seconds for it.

    A timeout of None or <= 0 calls fn inline with no bound.

    Raises:
        TimeoutError: If the call does not finish in time
        Exception: Whatever fn raises
    """
    if timeout is None or timeout <= 0:
        return fn(*args, **kwargs)

    future = _EXTERNAL_CALL_POOL.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError:
        future.cancel()
        raise TimeoutError(f"{getattr(fn, '__name__', 'call')} timed out after {timeout}s")
