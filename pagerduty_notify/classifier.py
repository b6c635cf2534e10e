"""Classifies remote responses into dispatch outcomes."""

import logging
from typing import Iterable

from .models import AlertResponse, DispatchOutcome


logger = logging.getLogger(__name__)

# Bodies longer than this are truncated in log lines, never on the outcome
LOG_BODY_LIMIT = 500


def classify(response: AlertResponse, success_status_codes: Iterable[int] = (200,)) -> DispatchOutcome:
    """Decide whether a response counts as a delivered alert.

    A non-success status is a reportable failure but does not raise; the
    pipeline decides whether to escalate it.

    Args:
        response: Response returned by the dispatcher
        success_status_codes: Status codes treated as success

    Returns:
        Success or Failure outcome, with the response body kept
    """
    logger.debug("Response: %s", response.body)

    if response.status_code in set(success_status_codes):
        logger.info("Request succeeded")
        return DispatchOutcome.succeeded(response)

    outcome = DispatchOutcome.failed(f"HTTP {response.status_code}", response)
    logger.warning(
        "Alert rejected with HTTP %s: %s",
        response.status_code, response.body[:LOG_BODY_LIMIT]
    )
    return outcome
