import logging
from typing import Callable

from approtator.errors import SubmissionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10


class RetryingExecutor:
    """
    Run a submission up to ``max_attempts`` times, back to back.

    The first successful value is returned. When every attempt fails the last
    error is raised wrapped in SubmissionError; earlier errors are only logged.
    Every attempt may have reached the network, so a reported failure can
    still hide a submitted transaction.
    """

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be a positive integer")
        self.max_attempts = max_attempts

    def execute(self, submit: Callable[[], str], label: str = "") -> str:
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return submit()
            except Exception as e:
                last_error = e
                logger.debug("Attempt %d/%d failed %s: %s", attempt, self.max_attempts, label, e)
        raise SubmissionError(last_error, self.max_attempts) from last_error
