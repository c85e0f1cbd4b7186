import uuid
import logging
from typing import Callable, Optional

from .errors import ExhaustedRetries

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 4


def new_candidate() -> str:
    """Fresh random v4 UUID string. Unlikely to collide, but not guaranteed."""
    return str(uuid.uuid4())


class IdGenerator:
    """
    Produces identifiers that are unused according to a caller-supplied check.

    The backend has no atomic allocate primitive, so uniqueness is a
    read-then-write: two concurrent callers can both see the same
    candidate as free.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        candidate_func: Callable[[], str] = new_candidate,
        log: Optional[logging.Logger] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.candidate_func = candidate_func
        self.logger = log or logger

    def new_candidate(self) -> str:
        return self.candidate_func()

    def generate_unused(self, is_used: Callable[[str], bool], purpose: str = "id") -> str:
        """
        Return the first candidate for which is_used() is False, trying at
        most max_attempts candidates. Raises ExhaustedRetries otherwise.
        Errors raised by is_used() propagate unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.new_candidate()
            if not is_used(candidate):
                self.logger.info("Valid %s %s retrieved.", purpose, candidate)
                return candidate
            self.logger.info(
                "Collision in generating %s %s (attempt %d/%d).",
                purpose,
                candidate,
                attempt,
                self.max_attempts,
            )

        self.logger.error(
            "Could not generate valid %s after %d attempts.", purpose, self.max_attempts
        )
        raise ExhaustedRetries(f"Could not generate {purpose}.")
