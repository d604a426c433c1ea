"""Consecutive-timeout tracking: disables a check after repeated timeouts."""

from __future__ import annotations

from .models import State

DEFAULT_THRESHOLD = 3


class TimeoutTracker:
    """Counts consecutive timeouts and forces ``disabled`` at the threshold."""

    def __init__(self, threshold: int = DEFAULT_THRESHOLD) -> None:
        if threshold < 1:
            raise ValueError("Timeout threshold must be at least 1")
        self.threshold = threshold

    def apply(
        self,
        counter: int | None,
        is_timeout: bool,
        state: str,
    ) -> tuple[int | None, str]:
        """Return ``(new_counter, final_state)``.

        ``counter`` is None for records that do not track timeouts; the state
        then passes through untouched.
        """
        if counter is None:
            return None, state

        if not is_timeout:
            return 0, state

        counter += 1
        if counter >= self.threshold:
            return counter, State.DISABLED.value
        return counter, state
