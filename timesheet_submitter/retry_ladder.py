"""
Per-entry retry ladder.

Each entry gets at most three submit attempts:

1. INITIAL: fill every field, then submit
2. QUICK_RETRY: after a short delay, click submit again without re-filling
3. FULL_REFILL: after a longer delay, fill every field again, then submit

The policy is the TRANSITIONS table below; RetryLadder only executes it.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .errors import ElementNotVisible, SubmissionUnverified
from .logging_utils import get_logger, log_event

logger = get_logger()


class RetryState(Enum):
    INITIAL = 'initial'
    QUICK_RETRY = 'quick_retry'
    FULL_REFILL = 'full_refill'
    SUBMITTED = 'submitted'
    FAILED = 'failed'


class AttemptResult(Enum):
    VERIFIED = 'verified'
    UNVERIFIED = 'unverified'
    FILL_FAILED = 'fill_failed'


TERMINAL_STATES = frozenset({RetryState.SUBMITTED, RetryState.FAILED})

TRANSITIONS: Dict[Tuple[RetryState, AttemptResult], RetryState] = {
    (RetryState.INITIAL, AttemptResult.VERIFIED): RetryState.SUBMITTED,
    (RetryState.INITIAL, AttemptResult.UNVERIFIED): RetryState.QUICK_RETRY,
    (RetryState.INITIAL, AttemptResult.FILL_FAILED): RetryState.FULL_REFILL,
    (RetryState.QUICK_RETRY, AttemptResult.VERIFIED): RetryState.SUBMITTED,
    (RetryState.QUICK_RETRY, AttemptResult.UNVERIFIED): RetryState.FULL_REFILL,
    (RetryState.FULL_REFILL, AttemptResult.VERIFIED): RetryState.SUBMITTED,
    (RetryState.FULL_REFILL, AttemptResult.UNVERIFIED): RetryState.FAILED,
    (RetryState.FULL_REFILL, AttemptResult.FILL_FAILED): RetryState.FAILED,
}


def next_state(state: RetryState, result: AttemptResult) -> RetryState:
    """
    Look up the state following an attempt.

    Raises:
        ValueError: If the table has no transition for (state, result)
    """
    try:
        return TRANSITIONS[(state, result)]
    except KeyError:
        raise ValueError(f"No transition from {state.value} on {result.value}")


class LadderOutcome:
    """Final state of a ladder run plus the attempts it took."""

    def __init__(self, state: RetryState, attempts: List[Tuple[RetryState, AttemptResult]],
                 last_error: Optional[str] = None):
        self.state = state
        self.attempts = attempts
        self.last_error = last_error

    @property
    def submitted(self) -> bool:
        return self.state is RetryState.SUBMITTED

    def __repr__(self):
        return f"LadderOutcome(state={self.state.value}, attempts={len(self.attempts)})"


class RetryLadder:
    """
    Runs the retry ladder for one entry.

    Args:
        fill: Coroutine function filling every field of the entry
        submit: Coroutine function clicking submit; returns True when verified
        quick_delay: Delay before QUICK_RETRY (seconds)
        refill_delay: Delay before FULL_REFILL (seconds)
        sleep: Async sleep function

    ElementNotVisible while filling counts as a failed fill and
    SubmissionUnverified while submitting as an unverified attempt. Any other
    exception propagates unchanged.
    """

    def __init__(self, fill: Callable[[], Awaitable[None]],
                 submit: Callable[[], Awaitable[bool]],
                 quick_delay: float = 1.0, refill_delay: float = 2.0,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.fill = fill
        self.submit = submit
        self.quick_delay = quick_delay
        self.refill_delay = refill_delay
        self.sleep = sleep

    async def _attempt(self, refill: bool) -> Tuple[AttemptResult, Optional[str]]:
        if refill:
            try:
                await self.fill()
            except ElementNotVisible as e:
                return AttemptResult.FILL_FAILED, str(e)

        try:
            verified = await self.submit()
        except SubmissionUnverified as e:
            return AttemptResult.UNVERIFIED, str(e)

        if verified:
            return AttemptResult.VERIFIED, None
        return AttemptResult.UNVERIFIED, "Submission could not be verified"

    async def run(self, label: str = "entry") -> LadderOutcome:
        """Drive the ladder until SUBMITTED or FAILED."""
        state = RetryState.INITIAL
        attempts: List[Tuple[RetryState, AttemptResult]] = []
        last_error = None

        while state not in TERMINAL_STATES:
            if state is RetryState.QUICK_RETRY:
                await self.sleep(self.quick_delay)
            elif state is RetryState.FULL_REFILL:
                await self.sleep(self.refill_delay)

            refill = state is not RetryState.QUICK_RETRY
            result, error = await self._attempt(refill)
            if error:
                last_error = error
            attempts.append((state, result))

            following = next_state(state, result)
            log_event('retry_transition', logger=logger, entry=label,
                      level_from=state.value, result=result.value, level_to=following.value)
            state = following

        return LadderOutcome(state, attempts, None if state is RetryState.SUBMITTED else last_error)
