"""
Retry policy for laboratory admissions.

A laboratory admits one reservation per day, so two users racing for the same
lab lose to each other at the storage constraint. The loser is retried a few
times with a short back-off as long as availability still looks positive; once
the lab reads as taken the caller gets a CapacityExceeded naming the holder.

The decision itself is a pure function so it can be tested without a store.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from core.config import ADMISSION_MAX_ATTEMPTS, ADMISSION_RETRY_BACKOFF_MS
from core.exceptions import CapacityExceeded, RaceLost, ReservationError
from models import Reservation
from services.admission_service import AdmissionRequest
from services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)


class RetryAction(Enum):
    ACCEPT = "accept"
    RETRY = "retry"
    GIVE_UP_CAPACITY = "give_up_capacity"
    GIVE_UP_RACE = "give_up_race"
    PROPAGATE = "propagate"


@dataclass(frozen=True)
class RetryDecision:
    action: RetryAction
    delay: float = 0.0


def decide(
    attempt: int,
    max_attempts: int,
    backoff: float,
    outcome: Optional[ReservationError],
    still_available: Optional[bool],
) -> RetryDecision:
    """
    Decide what to do after one admission attempt.

    Args:
        attempt: 1-based number of the attempt that just finished
        max_attempts: Total attempts allowed
        backoff: Seconds to wait before the next attempt
        outcome: The rejection raised by the attempt, None on success
        still_available: Whether availability reported room after the attempt;
            only consulted for RaceLost

    Returns:
        RetryDecision; only RETRY carries a delay
    """
    if outcome is None:
        return RetryDecision(RetryAction.ACCEPT)
    if not isinstance(outcome, RaceLost):
        return RetryDecision(RetryAction.PROPAGATE)
    if not still_available:
        return RetryDecision(RetryAction.GIVE_UP_CAPACITY)
    if attempt >= max_attempts:
        return RetryDecision(RetryAction.GIVE_UP_RACE)
    return RetryDecision(RetryAction.RETRY, delay=backoff)


async def admit_with_retry(
    db: Session,
    request: AdmissionRequest,
    max_attempts: int = ADMISSION_MAX_ATTEMPTS,
    backoff: float = ADMISSION_RETRY_BACKOFF_MS / 1000,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Reservation:
    """
    Admit a request, retrying lost races while the resource still looks free.

    Only RaceLost is retried. Every other rejection propagates unchanged.

    Raises:
        CapacityExceeded: The resource reads as taken after a lost race
        RaceLost: Every attempt lost a race
        ReservationError: Any other rejection from the admission controller
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return await asyncio.to_thread(request.admit, db)
        except ReservationError as e:
            outcome = e

        still_available: Optional[bool] = None
        holders = []
        if isinstance(outcome, RaceLost):
            availability = await asyncio.to_thread(
                AvailabilityService.availability, db, request.kind, request.on_date
            )
            still_available = availability.is_available
            holders = availability.holders

        decision = decide(attempt, max_attempts, backoff, outcome, still_available)

        if decision.action is RetryAction.PROPAGATE:
            raise outcome
        if decision.action is RetryAction.GIVE_UP_CAPACITY:
            logger.info(
                f"{request.kind} on {request.on_date.isoformat()} taken after lost race "
                f"(owner {request.owner_id}, attempt {attempt})"
            )
            raise CapacityExceeded(
                f"{request.kind} was just reserved for {request.on_date.isoformat()}. Please choose another day.",
                conflicting_owner=holders[0] if holders else None,
            )
        if decision.action is RetryAction.GIVE_UP_RACE:
            logger.warning(
                f"Giving up on {request.kind} {request.on_date.isoformat()} for {request.owner_id} "
                f"after {attempt} attempts"
            )
            raise RaceLost()

        logger.info(
            f"Retrying {request.kind} on {request.on_date.isoformat()} for {request.owner_id} "
            f"in {decision.delay:.2f}s (attempt {attempt}/{max_attempts})"
        )
        await sleep(decision.delay)
