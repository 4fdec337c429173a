"""Escalating account lockout policy.

Pure functions: nothing here reads or writes the database. The login service
feeds in the consecutive failure count and the current lock columns and gets
back what the lock should look like.

Default stage table (``SETTINGS["LOCKOUT"]["STAGES"]``)::

    failures   stage   duration
    3          1       30 minutes
    6          2       3 hours
    9          3       24 hours
    12         3       permanent (admin unlock only)
"""

import datetime
import math
from typing import NamedTuple, Optional

from pncapi.config import SETTINGS

MAX_STAGE = 3


class LockoutDecision(NamedTuple):
    """Lock implied by a consecutive failure count."""

    stage: int
    duration_seconds: Optional[int]
    permanent: bool = False

    @property
    def locked(self):
        return self.stage > 0


NOT_LOCKED = LockoutDecision(stage=0, duration_seconds=None, permanent=False)


def utcnow():
    """Naive UTC now, matching how DateTime columns are stored."""
    return datetime.datetime.now(datetime.UTC).replace(tzinfo=None)


def get_stage_table(stages=None):
    """Return the stage table sorted by threshold, validating each entry."""
    if stages is None:
        stages = SETTINGS.get("LOCKOUT", {}).get("STAGES", [])
    table = sorted(stages, key=lambda entry: entry["threshold"])
    last_stage = 0
    for entry in table:
        if entry["threshold"] < 1:
            raise ValueError("Lockout thresholds must be positive")
        if not 1 <= entry["stage"] <= MAX_STAGE:
            raise ValueError(f"Lockout stage must be between 1 and {MAX_STAGE}")
        if entry["stage"] < last_stage:
            raise ValueError("Lockout stages must not decrease as thresholds grow")
        last_stage = entry["stage"]
    return table


def lockout_for_failures(consecutive_failures, stages=None):
    """Map a consecutive failure count to the lock it implies.

    The highest threshold met or exceeded wins. Counts below the first
    threshold are not locked.
    """
    if consecutive_failures < 0:
        raise ValueError("consecutive_failures cannot be negative")

    decision = NOT_LOCKED
    for entry in get_stage_table(stages):
        if consecutive_failures < entry["threshold"]:
            break
        duration = entry["duration_seconds"]
        decision = LockoutDecision(
            stage=entry["stage"],
            duration_seconds=duration,
            permanent=duration is None,
        )
    return decision


def stage_for_failures(consecutive_failures, stages=None):
    return lockout_for_failures(consecutive_failures, stages).stage


def escalation_for_failure(previous_failures, new_failures, stages=None):
    """Return the new lock if moving from previous to new failures engages one.

    A lock engages only when a threshold is reached, so ``None`` is returned
    between thresholds. Crossing from 9 to 12 failures stays at stage 3 but
    becomes permanent, which also counts as an escalation.
    """
    before = lockout_for_failures(previous_failures, stages)
    after = lockout_for_failures(new_failures, stages)
    if after.stage > before.stage:
        return after
    if after.permanent and not before.permanent:
        return after
    return None


def lock_expiry(decision, now):
    if decision.permanent or decision.duration_seconds is None:
        return None
    return now + datetime.timedelta(seconds=decision.duration_seconds)


def remaining_seconds(expires_at, now):
    """Whole seconds until expires_at, rounded up; 0 at or after expiry."""
    if expires_at is None:
        return 0
    delta = (expires_at - now).total_seconds()
    if delta <= 0:
        return 0
    return math.ceil(delta)


def is_lock_active(user, now):
    if user.is_permanently_locked:
        return True
    return user.lockout_expires_at is not None and user.lockout_expires_at > now


def has_stale_lock(user, now):
    """True when lock columns are set but the temporary lock has run out."""
    if user.is_permanently_locked:
        return False
    if user.lockout_stage == 0 and user.lockout_expires_at is None:
        return False
    return not is_lock_active(user, now)
