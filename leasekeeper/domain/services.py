"""Domain services for lease election.

Pure decision logic with no I/O, so the acquisition rule can be exercised
without a store, a clock or an event loop.
"""

from __future__ import annotations

from .enums import LeaseDecision
from .models import LeaseRecord


class LeaseAcquisitionPolicy:
    """Decides whether a participant claims, renews or follows.

    The rule is evaluated in a fixed order:

    1. no record (or an unparsable one, which decodes to ``None``): claim
    2. record older than the timeout: the owner is presumed dead, claim
    3. record owned by the caller: renew
    4. otherwise another live owner exists: follow

    Claim and renew produce the same write. Nothing here is atomic: two
    callers may both decide to claim from the same observation, and the
    loser only steps down on its next evaluation.
    """

    @staticmethod
    def decide(
        record: LeaseRecord | None,
        caller_id: str,
        now_ms: int,
        timeout_ms: int,
    ) -> LeaseDecision:
        if record is None:
            return LeaseDecision.CLAIM_ABSENT
        if record.is_expired(now_ms, timeout_ms):
            return LeaseDecision.CLAIM_EXPIRED
        if record.is_owned_by(caller_id):
            return LeaseDecision.RENEW
        return LeaseDecision.FOLLOW

    @staticmethod
    def claim(caller_id: str, now_ms: int) -> LeaseRecord:
        """Record written by both claim and renew."""
        return LeaseRecord(owner_id=caller_id, acquired_at=now_ms)

    @staticmethod
    def should_release(record: LeaseRecord | None, caller_id: str) -> bool:
        """Only the current owner may delete the record on shutdown."""
        return record is not None and record.is_owned_by(caller_id)

    @staticmethod
    def estimate_participant_count(is_leader: bool) -> int:
        """Approximate count: 1 when leader, 2 when following.

        Only the owner id is stored, so the number of live followers is
        unknown; counting them would need a registry of every live id.
        """
        return 1 if is_leader else 2
