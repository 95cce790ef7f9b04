"""Turn a pool snapshot into the contributor and payment rows to insert."""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from poolsync.parse.models import CampaignSnapshot, Contributor, Payment, as_utc

logger = logging.getLogger(__name__)


def payment_id(instant: datetime, contributor_id: str) -> str:
    """Stable payment key: whole unix seconds of the instant followed by the contributor id."""
    seconds = math.floor(as_utc(instant).timestamp())
    return f"{seconds}{contributor_id}"


@dataclass
class ReconcileResult:
    """Candidate rows for one run, in insertion order."""

    contributors: list[Contributor] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    owner_payment: Optional[Payment] = None
    owner_remainder: float = 0.0
    unmapped_contributor_ids: list[str] = field(default_factory=list)

    @property
    def transaction_payments(self) -> list[Payment]:
        """Payments derived from remote transactions (everything but the owner remainder)."""
        if self.owner_payment is None:
            return list(self.payments)
        return [p for p in self.payments if p is not self.owner_payment]


def owner_remainder_payment(
    snapshot: CampaignSnapshot,
    owner_recorded_sum: float,
    now: datetime,
) -> tuple[float, Optional[Payment]]:
    """Compute the part of the owner's pledge not yet stored as payments."""
    remainder = snapshot.owner_pledge - owner_recorded_sum
    if remainder > 0:
        payment = Payment(
            id=payment_id(now, snapshot.owner_id),
            date=now.date(),
            amount=remainder,
            contributor_id=snapshot.owner_id,
        )
        logger.info(f"Owner {snapshot.owner_id} has {remainder:.2f} unrecorded, adding payment {payment.id}")
        return remainder, payment

    if remainder < 0:
        logger.warning(
            f"Owner {snapshot.owner_id} is over-recorded: stored {owner_recorded_sum:.2f} "
            f"> pledged {snapshot.owner_pledge:.2f}; leaving as is"
        )
    else:
        logger.debug(f"Owner {snapshot.owner_id} payments are up to date")
    return remainder, None


def reconcile(
    snapshot: CampaignSnapshot,
    owner_recorded_sum: float,
    now: Optional[datetime] = None,
) -> ReconcileResult:
    """
    Compute the rows a run should try to insert.

    Pure: no I/O. The store's insert-if-absent semantics take care of rows that
    already exist, so transaction payments are always emitted in full and duplicate
    contributors are not collapsed here.
    """
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    result = ReconcileResult()

    # Owner pledge is only reported as a running total
    result.owner_remainder, result.owner_payment = owner_remainder_payment(snapshot, owner_recorded_sum, now)
    if result.owner_payment is not None:
        result.payments.append(result.owner_payment)

    # Payments from "normal" contributors, remote order
    for txn in snapshot.transactions:
        result.payments.append(
            Payment(
                id=payment_id(txn.date, txn.contributor_id),
                date=txn.date.date(),
                amount=txn.amount,
                contributor_id=txn.contributor_id,
            )
        )

    result.contributors.append(Contributor(contributor_id=snapshot.owner_id, full_name=snapshot.owner_name))
    for contributor_id, full_name in snapshot.contributors.items():
        result.contributors.append(Contributor(contributor_id=contributor_id, full_name=full_name))

    known = set(snapshot.contributors) | {snapshot.owner_id}
    for txn in snapshot.transactions:
        if txn.contributor_id not in known and txn.contributor_id not in result.unmapped_contributor_ids:
            result.unmapped_contributor_ids.append(txn.contributor_id)
    if result.unmapped_contributor_ids:
        logger.warning(
            f"{len(result.unmapped_contributor_ids)} transaction contributors have no name entry, "
            f"no contributor row written for: {result.unmapped_contributor_ids}"
        )

    return result
