"""Decode the pool page's store payload into a CampaignSnapshot."""
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from poolsync.errors import DecodeError
from poolsync.parse.models import CampaignSnapshot, Transaction

logger = logging.getLogger(__name__)


class _Owner(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    full_name: Optional[str] = None


class _Campaign(BaseModel):
    title: Optional[str] = None
    owner: _Owner
    pledge: float = Field(..., strict=True)


class _ContributorEntry(BaseModel):
    full_name: str


class _ContributorMap(BaseModel):
    entries: Dict[str, _ContributorEntry] = Field(..., alias="map")


class _TransactionList(BaseModel):
    items: List[Transaction] = Field(..., alias="list")


class _StorePayload(BaseModel):
    campaign: Dict[str, Any]
    contributors: _ContributorMap
    txns: _TransactionList


def _describe(exc: ValidationError, prefix: str = "") -> list[str]:
    """Turn a ValidationError into 'path: message' strings."""
    problems = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"])
        if prefix:
            path = f"{prefix}.{path}" if path else prefix
        problems.append(f"{path}: {error['msg']}")
    return problems


def decode_snapshot(raw: dict[str, Any], pool_id: str) -> CampaignSnapshot:
    """
    Decode the raw store document for one pool.

    Expected shape::

        {
          "campaign": {"<pool_id>": {"title", "owner": {"id", "full_name"}, "pledge"}},
          "contributors": {"map": {"<id>": {"full_name"}}},
          "txns": {"list": [{"date", "amount", "contributor_id", "id"}]}
        }

    Raises DecodeError naming every missing or mistyped field.
    """
    if not isinstance(raw, dict):
        raise DecodeError(f"Store payload must be an object, got {type(raw).__name__}")

    try:
        payload = _StorePayload.model_validate(raw)
    except ValidationError as e:
        problems = _describe(e)
        raise DecodeError(f"Malformed store payload: {'; '.join(problems)}", {"problems": problems}) from e

    block = payload.campaign.get(pool_id)
    if block is None:
        raise DecodeError(
            f"Pool {pool_id} not found in store payload",
            {"pool_id": pool_id, "campaigns": sorted(payload.campaign)},
        )

    try:
        campaign = _Campaign.model_validate(block)
    except ValidationError as e:
        problems = _describe(e, prefix=f"campaign.{pool_id}")
        raise DecodeError(f"Malformed campaign block: {'; '.join(problems)}", {"problems": problems}) from e

    snapshot = CampaignSnapshot(
        pool_id=pool_id,
        title=campaign.title or "",
        owner_id=campaign.owner.id,
        owner_name=campaign.owner.full_name or "",
        owner_pledge=campaign.pledge,
        transactions=tuple(payload.txns.items),
        contributors={cid: entry.full_name for cid, entry in payload.contributors.entries.items()},
    )
    logger.debug(
        f"Decoded pool {pool_id}: {len(snapshot.transactions)} transactions, "
        f"{len(snapshot.contributors)} contributors"
    )
    return snapshot
