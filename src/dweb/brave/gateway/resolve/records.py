"""Resolution record model and interpretation.

A resolution record is the structured answer of the name resolution service: a mapping of
record names (``browser.redirect_url``, ``dweb.ipfs.hash`` and so on) to string values.
Interpretation decides what a domain serves and never performs I/O.
"""

from enum import IntEnum
from typing import Any, Dict, Final, Optional, Tuple

from pydantic import BaseModel, ConfigDict

REDIRECT_RECORD: Final = "browser.redirect_url"

CONTENT_RECORDS: Final[Tuple[str, ...]] = (
    "dweb.ipfs.hash",
    "ipfs.html.value",
    "crypto.IPFS.value",
)
"""Record names holding an IPFS content identifier, in order of precedence."""


class ResolutionRecord(BaseModel):
    """Resolution service record for a single domain.

    Immutable once built, so a cached instance can be shared between requests.
    """

    model_config = ConfigDict(frozen=True)

    records: Dict[str, Any] = {}
    meta: Dict[str, Any] = {}

    @staticmethod
    def from_response(body: Any) -> "ResolutionRecord":
        """Build a record from a decoded resolution service response.

        Records are read from the top level ``records`` mapping, or from ``data.records``
        when the top level mapping is absent.

        Raises:
            ValueError: If the body is not a JSON object
        """
        if not isinstance(body, dict):
            raise ValueError(f"expected a JSON object, got {type(body).__name__}")

        records = body.get("records")
        if records is None:
            data = body.get("data")
            if isinstance(data, dict):
                records = data.get("records")

        return ResolutionRecord.model_validate(
            {"records": records or {}, "meta": body.get("meta") or {}}
        )

    def value(self, name: str) -> Optional[str]:
        """Return the value of a record as received, or None when it is empty or blank."""
        value = self.records.get(name)
        if value is None:
            return None
        value = str(value)
        if len(value.strip()) == 0:
            return None
        return value


class OutcomeType(IntEnum):
    """What a domain resolves to."""

    redirect = 1
    content = 2
    not_found = 3


class RecordOutcome(BaseModel):
    """Interpretation of a resolution record.

    ``value`` is the redirect URL for ``redirect`` outcomes and the content identifier for
    ``content`` outcomes.
    """

    outcome_type: OutcomeType
    value: Optional[str] = None
    record_name: Optional[str] = None


def interpret_record(record: ResolutionRecord) -> RecordOutcome:
    """Decide whether a record redirects, serves content, or has nothing to serve.

    A redirect URL always wins over a content identifier. Content identifiers are tried in
    ``CONTENT_RECORDS`` order and the first non-empty one is used.

    Args:
        record: Resolved record for the domain

    Returns:
        RecordOutcome for the record
    """
    redirect_url = record.value(REDIRECT_RECORD)
    if redirect_url is not None:
        return RecordOutcome(
            outcome_type=OutcomeType.redirect,
            value=redirect_url,
            record_name=REDIRECT_RECORD,
        )

    for record_name in CONTENT_RECORDS:
        cid = record.value(record_name)
        if cid is not None:
            return RecordOutcome(
                outcome_type=OutcomeType.content, value=cid, record_name=record_name
            )

    return RecordOutcome(outcome_type=OutcomeType.not_found)
