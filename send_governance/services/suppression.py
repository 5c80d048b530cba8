"""
Suppression registry service.

Maintains the per-workspace denylist of addresses that must never receive
mail. Entries are created by unsubscribe clicks, bounce and complaint
webhooks, or operators; the governance pipeline only ever reads them.

Key Functions:
- is_suppressed: Single-address lookup
- check_bulk: Lookup for many addresses, one result per input
- filter_allowed: The contactable subset of a list, in input order
- add / add_bulk: Upsert entries (re-adding overwrites reason and timestamp)
- remove: Immediate operator removal
- list_entries: Paginated listing, newest first

Normalization:
Every address is stripped and lowercased before it is compared or stored, so
"Jane@Example.com " and "jane@example.com" are the same registry key.

Failure Policy:
Lookups retry transient storage errors (STORAGE_RETRY_ATTEMPTS) first;
failures that remain follow SUPPRESSION_FAIL_OPEN. When true (the default) the
failure is logged and the address is reported as not suppressed; when false
StorageUnavailableError propagates and the caller must refuse the send.
Writes always propagate storage failures.
"""

import logging
import re
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from send_governance.core.clock import ServiceClock
from send_governance.core.config import Settings, get_settings
from send_governance.core.database import storage_retry
from send_governance.core.errors import StorageUnavailableError, ValidationFailedError
from send_governance.models import (
    SuppressionBulkResult,
    SuppressionEntry,
    SuppressionReason,
    SuppressionResult,
)
from send_governance.repositories.base import SuppressionStore


logger = logging.getLogger(__name__)


# Pragmatic address check: one @, no whitespace, a dot in the domain
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


def normalize_email(email: str) -> str:
    """Canonical registry key for an address."""
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


class SuppressionRegistry:
    """Read and write access to the suppression registry."""

    def __init__(
        self,
        store: SuppressionStore,
        clock: Optional[ServiceClock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.clock = clock or ServiceClock()
        self.settings = settings or get_settings()

    # =========================================================================
    # Lookups
    # =========================================================================

    async def is_suppressed(self, workspace_id: str, email: str) -> SuppressionResult:
        """
        Check whether one address may be contacted.

        Raises:
            StorageUnavailableError: Only when SUPPRESSION_FAIL_OPEN is false.
        """
        normalized = normalize_email(email)
        try:
            async for attempt in storage_retry():
                with attempt:
                    entry = await self.store.get(workspace_id, normalized)
        except StorageUnavailableError:
            self._handle_lookup_failure(workspace_id, 1)
            return SuppressionResult(email=normalized, is_suppressed=False)

        return self._result(normalized, entry)

    async def check_bulk(
        self, workspace_id: str, emails: Sequence[str]
    ) -> Dict[str, SuppressionResult]:
        """
        Check many addresses in one round trip.

        Returns a result for every input address, including addresses with
        no registry row. Keys are the addresses exactly as given, so
        "A@x.com" and "a@x.com" get one result each; each result's email
        field is the normalized form. Only an address repeated with identical
        spelling collapses to a single key.
        """
        normalized = list(dict.fromkeys(normalize_email(email) for email in emails))
        if not normalized:
            return {}

        try:
            async for attempt in storage_retry():
                with attempt:
                    found = await self.store.get_many(workspace_id, normalized)
        except StorageUnavailableError:
            self._handle_lookup_failure(workspace_id, len(normalized))
            found = {}

        by_address = {email: self._result(email, found.get(email)) for email in normalized}
        return {email: by_address[normalize_email(email)] for email in emails}

    async def filter_allowed(self, emails: Sequence[str], workspace_id: str) -> List[str]:
        """
        Drop suppressed addresses from a list.

        Input order and the original spelling of each kept address are
        preserved.
        """
        results = await self.check_bulk(workspace_id, emails)
        return [
            email for email in emails
            if not results[email].is_suppressed
        ]

    def _handle_lookup_failure(self, workspace_id: str, count: int) -> None:
        if not self.settings.suppression_fail_open:
            logger.error(
                f"Suppression lookup failed for {count} address(es) in workspace "
                f"{workspace_id}; failing closed"
            )
            raise StorageUnavailableError("Suppression registry unavailable")

        logger.warning(
            f"Suppression lookup failed for {count} address(es) in workspace "
            f"{workspace_id}; treating as not suppressed"
        )

    @staticmethod
    def _result(email: str, entry: Optional[SuppressionEntry]) -> SuppressionResult:
        if entry is None:
            return SuppressionResult(email=email, is_suppressed=False)
        return SuppressionResult(
            email=email,
            is_suppressed=True,
            reason=entry.reason,
            suppressed_at=entry.suppressed_at,
        )

    # =========================================================================
    # Writes
    # =========================================================================

    async def add(
        self,
        workspace_id: str,
        email: str,
        reason: SuppressionReason,
        campaign_id: Optional[str] = None,
        lead_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SuppressionEntry:
        """
        Suppress an address, overwriting any existing entry for it.

        Raises:
            ValidationFailedError: If the address is malformed.
        """
        normalized = normalize_email(email)
        if not is_valid_email(normalized):
            raise ValidationFailedError(f"Invalid email address: {email!r}")

        entry = await self.store.upsert(
            self._new_entry(workspace_id, normalized, reason, campaign_id, lead_id, metadata)
        )
        logger.info(f"Suppressed {normalized} in workspace {workspace_id} ({reason.value})")
        return entry

    async def add_bulk(
        self, workspace_id: str, emails: Sequence[str], reason: SuppressionReason
    ) -> SuppressionBulkResult:
        """Suppress many addresses with one reason; malformed ones are reported."""
        valid: Dict[str, SuppressionEntry] = {}
        invalid: List[str] = []

        for email in emails:
            normalized = normalize_email(email)
            if not is_valid_email(normalized):
                invalid.append(email)
                continue
            valid[normalized] = self._new_entry(workspace_id, normalized, reason)

        added = await self.store.upsert_many(list(valid.values()))
        logger.info(
            f"Bulk suppression in workspace {workspace_id}: {added} added, "
            f"{len(invalid)} invalid"
        )
        return SuppressionBulkResult(added=added, invalid=invalid)

    async def remove(self, workspace_id: str, email: str) -> bool:
        """Delete an entry; False when the address was not suppressed."""
        normalized = normalize_email(email)
        removed = await self.store.delete(workspace_id, normalized)
        if removed:
            logger.info(f"Removed {normalized} from suppression list of workspace {workspace_id}")
        return removed

    def _new_entry(
        self,
        workspace_id: str,
        email: str,
        reason: SuppressionReason,
        campaign_id: Optional[str] = None,
        lead_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SuppressionEntry:
        return SuppressionEntry(
            id=str(uuid.uuid4()),
            workspace_id=workspace_id,
            email=email,
            reason=reason,
            suppressed_at=self.clock.now(),
            campaign_id=campaign_id,
            lead_id=lead_id,
            metadata=metadata or {},
        )

    # =========================================================================
    # Listing
    # =========================================================================

    async def list_entries(
        self,
        workspace_id: str,
        reason: Optional[SuppressionReason] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> Tuple[List[SuppressionEntry], int]:
        """Return one page of entries (newest first) and the total match count."""
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        return await self.store.list_entries(workspace_id, reason, limit, offset)
