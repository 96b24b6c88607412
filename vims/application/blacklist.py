"""
Blacklist management.

Bans are never deleted; unbanning flips the record to UNBANNED so the
audit trail stays intact.
"""

from vims.application.store import Store, new_id
from vims.core.logging import get_logger
from vims.domain.errors import InvalidTransitionError, NotFoundError
from vims.domain.models import BlacklistRecord, BlacklistStatus
from vims.domain.policies import validate_blacklist_form
from vims.domain.services import normalize_phone, normalize_plate

logger = get_logger(__name__)


def _clean(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


class BlacklistService:
    """Add, search and lift bans."""

    def __init__(self, store: Store):
        self._store = store

    def add(
        self,
        reason: str,
        actor: str,
        name: str | None = None,
        ic_number: str | None = None,
        license_plate: str | None = None,
        phone: str | None = None,
    ) -> BlacklistRecord:
        """
        Ban a person or vehicle.

        Raises:
            ValidationError: If no identifier or no reason is given.
        """
        validate_blacklist_form(ic_number, license_plate, phone, reason)
        record = BlacklistRecord(
            id=new_id("bl"),
            reason=reason.strip(),
            created_by=actor,
            timestamp=self._store.now(),
            name=_clean(name),
            ic_number=_clean(ic_number),
            license_plate=normalize_plate(license_plate) or None,
            phone=normalize_phone(phone) or None,
        )
        self._store.save_blacklist(record)
        logger.warning(
            "blacklist_added",
            blacklist_id=record.id,
            has_ic=record.ic_number is not None,
            plate=record.license_plate,
            actor=actor,
        )
        return record

    def list(
        self,
        query: str | None = None,
        status: BlacklistStatus | None = None,
    ) -> list[BlacklistRecord]:
        """Newest first; ``query`` matches name, IC, plate, phone or reason."""
        needle = (query or "").strip().lower()
        plate_needle = normalize_plate(query)
        result = []
        for record in self._store.blacklist.values():
            if status is not None and record.status != status:
                continue
            if needle:
                text_hit = any(
                    needle in (value or "").lower()
                    for value in (record.name, record.ic_number, record.phone, record.reason)
                )
                plate_hit = bool(plate_needle) and plate_needle in (record.license_plate or "")
                if not (text_hit or plate_hit):
                    continue
            result.append(record)
        return sorted(result, key=lambda r: r.timestamp, reverse=True)

    def unban(self, record_id: str, actor: str) -> BlacklistRecord:
        """
        Raises:
            NotFoundError: If the record does not exist.
            InvalidTransitionError: If the record is already lifted.
        """
        record = self._store.blacklist.get(record_id)
        if record is None:
            raise NotFoundError("Blacklist record", record_id)
        if not record.is_active:
            raise InvalidTransitionError(f"Blacklist record {record_id} is already unbanned")
        record.status = BlacklistStatus.UNBANNED
        self._store.save_blacklist(record)
        logger.info("blacklist_unbanned", blacklist_id=record.id, actor=actor)
        return record
