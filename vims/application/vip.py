"""
VIP profile management.

Every change is recorded as a VIP_UPDATE access log at SYSTEM so the
guard console shows who touched a VIP profile and when.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

from vims.application.store import Store, new_id
from vims.core.logging import get_logger
from vims.domain.errors import InvalidTransitionError, NotFoundError
from vims.domain.models import (
    AccessAction,
    AccessLog,
    Location,
    ScanMethod,
    VipRecord,
    VipStatus,
    VipType,
)
from vims.domain.policies import validate_vip_form
from vims.domain.services import normalize_plate

logger = get_logger(__name__)

DEFAULT_VALIDITY = timedelta(days=365)


@dataclass
class VipForm:
    """VIP create/update input."""

    name: str
    contact: str
    designation: str
    license_plate: str
    reason: str
    vip_type: VipType = VipType.VIP
    custom_designation: str | None = None
    ic_number: str | None = None
    vehicle_color: str | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    auto_approve: bool = True
    auto_open_gate: bool = True
    access_points: list[str] = field(default_factory=lambda: ["ENTRY_LPR", "EXIT_LPR"])
    attachment: str | None = None


UPDATABLE_FIELDS = frozenset(VipForm.__dataclass_fields__)


class VipService:
    """
    Create, list, update and deactivate VIP profiles.

    Example:
        service = VipService(store)
        vip = service.create(VipForm(...), actor="admin")
        service.deactivate(vip.id, actor="admin")
    """

    def __init__(self, store: Store):
        self._store = store

    def _get(self, vip_id: str) -> VipRecord:
        vip = self._store.vips.get(vip_id)
        if vip is None:
            raise NotFoundError("VIP", vip_id)
        return vip

    def _audit(self, vip: VipRecord, change: str, actor: str) -> AccessLog:
        return self._store.append_access_log(
            AccessLog(
                id=new_id("log"),
                visitor_id=vip.id,
                visitor_name=vip.name,
                action=AccessAction.VIP_UPDATE,
                location=Location.SYSTEM,
                method=ScanMethod.SYSTEM,
                timestamp=self._store.now(),
                details=f"{change} by {actor}",
            )
        )

    def create(self, form: VipForm, actor: str) -> VipRecord:
        """
        Register a VIP; validity defaults to one year from now.

        Raises:
            ValidationError: With every missing or inconsistent field.
        """
        now = self._store.now()
        valid_from = form.valid_from or now
        valid_until = form.valid_until or valid_from + DEFAULT_VALIDITY
        validate_vip_form(
            form.name,
            form.contact,
            form.designation,
            form.custom_designation,
            form.license_plate,
            valid_from,
            valid_until,
            form.reason,
        )
        vip = VipRecord(
            id=new_id("vip"),
            vip_type=VipType(form.vip_type),
            designation=form.designation,
            custom_designation=form.custom_designation or None,
            name=form.name.strip(),
            contact=form.contact.strip(),
            ic_number=form.ic_number or None,
            license_plate=normalize_plate(form.license_plate),
            vehicle_color=form.vehicle_color or None,
            valid_from=valid_from,
            valid_until=valid_until,
            auto_approve=form.auto_approve,
            auto_open_gate=form.auto_open_gate,
            access_points=list(form.access_points),
            reason=form.reason.strip(),
            attachment=form.attachment or None,
            created_by=actor,
            created_at=now,
        )
        self._store.save_vip(vip)
        self._audit(vip, "CREATED", actor)
        logger.info("vip_created", vip_id=vip.id, vip_type=vip.vip_type.value, actor=actor)
        return vip

    def list(self, query: str | None = None, status: VipStatus | None = None) -> list[VipRecord]:
        """Newest first; lapsed ACTIVE profiles are marked EXPIRED on the way."""
        self.refresh_expired()
        needle = (query or "").strip().lower()
        result = []
        for vip in self._store.vips.values():
            if status is not None and vip.status != status:
                continue
            if needle and not any(
                needle in value.lower()
                for value in (vip.name, vip.license_plate, vip.display_designation, vip.contact)
            ):
                continue
            result.append(vip)
        return sorted(result, key=lambda v: v.created_at, reverse=True)

    def get(self, vip_id: str) -> VipRecord:
        return self._get(vip_id)

    def update(self, vip_id: str, changes: dict, actor: str) -> VipRecord:
        """
        Apply a partial update and re-validate the whole profile.

        Raises:
            NotFoundError: If the VIP does not exist.
            ValidationError: If the result would be invalid.
        """
        vip = self._get(vip_id)
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        merged = {**asdict(vip), **changes}
        validate_vip_form(
            merged["name"],
            merged["contact"],
            merged["designation"],
            merged["custom_designation"],
            merged["license_plate"],
            merged["valid_from"],
            merged["valid_until"],
            merged["reason"],
        )
        for key, value in changes.items():
            if key == "license_plate":
                value = normalize_plate(value)
            elif key == "vip_type":
                value = VipType(value)
            setattr(vip, key, value)

        now = self._store.now()
        vip.updated_by = actor
        vip.updated_at = now
        if vip.status == VipStatus.EXPIRED and vip.valid_until >= now:
            vip.status = VipStatus.ACTIVE
        self._store.save_vip(vip)
        self._audit(vip, f"UPDATED {','.join(sorted(changes)) or 'nothing'}", actor)
        logger.info("vip_updated", vip_id=vip.id, fields=sorted(changes), actor=actor)
        return vip

    def deactivate(self, vip_id: str, actor: str) -> VipRecord:
        """
        Raises:
            InvalidTransitionError: If the VIP is already deactivated.
        """
        vip = self._get(vip_id)
        if vip.status == VipStatus.DEACTIVATED:
            raise InvalidTransitionError(f"VIP {vip_id} is already deactivated")
        vip.status = VipStatus.DEACTIVATED
        vip.updated_by = actor
        vip.updated_at = self._store.now()
        self._store.save_vip(vip)
        self._audit(vip, "DEACTIVATED", actor)
        logger.info("vip_deactivated", vip_id=vip.id, actor=actor)
        return vip

    def refresh_expired(self) -> int:
        now = self._store.now()
        expired = 0
        for vip in self._store.vips.values():
            if vip.status == VipStatus.ACTIVE and vip.valid_until < now:
                vip.status = VipStatus.EXPIRED
                self._store.save_vip(vip)
                expired += 1
        if expired:
            logger.info("vip_expired", count=expired)
        return expired
