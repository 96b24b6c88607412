"""
Checkpoint scan use case.

Resolves a QR code or plate against the registries, decides, applies
movement on ALLOW and writes the audit trail. Every scan appends exactly
one access log; plate scans also append an LPR log and update the
plate's scan record.
"""

from datetime import datetime

from vims.application.movement import MovementTracker
from vims.application.store import Store, new_id
from vims.core.logging import get_logger
from vims.domain.access import AccessDecisionEngine, RegistryMatcher
from vims.domain.errors import ValidationError
from vims.domain.models import (
    CHECKPOINTS,
    MANUAL_VISITOR_ID,
    UNIDENTIFIED,
    AccessAction,
    AccessDecision,
    AccessLog,
    Blacklisted,
    CheckpointProfile,
    IdentifierBundle,
    Location,
    LookupKind,
    LprLog,
    LprMode,
    MatchResult,
    ScanMethod,
    ScanResult,
    Unknown,
    Vip,
    VisitorMatch,
)
from vims.domain.services import normalize_plate

logger = get_logger(__name__)


def profile_for(location: Location) -> CheckpointProfile:
    """
    Raises:
        ValidationError: If the location is not a physical checkpoint.
    """
    profile = CHECKPOINTS.get(Location(location))
    if profile is None:
        raise ValidationError({"location": f"{location} is not a checkpoint"})
    return profile


def _subject(match: MatchResult, fallback_id: str) -> tuple[str, str, str]:
    """(id, name, phone) shown on logs for a match."""
    if isinstance(match, (VisitorMatch, Vip)):
        record = match.record
        return record.id, record.name, record.contact
    if isinstance(match, Blacklisted):
        record = match.record
        return fallback_id, record.name or UNIDENTIFIED, record.phone or "N/A"
    return fallback_id, UNIDENTIFIED, "N/A"


class AccessControlService:
    """
    Evaluates scans at the front gate and the elevator.

    Example:
        service = AccessControlService(store)
        result = service.scan_qr("48213", Location.FRONT_GATE)
        if result.allowed:
            open_gate()
    """

    def __init__(
        self,
        store: Store,
        movement: MovementTracker | None = None,
        matcher: RegistryMatcher | None = None,
        engine: AccessDecisionEngine | None = None,
    ):
        self._store = store
        self.movement = movement or MovementTracker(store)
        self.matcher = matcher or RegistryMatcher()
        self.engine = engine or AccessDecisionEngine()

    def _match(self, bundle: IdentifierBundle, kind: LookupKind) -> MatchResult:
        return self.matcher.match(
            bundle,
            kind,
            blacklist=self._store.blacklist.values(),
            vips=self._store.vips.values(),
            visitors=self._store.visitors.values(),
            now=self._store.now(),
        )

    def scan_qr(self, code: str, location: Location) -> ScanResult:
        """
        Guard scan of a visitor pass.

        Allowed scans toggle the visitor: EXIT when inside, ENTRY otherwise.
        """
        profile = profile_for(location)
        code = (code or "").strip()
        match = self._match(IdentifierBundle(code=code), LookupKind.CODE)
        decision = self.engine.decide(match, profile, ScanMethod.QR)
        ts = self._store.now()

        action = AccessAction.DENIED
        if decision.allowed and isinstance(match, VisitorMatch):
            visitor = match.record
            if visitor.time_in is not None and visitor.time_out is None:
                action = AccessAction.EXIT
                self.movement.record_exit(visitor.id, ts)
            else:
                action = AccessAction.ENTRY
                self.movement.record_entry(visitor.id, ts)

        log = self._log_access(
            match, decision, action, profile.location, ScanMethod.QR, code or "-", ts
        )
        self._log_decision(match, decision, ScanMethod.QR, profile, code)
        return ScanResult(decision=decision, match=match, access_log=log)

    def scan_plate(
        self,
        plate: str,
        mode: LprMode,
        location: Location = Location.FRONT_GATE,
        confidence: float = 0.0,
        thumbnail: str = "",
        vehicle_color: str | None = None,
    ) -> ScanResult:
        """
        Plate event from an LPR terminal with its pre-selected mode.

        Raises:
            ValidationError: If the plate normalizes to nothing.
        """
        profile = profile_for(location)
        mode = LprMode(mode)
        key = normalize_plate(plate)
        if not key:
            raise ValidationError({"plate": "License plate is required"})

        match = self._match(IdentifierBundle(plate=key), LookupKind.PLATE)
        decision = self.engine.decide(match, profile, ScanMethod.LPR)
        ts = self._store.now()

        action = AccessAction.DENIED
        if decision.allowed:
            action = AccessAction(mode.value)
            if isinstance(match, Vip):
                self.movement.record_vip(match.record, mode, ts)
            elif isinstance(match, VisitorMatch):
                if mode == LprMode.ENTRY:
                    self.movement.record_entry(match.record.id, ts)
                else:
                    self.movement.record_exit(match.record.id, ts)

        log = self._log_access(match, decision, action, profile.location, ScanMethod.LPR, key, ts)

        _, name, phone = _subject(match, key)
        vip = match.record if isinstance(match, Vip) else None
        visitor = match.record if isinstance(match, VisitorMatch) else None
        lpr_log = self._store.append_lpr_log(
            LprLog(
                id=new_id("lpr"),
                plate=key,
                status=decision.lpr_status,
                mode=mode,
                timestamp=ts,
                confidence=confidence,
                thumbnail=thumbnail,
                vehicle_color=vehicle_color
                or (vip.vehicle_color if vip else None)
                or (visitor.vehicle_color if visitor else None),
                visitor_id=visitor.id if visitor else (vip.id if vip else None),
                is_vip=vip is not None,
                vip_type=vip.vip_type if vip else None,
                designation=vip.display_designation if vip else None,
                requestor_name=name,
                phone_number=phone,
            )
        )
        scan_record = self.movement.upsert_scan_record(
            key,
            mode,
            known=not isinstance(match, Unknown),
            outcome=decision.scan_outcome,
            reason=None if decision.allowed else decision.reason,
            attempted_only=not decision.allowed,
            ts=ts,
        )
        self._log_decision(match, decision, ScanMethod.LPR, profile, key, mode=mode.value)
        return ScanResult(
            decision=decision,
            match=match,
            access_log=log,
            lpr_log=lpr_log,
            scan_record=scan_record,
        )

    def manual_override(self, reason: str, location: Location, actor: str) -> AccessLog:
        """
        Guard releases the gate by hand. Always allowed, always logged.

        Raises:
            ValidationError: If no reason is given.
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError({"reason": "Override reason is required"})
        profile = profile_for(location)
        log = self._store.append_access_log(
            AccessLog(
                id=new_id("log"),
                visitor_id=MANUAL_VISITOR_ID,
                visitor_name=f"Manual ({reason})",
                action=AccessAction.MANUAL_OVERRIDE,
                location=profile.location,
                method=ScanMethod.MANUAL,
                timestamp=self._store.now(),
                details=f"by {actor}",
            )
        )
        logger.warning(
            "manual_override",
            location=profile.location.value,
            actor=actor,
            reason=reason,
        )
        return log

    def _log_access(
        self,
        match: MatchResult,
        decision: AccessDecision,
        action: AccessAction,
        location: Location,
        method: ScanMethod,
        scanned: str,
        ts: datetime,
    ) -> AccessLog:
        subject_id, name, _ = _subject(match, scanned)
        return self._store.append_access_log(
            AccessLog(
                id=new_id("log"),
                visitor_id=subject_id,
                visitor_name=name,
                action=action,
                location=location,
                method=method,
                timestamp=ts,
                details=decision.log_details,
            )
        )

    def _log_decision(
        self,
        match: MatchResult,
        decision: AccessDecision,
        method: ScanMethod,
        profile: CheckpointProfile,
        scanned: str,
        **extra,
    ) -> None:
        log = logger.info if decision.allowed else logger.warning
        log(
            "access_decision",
            decision=decision.decision.value,
            match=match.tag,
            method=method.value,
            checkpoint=profile.location.value,
            identifier=scanned,
            reason=decision.reason,
            **extra,
        )
