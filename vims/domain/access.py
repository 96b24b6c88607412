"""
Registry matching and access decisions.

A scan is first resolved against the three registries with a fixed
precedence (blacklist, then VIP, then visitor) and the match is then
run through an ordered decision table for the checkpoint it came from.
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime

from vims.domain.models import (
    AccessDecision,
    Blacklisted,
    BlacklistRecord,
    CheckpointProfile,
    Decision,
    IdentifierBundle,
    Location,
    LookupKind,
    LprStatus,
    MatchResult,
    ScanMethod,
    ScanOutcome,
    TransportMode,
    Unknown,
    Vip,
    VipRecord,
    Visitor,
    VisitorMatch,
    VisitorStatus,
)
from vims.domain.services import normalize_phone, normalize_plate, same_phone, same_plate


def _same_ic(a: str | None, b: str | None) -> bool:
    na = (a or "").strip()
    return bool(na) and na == (b or "").strip()


def find_blacklisted(
    bundle: IdentifierBundle,
    blacklist: Iterable[BlacklistRecord],
) -> BlacklistRecord | None:
    """
    First ACTIVE ban matching any identifier of the bundle.

    IC numbers compare exactly, plates and phones by normalized form.
    Empty identifiers never match.
    """
    for record in blacklist:
        if not record.is_active:
            continue
        if (
            _same_ic(bundle.ic_number, record.ic_number)
            or same_plate(bundle.plate, record.license_plate)
            or same_phone(bundle.phone, record.phone)
        ):
            return record
    return None


@dataclass
class RegistryMatcher:
    """
    Resolves an identifier bundle against blacklist, VIP and visitor records.

    First match wins. For CODE lookups the visitor's own IC, plate and
    phone are added to the bundle before the blacklist step so a banned
    person cannot pass with a code issued before the ban.
    """

    def match(
        self,
        bundle: IdentifierBundle,
        kind: LookupKind,
        *,
        blacklist: Iterable[BlacklistRecord],
        vips: Iterable[VipRecord],
        visitors: Iterable[Visitor],
        now: datetime,
    ) -> MatchResult:
        visitors = list(visitors)
        visitor = self._find_visitor(bundle, kind, visitors)

        ban_bundle = bundle
        if kind == LookupKind.CODE and visitor is not None:
            ban_bundle = replace(
                bundle,
                ic_number=bundle.ic_number or visitor.ic_number,
                plate=bundle.plate or visitor.license_plate,
                phone=bundle.phone or visitor.contact,
            )

        banned = find_blacklisted(ban_bundle, blacklist)
        if banned is not None:
            return Blacklisted(record=banned, reasons=(f"blacklist:{banned.id}",))

        plate = normalize_plate(bundle.plate)
        if plate:
            for vip in vips:
                if normalize_plate(vip.license_plate) == plate and vip.is_valid_at(now):
                    return Vip(record=vip, reasons=(f"vip:{vip.id}",))

        if visitor is not None:
            return VisitorMatch(record=visitor, reasons=(f"visitor:{visitor.id}",))
        return Unknown(reasons=("no_match",))

    def _find_visitor(
        self,
        bundle: IdentifierBundle,
        kind: LookupKind,
        visitors: list[Visitor],
    ) -> Visitor | None:
        if kind == LookupKind.CODE:
            code = (bundle.code or "").strip()
            if not code:
                return None
            return next((v for v in visitors if v.id == code), None)

        plate = normalize_plate(bundle.plate)
        if not plate:
            return None
        candidates = [
            v
            for v in visitors
            if v.transport_mode == TransportMode.CAR
            and normalize_plate(v.license_plate) == plate
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda v: v.created_at)


def bundle_for_registration(
    ic_number: str | None,
    plate: str | None,
    phone: str | None,
) -> IdentifierBundle:
    """Bundle used by the registration blacklist guard."""
    return IdentifierBundle(
        ic_number=(ic_number or "").strip() or None,
        plate=normalize_plate(plate) or None,
        phone=normalize_phone(phone) or None,
    )


@dataclass
class AccessDecisionEngine:
    """
    Ordered decision table for one scan at one checkpoint.

    Rules, first applicable wins:
        1. Unknown subject: deny.
        2. Blacklisted: deny with the ban reason.
        3. Plate scan where the checkpoint has no LPR or is the elevator: deny.
        4. Valid VIP: allow.
        5. Visitor not approved: deny.
        6. QR class not admitted here: deny; otherwise allow.
    """

    def decide(
        self,
        match: MatchResult,
        profile: CheckpointProfile,
        method: ScanMethod,
    ) -> AccessDecision:
        if isinstance(match, Unknown):
            return AccessDecision(
                decision=Decision.DENY,
                reason="Visitor not found",
                lpr_status=LprStatus.UNKNOWN,
                scan_outcome=ScanOutcome.UNKNOWN,
                log_details="NOT_FOUND",
            )

        if isinstance(match, Blacklisted):
            return AccessDecision(
                decision=Decision.DENY,
                reason=f"Blacklisted: {match.record.reason}",
                lpr_status=LprStatus.BLACKLISTED,
                scan_outcome=ScanOutcome.BLOCKED,
                log_details="BLACKLISTED",
            )

        if method == ScanMethod.LPR and (
            not profile.allow_lpr or profile.location == Location.ELEVATOR
        ):
            return AccessDecision(
                decision=Decision.DENY,
                reason=f"Plate recognition is not accepted at {profile.name}",
                lpr_status=LprStatus.REJECTED,
                scan_outcome=ScanOutcome.BLOCKED,
                log_details="LPR_NOT_PERMITTED",
            )

        if isinstance(match, Vip):
            return AccessDecision(
                decision=Decision.ALLOW,
                reason=f"{match.record.vip_type.value} access granted",
                lpr_status=LprStatus.APPROVED,
                scan_outcome=ScanOutcome.PASSED,
                log_details=match.record.vip_type.value,
            )

        visitor = match.record
        if visitor.status == VisitorStatus.PENDING:
            return AccessDecision(
                decision=Decision.DENY,
                reason="Visitor is awaiting approval",
                lpr_status=LprStatus.PENDING,
                scan_outcome=ScanOutcome.HOLD,
                log_details="Status not approved",
            )
        if visitor.status == VisitorStatus.REJECTED:
            return AccessDecision(
                decision=Decision.DENY,
                reason="Visitor request was rejected",
                lpr_status=LprStatus.REJECTED,
                scan_outcome=ScanOutcome.BLOCKED,
                log_details="Status not approved",
            )

        if method == ScanMethod.QR and visitor.qr_type not in profile.allowed_qr_types:
            return AccessDecision(
                decision=Decision.DENY,
                reason=f"Wrong QR class for this checkpoint ({visitor.qr_type.value})",
                lpr_status=LprStatus.REJECTED,
                scan_outcome=ScanOutcome.BLOCKED,
                log_details="WRONG_QR_CLASS",
            )

        return AccessDecision(
            decision=Decision.ALLOW,
            reason="Access granted",
            lpr_status=LprStatus.APPROVED,
            scan_outcome=ScanOutcome.PASSED,
        )
