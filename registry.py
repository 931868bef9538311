"""
Registration numbers and role spelling for member records.

A registration number is `BASE` or `BASE-SUFFIX`: BASE is the member's
numeric matrícula, SUFFIX marks an administrative post (PRE, VIC, TES, SEC).
Roles are spelled to agree with the member's sex.

Everything here is pure and total: malformed input degrades to empty/zero
instead of raising, so it can run on every edit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Tuple

from config import (
    DUPLICATE_ERROR_PATTERNS,
    DUPLICATE_REGISTRATION_MESSAGE,
    FEMININO,
    GENDERED_ROLES,
    GENDERED_ROOTS,
    SUFFIX_PRESIDENTE,
    SUFFIX_SECRETARIO,
    SUFFIX_TESOUREIRO,
    SUFFIX_VICE,
    SUFFIXES,
)
from members import Member

_LEADING_INT = re.compile(r"\+?([0-9]+)")
_DIGITS = re.compile(r"[0-9]+")

_MASCULINE_ROLES = MappingProxyType({fem: masc for masc, fem in GENDERED_ROLES.items()})
_MASCULINE_ROOTS = MappingProxyType({fem: masc for masc, fem in GENDERED_ROOTS.items()})


class DuplicateRegistrationError(RuntimeError):
    """The database rejected a registration number that is already taken."""

    def __init__(self, detail: str = ""):
        super().__init__(DUPLICATE_REGISTRATION_MESSAGE)
        self.detail = detail


@dataclass(frozen=True)
class RosterIssue:
    kind: str
    registration_number: str
    member_id: str = ""
    detail: str = ""


def normalize_role_for_sex(role: str, sex: str) -> str:
    """
    Spell `role` in the grammatical gender of `sex`.

    Diácono/Cooperador/Missionário swap as whole roles; Tesoureiro and Secretário
    swap only the root word so ordinals like '1° ' survive. Roles without a
    gendered form pass through.
    """
    role = role or ""
    if sex == FEMININO:
        whole, roots = GENDERED_ROLES, GENDERED_ROOTS
    else:
        whole, roots = _MASCULINE_ROLES, _MASCULINE_ROOTS
    role = whole.get(role, role)
    for source, target in roots.items():
        if source in role:
            role = role.replace(source, target, 1)
    return role


def resolve_suffix(role: str) -> Optional[str]:
    role = role or ""
    # 'Vice-Presidente' contains 'Presidente'; the Vice check must win.
    if "Presidente" in role and "Vice" not in role:
        return SUFFIX_PRESIDENTE
    if "Vice-Presidente" in role:
        return SUFFIX_VICE
    if "Tesoureir" in role:
        return SUFFIX_TESOUREIRO
    if "Secretári" in role:
        return SUFFIX_SECRETARIO
    return None


def registration_base(value: Optional[str]) -> str:
    """Text before the first '-', stripped ('042-TES' -> '042')."""
    return str(value or "").split("-", 1)[0].strip()


def compose_registration_number(current_value: Optional[str], suffix: Optional[str]) -> str:
    base = registration_base(current_value)
    if not suffix:
        return base
    return f"{base}-{suffix}"


def _parse_base(value: str) -> Optional[int]:
    match = _LEADING_INT.match(registration_base(value))
    if match is None:
        return None
    return int(match.group(1))


def allocate_next_base(existing_registration_numbers: Iterable[Optional[str]]) -> str:
    """
    Next free base number for a new member.

    Takes the largest numeric base in use plus one (numeric, never a text sort,
    so '10' beats '2'), then skips any value already present verbatim.
    """
    used = {str(v).strip() for v in existing_registration_numbers if v is not None}
    used.discard("")

    highest = 0
    for raw in used:
        n = _parse_base(raw)
        if n is not None and n > highest:
            highest = n

    candidate = highest + 1
    while str(candidate) in used:
        candidate += 1
    return str(candidate)


def normalize_member_fields(sex: str, role: str, registration_number: str) -> Tuple[str, str]:
    """Return the (role, registration_number) pair a record with these values should have."""
    normalized_role = normalize_role_for_sex(role, sex)
    suffix = resolve_suffix(normalized_role)
    return normalized_role, compose_registration_number(registration_number, suffix)


def apply_identity_rules(member: Member) -> Member:
    """
    Normalize role and registration number of `member`.
    Returns the same object when nothing changes, so callers can compare identity
    to stop re-triggering edits.
    """
    role, number = normalize_member_fields(member.sex, member.role, member.registration_number)
    if role == member.role and number == member.registration_number:
        return member
    return replace(member, role=role, registration_number=number)


def new_member(roster_registration_numbers: Iterable[Optional[str]]) -> Member:
    """Blank member record holding the next free registration number."""
    return apply_identity_rules(
        Member(registration_number=allocate_next_base(roster_registration_numbers))
    )


def reallocate_registration(
    member: Member, roster_registration_numbers: Iterable[Optional[str]]
) -> Member:
    """Give `member` a fresh base number, keeping the suffix its role calls for."""
    base = allocate_next_base(roster_registration_numbers)
    return apply_identity_rules(replace(member, registration_number=base))


def is_duplicate_registration_error(message: Optional[str]) -> bool:
    text = str(message or "").lower()
    return any(p in text for p in DUPLICATE_ERROR_PATTERNS)


def audit_roster(members: Iterable[Member]) -> List[RosterIssue]:
    """Check a roster against the registration-number and role-spelling rules."""
    issues: List[RosterIssue] = []
    by_base: Dict[int, List[Member]] = {}

    for m in members:
        number = (m.registration_number or "").strip()
        base, _, suffix = number.partition("-")
        base, suffix = base.strip(), suffix.strip()

        if not _DIGITS.fullmatch(base) or (suffix and suffix not in SUFFIXES):
            detail = "missing registration number" if not number else f"malformed registration number '{number}'"
            issues.append(RosterIssue("invalid_number", number, m.id, detail))
        else:
            by_base.setdefault(int(base), []).append(m)
            expected = resolve_suffix(m.role)
            if (suffix or None) != expected:
                issues.append(
                    RosterIssue(
                        "suffix_mismatch",
                        number,
                        m.id,
                        f"role '{m.role}' expects {expected or 'no suffix'}, found {suffix or 'no suffix'}",
                    )
                )

        spelled = normalize_role_for_sex(m.role, m.sex)
        if spelled != m.role:
            issues.append(
                RosterIssue("gender_mismatch", number, m.id, f"role '{m.role}' should be '{spelled}' for {m.sex}")
            )

    for base, group in sorted(by_base.items()):
        if len(group) < 2:
            continue
        first = group[0]
        for m in group[1:]:
            issues.append(
                RosterIssue(
                    "duplicate_base",
                    m.registration_number,
                    m.id,
                    f"base {base} already used by '{first.registration_number}'",
                )
            )
    return issues
