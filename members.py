"""
Member records as stored in the `members` table, plus roster queries.

Only the fields the registry reads or writes are typed; every other column
travels through `extra` untouched.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from config import DEFAULT_CONGREGATION, DEFAULT_ROLE, DEFAULT_STATUS, MASCULINO
from utils import clean_text, natural_key

MEMBER_FIELDS = (
    "id",
    "registration_number",
    "sex",
    "role",
    "full_name",
    "cpf",
    "congregation",
    "status",
)
# Maintained by the database; never written back
READ_ONLY_COLUMNS = ("created_at", "updated_at")


@dataclass
class Member:
    id: str = ""
    registration_number: str = ""
    sex: str = MASCULINO
    role: str = DEFAULT_ROLE
    full_name: str = ""
    cpf: str = ""
    congregation: str = DEFAULT_CONGREGATION
    status: str = DEFAULT_STATUS
    extra: Dict[str, Any] = field(default_factory=dict)


def member_from_row(row: Dict[str, Any]) -> Member:
    """Build a Member from a snake_case database row (None -> '')."""
    values = {k: clean_text(row.get(k)) for k in MEMBER_FIELDS}
    extra = {k: v for k, v in row.items() if k not in MEMBER_FIELDS}
    return Member(
        id=values["id"],
        registration_number=values["registration_number"],
        sex=values["sex"] or MASCULINO,
        role=values["role"],
        full_name=values["full_name"],
        cpf=values["cpf"],
        congregation=values["congregation"],
        status=values["status"] or DEFAULT_STATUS,
        extra=extra,
    )


def member_to_row(member: Member, user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Convert a Member back into a database row.
    Empty strings are sent as NULL; `id` is left out for records not saved yet.
    """
    row: Dict[str, Any] = {k: v for k, v in member.extra.items() if k not in READ_ONLY_COLUMNS}
    for name in MEMBER_FIELDS:
        value = getattr(member, name)
        row[name] = value if value else None
    if not member.id:
        row.pop("id", None)
    if user_id:
        row["user_id"] = user_id
    return row


def roster_numbers(members: Iterable[Member]) -> List[str]:
    return [m.registration_number for m in members]


def registration_sort_key(value) -> tuple:
    return natural_key(value)


def sort_by_registration(members: Iterable[Member]) -> List[Member]:
    return sorted(members, key=lambda m: registration_sort_key(m.registration_number))


def search_members(members: Iterable[Member], term: str) -> List[Member]:
    """Case-insensitive match on name, CPF or registration number."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(members)
    return [
        m
        for m in members
        if needle in m.full_name.lower()
        or needle in m.cpf.lower()
        or needle in m.registration_number.lower()
    ]


def member_stats(members: Iterable[Member]) -> Dict[str, Any]:
    members = list(members)
    by_status = Counter(m.status.upper() for m in members)
    return {
        "total": len(members),
        "ativo": by_status.get("ATIVO", 0),
        "inativo": by_status.get("INATIVO", 0),
        "desligado": by_status.get("DESLIGADO", 0),
        "by_role": Counter(m.role for m in members),
        "by_status": Counter(m.status for m in members),
        "by_congregation": Counter(m.congregation for m in members),
    }
