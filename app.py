#!/usr/bin/env python3
"""
Jardim de Oração Membership Registry
Allocates registration numbers, normalizes roles and audits member rosters.
Roster commands read a CSV or Excel export of the members table; `add` talks to Supabase.
"""

from __future__ import annotations

import sys
import time
from typing import List, Optional

from config import CONGREGATIONS, DEFAULT_CONGREGATION, DEFAULT_ROLE, MASCULINO, SEXES
from members import Member, member_stats, roster_numbers, search_members, sort_by_registration
from registry import (
    DuplicateRegistrationError,
    allocate_next_base,
    apply_identity_rules,
    audit_roster,
    normalize_member_fields,
)

_T0 = time.perf_counter()


def _log(msg: str) -> None:
    print(f"[registry] +{time.perf_counter() - _T0:.3f}s {msg}", flush=True)


def _load(path: str) -> List[Member]:
    from data_loaders import load_roster

    try:
        return load_roster(path)
    except (ValueError, ImportError, OSError) as e:
        print(f"Error reading roster {path}: {e}")
        sys.exit(1)


def cmd_next_number(args) -> int:
    members = _load(args.roster)
    print(allocate_next_base(roster_numbers(members)))
    return 0


def cmd_normalize(args) -> int:
    role, number = normalize_member_fields(args.sex, args.role, args.registration)
    print(f"{role}\t{number}")
    return 0


def cmd_audit(args) -> int:
    members = _load(args.roster)
    issues = audit_roster(members)
    print(f"Checked {len(members)} members: {len(issues)} issue(s)")
    for issue in issues:
        print(f"{issue.kind}\t{issue.registration_number or '-'}\t{issue.detail}")
    return 1 if issues else 0


def cmd_search(args) -> int:
    from data_loaders import members_dataframe

    found = sort_by_registration(search_members(_load(args.roster), args.term))
    if not found:
        print(f"No members match '{args.term}'")
        return 0
    df = members_dataframe(found)
    print(df[["registration_number", "full_name", "role", "congregation", "status"]].to_string(index=False))
    print(f"\n{len(found)} member(s)")
    return 0


def cmd_stats(args) -> int:
    stats = member_stats(_load(args.roster))
    print(f"Total: {stats['total']}")
    print(f"Ativos: {stats['ativo']}  Inativos: {stats['inativo']}  Desligados: {stats['desligado']}")
    for title, key in (("By role", "by_role"), ("By status", "by_status"), ("By congregation", "by_congregation")):
        print(f"\n{title}:")
        for name, count in stats[key].most_common():
            print(f"  {name or '-'}: {count}")
    return 0


def cmd_add(args) -> int:
    from data_loaders import SupabaseMembers, create_member_with_fresh_number

    name = (args.name or "").strip()
    if not name:
        print("Por favor, preencha o nome do membro.")
        return 1

    try:
        client = SupabaseMembers.from_env()
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    member = apply_identity_rules(
        Member(full_name=name, sex=args.sex, role=args.role, congregation=args.congregation)
    )
    _log(f"creating member '{name}' ({member.role})")
    try:
        saved = create_member_with_fresh_number(client, member, user_id=args.user_id, attempts=args.attempts)
    except DuplicateRegistrationError as e:
        print(str(e))
        return 1
    except (PermissionError, RuntimeError) as e:
        print(f"Error saving member: {e}")
        return 1
    _log("saved")
    print(f"Created member {saved.registration_number}: {saved.full_name}")
    return 0


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(description="Jardim de Oração membership registry tools")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("next-number", help="Print the next free registration number")
    p.add_argument("roster", help="Path to a CSV or Excel (.xlsx) export of the members table")
    p.set_defaults(func=cmd_next_number)

    p = sub.add_parser("normalize", help="Normalize a role and registration number")
    p.add_argument("--sex", choices=SEXES, default=MASCULINO)
    p.add_argument("--role", default=DEFAULT_ROLE)
    p.add_argument("--registration", default="", help="Current registration number (e.g. 7 or 7-SEC)")
    p.set_defaults(func=cmd_normalize)

    p = sub.add_parser("audit", help="Check a roster for duplicate or inconsistent registration numbers")
    p.add_argument("roster")
    p.set_defaults(func=cmd_audit)

    p = sub.add_parser("search", help="Search members by name, CPF or registration number")
    p.add_argument("roster")
    p.add_argument("term")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("stats", help="Member counts by status, role and congregation")
    p.add_argument("roster")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("add", help="Create a member in Supabase with the next free registration number")
    p.add_argument("--name", required=True)
    p.add_argument("--sex", choices=SEXES, default=MASCULINO)
    p.add_argument("--role", default=DEFAULT_ROLE)
    p.add_argument("--congregation", choices=CONGREGATIONS, default=DEFAULT_CONGREGATION)
    p.add_argument("--user-id", default=None, help="Recorded as the member's user_id (who registered)")
    p.add_argument("--attempts", type=int, default=2, help="Re-allocate and retry this many times on a duplicate number")
    p.set_defaults(func=cmd_add)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
