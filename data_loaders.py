"""
Roster loading and the Supabase `members` client.

Important: Keep imports light at module import time.
We import pandas/requests only inside functions.
"""

import random
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from config import (
    HTTP_MAX_ATTEMPTS,
    HTTP_TIMEOUT_S,
    MEMBERS_TABLE,
    NOT_AUTHENTICATED_MESSAGE,
    USER_AGENT,
    supabase_settings,
)
from members import MEMBER_FIELDS, Member, member_from_row, member_to_row, roster_numbers
from registry import DuplicateRegistrationError, is_duplicate_registration_error, reallocate_registration
from utils import clean_text

# Canonical field -> (exact header candidates, substring groups)
ROSTER_COLUMNS = {
    "id": (("id",), ()),
    "registration_number": (
        ("registration_number", "Matrícula", "Matricula", "Registration Number"),
        (("registration",), ("matr",)),
    ),
    "full_name": (("full_name", "Nome Completo", "Nome", "Full Name"), (("full", "name"), ("nome", "completo"))),
    "sex": (("sex", "Sexo"), ()),
    "role": (("role", "Cargo"), ()),
    "cpf": (("cpf", "CPF"), ()),
    "congregation": (("congregation", "Congregação", "Congregacao"), (("congrega",),)),
    "status": (("status", "Situação", "Situacao"), ()),
}

_TRANSIENT_STATUSES = (429, 500, 502, 503)


def _find_column(df: Any, exact: Optional[str], *subs) -> Optional[str]:
    """Find column by exact name or by substrings (all must match, case-insensitive)."""
    df_cols = [str(c).strip() for c in df.columns]
    if exact and exact in df_cols:
        return exact
    low = exact.lower() if exact else ""
    for c in df.columns:
        cs = str(c).strip()
        if exact and cs.lower() == low:
            return c
        if subs and all(s.lower() in cs.lower() for s in subs):
            return c
    return None


def _locate(df: Any, field: str) -> Optional[str]:
    exacts, groups = ROSTER_COLUMNS[field]
    for name in exacts:
        col = _find_column(df, name)
        if col:
            return col
    for group in groups:
        col = _find_column(df, None, *group)
        if col:
            return col
    return None


def _backoff(attempt: int) -> float:
    return min(6.0, 0.6 * (2**attempt) + random.random() * 0.25)


def load_roster_dataframe(path: str, sheet: str = "Sheet1") -> Any:
    """
    Load a roster export (CSV or Excel) of the members table into a DataFrame.

    Known columns are renamed to their database names (registration_number,
    full_name, sex, role, cpf, congregation, status, id); any other column is kept
    as-is after them. Values are read as text so '042' stays '042'.
    """
    import pandas as pd

    p = Path(path)
    if p.suffix.lower() in (".xlsx", ".xls"):
        try:
            df = pd.read_excel(path, sheet_name=sheet, dtype=str)
        except ImportError as e:
            if "openpyxl" in str(e).lower():
                raise ImportError(
                    "Reading Excel requires openpyxl. Install it with:\n  pip install openpyxl"
                ) from e
            raise
    else:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)

    df.columns = [str(c).strip() for c in df.columns]
    found = {field: _locate(df, field) for field in ROSTER_COLUMNS}
    if not found["registration_number"]:
        raise ValueError(
            "Could not find a registration number column in the roster. "
            "Expected something like 'registration_number' or 'Matrícula'. "
            f"Columns: {list(df.columns)}"
        )

    df = df.rename(columns={col: field for field, col in found.items() if col and col != field})
    for field in ROSTER_COLUMNS:
        if field not in df.columns:
            df[field] = ""
    df = df.fillna("")
    for field in ROSTER_COLUMNS:
        df[field] = df[field].map(clean_text)

    total_rows = len(df)
    named = df["full_name"] != ""
    out = df[named]
    ordered = list(MEMBER_FIELDS) + [c for c in out.columns if c not in MEMBER_FIELDS]
    out = out[ordered].reset_index(drop=True)
    out.attrs["load_stats"] = {
        "source_rows": total_rows,
        "loaded_rows": len(out),
        "skipped_missing_name": total_rows - len(out),
        "missing_registration_number": int((out["registration_number"] == "").sum()),
    }
    return out


def load_roster(path: str, sheet: str = "Sheet1") -> List[Member]:
    df = load_roster_dataframe(path, sheet=sheet)
    return [member_from_row(row) for row in df.to_dict("records")]


def members_dataframe(members: Iterable[Member]) -> Any:
    """Members as a DataFrame with the typed fields as columns."""
    import pandas as pd

    rows = [{name: getattr(m, name) for name in MEMBER_FIELDS} for m in members]
    return pd.DataFrame(rows, columns=list(MEMBER_FIELDS))


class SupabaseMembers:
    """
    CRUD on the Supabase `members` table through its REST (PostgREST) endpoint.

    Every call needs the access token of a signed-in user; row-level security in
    the database decides what that user may read or change.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        access_token: Optional[str] = None,
        *,
        timeout_s: int = HTTP_TIMEOUT_S,
        max_attempts: int = HTTP_MAX_ATTEMPTS,
    ):
        self.url = (url or "").strip().rstrip("/")
        self.api_key = (api_key or "").strip()
        if not self.url or not self.api_key:
            raise ValueError("Supabase requires url and api_key.")
        self.access_token = (access_token or "").strip() or None
        self.timeout_s = timeout_s
        self.max_attempts = max_attempts
        self.endpoint = f"{self.url}/rest/v1/{MEMBERS_TABLE}"

    @classmethod
    def from_env(cls, **kwargs) -> "SupabaseMembers":
        return cls(**supabase_settings(), **kwargs)

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
            "User-Agent": USER_AGENT,
        }

    def _call(self, method: str, *, params: Optional[dict] = None, body: Optional[dict] = None):
        import requests

        if not self.access_token:
            raise PermissionError(NOT_AUTHENTICATED_MESSAGE)

        # Only reads are retried: a write may have committed before the error reached us.
        attempts = max(1, int(self.max_attempts)) if method == "GET" else 1
        last_exc: Optional[Exception] = None
        last_resp = None
        for attempt in range(attempts):
            final = attempt == attempts - 1
            try:
                resp = requests.request(
                    method,
                    self.endpoint,
                    params=params,
                    headers=self._headers(),
                    json=body,
                    timeout=(10, max(10, int(self.timeout_s))),
                )
                last_resp = resp
                if resp.status_code in _TRANSIENT_STATUSES and not final:
                    time.sleep(_backoff(attempt))
                    continue
                break
            except requests.RequestException as e:
                last_exc = e
                last_resp = None
                if final:
                    break
                time.sleep(_backoff(attempt))
        if last_resp is None:
            if method != "GET":
                raise RuntimeError(
                    f"Supabase {method} failed without a response: {last_exc}. "
                    "The change may or may not have been saved; reload the members before trying again."
                ) from last_exc
            raise RuntimeError(f"Supabase request failed after retries: {last_exc}") from last_exc
        self._check(last_resp, method)
        return last_resp

    def _check(self, resp, method: str) -> None:
        if 200 <= resp.status_code < 300:
            return
        text = resp.text or ""
        if is_duplicate_registration_error(text):
            raise DuplicateRegistrationError(text[:500])
        if resp.status_code == 401:
            raise PermissionError(NOT_AUTHENTICATED_MESSAGE)
        if resp.status_code == 403:
            raise PermissionError(
                "Supabase denied access (403). Check the access token and row-level security policies."
            )
        ct = (resp.headers.get("Content-Type") or "").split(";")[0].strip() or "unknown"
        cl = len(resp.content or b"")
        raise RuntimeError(
            f"Supabase {method} {self.endpoint} failed "
            f"(status: {resp.status_code}, content-type: {ct}, content-length: {cl}). "
            f"Body (first 500 chars): {text[:500]}"
        )

    @staticmethod
    def _rows(resp) -> List[dict]:
        data = resp.json()
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise RuntimeError(f"Unexpected Supabase response type: {type(data).__name__}")
        return data

    def _single(self, resp) -> Member:
        rows = self._rows(resp)
        if not rows:
            raise RuntimeError("Supabase returned no row for the saved member.")
        return member_from_row(rows[0])

    def list_members(self) -> List[Member]:
        resp = self._call("GET", params={"select": "*", "order": "full_name.asc"})
        return [member_from_row(r) for r in self._rows(resp)]

    def create_member(self, member: Member, user_id: Optional[str] = None) -> Member:
        resp = self._call("POST", body=member_to_row(member, user_id))
        return self._single(resp)

    def update_member(self, member: Member, user_id: Optional[str] = None) -> Member:
        if not member.id:
            raise ValueError("ID do membro é obrigatório para update.")
        row = member_to_row(member, user_id)
        row.pop("id", None)
        resp = self._call("PATCH", params={"id": f"eq.{member.id}"}, body=row)
        return self._single(resp)

    def delete_member(self, member_id: str) -> None:
        if not member_id:
            raise ValueError("ID do membro é obrigatório para excluir.")
        self._call("DELETE", params={"id": f"eq.{member_id}"})


def create_member_with_fresh_number(
    client: SupabaseMembers,
    member: Member,
    user_id: Optional[str] = None,
    attempts: int = 2,
) -> Member:
    """
    Create `member` under the next free registration number.

    A duplicate-number rejection means someone else took the number meanwhile:
    re-read the roster, allocate again and retry, up to `attempts` times.
    """
    last_error: Optional[DuplicateRegistrationError] = None
    for _ in range(max(1, int(attempts))):
        candidate = reallocate_registration(member, roster_numbers(client.list_members()))
        try:
            return client.create_member(candidate, user_id)
        except DuplicateRegistrationError as e:
            last_error = e
    raise last_error
