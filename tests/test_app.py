import tempfile

import pytest

import app
import data_loaders
from members import Member


def _roster(content: str) -> str:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".csv", delete=False, encoding="utf-8") as tmp:
        tmp.write(content)
        return tmp.name


ROSTER = (
    "registration_number,full_name,sex,role,congregation,status\n"
    "1,Ana Souza,Feminino,Membro,SEDE,ATIVO\n"
    "2,Bruno Lima,Masculino,Pastor,PEDRA 90,INATIVO\n"
    "10-PRE,Carlos Dias,Masculino,Presidente,SEDE,ATIVO\n"
)


def test_next_number(capsys):
    assert app.main(["next-number", _roster(ROSTER)]) == 0
    assert capsys.readouterr().out.strip() == "11"


def test_normalize(capsys):
    assert app.main(["normalize", "--sex", "Feminino", "--role", "1° Secretário", "--registration", "7"]) == 0
    assert capsys.readouterr().out.strip() == "1° Secretária\t7-SEC"


def test_audit_clean_roster(capsys):
    assert app.main(["audit", _roster(ROSTER)]) == 0
    assert "0 issue(s)" in capsys.readouterr().out


def test_audit_flags_duplicate_base(capsys):
    path = _roster(ROSTER + "10,Dora,Feminino,Membro,SEDE,ATIVO\n")
    assert app.main(["audit", path]) == 1
    out = capsys.readouterr().out
    assert "duplicate_base" in out


def test_search(capsys):
    assert app.main(["search", _roster(ROSTER), "lima"]) == 0
    out = capsys.readouterr().out
    assert "Bruno Lima" in out
    assert "Ana Souza" not in out


def test_stats(capsys):
    assert app.main(["stats", _roster(ROSTER)]) == 0
    out = capsys.readouterr().out
    assert "Total: 3" in out
    assert "Ativos: 2" in out


def test_missing_roster_exits(capsys):
    with pytest.raises(SystemExit) as exc:
        app.main(["next-number", "/nonexistent/roster.csv"])
    assert exc.value.code == 1


def test_add_requires_supabase_env(monkeypatch, capsys):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
    assert app.main(["add", "--name", "Ana"]) == 1
    assert "SUPABASE_URL" in capsys.readouterr().out


def test_add_creates_member(monkeypatch, capsys):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("SUPABASE_ACCESS_TOKEN", "token")
    seen = {}

    def fake_create(client, member, user_id=None, attempts=2):
        seen["member"] = member
        return Member(registration_number="12-TES", full_name=member.full_name, role=member.role)

    monkeypatch.setattr(data_loaders, "create_member_with_fresh_number", fake_create)
    code = app.main(["add", "--name", "Ana", "--sex", "Feminino", "--role", "1° Tesoureiro"])
    assert code == 0
    assert seen["member"].role == "1° Tesoureira"
    assert "Created member 12-TES: Ana" in capsys.readouterr().out
