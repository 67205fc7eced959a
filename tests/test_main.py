# tests/test_main.py
from typer.testing import CliRunner

from main import app

runner = CliRunner()


def test_templates_lists_catalog():
    result = runner.invoke(app, ["templates"])
    assert result.exit_code == 0
    assert "@cos" in result.output
    assert "@cto" in result.output


def test_suggest_gaps():
    result = runner.invoke(app, ["suggest-gaps", "seed"])
    assert result.exit_code == 0
    assert "growth, finance, product" in result.output


def test_suggest_gaps_rejects_unknown_stage():
    result = runner.invoke(app, ["suggest-gaps", "unicorn"])
    assert result.exit_code != 0


def test_generate_uses_suggested_gaps_by_default():
    result = runner.invoke(app, ["generate", "--stage", "idea"])
    assert result.exit_code == 0
    assert "(@cos)" in result.output
    assert "(@product)" in result.output
    assert "(@cto)" in result.output
    assert "(@growth)" not in result.output


def test_generate_with_explicit_gaps():
    result = runner.invoke(app, ["generate", "-s", "seed", "-g", "legal"])
    assert result.exit_code == 0
    assert "(@legal)" in result.output
    assert "(@finance)" not in result.output


def test_route_mention():
    result = runner.invoke(app, ["route", "@growth what channels should we try"])
    assert result.exit_code == 0
    assert "(@growth) via mention" in result.output
    assert "User content: what channels should we try" in result.output


def test_route_default():
    result = runner.invoke(app, ["route", "hello"])
    assert result.exit_code == 0
    assert "(@cos) via default" in result.output


def test_route_with_sqlite_database(tmp_path):
    db_path = str(tmp_path / "personas.db")
    first = runner.invoke(app, ["route", "what is our burn rate now", "--db", db_path])
    assert first.exit_code == 0
    assert "(@finance) via intent, confidence 0.20" in first.output

    # The second run reuses the seeded database.
    second = runner.invoke(app, ["route", "@legal hi", "--db", db_path])
    assert second.exit_code == 0
    assert "(@legal) via mention" in second.output


def test_route_missing_default_exits_with_error(tmp_path):
    db_path = str(tmp_path / "personas.db")
    runner.invoke(app, ["route", "hello", "--db", db_path])

    from persona_dispatch.database.persona_store import SqlitePersonaStore

    store = SqlitePersonaStore(db_path)
    store.update_persona("chief-of-staff", {"is_default": False})
    store.close()

    result = runner.invoke(app, ["route", "hello", "--db", db_path])
    assert result.exit_code == 1
    assert "MISSING_DEFAULT_PERSONA" in result.output
