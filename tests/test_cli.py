from pathlib import Path

from typer.testing import CliRunner

from almoxarifado.adapters.cli import app
from almoxarifado.domain.models import MovementKind
from almoxarifado.infra.repositories import SqliteLedgerStore

runner = CliRunner()


def _invoke(db_path, *args, input=None):
    return runner.invoke(app, [*args, "--db", str(db_path)], input=input)


def _seed(db_path):
    r = _invoke(db_path, "usuarios", "salvar", "admin@orgao.gov.br", "--nome", "Admin", "--papel", "ADMIN")
    assert r.exit_code == 0, r.output
    r = _invoke(db_path, "ne", "registrar", "NE-1", "--fornecedor", "Papelaria Central", "--data", "2025-03-10",
                "--item", "Papel A4;20;10", "--item", "Caneta;100;1,5;UN;10")
    assert r.exit_code == 0, r.output


def test_cli_migrate_and_params(tmp_path: Path):
    db_path = tmp_path / "almox.sqlite"
    result = _invoke(db_path, "migrate")
    assert result.exit_code == 0, result.output

    result = _invoke(db_path, "params", "set", "limite", "10")
    assert result.exit_code == 0, result.output
    result = _invoke(db_path, "params", "get", "limite")
    assert result.exit_code == 0
    assert result.stdout.strip() == "10"

    result = _invoke(db_path, "params", "get", "inexistente")
    assert result.stdout.strip() == "(None)"

    result = _invoke(db_path, "params", "show")
    assert result.exit_code == 0, result.output


def test_cli_register_distribute_and_reverse(tmp_path: Path):
    db_path = tmp_path / "almox.sqlite"
    _seed(db_path)

    result = _invoke(db_path, "estoque")
    assert result.exit_code == 0, result.output
    result = _invoke(db_path, "lotes")
    assert result.exit_code == 0, result.output

    result = _invoke(db_path, "distribuir", "--item", "Papel A4;12", "--nota", "Compras", "--yes")
    assert result.exit_code == 0, result.output
    assert "1 saída(s) registradas" in result.stdout

    store = SqliteLedgerStore(str(db_path))
    snap = store.load_all()
    (saida,) = [m for m in snap.movements if m.kind is MovementKind.EXIT]
    assert saida.quantity == 12 and saida.actor_email == "admin@orgao.gov.br"

    result = _invoke(db_path, "estornar", saida.id, "--yes")
    assert result.exit_code == 0, result.output
    assert store.get_movement(saida.id).is_reversed

    result = _invoke(db_path, "estornar", saida.id, "--yes")
    assert result.exit_code == 1
    assert "INVALID_REVERSAL" in result.stdout

    for args in (("rel", "dashboard"), ("rel", "movimentos", "--tipo", "SAIDA"), ("rel", "estoque-baixo")):
        result = _invoke(db_path, *args)
        assert result.exit_code == 0, result.output


def test_cli_distribution_can_be_cancelled(tmp_path: Path):
    db_path = tmp_path / "almox.sqlite"
    _seed(db_path)
    result = _invoke(db_path, "distribuir", "--item", "Caneta;5", input="n\n")
    assert result.exit_code == 0
    assert "Cancelado." in result.stdout
    snap = SqliteLedgerStore(str(db_path)).load_all()
    assert not [m for m in snap.movements if m.kind is MovementKind.EXIT]


def test_cli_insufficient_stock_exits_with_error(tmp_path: Path):
    db_path = tmp_path / "almox.sqlite"
    _seed(db_path)
    result = _invoke(db_path, "distribuir", "--item", "Papel A4;50", "--yes")
    assert result.exit_code == 1
    snap = SqliteLedgerStore(str(db_path)).load_all()
    assert {lot.current_balance for lot in snap.lots} == {20.0, 100.0}


def test_cli_operator_cannot_register(tmp_path: Path):
    db_path = tmp_path / "almox.sqlite"
    _seed(db_path)
    assert _invoke(db_path, "usuarios", "salvar", "op@orgao.gov.br", "--nome", "Op", "--papel", "OPERADOR").exit_code == 0
    result = _invoke(db_path, "usuarios", "usar", "op@orgao.gov.br")
    assert result.exit_code == 0, result.output

    result = _invoke(db_path, "usuarios", "atual")
    assert result.stdout.strip() == "op@orgao.gov.br (OPERADOR)"

    result = _invoke(db_path, "ne", "registrar", "NE-2", "--fornecedor", "X", "--item", "Clips;1;1")
    assert result.exit_code == 1
    assert "UNAUTHORIZED" in result.stdout


def test_cli_invalid_inputs(tmp_path: Path):
    db_path = tmp_path / "almox.sqlite"
    _seed(db_path)
    assert _invoke(db_path, "distribuir", "--item", "semquantidade", "--yes").exit_code == 1
    assert _invoke(db_path, "rel", "movimentos", "--tipo", "TROCA").exit_code == 1
    assert _invoke(db_path, "usuarios", "salvar", "x@y.z", "--nome", "X", "--papel", "CHEFE").exit_code == 1
    assert _invoke(db_path, "usuarios", "desativar", "ninguem@y.z").exit_code == 1
