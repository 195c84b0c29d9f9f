import pytest

from almoxarifado.domain.errors import InvalidReversalError, StorageError
from almoxarifado.domain.models import MovementKind
from almoxarifado.infra.db import connect
from almoxarifado.infra.migrations import apply_migrations
from almoxarifado.infra.repositories import ParamsRepo, SqliteLedgerStore


@pytest.fixture
def store(db_path):
    apply_migrations(db_path)
    with connect(db_path) as c:
        c.execute("INSERT INTO nota_empenho (id, fornecedor, data, status, valor_total) "
                  "VALUES ('NE-1', 'Papelaria', '2025-01-10', 'ABERTA', '200,00')")
        c.execute("INSERT INTO lote (id, ne_id, produto, unidade, qtd_por_embalagem, valor_unitario, "
                  "qtd_inicial, saldo_atual, estoque_minimo, criado_em) VALUES "
                  "('L1', 'NE-1', 'Papel A4', 'RESMA', NULL, '10,0', '20', '12', '5', '10/01/2025')")
        c.execute("INSERT INTO movimento (id, data, tipo, ne_id, lote_id, produto, quantidade, valor, "
                  "usuario_email, observacao, estornado) VALUES "
                  "('MOV-1', '2025-01-11T09:00:00Z', 'SAIDA', 'NE-1', 'L1', 'Papel A4', 8, 80, "
                  "'op@orgao.gov.br', '', 'TRUE')")
        c.execute("INSERT INTO usuario (email, nome, papel, ativo) VALUES ('op@orgao.gov.br', 'Op', 'OPERADOR', 'sim')")
    return SqliteLedgerStore(db_path)


def test_load_all_coerces_legacy_values(store):
    snap = store.load_all()
    (lot,) = snap.lots
    assert lot.unit_value == 10.0
    assert lot.current_balance == 12.0
    assert lot.qty_per_package == 1.0
    assert lot.created_at.year == 2025 and lot.created_at.tzinfo is not None
    (mov,) = snap.movements
    assert mov.kind is MovementKind.EXIT
    assert mov.is_reversed is True
    assert mov.note is None
    assert snap.users[0].active is True
    assert snap.documents[0].total_value == 200.0


def test_invalid_persisted_value_is_storage_error(store, db_path):
    with connect(db_path) as c:
        c.execute("UPDATE usuario SET ativo = 'talvez'")
    with pytest.raises(StorageError):
        store.load_all()


def test_set_movement_reversed_only_once(store, db_path):
    with connect(db_path) as c:
        c.execute("UPDATE movimento SET estornado = 0")
    store.set_movement_reversed("MOV-1")
    with pytest.raises(InvalidReversalError):
        store.set_movement_reversed("MOV-1")


def test_set_balance_of_unknown_lot(store):
    with pytest.raises(StorageError):
        store.set_lot_balance("L-X", 1)


def test_transaction_rolls_back_on_error(store):
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.set_lot_balance("L1", 0)
            raise RuntimeError("falha")
    assert store.get_lot("L1").current_balance == 12.0


def test_nested_transaction_reuses_connection(store):
    with store.transaction():
        with store.transaction():
            store.set_lot_balance("L1", 3)
        assert store.get_lot("L1").current_balance == 3
    assert store.get_lot("L1").current_balance == 3


def test_check_constraint_becomes_storage_error(store):
    with pytest.raises(StorageError):
        store.set_lot_balance("L1", 25)


def test_params_repo(db_path):
    apply_migrations(db_path)
    repo = ParamsRepo(db_path)
    repo.set_many([("usuario_atual", "a@b.c"), ("limite", "2,5")])
    repo.set_many([("usuario_atual", "x@y.z")])
    assert repo.get("usuario_atual") == "x@y.z"
    assert repo.get_float("limite", 0.0) == 2.5
    assert repo.get_float("ausente", 7.0) == 7.0
    assert repo.get_all() == {"limite": "2,5", "usuario_atual": "x@y.z"}


def test_migrations_are_idempotent(db_path):
    apply_migrations(db_path)
    apply_migrations(db_path)
    with connect(db_path) as c:
        assert c.execute("PRAGMA user_version;").fetchone()[0] == 2
        cols = [r[1] for r in c.execute("PRAGMA table_info(movimento);")]
    assert "estorno_de" in cols
