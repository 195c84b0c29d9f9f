from datetime import date

import pytest

from almoxarifado.domain.models import MovementKind
from almoxarifado.usecases.relatorios import (
    MovementFilters,
    tabela_estoque,
    tabela_estoque_baixo,
    tabela_lotes,
    tabela_movimentos,
)

from conftest import registrar


@pytest.fixture
def livro(svc):
    """NE-1: Papel A4 20@10 e Caneta 100@1,5; NE-2: Papel A4 15@12."""
    papel1, caneta = registrar(svc, "NE-1", ("Papel A4", 20, 10.0), ("Caneta", 100, 1.5))
    (papel2,) = registrar(svc, "NE-2", ("Papel A4", 15, 12.0))
    saidas = svc.commit_distribution(svc.plan_distribution("Papel A4", 25), "Setor de compras")
    (caneta_saida,) = svc.commit_distribution(svc.plan_distribution("Caneta", 98), "Protocolo")
    svc.reverse_exit(saidas[1].id)
    return {"papel1": papel1, "papel2": papel2, "caneta": caneta, "caneta_saida": caneta_saida}


def test_dashboard(svc, livro):
    d = svc.dashboard()
    # papel2 voltou a 15 (estorno), caneta 2, papel1 0
    assert d["valor_estoque"] == pytest.approx(15 * 12.0 + 2 * 1.5)
    assert d["lotes_ativos"] == 2
    # caneta (2) e papel1 (zerado) estão no ou abaixo do mínimo 5
    assert d["estoque_baixo"] == 2
    assert d["mes"] == "2025-03"
    assert d["saidas_mes"] == pytest.approx(200.0 + 147.0)
    assert d["mais_consumidos"] == [
        {"produto": "Caneta", "consumido": 98},
        {"produto": "Papel A4", "consumido": 20},
    ]


def test_consolidated_stock(svc, livro):
    rows = svc.consolidated_stock()
    assert [r["produto"] for r in rows] == ["Caneta", "Papel A4"]
    caneta, papel = rows
    assert papel["saldo_total"] == 15
    assert papel["lotes"] == 1
    assert papel["status"] == "OK"
    assert caneta["status"] == "BAIXO"
    columns, data, msg = tabela_estoque(rows)
    assert len(columns) == len(data[0]) and msg is None


def test_movement_report_totals_ignore_reversed(svc, livro):
    rep = svc.movement_report()
    t = rep["totais"]
    assert t["entradas_qtd"] == 135
    assert t["saidas_qtd"] == 20 + 98
    assert t["saidas_valor"] == pytest.approx(200.0 + 147.0)
    assert t["estornos"] == 1
    stamps = [m.timestamp for m in rep["movimentos"]]
    assert stamps == sorted(stamps, reverse=True)


def test_movement_report_filters(svc, livro):
    rep = svc.movement_report(MovementFilters(tipo=MovementKind.EXIT, texto="papel"))
    assert {m.kind for m in rep["movimentos"]} == {MovementKind.EXIT}
    assert len(rep["movimentos"]) == 2

    rep = svc.movement_report(MovementFilters(texto="PROTOCOLO"))
    assert [m.id for m in rep["movimentos"]] == [livro["caneta_saida"].id]

    assert svc.movement_report(MovementFilters(inicio=date(2025, 3, 11)))["movimentos"] == []
    rep = svc.movement_report(MovementFilters(inicio=date(2025, 3, 10), fim=date(2025, 3, 10)))
    assert len(rep["movimentos"]) == 3 + 3 + 1
    columns, data, _ = tabela_movimentos(rep)
    assert len(data) == 7 and len(columns) == len(data[0])


def test_low_stock(svc, livro):
    rows = svc.low_stock()
    assert [r["lote"] for r in rows] == [livro["caneta"].id]
    assert rows[0]["status"] == "BAIXO"

    rows = svc.low_stock(incluir_esgotados=True)
    assert [r["status"] for r in rows] == ["ESGOTADO", "BAIXO"]
    columns, data, msg = tabela_estoque_baixo(rows)
    assert data[0][0] == livro["papel1"].id


def test_empty_tables_have_message(svc):
    assert tabela_estoque(svc.consolidated_stock())[2] == "Nenhum produto com saldo."
    assert tabela_lotes(svc.cache.snapshot())[2] == "Nenhum lote cadastrado."
    assert svc.dashboard()["mais_consumidos"] == []
