import math

import pytest

from almoxarifado.domain.errors import ValidationError
from almoxarifado.domain.models import CommitmentDocument, DocumentStatus, LotItem, MovementKind
from almoxarifado.usecases.registrar_entrada import itens_from_rows

from conftest import registrar


def _doc(ne="NE-1"):
    return CommitmentDocument(id=ne, supplier="Papelaria Central", date="2025-03-10")


def test_register_document_with_two_items(svc):
    doc = svc.register_commitment_document(_doc(), [
        LotItem("Papel A4", 20, 10.0, unit="resma"),
        LotItem("Caneta", 100, 1.5, minimum_threshold=10),
    ])
    assert doc.status is DocumentStatus.OPEN
    assert doc.total_value == pytest.approx(350.0)

    lots = svc.list_lots()
    assert [x.product_name for x in lots] == ["Papel A4", "Caneta"]
    assert lots[0].unit == "RESMA"
    assert lots[0].id.endswith("-000") and lots[1].id.endswith("-001")
    assert lots[0].created_at == lots[1].created_at
    assert all(x.current_balance == x.initial_quantity for x in lots)
    assert svc.store.get_document("NE-1").total_value == pytest.approx(350.0)

    entradas = [m for m in svc.cache.snapshot().movements if m.kind is MovementKind.ENTRY]
    assert sorted(m.quantity for m in entradas) == [20, 100]


def test_duplicate_document_is_rejected(svc):
    registrar(svc, "NE-1", ("Papel A4", 20, 10.0))
    with pytest.raises(ValidationError):
        registrar(svc, "NE-1", ("Papel A4", 5, 10.0))
    assert len(svc.list_lots()) == 1
    svc.refresh()
    assert len(svc.cache.snapshot().movements) == 1


@pytest.mark.parametrize(
    "item",
    [
        LotItem("", 10, 1.0),
        LotItem("Clips", 0, 1.0),
        LotItem("Clips", 10, -1.0),
        LotItem("Clips", 10, 1.0, minimum_threshold=-1),
        LotItem("Clips", 10, 1.0, qty_per_package=0),
        LotItem("Clips", math.nan, 1.0),
        LotItem("Clips", 10, math.nan),
    ],
)
def test_invalid_item_rejected(svc, item):
    with pytest.raises(ValidationError):
        svc.register_commitment_document(_doc(), [LotItem("Papel A4", 20, 10.0), item])
    assert svc.list_lots() == []
    assert svc.store.get_document("NE-1") is None


def test_document_requires_items_and_supplier(svc):
    with pytest.raises(ValidationError):
        svc.register_commitment_document(_doc(), [])
    with pytest.raises(ValidationError):
        svc.register_commitment_document(
            CommitmentDocument(id="NE-1", supplier=" ", date="2025-03-10"), [LotItem("Clips", 1, 1.0)]
        )


def test_zero_unit_value_is_allowed(svc):
    (lot,) = registrar(svc, "NE-DOACAO", ("Cartolina", 30, 0.0))
    assert lot.unit_value == 0.0


def test_itens_from_rows():
    rows = [
        {"produto": "Papel A4", "quantidade_raw": "20 RESMA - Resmas", "valor_unitario": "10,50",
         "unidade": None, "estoque_minimo": None, "qtd_por_embalagem": "500"},
        {"produto": None, "quantidade_raw": "3"},
        {"produto": "Caneta", "quantidade_raw": "100", "valor_unitario": "1.5",
         "unidade": "CX", "estoque_minimo": "10", "qtd_por_embalagem": None},
    ]
    itens = itens_from_rows(rows)
    assert len(itens) == 2
    papel, caneta = itens
    assert (papel.initial_quantity, papel.unit, papel.unit_value) == (20.0, "RESMA", 10.5)
    assert papel.minimum_threshold == 5.0
    assert papel.qty_per_package == 500.0
    assert (caneta.unit, caneta.minimum_threshold, caneta.qty_per_package) == ("CX", 10.0, 1.0)


@pytest.mark.parametrize(
    "row",
    [
        {"produto": "Clips", "quantidade_raw": None, "valor_unitario": "1"},
        {"produto": "Clips", "quantidade_raw": "2", "valor_unitario": "abc"},
        {"produto": "Clips", "quantidade_raw": "2", "valor_unitario": None},
    ],
)
def test_itens_from_rows_invalid(row):
    with pytest.raises(ValidationError):
        itens_from_rows([row])


def test_each_lot_logged_once_as_entrada(svc, tmp_path, monkeypatch):
    from almoxarifado.infra import logger

    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)
    for nome in ("transaction", "entrada", "saida", "estorno", "database", "system"):
        monkeypatch.setattr(logger, f"{nome}_logger",
                            logger.setup_logger(f"almoxarifado.test_{nome}", str(tmp_path / f"{nome}.log")))

    svc.register_commitment_document(_doc(), [LotItem("Papel A4", 20, 10.0), LotItem("Caneta", 100, 1.5)])

    linhas = (tmp_path / "entrada.log").read_text(encoding="utf-8").splitlines()
    assert len(linhas) == 2
    assert all("ENTRADA_REGISTRAR_NE" in linha for linha in linhas)
