import pandas as pd
import pytest

from almoxarifado.adapters.planilha_loader import _normalize_columns, load_itens_from_xlsx
from almoxarifado.domain.models import CommitmentDocument
from almoxarifado.usecases.registrar_entrada import itens_from_rows


def test_normalize_columns_aliases():
    df = pd.DataFrame({
        "Descrição": ["Papel A4"],
        "Qtde": ["20"],
        "Preço Unitário": ["10,00"],
        "Estoque Mínimo": ["3"],
        "Observação": ["x"],
    })
    cols = list(_normalize_columns(df).columns)
    assert cols == ["produto", "quantidade_raw", "valor_unitario", "estoque_minimo", "observacao"]


def test_load_itens_from_xlsx(tmp_path):
    path = tmp_path / "itens.xlsx"
    pd.DataFrame({
        "Produto": ["Papel A4", "Caneta Azul", None],
        "Quantidade": ["20 RESMA - Resmas", "100", "5"],
        "Valor Unitário": ["10,50", "1.5", "2"],
        "Unidade": [None, "UN", None],
    }).to_excel(path, index=False)

    rows = load_itens_from_xlsx(str(path))
    assert len(rows) == 3
    assert rows[0]["produto"] == "Papel A4"
    assert rows[0]["quantidade_raw"] == "20 RESMA - Resmas"
    assert rows[0]["unidade"] is None
    assert rows[2]["produto"] is None
    assert rows[0]["estoque_minimo"] is None

    itens = itens_from_rows(rows)
    assert [(i.product_name, i.initial_quantity, i.unit, i.unit_value) for i in itens] == [
        ("Papel A4", 20.0, "RESMA", 10.5),
        ("Caneta Azul", 100.0, "UN", 1.5),
    ]


def test_xlsx_registration_end_to_end(tmp_path, svc):
    path = tmp_path / "ne.xlsx"
    pd.DataFrame({"Item": ["Clips"], "Qtd": ["50 CX"], "Preço": ["0,80"]}).to_excel(path, index=False)
    doc = svc.register_commitment_document(
        CommitmentDocument(id="NE-XLSX", supplier="Papelaria", date="2025-03-10"),
        itens_from_rows(load_itens_from_xlsx(str(path))),
    )
    assert doc.total_value == pytest.approx(40.0)
    (lot,) = svc.list_lots()
    assert (lot.product_name, lot.unit, lot.current_balance) == ("Clips", "CX", 50.0)
