# almoxarifado/adapters/planilha_loader.py
"""
Loader de planilhas (XLSX) com os itens de uma Nota de Empenho.

Essas funções:
- leem planilhas XLSX usando pandas;
- normalizam cabeçalhos (acentos, variações, sinônimos);
- retornam listas de dicionários com as chaves esperadas por
  ``almoxarifado.usecases.registrar_entrada.itens_from_rows``.

Observações:
- Não realizam parsing de quantidade. O campo é preservado como `quantidade_raw`.
- Valores numéricos são mantidos como texto; a coerção acontece em
  ``almoxarifado.adapters.parsers``.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List

import pandas as pd


# ---------------------------
# utilitários de normalização
# ---------------------------

def _slug(s: str) -> str:
    """Normaliza cabeçalhos: minúsculas, sem acentos, sem não-alfanumérico."""
    if s is None:
        return ""
    s = str(s).strip().lower()
    acentos = dict(zip("áàâãäéèêëíìîïóòôõöúùûüç", "aaaaaeeeeiiiiooooouuuuc"))
    s = "".join(acentos.get(ch, ch) for ch in s)
    s = re.sub(r"[^a-z0-9]+", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def _safe_get(row, key):
    """Lê um valor da linha do pandas, tratando NA como None."""
    val = row.get(key)
    if val is None or pd.isna(val):
        return None
    s = str(val).strip()
    return s or None


_ALIASES = {
    "produto": "produto",
    "item": "produto",
    "nome": "produto",
    "descricao": "produto",
    "nome do produto": "produto",

    "quantidade": "quantidade_raw",
    "qtde": "quantidade_raw",
    "qtd": "quantidade_raw",
    "quantidade inicial": "quantidade_raw",

    "unidade": "unidade",
    "un": "unidade",
    "und": "unidade",

    "valor unitario": "valor_unitario",
    "valor": "valor_unitario",
    "preco": "valor_unitario",
    "preco unitario": "valor_unitario",

    "estoque minimo": "estoque_minimo",
    "minimo": "estoque_minimo",
    "qtd minima": "estoque_minimo",

    "qtd por embalagem": "qtd_por_embalagem",
    "quantidade por embalagem": "qtd_por_embalagem",
    "embalagem": "qtd_por_embalagem",
}


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Renomeia colunas com base em sinônimos/variações."""
    new_cols = {}
    for col in df.columns:
        key = _slug(col)
        new_cols[col] = _ALIASES.get(key, key)  # se não houver alias, mantém slug
    return df.rename(columns=new_cols)


# ---------------------------
# loader público (XLSX)
# ---------------------------

def load_itens_from_xlsx(path: str) -> List[Dict[str, Any]]:
    """Lê XLSX de itens de NE.

    Campos de saída (chaves do dict por linha):
      - produto: str | None
      - quantidade_raw: str | None  (ex.: "20" ou "20 RESMA")
      - unidade: str | None
      - valor_unitario: str | None
      - estoque_minimo: str | None
      - qtd_por_embalagem: str | None
    """
    df = pd.read_excel(path, dtype="string")
    df = _normalize_columns(df)
    out: List[Dict[str, Any]] = []
    for _, row in df.iterrows():
        out.append({
            "produto": _safe_get(row, "produto"),
            "quantidade_raw": _safe_get(row, "quantidade_raw"),
            "unidade": _safe_get(row, "unidade"),
            "valor_unitario": _safe_get(row, "valor_unitario"),
            "estoque_minimo": _safe_get(row, "estoque_minimo"),
            "qtd_por_embalagem": _safe_get(row, "qtd_por_embalagem"),
        })
    return out
