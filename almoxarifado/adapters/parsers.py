"""
Regras de coerção de valores persistidos ou importados.

Este módulo concentra, em um só lugar, a conversão de valores "soltos"
(vindos do SQLite, de planilhas ou de prompts) para os tipos do domínio.
O armazenamento original gravava flags como ``"TRUE"``/``true``/``1`` e
números como texto; todas essas variações são resolvidas aqui e em
nenhum outro ponto do código.

Regras:
    - booleanos: ``1/true/t/sim/s/y/yes`` → True; ``0/false/f/nao/não/n/no``
      e vazio → False; qualquer outro valor é erro.
    - números: aceitam vírgula ou ponto decimal; vazio é erro.
    - datas/horas: ISO 8601 (com ou sem fuso) ou ``DD/MM/AAAA``; valores
      sem fuso são tratados como UTC.
    - enums: pelo valor persistido (``ENTRADA``) ou pelo nome (``ENTRY``),
      sem diferenciar maiúsculas.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Tuple, Type, TypeVar

E = TypeVar("E", bound=Enum)

_NUM_RE = re.compile(r"[-+]?\d+(?:[.,]\d+)?")

_TRUE = {"1", "true", "t", "sim", "s", "y", "yes"}
_FALSE = {"0", "false", "f", "nao", "não", "n", "no", ""}


def normalize_str(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def to_bool(val: Any) -> bool:
    """Converte flags persistidas (``"TRUE"``, ``1``, ``"sim"``...) para bool."""
    if val is None:
        return False
    if isinstance(val, bool):
        return val
    if isinstance(val, (int, float)):
        if val in (0, 1):
            return bool(val)
        raise ValueError(f"flag inválida: {val!r}")
    s = str(val).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ValueError(f"flag inválida: {val!r}")


def to_float(val: Any) -> float:
    """Converte números persistidos como texto (``"12,50"``) para float."""
    if isinstance(val, bool):
        raise ValueError(f"número inválido: {val!r}")
    if isinstance(val, (int, float)):
        return float(val)
    s = normalize_str(val)
    if s is None:
        raise ValueError("número vazio")
    return float(s.replace(",", "."))


def to_datetime(val: Any) -> datetime:
    """Converte timestamps para ``datetime`` com fuso (UTC quando ausente)."""
    if isinstance(val, datetime):
        dt = val
    else:
        s = normalize_str(val)
        if s is None:
            raise ValueError("data vazia")
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            dt = datetime.strptime(s, "%d/%m/%Y")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_enum(enum_cls: Type[E], val: Any) -> E:
    """Resolve um enum pelo valor persistido ou pelo nome."""
    if isinstance(val, enum_cls):
        return val
    s = (normalize_str(val) or "").upper()
    for member in enum_cls:
        if s == str(member.value).upper() or s == member.name:
            return member
    raise ValueError(f"{enum_cls.__name__} inválido: {val!r}")


def to_iso(dt: datetime) -> str:
    """Formato canônico de gravação de timestamps."""
    return dt.astimezone(timezone.utc).isoformat()


def parse_quantidade_raw(txt: Any) -> Tuple[Optional[float], Optional[str], Optional[str]]:
    """Interpreta uma string de quantidade com unidade.

    A string de entrada geralmente segue o padrão "<valor> <unidade> - <descrição>".
    O valor pode usar vírgula ou ponto como separador decimal. A unidade
    é a segunda palavra antes do hífen (se houver), em maiúsculas.

    Exemplos:
        "20 RESMA - Resmas"  → (20.0, "RESMA", "Resmas")
        "5,5 kg - quilos"    → (5.5, "KG", "quilos")
        "12"                 → (12.0, None, None)
    """
    if txt is None:
        return None, None, None
    s = str(txt).strip()
    if not s:
        return None, None, None
    head, desc = (s.split("-", 1) + [""])[:2]
    head = head.strip()
    desc = desc.strip() or None
    parts = head.split()
    num = None
    unidade = None
    if parts:
        m = _NUM_RE.search(parts[0])
        if m:
            num = float(m.group(0).replace(",", "."))
    if len(parts) >= 2:
        unidade = parts[1].strip().upper() or None
    return num, unidade, desc
