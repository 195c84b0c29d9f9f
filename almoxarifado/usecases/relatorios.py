# almoxarifado/usecases/relatorios.py
"""
Relatórios do almoxarifado, calculados sobre o ``LedgerSnapshot``:
- painel (valor em estoque, lotes, estoque baixo, saídas do mês, mais consumidos)
- estoque consolidado por produto
- movimentações com filtros e totais
- estoque baixo (lotes no ou abaixo do mínimo)

As funções ``tabela_*`` devolvem (colunas, linhas, mensagem) para exibição
no DataTable do Textual e nas tabelas rich da CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from almoxarifado.domain.models import LedgerSnapshot, MovementKind, MovementRecord
from almoxarifado.domain.policies import status_saldo
from almoxarifado.infra.logger import log_system_event

Tabela = Tuple[List[str], List[List[Any]], Optional[str]]


# ----------------------
# util
# ----------------------

def _ano_mes(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m")


def is_active(m: MovementRecord) -> bool:
    """Lançamento que conta nos totais: não é ESTORNO e não foi estornado."""
    return m.kind is not MovementKind.REVERSAL and not m.is_reversed


# ----------------------
# 1) Painel
# ----------------------

def dashboard(snapshot: LedgerSnapshot, now: datetime, top_n: int = 5) -> Dict[str, Any]:
    """Indicadores do painel.

    - valor_estoque: soma de saldo × valor unitário de todos os lotes
    - lotes_ativos: lotes com saldo > 0
    - estoque_baixo: lotes no ou abaixo do mínimo, inclusive os zerados
    - saidas_mes: valor das SAÍDAS não estornadas no mês de ``now``
    - mais_consumidos: ``top_n`` produtos por quantidade consumida
      (inicial − saldo), somada entre os lotes
    """
    mes = _ano_mes(now)
    valor_estoque = sum(lot.stock_value for lot in snapshot.lots)
    ativos = [lot for lot in snapshot.lots if lot.current_balance > 0]
    baixos = [lot for lot in snapshot.lots if lot.is_low]
    saidas_mes = sum(
        m.total_value
        for m in snapshot.movements
        if m.kind is MovementKind.EXIT and not m.is_reversed and _ano_mes(m.timestamp) == mes
    )

    consumo: Dict[str, float] = {}
    for lot in snapshot.lots:
        usado = lot.initial_quantity - lot.current_balance
        if usado > 0:
            consumo[lot.product_name] = consumo.get(lot.product_name, 0.0) + usado
    top = sorted(consumo.items(), key=lambda kv: (-kv[1], kv[0]))[: max(0, int(top_n))]

    out = {
        "valor_estoque": valor_estoque,
        "lotes_ativos": len(ativos),
        "estoque_baixo": len(baixos),
        "saidas_mes": saidas_mes,
        "mes": mes,
        "mais_consumidos": [{"produto": p, "consumido": q} for p, q in top],
    }
    log_system_event("relatorio_dashboard", {k: v for k, v in out.items() if k != "mais_consumidos"})
    return out


# ----------------------
# 2) Estoque consolidado
# ----------------------

def consolidated_stock(snapshot: LedgerSnapshot) -> List[Dict[str, Any]]:
    """Saldo por produto (apenas lotes com saldo > 0), em ordem alfabética.

    O status compara o saldo total com o maior estoque mínimo entre os lotes.
    """
    agg: Dict[str, Dict[str, Any]] = {}
    for lot in snapshot.lots:
        if lot.current_balance <= 0:
            continue
        it = agg.setdefault(lot.product_name, {
            "produto": lot.product_name,
            "unidade": lot.unit,
            "saldo_total": 0.0,
            "valor_total": 0.0,
            "lotes": 0,
            "estoque_minimo": 0.0,
        })
        it["saldo_total"] += lot.current_balance
        it["valor_total"] += lot.stock_value
        it["lotes"] += 1
        it["estoque_minimo"] = max(it["estoque_minimo"], lot.minimum_threshold)

    out = sorted(agg.values(), key=lambda r: r["produto"].lower())
    for r in out:
        r["status"] = status_saldo(r["saldo_total"], r["estoque_minimo"])
    log_system_event("relatorio_estoque", {"produtos": len(out)})
    return out


# ----------------------
# 3) Movimentações
# ----------------------

@dataclass
class MovementFilters:
    """Filtros do relatório de movimentações (todos opcionais).

    ``texto`` busca, sem diferenciar maiúsculas, em produto, lote, NE,
    responsável e observação. ``inicio``/``fim`` são inclusivos (datas UTC).
    """
    texto: Optional[str] = None
    tipo: Optional[MovementKind] = None
    inicio: Optional[date] = None
    fim: Optional[date] = None


def _matches(m: MovementRecord, f: MovementFilters) -> bool:
    if f.tipo is not None and m.kind is not f.tipo:
        return False
    dia = m.timestamp.astimezone(timezone.utc).date()
    if f.inicio is not None and dia < f.inicio:
        return False
    if f.fim is not None and dia > f.fim:
        return False
    if f.texto:
        alvo = " ".join(
            s for s in (m.product_name, m.lot_id, m.document_id, m.actor_email, m.note, m.id) if s
        ).lower()
        if f.texto.strip().lower() not in alvo:
            return False
    return True


def movement_report(snapshot: LedgerSnapshot, filters: Optional[MovementFilters] = None) -> Dict[str, Any]:
    """Movimentações filtradas (mais recentes primeiro) e totais.

    Os totais de ENTRADA e SAÍDA consideram apenas lançamentos ativos
    (ver ``is_active``); ESTORNOS são contados à parte.
    """
    f = filters or MovementFilters()
    movs = [m for m in snapshot.movements if _matches(m, f)]
    movs.sort(key=lambda m: (m.timestamp, m.id), reverse=True)

    totais = {
        "entradas_qtd": 0.0, "entradas_valor": 0.0,
        "saidas_qtd": 0.0, "saidas_valor": 0.0,
        "estornos": 0,
    }
    for m in movs:
        if m.kind is MovementKind.REVERSAL:
            totais["estornos"] += 1
        elif not is_active(m):
            continue
        elif m.kind is MovementKind.ENTRY:
            totais["entradas_qtd"] += m.quantity
            totais["entradas_valor"] += m.total_value
        else:
            totais["saidas_qtd"] += m.quantity
            totais["saidas_valor"] += m.total_value

    log_system_event("relatorio_movimentos", {
        "texto": f.texto,
        "tipo": f.tipo.value if f.tipo else None,
        "total": len(movs),
    })
    return {"movimentos": movs, "totais": totais}


# ----------------------
# 4) Estoque baixo
# ----------------------

def low_stock(snapshot: LedgerSnapshot, incluir_esgotados: bool = False) -> List[Dict[str, Any]]:
    """Lotes no ou abaixo do estoque mínimo, menor saldo primeiro.

    Lotes zerados ficam de fora, a menos que ``incluir_esgotados``.
    """
    out: List[Dict[str, Any]] = []
    for lot in snapshot.lots:
        status = status_saldo(lot.current_balance, lot.minimum_threshold)
        if status == "OK" or (status == "ESGOTADO" and not incluir_esgotados):
            continue
        out.append({
            "lote": lot.id,
            "ne": lot.document_id,
            "produto": lot.product_name,
            "unidade": lot.unit,
            "saldo": lot.current_balance,
            "estoque_minimo": lot.minimum_threshold,
            "status": status,
        })
    out.sort(key=lambda r: (r["saldo"], r["produto"].lower()))
    if out:
        log_system_event("relatorio_estoque_baixo", {"lotes": len(out)}, level="warning")
    return out


# ----------------------
# tabelas (colunas, linhas, mensagem)
# ----------------------

def tabela_estoque(rows: List[Dict[str, Any]]) -> Tabela:
    columns = ["Produto", "Unidade", "Saldo", "Valor", "Lotes", "Status"]
    data = [
        [r["produto"], r["unidade"], r["saldo_total"], f"{r['valor_total']:.2f}", r["lotes"], r["status"]]
        for r in rows
    ]
    return columns, data, None if data else "Nenhum produto com saldo."


def tabela_lotes(snapshot: LedgerSnapshot) -> Tabela:
    columns = ["Lote", "NE", "Produto", "Unidade", "Valor Unit.", "Inicial", "Saldo", "Mínimo", "Criado em"]
    data = [
        [
            lot.id, lot.document_id, lot.product_name, lot.unit, f"{lot.unit_value:.2f}",
            lot.initial_quantity, lot.current_balance, lot.minimum_threshold,
            lot.created_at.strftime("%Y-%m-%d %H:%M"),
        ]
        for lot in snapshot.lots
    ]
    return columns, data, None if data else "Nenhum lote cadastrado."


def tabela_movimentos(report: Dict[str, Any]) -> Tabela:
    columns = ["ID", "Data", "Tipo", "Produto", "Lote", "Qtd", "Valor", "Responsável", "Estornado", "Observação"]
    data = [
        [
            m.id, m.timestamp.strftime("%Y-%m-%d %H:%M"), m.kind.value, m.product_name, m.lot_id,
            m.quantity, f"{m.total_value:.2f}", m.actor_email, "sim" if m.is_reversed else "",
            m.note or "",
        ]
        for m in report["movimentos"]
    ]
    return columns, data, None if data else "Nenhuma movimentação encontrada."


def tabela_estoque_baixo(rows: List[Dict[str, Any]]) -> Tabela:
    columns = ["Lote", "NE", "Produto", "Unidade", "Saldo", "Mínimo", "Status"]
    data = [
        [r["lote"], r["ne"], r["produto"], r["unidade"], r["saldo"], r["estoque_minimo"], r["status"]]
        for r in rows
    ]
    return columns, data, None if data else "Nenhum lote com estoque baixo."
