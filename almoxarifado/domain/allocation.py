"""
Motor de alocação (FIFO por data de criação do lote).

Dado um produto e uma quantidade solicitada, escolhe de quais lotes
retirar e quanto de cada um. O cálculo é uma projeção somente-leitura:
nenhum lote é alterado aqui. A confirmação do plano é feita por
``almoxarifado.usecases.movimentos.MovementRecorder``.
"""

from __future__ import annotations

import math
from typing import Iterable, List

from almoxarifado.domain.errors import ValidationError
from almoxarifado.domain.models import AllocationLine, DistributionPlan, StockLot

# casas decimais de quantidades e saldos
QTY_DECIMALS = 6


def round_qty(value: float) -> float:
    """Arredonda uma quantidade para a escala fixa do livro-razão."""
    return round(float(value), QTY_DECIMALS)


def validate_quantity(quantity, field: str = "quantidade") -> float:
    """Valida uma quantidade positiva e a retorna como float."""
    if isinstance(quantity, bool):
        raise ValidationError(f"{field} inválida", **{field: quantity})
    try:
        value = float(quantity)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} inválida", **{field: quantity}) from None
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise ValidationError(f"{field} deve ser positiva", **{field: quantity})
    value = round_qty(value)
    if value <= 0:
        raise ValidationError(f"{field} deve ser positiva", **{field: quantity})
    return value


def fifo_order(lots: Iterable[StockLot], product_name: str) -> List[StockLot]:
    """Lotes do produto com saldo, do mais antigo ao mais novo.

    Empates de ``created_at`` são resolvidos pelo ``id`` do lote.
    """
    candidates = [
        lot for lot in lots
        if lot.product_name == product_name and lot.current_balance > 0
    ]
    return sorted(candidates, key=lambda lot: (lot.created_at, lot.id))


def plan_fifo(lots: Iterable[StockLot], product_name: str, requested_quantity) -> DistributionPlan:
    """Calcula o plano de distribuição.

    Args:
        lots: Lotes conhecidos (de qualquer produto).
        product_name: Nome exato do produto.
        requested_quantity: Quantidade solicitada (positiva).

    Returns:
        ``DistributionPlan`` com as linhas em ordem FIFO e a quantidade não
        atendida. ``sum(linhas) + não atendida == solicitada`` sempre.

    Raises:
        ValidationError: quantidade não positiva ou produto vazio.
    """
    requested = validate_quantity(requested_quantity)
    name = (product_name or "").strip()
    if not name:
        raise ValidationError("Produto é obrigatório")

    remaining = requested
    lines: List[AllocationLine] = []
    for lot in fifo_order(lots, name):
        if remaining <= 0:
            break
        take = min(lot.current_balance, remaining)
        lines.append(AllocationLine(
            lot_id=lot.id,
            document_id=lot.document_id,
            quantity=take,
            unit_value=lot.unit_value,
        ))
        remaining = round_qty(remaining - take)

    unsatisfied = remaining if remaining > 0 else 0.0
    return DistributionPlan(
        product_name=name,
        requested_quantity=requested,
        allocations=tuple(lines),
        unsatisfied_quantity=unsatisfied,
    )


class AllocationEngine:
    """Planeja distribuições a partir do cache do livro-razão.

    O cache pode estar defasado; a revalidação ocorre na confirmação.
    """

    def __init__(self, cache) -> None:
        self.cache = cache

    def plan(self, product_name: str, requested_quantity) -> DistributionPlan:
        return plan_fifo(self.cache.snapshot().lots, product_name, requested_quantity)
