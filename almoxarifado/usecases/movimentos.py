"""
UC: Registrador de movimentações (ENTRADA e SAÍDA).

- commit_entry():        ENTRADA inicial de um lote recém-criado.
- commit_exit():         confirma um plano de distribuição (SAÍDA).
- commit_distribution(): confirma vários planos (o "carrinho") de uma vez.

Obs.:
- Toda confirmação roda dentro de ``store.transaction()``: ou todos os
  lançamentos e saldos são gravados, ou nenhum.
- Os saldos são relidos do armazenamento dentro da transação. Se algum
  lote não comporta mais a quantidade planejada, a confirmação falha com
  StaleAllocationError (sem replanejamento automático).
"""

from __future__ import annotations

import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from almoxarifado.domain.allocation import round_qty
from almoxarifado.domain.errors import (
    InsufficientStockError,
    StaleAllocationError,
    ValidationError,
)
from almoxarifado.domain.models import (
    DistributionPlan,
    MovementKind,
    MovementRecord,
    StockLot,
)
from almoxarifado.infra.logger import log_saida, log_transaction

ENTRY_NOTE = "Entrada inicial de Nota de Empenho"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


def require_actor(actor_email: Optional[str]) -> str:
    email = (actor_email or "").strip()
    if not email:
        raise ValidationError("E-mail do responsável é obrigatório")
    return email


class MovementRecorder:
    """Transforma planos e lotes novos em lançamentos do livro-razão."""

    def __init__(
        self,
        store,
        cache,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[str], str] = new_id,
    ) -> None:
        self.store = store
        self.cache = cache
        self.clock = clock
        self.id_factory = id_factory

    # --------- ENTRADA ---------

    def commit_entry(self, lot: StockLot, actor_email: str) -> MovementRecord:
        """Registra a ENTRADA inicial do lote e fixa o saldo na quantidade inicial.

        O lote já deve ter sido anexado ao armazenamento.
        """
        actor = require_actor(actor_email)
        record = MovementRecord(
            id=self.id_factory("MOV-IN"),
            timestamp=self.clock(),
            kind=MovementKind.ENTRY,
            document_id=lot.document_id,
            lot_id=lot.id,
            product_name=lot.product_name,
            quantity=lot.initial_quantity,
            total_value=lot.initial_quantity * lot.unit_value,
            actor_email=actor,
            note=ENTRY_NOTE,
        )
        with self.store.transaction():
            self.store.append_movement(record)
            self.store.set_lot_balance(lot.id, lot.initial_quantity)
        lot.current_balance = lot.initial_quantity
        self.cache.invalidate()
        return record

    # --------- SAÍDA ---------

    def commit_exit(self, plan: DistributionPlan, actor_email: str, note: Optional[str] = None) -> List[MovementRecord]:
        return self.commit_distribution([plan], actor_email, note)

    def commit_distribution(
        self,
        plans: Iterable[DistributionPlan],
        actor_email: str,
        note: Optional[str] = None,
    ) -> List[MovementRecord]:
        """Confirma um ou mais planos como uma única unidade atômica.

        Raises:
            ValidationError: nenhum plano ou responsável vazio.
            InsufficientStockError: algum plano tem quantidade não atendida.
            StaleAllocationError: saldo de algum lote mudou desde o plano.
        """
        plans = list(plans)
        if not plans:
            raise ValidationError("Nenhum item para distribuir")
        for plan in plans:
            if plan.unsatisfied_quantity != 0:
                raise InsufficientStockError(
                    f"Estoque insuficiente para {plan.product_name}",
                    product=plan.product_name,
                    requested=plan.requested_quantity,
                    unsatisfied=plan.unsatisfied_quantity,
                )
        actor = require_actor(actor_email)
        note = (note or "").strip() or None

        # total exigido por lote (dois itens do carrinho podem usar o mesmo lote)
        required: Dict[str, float] = OrderedDict()
        for plan in plans:
            for line in plan.allocations:
                required[line.lot_id] = round_qty(required.get(line.lot_id, 0.0) + line.quantity)

        timestamp = self.clock()
        records: List[MovementRecord] = []
        try:
            with self.store.transaction():
                fresh: Dict[str, StockLot] = {}
                for lot_id, qty in required.items():
                    lot = self.store.get_lot(lot_id)
                    if lot is None or lot.current_balance < qty:
                        raise StaleAllocationError(
                            f"Saldo do lote {lot_id} mudou desde o planejamento",
                            lot_id=lot_id,
                            required=qty,
                            available=lot.current_balance if lot else None,
                        )
                    fresh[lot_id] = lot

                for plan in plans:
                    for line in plan.allocations:
                        lot = fresh[line.lot_id]
                        record = MovementRecord(
                            id=self.id_factory("MOV"),
                            timestamp=timestamp,
                            kind=MovementKind.EXIT,
                            document_id=lot.document_id,
                            lot_id=lot.id,
                            product_name=lot.product_name,
                            quantity=line.quantity,
                            total_value=line.quantity * line.unit_value,
                            actor_email=actor,
                            note=note,
                        )
                        self.store.append_movement(record)
                        records.append(record)

                for lot_id, qty in required.items():
                    self.store.set_lot_balance(lot_id, round_qty(fresh[lot_id].current_balance - qty))
        except Exception as e:
            log_transaction("distribuir", {"itens": [p.product_name for p in plans], "usuario": actor}, error=str(e))
            raise
        finally:
            self.cache.invalidate()

        for r in records:
            log_saida("commit", r.product_name, r.quantity, r.lot_id, movimento=r.id, valor=r.total_value)
        log_transaction(
            "distribuir",
            {"itens": [p.product_name for p in plans], "usuario": actor},
            result={"movimentos": [r.id for r in records], "valor_total": sum(r.total_value for r in records)},
        )
        return records
