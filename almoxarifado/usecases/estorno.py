"""
UC: Estornar uma SAÍDA.

O estorno é compensação, não exclusão: a SAÍDA original continua no
livro-razão marcada como estornada, e um novo lançamento ESTORNO devolve
a quantidade ao lote de origem.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from almoxarifado.domain.allocation import round_qty
from almoxarifado.domain.errors import InvalidReversalError, LedgerIntegrityError
from almoxarifado.domain.models import MovementKind, MovementRecord
from almoxarifado.infra.logger import log_estorno, log_system_event, log_transaction
from almoxarifado.usecases.movimentos import require_actor, new_id, utcnow


def reversal_note(original_id: str) -> str:
    return f"ESTORNO referente à saída: {original_id}"


class ReversalProcessor:
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

    def reverse(self, original_movement_id: str, actor_email: str) -> MovementRecord:
        """Estorna a SAÍDA ``original_movement_id``.

        Pré-condições (validadas contra o armazenamento, dentro da transação):
            - a movimentação existe;
            - é do tipo SAÍDA;
            - ainda não foi estornada.

        Raises:
            InvalidReversalError: alguma pré-condição falhou.
            LedgerIntegrityError: o saldo devolvido ultrapassaria a
                quantidade inicial do lote (dados alterados por fora).
        """
        actor = require_actor(actor_email)
        try:
            with self.store.transaction():
                original = self.store.get_movement(original_movement_id)
                if original is None:
                    raise InvalidReversalError(
                        f"Movimentação {original_movement_id} não encontrada",
                        movement_id=original_movement_id,
                    )
                if original.kind is not MovementKind.EXIT:
                    raise InvalidReversalError(
                        f"Apenas saídas podem ser estornadas ({original.kind.value})",
                        movement_id=original.id,
                        kind=original.kind.value,
                    )
                if original.is_reversed:
                    raise InvalidReversalError(
                        f"Saída {original.id} já foi estornada",
                        movement_id=original.id,
                    )

                lot = self.store.get_lot(original.lot_id)
                if lot is None:
                    raise LedgerIntegrityError(
                        f"Lote {original.lot_id} da saída {original.id} não existe",
                        movement_id=original.id,
                        lot_id=original.lot_id,
                    )
                new_balance = round_qty(lot.current_balance + original.quantity)
                if new_balance > lot.initial_quantity:
                    log_system_event("ledger_integrity_violation", {
                        "movement_id": original.id,
                        "lot_id": lot.id,
                        "balance": lot.current_balance,
                        "quantity": original.quantity,
                        "initial": lot.initial_quantity,
                    }, level="error")
                    raise LedgerIntegrityError(
                        f"Estorno levaria o saldo do lote {lot.id} acima da quantidade inicial",
                        movement_id=original.id,
                        lot_id=lot.id,
                        balance=lot.current_balance,
                        quantity=original.quantity,
                        initial=lot.initial_quantity,
                    )

                reversal = MovementRecord(
                    id=self.id_factory("REV"),
                    timestamp=self.clock(),
                    kind=MovementKind.REVERSAL,
                    document_id=original.document_id,
                    lot_id=original.lot_id,
                    product_name=original.product_name,
                    quantity=original.quantity,
                    total_value=original.total_value,
                    actor_email=actor,
                    note=reversal_note(original.id),
                    reverses_id=original.id,
                )
                self.store.set_movement_reversed(original.id)
                self.store.append_movement(reversal)
                self.store.set_lot_balance(lot.id, new_balance)
        except Exception as e:
            log_transaction("estornar", {"movimento": original_movement_id, "usuario": actor}, error=str(e))
            raise
        finally:
            self.cache.invalidate()

        log_estorno("commit", original_movement_id, reversal.quantity, reversal.lot_id, estorno=reversal.id)
        log_transaction("estornar", {"movimento": original_movement_id, "usuario": actor}, result=reversal.id)
        return reversal
