"""
UC: Registrar ENTRADAS (cadastro de Nota de Empenho).

- DocumentRegistrar.register(): cria a NE, um lote por item e a ENTRADA
  inicial de cada lote, tudo em uma única transação.
- itens_from_rows(): converte linhas da planilha em ``LotItem``.

Obs.:
- O número da NE é único: recadastrar uma NE existente é rejeitado, e os
  lotes nunca são recriados.
- Todos os lotes de uma NE recebem o mesmo ``created_at``; os ids levam o
  índice do item para que a ordem FIFO entre eles siga a ordem da nota.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List

from almoxarifado.adapters.parsers import normalize_str, parse_quantidade_raw, to_float
from almoxarifado.config import DEFAULTS
from almoxarifado.domain.allocation import validate_quantity
from almoxarifado.domain.errors import ValidationError
from almoxarifado.domain.models import (
    CommitmentDocument,
    DocumentStatus,
    LotItem,
    StockLot,
)
from almoxarifado.infra.logger import log_entrada, log_system_event, log_transaction
from almoxarifado.usecases.movimentos import MovementRecorder, new_id, require_actor, utcnow


def _validate_document(doc: CommitmentDocument) -> None:
    if not normalize_str(doc.id):
        raise ValidationError("Número da NE é obrigatório")
    if not normalize_str(doc.supplier):
        raise ValidationError("Fornecedor é obrigatório", ne=doc.id)


def _non_negative(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value) and value >= 0


def _validate_item(idx: int, item: LotItem) -> None:
    if not normalize_str(item.product_name):
        raise ValidationError(f"Item {idx + 1}: nome do produto é obrigatório", item=idx)
    try:
        validate_quantity(item.initial_quantity)
    except ValidationError:
        raise ValidationError(f"Item {idx + 1}: quantidade deve ser positiva", item=idx,
                              quantidade=item.initial_quantity) from None
    if not _non_negative(item.unit_value):
        raise ValidationError(f"Item {idx + 1}: valor unitário não pode ser negativo", item=idx,
                              valor_unitario=item.unit_value)
    if not _non_negative(item.minimum_threshold):
        raise ValidationError(f"Item {idx + 1}: estoque mínimo não pode ser negativo", item=idx)
    if item.qty_per_package is None or item.qty_per_package <= 0:
        raise ValidationError(f"Item {idx + 1}: quantidade por embalagem deve ser positiva", item=idx)


class DocumentRegistrar:
    def __init__(
        self,
        store,
        cache,
        recorder: MovementRecorder,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[str], str] = new_id,
    ) -> None:
        self.store = store
        self.cache = cache
        self.recorder = recorder
        self.clock = clock
        self.id_factory = id_factory

    def register(self, doc: CommitmentDocument, items: Iterable[LotItem], actor_email: str) -> CommitmentDocument:
        """Cadastra a NE e seus lotes, com a ENTRADA inicial de cada lote.

        Raises:
            ValidationError: NE sem número/fornecedor, sem itens, item
                inválido ou NE já cadastrada.
        """
        items = list(items)
        actor = require_actor(actor_email)
        _validate_document(doc)
        if not items:
            raise ValidationError("A NE precisa de pelo menos um item", ne=doc.id)
        for idx, item in enumerate(items):
            _validate_item(idx, item)

        document = CommitmentDocument(
            id=doc.id.strip(),
            supplier=doc.supplier.strip(),
            date=doc.date,
            status=DocumentStatus.OPEN,
            total_value=sum(item.total_value for item in items),
        )
        created_at = self.clock()
        base_id = self.id_factory("P")
        lots = [
            StockLot(
                id=f"{base_id}-{idx:03d}",
                document_id=document.id,
                product_name=item.product_name.strip(),
                unit=(normalize_str(item.unit) or DEFAULTS.unidade_padrao).upper(),
                unit_value=float(item.unit_value),
                initial_quantity=validate_quantity(item.initial_quantity),
                current_balance=0.0,
                minimum_threshold=float(item.minimum_threshold),
                created_at=created_at,
                qty_per_package=float(item.qty_per_package),
            )
            for idx, item in enumerate(items)
        ]

        log_system_event("registrar_ne_start", {"ne": document.id, "itens": len(lots)})
        entradas = []
        try:
            with self.store.transaction():
                if self.store.get_document(document.id) is not None:
                    raise ValidationError(f"NE {document.id} já cadastrada", ne=document.id)
                self.store.append_document(document)
                for lot in lots:
                    self.store.append_lot(lot)
                    entradas.append(self.recorder.commit_entry(lot, actor))
        except Exception as e:
            log_transaction("registrar_ne", {"ne": document.id, "usuario": actor}, error=str(e))
            raise
        finally:
            self.cache.invalidate()

        for lot, record in zip(lots, entradas):
            log_entrada("registrar_ne", lot.product_name, lot.initial_quantity, lot.id,
                        ne=document.id, movimento=record.id)
        log_transaction("registrar_ne", {"ne": document.id, "usuario": actor},
                        result={"lotes": [lot.id for lot in lots], "valor_total": document.total_value})
        return document


def itens_from_rows(rows: Iterable[Dict[str, Any]]) -> List[LotItem]:
    """Converte linhas da planilha (ver ``planilha_loader``) em itens de NE.

    Quando não há coluna de unidade, usa a unidade da quantidade
    ("20 RESMA" → unidade RESMA). Linhas sem produto são ignoradas.
    """
    out: List[LotItem] = []
    for n, row in enumerate(rows, start=1):
        produto = normalize_str(row.get("produto"))
        if not produto:
            continue
        num, unidade_qtd, _ = parse_quantidade_raw(row.get("quantidade_raw"))
        try:
            valor = to_float(row.get("valor_unitario"))
            minimo = _optional_float(row.get("estoque_minimo"), DEFAULTS.estoque_minimo_padrao)
            emb = _optional_float(row.get("qtd_por_embalagem"), DEFAULTS.qtd_por_embalagem_padrao)
        except ValueError as e:
            raise ValidationError(f"Linha {n}: valor inválido ({e})", linha=n) from e
        if num is None:
            raise ValidationError(f"Linha {n}: quantidade inválida", linha=n)
        out.append(LotItem(
            product_name=produto,
            initial_quantity=num,
            unit_value=valor,
            unit=normalize_str(row.get("unidade")) or unidade_qtd or DEFAULTS.unidade_padrao,
            minimum_threshold=minimo,
            qty_per_package=emb,
        ))
    return out


def _optional_float(val: Any, default: float) -> float:
    if normalize_str(val) is None:
        return default
    return to_float(val)
