# almoxarifado/domain/errors.py
"""
Exceções do almoxarifado.

Todas herdam de ``InventoryError`` e carregam um código estruturado para
tratamento programático, uma mensagem legível e um dicionário ``data``
com o contexto do erro.

Uso:
    try:
        servico.commit_distribution(plano, nota)
    except StaleAllocationError as e:
        # saldo mudou entre o plano e a confirmação: replanejar
        print(e.data["lot_id"], e.data["available"])
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class InventoryError(Exception):
    """Erro base com ``code``, ``message`` e ``data``."""

    code = "INVENTORY_ERROR"
    default_message = "Erro no almoxarifado"

    def __init__(self, message: Optional[str] = None, **data: Any) -> None:
        self.message = message or self.default_message
        self.data: Dict[str, Any] = data
        super().__init__(self.message)

    def as_dict(self) -> Dict[str, Any]:
        """Serializa para dicionário (útil para CLI/TUI e logs)."""
        return {"code": self.code, "message": self.message, "data": dict(self.data)}


class ValidationError(InventoryError):
    code = "VALIDATION"
    default_message = "Dados inválidos"


class NotFoundError(InventoryError):
    code = "NOT_FOUND"
    default_message = "Registro não encontrado"


class InsufficientStockError(InventoryError):
    code = "INSUFFICIENT_STOCK"
    default_message = "Quantidade solicitada indisponível"


class StaleAllocationError(InventoryError):
    code = "STALE_ALLOCATION"
    default_message = "Saldo alterado desde o planejamento; refaça o plano"


class InvalidReversalError(InventoryError):
    code = "INVALID_REVERSAL"
    default_message = "Estorno inválido"


class AuthorizationError(InventoryError):
    code = "UNAUTHORIZED"
    default_message = "Operação não permitida para o perfil do usuário"


class LedgerIntegrityError(InventoryError):
    code = "LEDGER_INTEGRITY"
    default_message = "Violação de integridade do livro-razão"


class StorageError(InventoryError):
    code = "STORAGE"
    default_message = "Falha no armazenamento"
