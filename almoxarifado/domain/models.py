# almoxarifado/domain/models.py
"""
Modelos (dataclasses) do domínio do almoxarifado.

Observação importante:
- O repositório SQLite converte linhas para estas dataclasses na fronteira
  de armazenamento (ver `almoxarifado.adapters.parsers`); o restante do
  sistema trabalha apenas com os tipos abaixo.
- `StockLot.current_balance` é o único campo mutável compartilhado.
  `MovementRecord` é imutável, exceto pela flag `is_reversed`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class MovementKind(str, Enum):
    """Tipo de movimentação do livro-razão."""
    ENTRY = "ENTRADA"
    EXIT = "SAIDA"
    REVERSAL = "ESTORNO"


class UserRole(str, Enum):
    """Papéis de acesso. O valor é o rótulo persistido."""
    ADMIN = "ADMIN"
    MANAGER = "GESTOR"
    OPERATOR = "OPERADOR"


class DocumentStatus(str, Enum):
    OPEN = "ABERTA"
    CLOSED = "ENCERRADA"


@dataclass
class User:
    """Usuário do sistema. O e-mail é a chave de identidade (imutável)."""
    email: str
    name: str
    role: UserRole = UserRole.OPERATOR
    active: bool = True


@dataclass
class CommitmentDocument:
    """Nota de Empenho (NE): agrupa os lotes cadastrados juntos."""
    id: str
    supplier: str
    date: str
    status: DocumentStatus = DocumentStatus.OPEN
    total_value: float = 0.0


@dataclass
class StockLot:
    """Lote de um produto, criado a partir de uma única NE."""
    id: str
    document_id: str
    product_name: str
    unit: str
    unit_value: float
    initial_quantity: float
    current_balance: float
    minimum_threshold: float
    created_at: datetime
    qty_per_package: float = 1.0

    @property
    def stock_value(self) -> float:
        return self.current_balance * self.unit_value

    @property
    def is_low(self) -> bool:
        return self.current_balance <= self.minimum_threshold


@dataclass
class LotItem:
    """Item informado no cadastro de uma NE (vira um ``StockLot``)."""
    product_name: str
    initial_quantity: float
    unit_value: float
    unit: str = "UN"
    minimum_threshold: float = 5.0
    qty_per_package: float = 1.0

    @property
    def total_value(self) -> float:
        return self.initial_quantity * self.unit_value


@dataclass
class MovementRecord:
    """Lançamento do livro-razão (append-only)."""
    id: str
    timestamp: datetime
    kind: MovementKind
    document_id: str
    lot_id: str
    product_name: str
    quantity: float
    total_value: float
    actor_email: str
    note: Optional[str] = None
    is_reversed: bool = False
    reverses_id: Optional[str] = None  # preenchido apenas em ESTORNO


@dataclass(frozen=True)
class AllocationLine:
    """Uma linha do plano: quanto retirar de qual lote."""
    lot_id: str
    document_id: str
    quantity: float
    unit_value: float

    @property
    def total_value(self) -> float:
        return self.quantity * self.unit_value


@dataclass(frozen=True)
class DistributionPlan:
    """Plano de distribuição (efêmero, nunca persistido)."""
    product_name: str
    requested_quantity: float
    allocations: tuple = ()
    unsatisfied_quantity: float = 0.0

    @property
    def allocated_quantity(self) -> float:
        return sum(line.quantity for line in self.allocations)

    @property
    def total_value(self) -> float:
        return sum(line.total_value for line in self.allocations)

    @property
    def is_feasible(self) -> bool:
        return self.unsatisfied_quantity == 0


@dataclass
class LedgerSnapshot:
    """Leitura completa do armazenamento (`load_all`)."""
    lots: List[StockLot] = field(default_factory=list)
    movements: List[MovementRecord] = field(default_factory=list)
    documents: List[CommitmentDocument] = field(default_factory=list)
    users: List[User] = field(default_factory=list)

    def movement(self, movement_id: str) -> Optional[MovementRecord]:
        for m in self.movements:
            if m.id == movement_id:
                return m
        return None
