from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Tuple

import pytest

from almoxarifado.domain.models import CommitmentDocument, LotItem, StockLot, User, UserRole
from almoxarifado.usecases.servico import InventoryService


class FakeClock:
    """Relógio determinístico: avança um minuto a cada leitura."""

    def __init__(self, start: datetime = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(minutes=1)
        return current


class SeqIds:
    def __init__(self):
        self.n = 0

    def __call__(self, prefix: str) -> str:
        self.n += 1
        return f"{prefix}-{self.n:04d}"


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "almoxarifado_test.sqlite")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def svc(db_path, clock) -> InventoryService:
    service = InventoryService(db_path, clock=clock, id_factory=SeqIds())
    service.save_user(User(email="admin@orgao.gov.br", name="Admin", role=UserRole.ADMIN))
    return service


def registrar(svc: InventoryService, ne: str, *itens: Tuple[str, float, float]) -> List[StockLot]:
    """Cadastra uma NE com itens (produto, quantidade, valor) e devolve seus lotes."""
    doc = CommitmentDocument(id=ne, supplier="Papelaria Central", date="2025-03-10")
    svc.register_commitment_document(doc, [LotItem(p, q, v) for p, q, v in itens])
    return [lot for lot in svc.list_lots() if lot.document_id == ne]


def lot(id: str, produto: str, saldo: float, valor: float = 1.0, minuto: int = 0, inicial: float = None) -> StockLot:
    return StockLot(
        id=id,
        document_id="NE-" + id,
        product_name=produto,
        unit="UN",
        unit_value=valor,
        initial_quantity=saldo if inicial is None else inicial,
        current_balance=saldo,
        minimum_threshold=5.0,
        created_at=datetime(2025, 1, 1, 8, minuto, tzinfo=timezone.utc),
    )
