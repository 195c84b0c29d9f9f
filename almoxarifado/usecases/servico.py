"""
Fachada do almoxarifado (``InventoryService``).

Ponto único de entrada para CLI e TUI. Cada operação consulta a política
de acesso com o usuário da sessão antes de validar ou gravar qualquer
coisa, e então delega ao caso de uso correspondente. Erros são
exceções tipadas (``almoxarifado.domain.errors``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from almoxarifado.config import DB_PATH
from almoxarifado.domain.allocation import AllocationEngine
from almoxarifado.domain.models import (
    CommitmentDocument,
    DistributionPlan,
    LotItem,
    MovementRecord,
    StockLot,
    User,
)
from almoxarifado.domain.policies import Operation, require
from almoxarifado.infra.cache import LedgerCache
from almoxarifado.infra.migrations import apply_migrations
from almoxarifado.infra.repositories import ParamsRepo, SqliteLedgerStore
from almoxarifado.usecases import relatorios
from almoxarifado.usecases.estorno import ReversalProcessor
from almoxarifado.usecases.movimentos import MovementRecorder, new_id, utcnow
from almoxarifado.usecases.registrar_entrada import DocumentRegistrar
from almoxarifado.usecases.usuarios import UserDirectory


class InventoryService:
    def __init__(
        self,
        db_path: str = DB_PATH,
        store=None,
        cache: Optional[LedgerCache] = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[str], str] = new_id,
    ) -> None:
        apply_migrations(db_path)
        self.db_path = db_path
        self.store = store if store is not None else SqliteLedgerStore(db_path)
        self.cache = cache if cache is not None else LedgerCache(self.store)
        self.params = ParamsRepo(db_path)
        self.clock = clock

        self.engine = AllocationEngine(self.cache)
        self.recorder = MovementRecorder(self.store, self.cache, clock, id_factory)
        self.reversals = ReversalProcessor(self.store, self.cache, clock, id_factory)
        self.registrar = DocumentRegistrar(self.store, self.cache, self.recorder, clock, id_factory)
        self.users = UserDirectory(self.store, self.cache, self.params)

    def _authorize(self, operation: Operation) -> User:
        user = self.current_user()
        require(user, operation)
        return user

    # --------- usuários ---------

    def current_user(self) -> User:
        return self.users.current_user()

    def list_users(self) -> List[User]:
        self._authorize(Operation.MANAGE_USERS)
        return self.users.list_users()

    def save_user(self, user: User) -> User:
        self._authorize(Operation.MANAGE_USERS)
        return self.users.save_user(user)

    def deactivate_user(self, email: str) -> User:
        self._authorize(Operation.MANAGE_USERS)
        return self.users.deactivate_user(email)

    def use_user(self, email: str) -> User:
        """Troca a sessão. Não exige permissão: o perfil é um rótulo confiável."""
        return self.users.use_user(email)

    # --------- entradas / saídas / estornos ---------

    def register_commitment_document(self, doc: CommitmentDocument, items: Iterable[LotItem]) -> CommitmentDocument:
        user = self._authorize(Operation.REGISTER_DOCUMENT)
        return self.registrar.register(doc, items, user.email)

    def plan_distribution(self, product_name: str, quantity) -> DistributionPlan:
        self._authorize(Operation.DISTRIBUTE)
        return self.engine.plan(product_name, quantity)

    def commit_distribution(
        self,
        plan_or_plans: Union[DistributionPlan, Iterable[DistributionPlan]],
        note: Optional[str] = None,
    ) -> List[MovementRecord]:
        user = self._authorize(Operation.DISTRIBUTE)
        if isinstance(plan_or_plans, DistributionPlan):
            plan_or_plans = [plan_or_plans]
        return self.recorder.commit_distribution(plan_or_plans, user.email, note)

    def reverse_exit(self, movement_id: str) -> MovementRecord:
        user = self._authorize(Operation.REVERSE_EXIT)
        return self.reversals.reverse(movement_id, user.email)

    # --------- consultas ---------

    def list_lots(self) -> List[StockLot]:
        self._authorize(Operation.VIEW_STOCK)
        return list(self.cache.snapshot().lots)

    def list_products(self) -> List[str]:
        """Produtos com saldo, para seleção na distribuição."""
        self._authorize(Operation.VIEW_STOCK)
        return sorted({lot.product_name for lot in self.cache.snapshot().lots if lot.current_balance > 0})

    def dashboard(self) -> Dict[str, Any]:
        self._authorize(Operation.VIEW_STOCK)
        return relatorios.dashboard(self.cache.snapshot(), self.clock())

    def consolidated_stock(self) -> List[Dict[str, Any]]:
        self._authorize(Operation.VIEW_STOCK)
        return relatorios.consolidated_stock(self.cache.snapshot())

    def movement_report(self, filters: Optional[relatorios.MovementFilters] = None) -> Dict[str, Any]:
        self._authorize(Operation.VIEW_REPORTS)
        return relatorios.movement_report(self.cache.snapshot(), filters)

    def low_stock(self, incluir_esgotados: bool = False) -> List[Dict[str, Any]]:
        self._authorize(Operation.VIEW_REPORTS)
        return relatorios.low_stock(self.cache.snapshot(), incluir_esgotados)

    def refresh(self) -> None:
        self.cache.refresh()
