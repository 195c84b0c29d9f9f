"""
Cache em memória do livro-razão.

Guarda o último ``LedgerSnapshot`` lido do armazenamento. A leitura é
preguiçosa: o primeiro ``snapshot()`` após ``invalidate()`` recarrega tudo
com ``store.load_all()``. Quem grava (registro de NE, distribuição,
estorno, usuários) invalida o cache ao final.

O cache é uma dependência explícita: cada instância do serviço recebe o
seu, e os motores de alocação e movimentação o recebem por injeção.
"""

from __future__ import annotations

from typing import Optional

from almoxarifado.domain.models import LedgerSnapshot
from almoxarifado.infra.logger import log_system_event


class LedgerCache:
    def __init__(self, store) -> None:
        self.store = store
        self._snapshot: Optional[LedgerSnapshot] = None

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def snapshot(self) -> LedgerSnapshot:
        if self._snapshot is None:
            self.refresh()
        return self._snapshot

    def refresh(self) -> LedgerSnapshot:
        """Recarrega o snapshot completo do armazenamento."""
        self._snapshot = self.store.load_all()
        log_system_event("cache_refresh", {
            "lots": len(self._snapshot.lots),
            "movements": len(self._snapshot.movements),
        })
        return self._snapshot

    def invalidate(self) -> None:
        self._snapshot = None
