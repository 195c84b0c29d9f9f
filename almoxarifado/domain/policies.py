"""
Políticas do almoxarifado.

Este módulo contém funções puras de regra de negócio:

- a política de acesso (papel → operações permitidas), consultada pela
  fronteira de serviço antes de qualquer validação ou mutação;
- a classificação de status de saldo de um lote ou produto, usada pelos
  relatórios e pelo painel.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional

from almoxarifado.domain.errors import AuthorizationError
from almoxarifado.domain.models import User, UserRole


class Operation(str, Enum):
    """Operações sujeitas a controle de acesso."""
    VIEW_STOCK = "ver_estoque"
    DISTRIBUTE = "distribuir"
    REGISTER_DOCUMENT = "registrar_ne"
    VIEW_REPORTS = "ver_relatorios"
    REVERSE_EXIT = "estornar_saida"
    MANAGE_USERS = "gerenciar_usuarios"


_POLICY: Dict[UserRole, FrozenSet[Operation]] = {
    UserRole.ADMIN: frozenset(Operation),
    UserRole.MANAGER: frozenset(Operation) - {Operation.MANAGE_USERS},
    UserRole.OPERATOR: frozenset({Operation.VIEW_STOCK, Operation.DISTRIBUTE}),
}


def allowed_operations(role: UserRole) -> FrozenSet[Operation]:
    """Retorna o conjunto de operações permitidas para ``role``."""
    return _POLICY.get(role, frozenset())


def can(role: UserRole, operation: Operation) -> bool:
    return operation in allowed_operations(role)


def require(user: User, operation: Operation) -> None:
    """Garante que ``user`` pode executar ``operation``.

    Usuários inativos não podem executar nenhuma operação.

    Raises:
        AuthorizationError: se o papel do usuário não contém a operação.
    """
    if not user.active or not can(user.role, operation):
        raise AuthorizationError(
            f"Perfil {user.role.value} não pode executar '{operation.value}'",
            email=user.email,
            role=user.role.value,
            operation=operation.value,
        )


def status_saldo(saldo: Optional[float], minimo: Optional[float]) -> str:
    """Classifica o saldo em relação ao estoque mínimo.

    Regras:
        - Se algum dos parâmetros for ``None``, retorna ``'VERIFICAR'``.
        - ``saldo <= 0`` → ``'ESGOTADO'``
        - ``saldo <= minimo`` → ``'BAIXO'``
        - ``saldo > minimo`` → ``'OK'``
    """
    if saldo is None or minimo is None:
        return "VERIFICAR"
    if saldo <= 0:
        return "ESGOTADO"
    if saldo <= minimo:
        return "BAIXO"
    return "OK"
