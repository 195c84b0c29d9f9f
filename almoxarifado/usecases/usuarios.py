"""
UC: Usuários e sessão.

O usuário da sessão é guardado na tabela ``params`` (chave
``usuario_atual``). Resolução de ``current_user()``:

1. o usuário ativo com o e-mail da sessão;
2. senão, o primeiro ADMIN ativo (que passa a ser a sessão);
3. senão, o próprio usuário da sessão mesmo inativo (a política nega tudo)
   ou o primeiro usuário cadastrado.

O ADMIN temporário (``admin@temp.com``, não persistido) só existe enquanto
não há nenhum usuário cadastrado, para permitir o cadastro do primeiro.
O último ADMIN ativo não pode ser desativado nem rebaixado.
"""

from __future__ import annotations

import re
from typing import List, Optional

from almoxarifado.adapters.parsers import normalize_str
from almoxarifado.config import DEFAULTS, PARAM_USUARIO_ATUAL
from almoxarifado.domain.errors import NotFoundError, ValidationError
from almoxarifado.domain.models import User, UserRole
from almoxarifado.infra.logger import log_system_event, log_transaction

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+$")


def temporary_admin() -> User:
    return User(email=DEFAULTS.usuario_temporario, name="Administrador temporário", role=UserRole.ADMIN)


class UserDirectory:
    def __init__(self, store, cache, params) -> None:
        self.store = store
        self.cache = cache
        self.params = params

    def list_users(self) -> List[User]:
        return sorted(self.cache.snapshot().users, key=lambda u: u.email)

    def find(self, email: str) -> Optional[User]:
        key = (email or "").strip().lower()
        for u in self.cache.snapshot().users:
            if u.email.lower() == key:
                return u
        return None

    def current_user(self) -> User:
        users = self.list_users()
        if not users:
            return temporary_admin()

        session = None
        email = self.params.get(PARAM_USUARIO_ATUAL)
        if email:
            session = self.find(email)
            if session is not None and session.active:
                return session

        for u in users:
            if u.role is UserRole.ADMIN and u.active:
                self.params.set_many([(PARAM_USUARIO_ATUAL, u.email)])
                log_system_event("sessao_admin_padrao", {"email": u.email})
                return u

        log_system_event("sessao_sem_admin_ativo", {"email": email}, level="warning")
        if session is not None:
            return session
        return next((u for u in users if u.active), users[0])

    def _is_last_active_admin(self, email: str) -> bool:
        admins = [u.email for u in self.cache.snapshot().users if u.role is UserRole.ADMIN and u.active]
        return admins == [email]

    def use_user(self, email: str) -> User:
        """Troca o usuário da sessão.

        Raises:
            NotFoundError: e-mail não cadastrado.
            ValidationError: usuário inativo.
        """
        u = self.find(email)
        if u is None:
            raise NotFoundError(f"Usuário {email} não encontrado", email=email)
        if not u.active:
            raise ValidationError(f"Usuário {u.email} está inativo", email=u.email)
        self.params.set_many([(PARAM_USUARIO_ATUAL, u.email)])
        log_system_event("sessao_trocada", {"email": u.email})
        return u

    def save_user(self, user: User) -> User:
        """Cadastra ou atualiza (por e-mail) um usuário."""
        email = (normalize_str(user.email) or "").lower()
        if not _EMAIL_RE.match(email):
            raise ValidationError(f"E-mail inválido: {user.email!r}", email=user.email)
        name = normalize_str(user.name)
        if not name:
            raise ValidationError("Nome é obrigatório", email=email)
        if not isinstance(user.role, UserRole):
            raise ValidationError(f"Perfil inválido: {user.role!r}", email=email)

        saved = User(email=email, name=name, role=user.role, active=bool(user.active))
        if not (saved.active and saved.role is UserRole.ADMIN) and self._is_last_active_admin(email):
            raise ValidationError("Não é possível desativar ou rebaixar o último ADMIN ativo", email=email)
        try:
            self.store.save_user(saved)
        except Exception as e:
            log_transaction("salvar_usuario", {"email": email}, error=str(e))
            raise
        finally:
            self.cache.invalidate()
        log_transaction("salvar_usuario", {"email": email}, result={"papel": saved.role.value, "ativo": saved.active})
        return saved

    def deactivate_user(self, email: str) -> User:
        u = self.find(email)
        if u is None:
            raise NotFoundError(f"Usuário {email} não encontrado", email=email)
        return self.save_user(User(email=u.email, name=u.name, role=u.role, active=False))
