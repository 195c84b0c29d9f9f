# almoxarifado/infra/repositories.py
"""
Repositórios (DAO) para acesso e manipulação de dados no SQLite.

Classes:
- ParamsRepo          -> parâmetros chave/valor
- LedgerStore         -> contrato do armazenamento do livro-razão
- SqliteLedgerStore   -> implementação SQLite do contrato

Cada chamada de ``SqliteLedgerStore`` é atômica. Para agrupar várias
chamadas em uma única unidade (distribuição, estorno, cadastro de NE),
use ``with store.transaction():``. A transação abre com BEGIN IMMEDIATE
e funciona como o lock consultivo da fronteira de armazenamento: um
escritor por vez.

A conversão linha → dataclass passa sempre por
``almoxarifado.adapters.parsers``.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from .db import connect
from .logger import log_database_operation, log_system_event
from almoxarifado.adapters.parsers import (
    normalize_str, to_bool, to_datetime, to_enum, to_float, to_iso,
)
from almoxarifado.domain.errors import InvalidReversalError, StorageError
from almoxarifado.domain.models import (
    CommitmentDocument,
    DocumentStatus,
    LedgerSnapshot,
    MovementKind,
    MovementRecord,
    StockLot,
    User,
    UserRole,
)


# -------------------------
# Params
# -------------------------

class ParamsRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def set_many(self, items: Iterable[Tuple[str, str]]) -> None:
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO params (chave, valor)
                VALUES (?, ?)
                ON CONFLICT(chave) DO UPDATE SET valor=excluded.valor
                """,
                list(items),
            )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with connect(self.db_path) as c:
            row = c.execute("SELECT valor FROM params WHERE chave = ?", (key,)).fetchone()
            return row[0] if row else default

    def get_float(self, key: str, default: float) -> float:
        v = self.get(key, None)
        if v is None:
            return default
        try:
            return to_float(v)
        except ValueError:
            return default

    def get_all(self) -> Dict[str, str]:
        with connect(self.db_path) as c:
            return {row[0]: row[1] for row in c.execute("SELECT chave, valor FROM params ORDER BY chave")}


# -------------------------
# Conversão de linhas
# -------------------------

def _row_to_user(r) -> User:
    return User(
        email=r["email"],
        name=r["nome"],
        role=to_enum(UserRole, r["papel"]),
        active=to_bool(r["ativo"]),
    )


def _row_to_document(r) -> CommitmentDocument:
    return CommitmentDocument(
        id=r["id"],
        supplier=r["fornecedor"],
        date=r["data"],
        status=to_enum(DocumentStatus, r["status"]),
        total_value=to_float(r["valor_total"]),
    )


def _row_to_lot(r) -> StockLot:
    return StockLot(
        id=r["id"],
        document_id=r["ne_id"],
        product_name=r["produto"],
        unit=r["unidade"],
        qty_per_package=to_float(r["qtd_por_embalagem"] if r["qtd_por_embalagem"] is not None else 1),
        unit_value=to_float(r["valor_unitario"]),
        initial_quantity=to_float(r["qtd_inicial"]),
        current_balance=to_float(r["saldo_atual"]),
        minimum_threshold=to_float(r["estoque_minimo"]),
        created_at=to_datetime(r["criado_em"]),
    )


def _row_to_movement(r) -> MovementRecord:
    return MovementRecord(
        id=r["id"],
        timestamp=to_datetime(r["data"]),
        kind=to_enum(MovementKind, r["tipo"]),
        document_id=r["ne_id"],
        lot_id=r["lote_id"],
        product_name=r["produto"],
        quantity=to_float(r["quantidade"]),
        total_value=to_float(r["valor"]),
        actor_email=r["usuario_email"],
        note=normalize_str(r["observacao"]),
        is_reversed=to_bool(r["estornado"]),
        reverses_id=normalize_str(r["estorno_de"]),
    )


def _convert(fn, rows) -> List[Any]:
    try:
        return [fn(r) for r in rows]
    except (KeyError, IndexError, ValueError) as e:
        log_system_event("storage_parse_error", {"error": str(e)}, level="error")
        raise StorageError(f"Registro inválido no armazenamento: {e}") from e


# -------------------------
# Livro-razão
# -------------------------

class LedgerStore(Protocol):
    """Operações que o núcleo exige do armazenamento externo."""

    def transaction(self): ...
    def load_all(self) -> LedgerSnapshot: ...
    def get_lot(self, lot_id: str) -> Optional[StockLot]: ...
    def get_movement(self, movement_id: str) -> Optional[MovementRecord]: ...
    def get_document(self, document_id: str) -> Optional[CommitmentDocument]: ...
    def get_user(self, email: str) -> Optional[User]: ...
    def append_document(self, doc: CommitmentDocument) -> None: ...
    def append_lot(self, lot: StockLot) -> None: ...
    def append_movement(self, record: MovementRecord) -> None: ...
    def set_lot_balance(self, lot_id: str, new_balance: float) -> None: ...
    def set_movement_reversed(self, movement_id: str) -> None: ...
    def save_user(self, user: User) -> None: ...


class SqliteLedgerStore:
    """Armazenamento do livro-razão em SQLite."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    # --------- transação / sessão ---------

    @contextmanager
    def transaction(self) -> Iterator["SqliteLedgerStore"]:
        """Agrupa chamadas em uma única transação (tudo ou nada)."""
        if self._conn is not None:
            yield self
            return
        try:
            with connect(self.db_path, immediate=True) as conn:
                self._conn = conn
                try:
                    yield self
                finally:
                    self._conn = None
        except sqlite3.Error as e:
            log_system_event("storage_error", {"db": self.db_path, "error": str(e)}, level="error")
            raise StorageError(f"Falha no armazenamento: {e}") from e

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        if self._conn is not None:
            yield self._conn
            return
        try:
            with connect(self.db_path) as conn:
                yield conn
        except sqlite3.Error as e:
            log_system_event("storage_error", {"db": self.db_path, "error": str(e)}, level="error")
            raise StorageError(f"Falha no armazenamento: {e}") from e

    # --------- leitura ---------

    def load_all(self) -> LedgerSnapshot:
        with self._session() as c:
            lots = c.execute("SELECT * FROM lote ORDER BY criado_em, id").fetchall()
            movements = c.execute("SELECT * FROM movimento ORDER BY data, id").fetchall()
            documents = c.execute("SELECT * FROM nota_empenho ORDER BY id").fetchall()
            users = c.execute("SELECT * FROM usuario ORDER BY email").fetchall()
        log_database_operation("*", "SELECT", len(lots) + len(movements) + len(documents) + len(users))
        return LedgerSnapshot(
            lots=_convert(_row_to_lot, lots),
            movements=_convert(_row_to_movement, movements),
            documents=_convert(_row_to_document, documents),
            users=_convert(_row_to_user, users),
        )

    def _get_one(self, sql: str, key: str, fn):
        with self._session() as c:
            row = c.execute(sql, (key,)).fetchone()
        if row is None:
            return None
        return _convert(fn, [row])[0]

    def get_lot(self, lot_id: str) -> Optional[StockLot]:
        return self._get_one("SELECT * FROM lote WHERE id = ?", lot_id, _row_to_lot)

    def get_movement(self, movement_id: str) -> Optional[MovementRecord]:
        return self._get_one("SELECT * FROM movimento WHERE id = ?", movement_id, _row_to_movement)

    def get_document(self, document_id: str) -> Optional[CommitmentDocument]:
        return self._get_one("SELECT * FROM nota_empenho WHERE id = ?", document_id, _row_to_document)

    def get_user(self, email: str) -> Optional[User]:
        return self._get_one("SELECT * FROM usuario WHERE email = ?", email, _row_to_user)

    # --------- escrita ---------

    def append_document(self, doc: CommitmentDocument) -> None:
        with self._session() as c:
            c.execute(
                """
                INSERT INTO nota_empenho (id, fornecedor, data, status, valor_total)
                VALUES (:id, :fornecedor, :data, :status, :valor_total)
                """,
                {
                    "id": doc.id,
                    "fornecedor": doc.supplier,
                    "data": doc.date,
                    "status": doc.status.value,
                    "valor_total": doc.total_value,
                },
            )
        log_database_operation("nota_empenho", "INSERT", 1, id=doc.id)

    def append_lot(self, lot: StockLot) -> None:
        with self._session() as c:
            c.execute(
                """
                INSERT INTO lote
                    (id, ne_id, produto, unidade, qtd_por_embalagem, valor_unitario,
                     qtd_inicial, saldo_atual, estoque_minimo, criado_em)
                VALUES
                    (:id, :ne_id, :produto, :unidade, :qtd_por_embalagem, :valor_unitario,
                     :qtd_inicial, :saldo_atual, :estoque_minimo, :criado_em)
                """,
                {
                    "id": lot.id,
                    "ne_id": lot.document_id,
                    "produto": lot.product_name,
                    "unidade": lot.unit,
                    "qtd_por_embalagem": lot.qty_per_package,
                    "valor_unitario": lot.unit_value,
                    "qtd_inicial": lot.initial_quantity,
                    "saldo_atual": lot.current_balance,
                    "estoque_minimo": lot.minimum_threshold,
                    "criado_em": to_iso(lot.created_at),
                },
            )
        log_database_operation("lote", "INSERT", 1, id=lot.id, produto=lot.product_name)

    def append_movement(self, record: MovementRecord) -> None:
        with self._session() as c:
            c.execute(
                """
                INSERT INTO movimento
                    (id, data, tipo, ne_id, lote_id, produto, quantidade, valor,
                     usuario_email, observacao, estornado, estorno_de)
                VALUES
                    (:id, :data, :tipo, :ne_id, :lote_id, :produto, :quantidade, :valor,
                     :usuario_email, :observacao, :estornado, :estorno_de)
                """,
                {
                    "id": record.id,
                    "data": to_iso(record.timestamp),
                    "tipo": record.kind.value,
                    "ne_id": record.document_id,
                    "lote_id": record.lot_id,
                    "produto": record.product_name,
                    "quantidade": record.quantity,
                    "valor": record.total_value,
                    "usuario_email": record.actor_email,
                    "observacao": record.note,
                    "estornado": 1 if record.is_reversed else 0,
                    "estorno_de": record.reverses_id,
                },
            )
        log_database_operation("movimento", "INSERT", 1, id=record.id, tipo=record.kind.value)

    def set_lot_balance(self, lot_id: str, new_balance: float) -> None:
        with self._session() as c:
            cur = c.execute("UPDATE lote SET saldo_atual = ? WHERE id = ?", (new_balance, lot_id))
            if cur.rowcount != 1:
                raise StorageError(f"Lote {lot_id} não encontrado", lot_id=lot_id)
        log_database_operation("lote", "UPDATE", 1, id=lot_id, saldo_atual=new_balance)

    def set_movement_reversed(self, movement_id: str) -> None:
        """Transição única estornado 0 → 1."""
        with self._session() as c:
            cur = c.execute(
                "UPDATE movimento SET estornado = 1 WHERE id = ? AND COALESCE(estornado, 0) = 0",
                (movement_id,),
            )
            if cur.rowcount != 1:
                raise InvalidReversalError(
                    f"Movimentação {movement_id} inexistente ou já estornada",
                    movement_id=movement_id,
                )
        log_database_operation("movimento", "UPDATE", 1, id=movement_id, estornado=1)

    def save_user(self, user: User) -> None:
        with self._session() as c:
            c.execute(
                """
                INSERT INTO usuario (email, nome, papel, ativo)
                VALUES (:email, :nome, :papel, :ativo)
                ON CONFLICT(email) DO UPDATE SET
                    nome=excluded.nome,
                    papel=excluded.papel,
                    ativo=excluded.ativo
                """,
                {
                    "email": user.email,
                    "nome": user.name,
                    "papel": user.role.value,
                    "ativo": 1 if user.active else 0,
                },
            )
        log_database_operation("usuario", "UPSERT", 1, email=user.email)
