# almoxarifado/infra/db.py
"""
Utilidades de conexão SQLite.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator


@contextmanager
def connect(db_path: str, immediate: bool = False, timeout: float = 10.0) -> Iterator[sqlite3.Connection]:
    """
    Context manager para abrir conexão SQLite com:
    - foreign_keys ON
    - row_factory = sqlite3.Row
    - commit ao sair (rollback em caso de exceção)
    - ``immediate=True``: abre a transação com BEGIN IMMEDIATE, que reserva
      o banco para escrita até o commit (um escritor por vez)
    """
    conn = sqlite3.connect(db_path, timeout=timeout, isolation_level=None if immediate else "")
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        if immediate:
            conn.execute("BEGIN IMMEDIATE;")
        yield conn
        if conn.in_transaction:
            conn.commit()
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()
