# almoxarifado/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: tabelas base (params, usuario, nota_empenho, lote, movimento)
V2: adiciona `estorno_de` em movimento (vínculo ESTORNO → SAÍDA original)
    e índices para FIFO e consultas do livro-razão
"""

from __future__ import annotations

from typing import List
from .db import connect
from .logger import print_system


SCHEMA_V1: List[str] = [
    # Parâmetros K/V (inclui o usuário da sessão)
    """
    CREATE TABLE IF NOT EXISTS params (
        chave TEXT PRIMARY KEY,
        valor TEXT
    );
    """,
    # Usuários (e-mail é a identidade)
    """
    CREATE TABLE IF NOT EXISTS usuario (
        email TEXT PRIMARY KEY,
        nome TEXT NOT NULL,
        papel TEXT NOT NULL,        -- 'ADMIN' | 'GESTOR' | 'OPERADOR'
        ativo INTEGER NOT NULL DEFAULT 1
    );
    """,
    # Notas de Empenho
    """
    CREATE TABLE IF NOT EXISTS nota_empenho (
        id TEXT PRIMARY KEY,        -- número da NE
        fornecedor TEXT NOT NULL,
        data TEXT,
        status TEXT NOT NULL DEFAULT 'ABERTA',
        valor_total REAL NOT NULL DEFAULT 0
    );
    """,
    # Lotes (um por item de NE)
    """
    CREATE TABLE IF NOT EXISTS lote (
        id TEXT PRIMARY KEY,
        ne_id TEXT NOT NULL,
        produto TEXT NOT NULL,
        unidade TEXT,
        qtd_por_embalagem REAL DEFAULT 1,
        valor_unitario REAL NOT NULL CHECK (valor_unitario >= 0),
        qtd_inicial REAL NOT NULL CHECK (qtd_inicial >= 0),
        saldo_atual REAL NOT NULL,
        estoque_minimo REAL NOT NULL DEFAULT 0,
        criado_em TEXT NOT NULL,    -- ordem FIFO
        CHECK (saldo_atual >= 0 AND saldo_atual <= qtd_inicial),
        FOREIGN KEY (ne_id) REFERENCES nota_empenho(id)
    );
    """,
    # Livro-razão de movimentações (append-only)
    """
    CREATE TABLE IF NOT EXISTS movimento (
        id TEXT PRIMARY KEY,
        data TEXT NOT NULL,
        tipo TEXT NOT NULL,         -- 'ENTRADA' | 'SAIDA' | 'ESTORNO'
        ne_id TEXT,
        lote_id TEXT NOT NULL,
        produto TEXT NOT NULL,
        quantidade REAL NOT NULL CHECK (quantidade > 0),
        valor REAL NOT NULL,
        usuario_email TEXT,
        observacao TEXT,
        estornado INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (lote_id) REFERENCES lote(id)
    );
    """,
]


INDEXES_V2: List[str] = [
    "CREATE INDEX IF NOT EXISTS idx_lote_produto   ON lote(produto, criado_em);",
    "CREATE INDEX IF NOT EXISTS idx_lote_ne        ON lote(ne_id);",
    "CREATE INDEX IF NOT EXISTS idx_movimento_data ON movimento(data);",
    "CREATE INDEX IF NOT EXISTS idx_movimento_lote ON movimento(lote_id);",
    "CREATE INDEX IF NOT EXISTS idx_movimento_tipo ON movimento(tipo);",
]

def _ensure_column(conn, table: str, column: str, ddl: str) -> None:
    """Adiciona coluna se não existir."""
    cur = conn.execute(f"PRAGMA table_info({table});")
    cols = [r[1] for r in cur.fetchall()]
    if column not in cols:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {ddl};")


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.execute(sql)


def _apply_v2(conn) -> None:
    _ensure_column(conn, "movimento", "estorno_de", "estorno_de TEXT")
    for sql in INDEXES_V2:
        conn.execute(sql)


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1
            print_system(">> Migração V1 aplicada (tabelas base)")

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2
            print_system(">> Migração V2 aplicada (estorno_de + índices)")
