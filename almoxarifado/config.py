# almoxarifado/config.py
"""
Configurações globais e valores padrão do almoxarifado.
"""

import os
from dataclasses import dataclass


# Caminho padrão do banco de dados SQLite
DB_PATH = os.environ.get("ALMOXARIFADO_DB", os.path.join(os.getcwd(), "almoxarifado.db"))

# Chave (tabela `params`) que guarda o e-mail do usuário da sessão
PARAM_USUARIO_ATUAL = "usuario_atual"


@dataclass
class DefaultConfig:
    """Valores padrão para cadastro de itens de Nota de Empenho."""
    estoque_minimo_padrao: float = 5.0  # nível de alerta de cada lote
    unidade_padrao: str = "UN"
    qtd_por_embalagem_padrao: float = 1.0
    usuario_temporario: str = "admin@temp.com"


# Instância global dos valores padrão
DEFAULTS = DefaultConfig()
