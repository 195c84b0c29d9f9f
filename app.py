# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db almoxarifado.db
  python app.py usuarios salvar admin@orgao.gov.br --nome "Admin" --papel ADMIN
  python app.py ne registrar 2025NE000123 -f "Papelaria Central" --xlsx itens.xlsx
  python app.py distribuir --item "Papel A4;25" --nota "Setor de compras"
  python app.py rel movimentos --tipo SAIDA
  python app.py tui
"""

from almoxarifado.adapters.cli import main

if __name__ == "__main__":
    main()
