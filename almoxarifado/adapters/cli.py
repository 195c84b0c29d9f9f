# almoxarifado/adapters/cli.py
"""
CLI do almoxarifado (Typer).

Comandos principais:
- migrate                      -> aplica migrações
- params set/get/show          -> gerencia parâmetros (tabela params)
- estoque                      -> estoque consolidado por produto
- lotes                        -> todos os lotes
- ne registrar <numero>        -> cadastra Nota de Empenho (XLSX ou --item)
- distribuir --item p;q ...    -> planeja (FIFO), mostra e confirma saídas
- estornar <movimento>         -> estorna uma saída
- rel dashboard|movimentos|estoque-baixo
- usuarios listar|salvar|desativar|usar|atual
- tui                          -> interface terminal (Textual)
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from almoxarifado.adapters.parsers import normalize_str, to_datetime, to_enum, to_float
from almoxarifado.adapters.planilha_loader import load_itens_from_xlsx
from almoxarifado.config import DB_PATH, DEFAULTS, PARAM_USUARIO_ATUAL
from almoxarifado.domain.errors import InventoryError, ValidationError
from almoxarifado.domain.models import (
    CommitmentDocument,
    DistributionPlan,
    LotItem,
    MovementKind,
    User,
    UserRole,
)
from almoxarifado.infra.logger import log_file_operation
from almoxarifado.infra.migrations import apply_migrations
from almoxarifado.infra.repositories import ParamsRepo
from almoxarifado.usecases import relatorios
from almoxarifado.usecases.registrar_entrada import itens_from_rows
from almoxarifado.usecases.servico import InventoryService


app = typer.Typer(help="Almoxarifado - CLI")
console = Console()

DB_OPTION = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")


# -----------------------
# util
# -----------------------

def _fmt(val: Any) -> str:
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return str(val)


def _display_table(tabela: relatorios.Tabela, title: str = "Resultado") -> None:
    """Exibe (colunas, linhas, mensagem) como tabela Rich."""
    columns, rows, msg = tabela
    if not rows:
        console.print(Panel(msg or "Nenhum dado encontrado", title=title, border_style="yellow"))
        return
    table = Table(title=title, box=box.ROUNDED)
    for col in columns:
        if col.lower() in ("saldo", "qtd", "valor", "inicial", "mínimo", "valor unit.", "lotes"):
            table.add_column(col, justify="right")
        else:
            table.add_column(col)
    for row in rows:
        table.add_row(*[_status(v) if c == "Status" else _fmt(v) for c, v in zip(columns, row)])
    console.print(table)


def _status(val: str) -> str:
    if val == "ESGOTADO":
        return f"[bold red]{val}[/]"
    if val == "BAIXO":
        return f"[bold yellow]{val}[/]"
    if val == "OK":
        return f"[bold green]{val}[/]"
    return val


def _display_plan(plan: DistributionPlan) -> None:
    table = Table(title=f"Plano FIFO: {plan.product_name}", box=box.ROUNDED)
    table.add_column("Lote")
    table.add_column("NE")
    table.add_column("Qtd", justify="right")
    table.add_column("Valor Unit.", justify="right")
    table.add_column("Total", justify="right")
    for line in plan.allocations:
        table.add_row(line.lot_id, line.document_id, _fmt(line.quantity), _fmt(line.unit_value), _fmt(line.total_value))
    console.print(table)
    if not plan.is_feasible:
        console.print(f"[bold red]Faltam {_fmt(plan.unsatisfied_quantity)} de {plan.product_name}[/]")


def _run(fn: Callable[[], Any]) -> Any:
    """Executa ``fn`` convertendo InventoryError em painel vermelho e saída 1."""
    try:
        return fn()
    except InventoryError as e:
        console.print(Panel(e.message, title=f"Erro: {e.code}", border_style="red"))
        raise typer.Exit(code=1)


def _service(db_path: str) -> InventoryService:
    return _run(lambda: InventoryService(db_path))


def _parse_date(val: Optional[str], field: str) -> Optional[date]:
    if not normalize_str(val):
        return None
    try:
        return to_datetime(val).date()
    except ValueError as e:
        raise ValidationError(f"Data inválida em {field}: {val!r}", campo=field) from e


def _parse_item(txt: str) -> LotItem:
    """``produto;quantidade;valor_unitario[;unidade[;estoque_minimo]]``"""
    parts = [p.strip() for p in txt.split(";")]
    if len(parts) < 3:
        raise ValidationError(f"Item inválido: {txt!r} (use produto;quantidade;valor[;unidade[;minimo]])")
    try:
        return LotItem(
            product_name=parts[0],
            initial_quantity=to_float(parts[1]),
            unit_value=to_float(parts[2]),
            unit=(parts[3] if len(parts) > 3 and parts[3] else DEFAULTS.unidade_padrao).upper(),
            minimum_threshold=to_float(parts[4]) if len(parts) > 4 and parts[4] else DEFAULTS.estoque_minimo_padrao,
        )
    except ValueError as e:
        raise ValidationError(f"Item inválido: {txt!r} ({e})") from e


def _parse_pedido(txt: str):
    produto, sep, qtd = txt.rpartition(";")
    if not sep or not produto.strip():
        raise ValidationError(f"Pedido inválido: {txt!r} (use produto;quantidade)")
    try:
        return produto.strip(), to_float(qtd)
    except ValueError as e:
        raise ValidationError(f"Quantidade inválida em {txt!r}") from e


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = DB_OPTION):
    """Aplica migrações."""
    apply_migrations(db_path)
    typer.echo(f">> Migrações aplicadas em: {db_path}")


params_app = typer.Typer(help="Gerenciar parâmetros (tabela params).")
app.add_typer(params_app, name="params")


@params_app.command("set")
def cmd_params_set(
    chave: str = typer.Argument(..., help=f"Ex.: {PARAM_USUARIO_ATUAL}"),
    valor: str = typer.Argument(...),
    db_path: str = DB_OPTION,
):
    """Define um parâmetro."""
    apply_migrations(db_path)
    ParamsRepo(db_path).set_many([(chave, valor)])
    typer.echo(">> Parâmetro atualizado.")


@params_app.command("get")
def cmd_params_get(chave: str = typer.Argument(...), db_path: str = DB_OPTION):
    """Mostra um parâmetro específico."""
    apply_migrations(db_path)
    val = ParamsRepo(db_path).get(chave)
    typer.echo("(None)" if val is None else val)


@params_app.command("show")
def cmd_params_show(db_path: str = DB_OPTION):
    """Exibe os parâmetros gravados e os valores padrão."""
    apply_migrations(db_path)
    params = ParamsRepo(db_path).get_all()
    table = Table(title="Parâmetros do Sistema")
    table.add_column("Parâmetro")
    table.add_column("Valor")
    for k, v in params.items():
        table.add_row(k, v)
    for k, v in vars(DEFAULTS).items():
        table.add_row(f"{k} (padrão)", str(v))
    console.print(table)
    console.print(f"[dim]Banco de dados: {db_path}[/dim]")


# -----------------------
# consultas de estoque
# -----------------------

@app.command("estoque")
def cmd_estoque(db_path: str = DB_OPTION):
    """Estoque consolidado por produto."""
    svc = _service(db_path)
    rows = _run(svc.consolidated_stock)
    _display_table(relatorios.tabela_estoque(rows), title="Estoque Consolidado")


@app.command("lotes")
def cmd_lotes(db_path: str = DB_OPTION):
    """Lista todos os lotes (ordem FIFO)."""
    svc = _service(db_path)
    _run(svc.list_lots)
    _display_table(relatorios.tabela_lotes(svc.cache.snapshot()), title="Lotes")


# -----------------------
# Nota de Empenho
# -----------------------

ne_app = typer.Typer(help="Notas de Empenho (entradas).")
app.add_typer(ne_app, name="ne")


@ne_app.command("registrar")
def cmd_ne_registrar(
    numero: str = typer.Argument(..., help="Número da NE"),
    fornecedor: str = typer.Option(..., "--fornecedor", "-f"),
    data: Optional[str] = typer.Option(None, "--data", help="Data da NE (AAAA-MM-DD ou DD/MM/AAAA); padrão: hoje"),
    xlsx: Optional[str] = typer.Option(None, "--xlsx", help="Planilha com os itens"),
    item: Optional[List[str]] = typer.Option(None, "--item", help="produto;quantidade;valor[;unidade[;minimo]]"),
    db_path: str = DB_OPTION,
):
    """Cadastra uma NE com seus itens (um lote por item)."""
    def _do():
        itens: List[LotItem] = []
        if xlsx:
            rows = load_itens_from_xlsx(xlsx)
            log_file_operation("load_xlsx", xlsx, len(rows))
            itens.extend(itens_from_rows(rows))
        itens.extend(_parse_item(i) for i in (item or []))
        dia = _parse_date(data, "data") or date.today()
        doc = CommitmentDocument(id=numero, supplier=fornecedor, date=dia.isoformat())
        return InventoryService(db_path).register_commitment_document(doc, itens)

    doc = _run(_do)
    console.print(Panel(
        f"NE {doc.id} - {doc.supplier}\nValor total: {_fmt(doc.total_value)}",
        title="NE Registrada", border_style="green",
    ))


# -----------------------
# movimentações
# -----------------------

@app.command("distribuir")
def cmd_distribuir(
    item: List[str] = typer.Option(..., "--item", help="produto;quantidade (repita para vários itens)"),
    nota: Optional[str] = typer.Option(None, "--nota", help="Observação/destino"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirma sem perguntar"),
    db_path: str = DB_OPTION,
):
    """Planeja a distribuição (FIFO), mostra o plano e confirma as saídas."""
    svc = _service(db_path)
    pedidos = _run(lambda: [_parse_pedido(i) for i in item])
    planos = [_run(lambda p=p, q=q: svc.plan_distribution(p, q)) for p, q in pedidos]
    for plano in planos:
        _display_plan(plano)
    if not all(p.is_feasible for p in planos):
        console.print(Panel("Estoque insuficiente; nada foi gravado.", title="Erro: INSUFFICIENT_STOCK", border_style="red"))
        raise typer.Exit(code=1)

    total = sum(p.total_value for p in planos)
    if not yes and not typer.confirm(f"Confirmar distribuição (valor {_fmt(total)})?"):
        typer.echo("Cancelado.")
        raise typer.Exit(code=0)
    registros = _run(lambda: svc.commit_distribution(planos, nota))
    typer.echo(f">> {len(registros)} saída(s) registradas: " + ", ".join(r.id for r in registros))


@app.command("estornar")
def cmd_estornar(
    movimento: str = typer.Argument(..., help="ID da SAÍDA a estornar"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirma sem perguntar"),
    db_path: str = DB_OPTION,
):
    """Estorna uma SAÍDA, devolvendo a quantidade ao lote."""
    svc = _service(db_path)
    if not yes and not typer.confirm(f"Estornar a saída {movimento}?"):
        typer.echo("Cancelado.")
        raise typer.Exit(code=0)
    rev = _run(lambda: svc.reverse_exit(movimento))
    typer.echo(f">> Estorno {rev.id} registrado ({_fmt(rev.quantity)} devolvido ao lote {rev.lot_id}).")


# -----------------------
# relatórios
# -----------------------

rel_app = typer.Typer(help="Relatórios do almoxarifado")
app.add_typer(rel_app, name="rel")


@rel_app.command("dashboard")
def rel_dashboard(db_path: str = DB_OPTION):
    """Indicadores do painel."""
    svc = _service(db_path)
    d = _run(svc.dashboard)
    console.print(Panel(
        "\n".join([
            f"Valor em estoque: {_fmt(d['valor_estoque'])}",
            f"Lotes com saldo: {d['lotes_ativos']}",
            f"Lotes com estoque baixo: {d['estoque_baixo']}",
            f"Saídas em {d['mes']}: {_fmt(d['saidas_mes'])}",
        ]),
        title="Painel",
    ))
    top = [[r["produto"], r["consumido"]] for r in d["mais_consumidos"]]
    _display_table((["Produto", "Qtd"], top, "Nenhum consumo registrado."), title="Mais Consumidos")


@rel_app.command("movimentos")
def rel_movimentos(
    texto: Optional[str] = typer.Option(None, "--texto", help="Busca em produto, lote, NE, responsável"),
    tipo: Optional[str] = typer.Option(None, "--tipo", help="ENTRADA | SAIDA | ESTORNO"),
    inicio: Optional[str] = typer.Option(None, "--inicio", help="Data inicial (inclusiva)"),
    fim: Optional[str] = typer.Option(None, "--fim", help="Data final (inclusiva)"),
    db_path: str = DB_OPTION,
):
    """Livro-razão com filtros e totais."""
    svc = _service(db_path)

    def _do():
        try:
            kind = to_enum(MovementKind, tipo) if normalize_str(tipo) else None
        except ValueError as e:
            raise ValidationError(f"Tipo inválido: {tipo!r}") from e
        filtros = relatorios.MovementFilters(
            texto=normalize_str(texto),
            tipo=kind,
            inicio=_parse_date(inicio, "inicio"),
            fim=_parse_date(fim, "fim"),
        )
        return svc.movement_report(filtros)

    rep = _run(_do)
    _display_table(relatorios.tabela_movimentos(rep), title="Movimentações")
    t = rep["totais"]
    console.print(
        f"[dim]Entradas: {_fmt(t['entradas_qtd'])} ({_fmt(t['entradas_valor'])}) | "
        f"Saídas: {_fmt(t['saidas_qtd'])} ({_fmt(t['saidas_valor'])}) | "
        f"Estornos: {t['estornos']}[/dim]"
    )


@rel_app.command("estoque-baixo")
def rel_estoque_baixo(
    esgotados: bool = typer.Option(False, "--esgotados", help="Inclui lotes zerados"),
    db_path: str = DB_OPTION,
):
    """Lotes no ou abaixo do estoque mínimo."""
    svc = _service(db_path)
    rows = _run(lambda: svc.low_stock(esgotados))
    _display_table(relatorios.tabela_estoque_baixo(rows), title="Estoque Baixo")


# -----------------------
# usuários
# -----------------------

usuarios_app = typer.Typer(help="Usuários e sessão.")
app.add_typer(usuarios_app, name="usuarios")


@usuarios_app.command("listar")
def cmd_usuarios_listar(db_path: str = DB_OPTION):
    svc = _service(db_path)
    users = _run(svc.list_users)
    rows = [[u.email, u.name, u.role.value, "sim" if u.active else "não"] for u in users]
    _display_table((["E-mail", "Nome", "Perfil", "Ativo"], rows, "Nenhum usuário cadastrado."), title="Usuários")


@usuarios_app.command("salvar")
def cmd_usuarios_salvar(
    email: str = typer.Argument(...),
    nome: str = typer.Option(..., "--nome"),
    papel: str = typer.Option(UserRole.OPERATOR.value, "--papel", help="ADMIN | GESTOR | OPERADOR"),
    inativo: bool = typer.Option(False, "--inativo"),
    db_path: str = DB_OPTION,
):
    """Cadastra ou atualiza um usuário."""
    svc = _service(db_path)

    def _do():
        try:
            role = to_enum(UserRole, papel)
        except ValueError as e:
            raise ValidationError(f"Perfil inválido: {papel!r}") from e
        return svc.save_user(User(email=email, name=nome, role=role, active=not inativo))

    u = _run(_do)
    typer.echo(f">> Usuário {u.email} salvo ({u.role.value}).")


@usuarios_app.command("desativar")
def cmd_usuarios_desativar(email: str = typer.Argument(...), db_path: str = DB_OPTION):
    svc = _service(db_path)
    u = _run(lambda: svc.deactivate_user(email))
    typer.echo(f">> Usuário {u.email} desativado.")


@usuarios_app.command("usar")
def cmd_usuarios_usar(email: str = typer.Argument(...), db_path: str = DB_OPTION):
    """Troca o usuário da sessão."""
    svc = _service(db_path)
    u = _run(lambda: svc.use_user(email))
    typer.echo(f">> Sessão: {u.email} ({u.role.value}).")


@usuarios_app.command("atual")
def cmd_usuarios_atual(db_path: str = DB_OPTION):
    svc = _service(db_path)
    u = _run(svc.current_user)
    typer.echo(f"{u.email} ({u.role.value})")


# -----------------------
# TUI
# -----------------------

@app.command("tui")
def cmd_tui(db_path: str = DB_OPTION):
    """Inicia a Interface Terminal (TUI) interativa."""
    from almoxarifado.adapters.mainframe_tui import main as tui_main
    try:
        tui_main(db_path)
    except KeyboardInterrupt:
        typer.echo("\nSaindo do TUI...")
        raise typer.Exit(0)


def main():
    app()


if __name__ == "__main__":
    main()
