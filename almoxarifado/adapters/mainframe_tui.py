from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical, ScrollableContainer
from textual.screen import ModalScreen, Screen
from textual.widgets import (
    Button, DataTable, Footer, Header, Input, Label, Static, Tree,
)

from almoxarifado.adapters.parsers import normalize_str, to_float
from almoxarifado.adapters.planilha_loader import load_itens_from_xlsx
from almoxarifado.config import DB_PATH
from almoxarifado.domain.errors import InventoryError, ValidationError
from almoxarifado.domain.models import CommitmentDocument, DistributionPlan
from almoxarifado.infra.logger import (
    ENABLE_LOGGING, ENABLE_OUTPUT, LOGS_DIR, get_log_summary, log_file_operation, log_system_event,
)
from almoxarifado.usecases import relatorios
from almoxarifado.usecases.registrar_entrada import itens_from_rows
from almoxarifado.usecases.servico import InventoryService


# Estrutura do menu: (rótulo do grupo, [(rótulo da folha, ação), ...])
MENU: List[Tuple[str, List[Tuple[str, str]]]] = [
    ("📦 Estoque", [
        ("📊 Painel", "painel"),
        ("📦 Estoque Consolidado", "ver-estoque"),
        ("📑 Ver Lotes", "ver-lotes"),
    ]),
    ("🔄 Movimentação", [
        ("⬆️ Distribuir (Saída)", "distribuir"),
        ("↩️ Estornar Saída", "estornar"),
        ("⬇️ Registrar NE (XLSX)", "registrar-ne"),
    ]),
    ("📈 Relatórios", [
        ("📋 Movimentações", "rel-movimentos"),
        ("⚠️ Estoque Baixo", "rel-estoque-baixo"),
    ]),
    ("👤 Usuários", [
        ("👥 Listar Usuários", "usuarios-listar"),
        ("🔁 Trocar Usuário", "usuarios-usar"),
    ]),
    ("⚙️ Sistema", [
        ("📋 Logs de Transações", "logs"),
        ("📊 Resumo dos Logs", "logs-resumo"),
    ]),
]


def plan_rows(plans: List[DistributionPlan]) -> Tuple[List[str], List[List[Any]]]:
    """Linhas de pré-visualização de um ou mais planos."""
    columns = ["Produto", "Lote", "NE", "Qtd", "Valor Unit.", "Total"]
    rows: List[List[Any]] = []
    for plan in plans:
        for line in plan.allocations:
            rows.append([
                plan.product_name, line.lot_id, line.document_id,
                line.quantity, f"{line.unit_value:.2f}", f"{line.total_value:.2f}",
            ])
        if not plan.is_feasible:
            rows.append([plan.product_name, "-", "", f"faltam {plan.unsatisfied_quantity}", "", ""])
    return columns, rows


class OutputDataTableScreen(Screen):
    """Tela com um DataTable de resultados."""
    BINDINGS = [
        ("escape", "app.pop_screen", "Voltar"),
        ("q", "app.pop_screen", "Voltar"),
    ]

    def __init__(self, title: str, columns: list, rows: list, message: Optional[str] = None) -> None:
        super().__init__()
        self.title = title
        self.columns = columns
        self.rows = rows
        self.message = message

    def compose(self) -> ComposeResult:
        yield Header()
        with ScrollableContainer():
            yield Static(f"📋 {self.title}", classes="output-title")
            if self.message:
                yield Static(self.message)
            dt = DataTable(zebra_stripes=True)
            dt.add_columns(*self.columns)
            for row in self.rows:
                dt.add_row(*[str(cell) if cell is not None else "" for cell in row])
            yield dt
        yield Footer()


class OutputScreen(Screen):
    """Tela com texto livre (logs, painel)."""

    BINDINGS = [
        ("escape", "app.pop_screen", "Voltar"),
        ("q", "app.pop_screen", "Voltar"),
    ]

    def __init__(self, title: str, content: str) -> None:
        super().__init__()
        self.title = title
        self.content = content

    def compose(self) -> ComposeResult:
        yield Header()
        with ScrollableContainer():
            yield Static(f"📋 {self.title}", classes="output-title")
            yield Static(self.content, markup=False)
        yield Footer()


class StatusDisplay(Static):
    """Banco, usuário da sessão e flags de log."""

    def refresh_status(self, service: InventoryService) -> None:
        db_path = Path(service.db_path)
        info = []
        if db_path.exists():
            size_mb = db_path.stat().st_size / (1024 * 1024)
            info.append(f"✅ Banco: {db_path} ({size_mb:.1f}MB)")
        else:
            info.append(f"❌ Banco: {db_path} (não encontrado)")
        try:
            user = service.current_user()
            info.append(f"👤 Usuário: {user.name} <{user.email}> [{user.role.value}]")
        except InventoryError as e:
            info.append(f"❌ Usuário: {e.message}")
        info.append("✅ Logging: Ativo" if ENABLE_LOGGING else "❌ Logging: Desativado")
        info.append("✅ Output: Ativo" if ENABLE_OUTPUT else "❌ Output: Desativado")
        self.update("\n".join(info))


class MenuTreeWidget(Tree):
    """Árvore de navegação principal."""

    def __init__(self) -> None:
        super().__init__("🏬 Almoxarifado - Menu Principal")
        for group, leaves in MENU:
            node = self.root.add(group)
            for label, action in leaves:
                node.add_leaf(label, data=action)
        self.root.expand_all()


class DistributionForm(ModalScreen):
    """Formulário de distribuição: planeja, mostra o plano e confirma."""

    BINDINGS = [("escape", "app.pop_screen", "Cancelar")]

    def __init__(self, service: InventoryService) -> None:
        super().__init__()
        self.service = service
        self.plan: Optional[DistributionPlan] = None

    def compose(self) -> ComposeResult:
        with Container(id="distribution-modal"):
            yield Static("⬆️ Distribuir (FIFO)", classes="modal-title")
            with Vertical():
                yield Label("Produto:")
                yield Input(placeholder="Papel A4", id="produto-input")
                yield Label("Quantidade:")
                yield Input(placeholder="10", id="qtd-input")
                yield Label("Observação / destino:")
                yield Input(placeholder="Setor de compras", id="nota-input")
                yield DataTable(id="plan-table")
                with Horizontal():
                    yield Button("🔍 Planejar", id="plan-btn")
                    yield Button("✅ Confirmar", variant="primary", id="confirm-btn", disabled=True)
                    yield Button("❌ Cancelar", id="cancel-btn")

    def _value(self, widget_id: str) -> str:
        return self.query_one(f"#{widget_id}", Input).value.strip()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "plan-btn":
            self.action_plan()
        elif event.button.id == "confirm-btn":
            if self.plan is not None and self.plan.is_feasible:
                self.dismiss({"plan": self.plan, "note": normalize_str(self._value("nota-input"))})
        elif event.button.id == "cancel-btn":
            self.app.pop_screen()

    def action_plan(self) -> None:
        confirm = self.query_one("#confirm-btn", Button)
        try:
            try:
                qtd = to_float(self._value("qtd-input"))
            except ValueError as e:
                raise ValidationError("Quantidade inválida") from e
            self.plan = self.service.plan_distribution(self._value("produto-input"), qtd)
        except InventoryError as e:
            self.plan = None
            confirm.disabled = True
            self.notify(f"❌ {e.message}", severity="error")
            return

        table = self.query_one("#plan-table", DataTable)
        table.clear(columns=True)
        columns, rows = plan_rows([self.plan])
        table.add_columns(*columns)
        for row in rows:
            table.add_row(*[str(c) for c in row])
        confirm.disabled = not self.plan.is_feasible
        if not self.plan.is_feasible:
            self.notify(f"⚠️ Estoque insuficiente: faltam {self.plan.unsatisfied_quantity}", severity="warning")


class ReversalForm(ModalScreen):
    """Formulário de estorno de uma SAÍDA."""

    BINDINGS = [("escape", "app.pop_screen", "Cancelar")]

    def compose(self) -> ComposeResult:
        with Container(id="reversal-modal"):
            yield Static("↩️ Estornar Saída", classes="modal-title")
            with Vertical():
                yield Label("ID da saída (ex.: MOV-...):")
                yield Input(placeholder="MOV-", id="movimento-input")
                with Horizontal():
                    yield Button("↩️ Estornar", variant="error", id="reverse-btn")
                    yield Button("❌ Cancelar", id="cancel-btn")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "reverse-btn":
            movimento = self.query_one("#movimento-input", Input).value.strip()
            if not movimento:
                self.notify("❌ Informe a movimentação!", severity="warning")
                return
            self.dismiss({"movimento": movimento})
        elif event.button.id == "cancel-btn":
            self.app.pop_screen()


class FieldsForm(ModalScreen):
    """Formulário genérico de campos texto (NE, troca de usuário, filtros)."""

    BINDINGS = [("escape", "app.pop_screen", "Cancelar")]

    def __init__(self, title: str, fields: List[Tuple[str, str, str]], required: Tuple[str, ...] = ()) -> None:
        super().__init__()
        self.title = title
        self.fields = fields
        self.required = required

    def compose(self) -> ComposeResult:
        with Container(id="fields-modal"):
            yield Static(self.title, classes="modal-title")
            with Vertical():
                for key, label, placeholder in self.fields:
                    yield Label(label)
                    yield Input(placeholder=placeholder, id=f"{key}-input")
                with Horizontal():
                    yield Button("Executar", variant="primary", id="execute-btn")
                    yield Button("Cancelar", id="cancel-btn")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "execute-btn":
            values = {key: self.query_one(f"#{key}-input", Input).value.strip() for key, _, _ in self.fields}
            missing = [k for k in self.required if not values.get(k)]
            if missing:
                self.notify(f"❌ Informe: {', '.join(missing)}", severity="warning")
                return
            self.dismiss(values)
        elif event.button.id == "cancel-btn":
            self.app.pop_screen()


class AlmoxarifadoMainframeApp(App):
    """Aplicação TUI do almoxarifado."""

    CSS = """
    Screen {
        background: #001122;
    }

    .modal-title {
        background: #003366;
        color: #ffffff;
        text-align: center;
        padding: 1;
        margin-bottom: 1;
    }

    .output-title {
        background: #004488;
        color: #ffffff;
        text-align: center;
        padding: 1;
        margin-bottom: 1;
    }

    Container#distribution-modal, Container#reversal-modal, Container#fields-modal {
        background: #112233;
        border: solid #00aaff;
        width: 80;
        height: auto;
        margin: 2;
    }

    Tree {
        background: #001a33;
        color: #ccddff;
    }

    StatusDisplay {
        background: #003366;
        color: #ffffff;
        padding: 1;
    }

    Button {
        margin: 1;
    }
    """

    TITLE = "🏬 Almoxarifado - Mainframe Terminal UI"
    BINDINGS = [
        ("q", "quit", "Sair"),
        ("r", "refresh", "Atualizar"),
    ]

    def __init__(self, db_path: str = DB_PATH) -> None:
        super().__init__()
        self.service = InventoryService(db_path)
        self.status_display: Optional[StatusDisplay] = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal():
            with Container(classes="left-panel"):
                yield MenuTreeWidget()
            with Vertical(classes="right-panel"):
                self.status_display = StatusDisplay()
                yield self.status_display
                yield Static("""
🏬 ALMOXARIFADO

- Use as setas ↑↓ para navegar no menu
- Pressione ENTER para executar uma ação
- Pressione 'r' para atualizar o status
- Pressione 'q' para sair
                """, classes="info-panel")
        yield Footer()

    def on_mount(self) -> None:
        if self.status_display:
            self.status_display.refresh_status(self.service)

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        if event.node.data:
            self.execute_action(event.node.data)

    def execute_action(self, action: str) -> None:
        log_system_event("tui_action_start", {"action": action})
        svc = self.service
        try:
            if action == "painel":
                self.show_dashboard()
            elif action == "ver-estoque":
                self.show_table("Estoque Consolidado", relatorios.tabela_estoque(svc.consolidated_stock()))
            elif action == "ver-lotes":
                svc.list_lots()
                self.show_table("Lotes", relatorios.tabela_lotes(svc.cache.snapshot()))
            elif action == "distribuir":
                self.push_screen(DistributionForm(svc), self.on_distribution_result)
            elif action == "estornar":
                self.push_screen(ReversalForm(), self.on_reversal_result)
            elif action == "registrar-ne":
                self.push_screen(FieldsForm("⬇️ Registrar NE (XLSX)", [
                    ("numero", "Número da NE:", "2025NE000123"),
                    ("fornecedor", "Fornecedor:", "Papelaria Central"),
                    ("data", "Data (AAAA-MM-DD):", "2025-01-31"),
                    ("arquivo", "Planilha (.xlsx):", "itens.xlsx"),
                ], required=("numero", "fornecedor", "data", "arquivo")), self.on_ne_result)
            elif action == "rel-movimentos":
                self.push_screen(FieldsForm("📋 Movimentações", [
                    ("texto", "Busca (opcional):", "Papel"),
                ]), self.on_movements_filter)
            elif action == "rel-estoque-baixo":
                self.show_table("Estoque Baixo", relatorios.tabela_estoque_baixo(svc.low_stock()))
            elif action == "usuarios-listar":
                rows = [[u.email, u.name, u.role.value, "sim" if u.active else "não"] for u in svc.list_users()]
                self.show_table("Usuários", (["E-mail", "Nome", "Perfil", "Ativo"], rows, None))
            elif action == "usuarios-usar":
                self.push_screen(FieldsForm("🔁 Trocar Usuário", [
                    ("email", "E-mail:", "fulano@orgao.gov.br"),
                ], required=("email",)), self.on_user_switch)
            elif action == "logs":
                self.push_screen(OutputScreen("📋 Logs de Transações", get_log_summary("transactions", lines=500)))
            elif action == "logs-resumo":
                self.show_log_summary()
        except InventoryError as e:
            log_system_event("tui_action_error", {"action": action, "error": e.as_dict()}, level="error")
            self.notify(f"❌ {e.message}", severity="error")

    # --------- telas ---------

    def show_table(self, title: str, tabela: relatorios.Tabela) -> None:
        columns, rows, msg = tabela
        if not rows:
            self.push_screen(OutputScreen(title, msg or "Nenhum dado encontrado."))
            return
        self.push_screen(OutputDataTableScreen(title, columns, rows, msg))

    def show_dashboard(self) -> None:
        d = self.service.dashboard()
        linhas = [
            f"Valor em estoque: {d['valor_estoque']:.2f}",
            f"Lotes com saldo: {d['lotes_ativos']}",
            f"Lotes com estoque baixo: {d['estoque_baixo']}",
            f"Saídas em {d['mes']}: {d['saidas_mes']:.2f}",
            "",
            "Mais consumidos:",
        ]
        linhas += [f"  {r['produto']}: {r['consumido']}" for r in d["mais_consumidos"]] or ["  (nenhum)"]
        self.push_screen(OutputScreen("📊 Painel", "\n".join(linhas)))

    def show_log_summary(self) -> None:
        log_system_event("view_log_summary")
        summary = ""
        for name in ("transactions", "entradas", "saidas", "estornos", "database", "system"):
            log_path = Path(LOGS_DIR) / f"{name}.log"
            if log_path.exists():
                summary += f"✅ {name}: {log_path.stat().st_size / 1024:.1f} KB\n"
            else:
                summary += f"❌ {name}: arquivo não encontrado\n"
        summary += f"\n📁 Diretório de logs: {LOGS_DIR}\n"
        self.push_screen(OutputScreen("Resumo dos Logs", summary))

    # --------- resultados de formulários ---------

    def on_distribution_result(self, result: Optional[Dict[str, Any]]) -> None:
        if not result:
            return
        try:
            registros = self.service.commit_distribution(result["plan"], result.get("note"))
        except InventoryError as e:
            self.notify(f"❌ {e.message}", severity="error")
            return
        rows = [[r.id, r.lot_id, r.quantity, f"{r.total_value:.2f}"] for r in registros]
        self.push_screen(OutputDataTableScreen("Saídas Registradas", ["ID", "Lote", "Qtd", "Valor"], rows))
        self.notify("✅ Distribuição registrada!")

    def on_reversal_result(self, result: Optional[Dict[str, str]]) -> None:
        if not result:
            return
        try:
            rev = self.service.reverse_exit(result["movimento"])
        except InventoryError as e:
            self.notify(f"❌ {e.message}", severity="error")
            return
        self.notify(f"✅ Estorno {rev.id}: {rev.quantity} devolvido ao lote {rev.lot_id}")

    def on_ne_result(self, result: Optional[Dict[str, str]]) -> None:
        if not result:
            return
        path = result["arquivo"]
        if not Path(path).exists():
            self.push_screen(OutputScreen("Arquivo não encontrado", f"Arquivo '{path}' não existe."))
            return
        try:
            rows = load_itens_from_xlsx(path)
            log_file_operation("load_xlsx", path, len(rows))
            doc = CommitmentDocument(id=result["numero"], supplier=result["fornecedor"], date=result["data"])
            doc = self.service.register_commitment_document(doc, itens_from_rows(rows))
        except InventoryError as e:
            self.notify(f"❌ {e.message}", severity="error")
            return
        except (OSError, ValueError) as e:
            log_system_event("tui_load_xlsx_error", {"file": path, "error": str(e)}, level="error")
            self.push_screen(OutputScreen("Erro ao importar arquivo", str(e)))
            return
        self.notify(f"✅ NE {doc.id} registrada (valor {doc.total_value:.2f})")

    def on_movements_filter(self, result: Optional[Dict[str, str]]) -> None:
        if result is None:
            return
        try:
            rep = self.service.movement_report(relatorios.MovementFilters(texto=normalize_str(result.get("texto"))))
        except InventoryError as e:
            self.notify(f"❌ {e.message}", severity="error")
            return
        t = rep["totais"]
        msg = (f"Entradas: {t['entradas_qtd']} ({t['entradas_valor']:.2f}) | "
               f"Saídas: {t['saidas_qtd']} ({t['saidas_valor']:.2f}) | Estornos: {t['estornos']}")
        columns, rows, vazio = relatorios.tabela_movimentos(rep)
        self.show_table("Movimentações", (columns, rows, msg if rows else vazio))

    def on_user_switch(self, result: Optional[Dict[str, str]]) -> None:
        if not result:
            return
        try:
            user = self.service.use_user(result["email"])
        except InventoryError as e:
            self.notify(f"❌ {e.message}", severity="error")
            return
        self.action_refresh()
        self.notify(f"👤 Sessão: {user.email} ({user.role.value})")

    def action_refresh(self) -> None:
        self.service.refresh()
        if self.status_display:
            self.status_display.refresh_status(self.service)
        self.notify("🔄 Status atualizado!", timeout=2)


def main(db_path: str = DB_PATH) -> None:
    """Executa a TUI."""
    app = AlmoxarifadoMainframeApp(db_path)
    app.run()


if __name__ == "__main__":
    main()
