"""
Main akv-tui terminal application.

Built with Textual. The app is a thin renderer: every key press is
forwarded to the event dispatcher, and every state snapshot the
dispatcher publishes is painted onto a handful of widgets.
"""

import logging

from rich.panel import Panel
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Header, OptionList, Static

from akv_tui.app.dispatcher import EventDispatcher
from akv_tui.app.events import KeyPressed
from akv_tui.app.state import AddField, AppState, BannerLevel, Modal, ModalKind, Screen
from akv_tui.remote.exceptions import AuthenticationError
from akv_tui.remote.models import Secret
from akv_tui.runtime import Runtime

logger = logging.getLogger(__name__)

MASK = "••••••••"

VAULT_HINTS = "[b]↑↓/jk[/b] move  [b]enter[/b] open  [b]/[/b] search  [b]r[/b] refresh  [b]q[/b] quit"
SECRET_HINTS = (
    "[b]enter[/b] details  [b]/[/b] search  [b]a[/b] add  [b]e[/b] edit  [b]d[/b] delete  "
    "[b]c[/b] copy  [b]r[/b] refresh  [b]v[/b] vaults  [b]q[/b] quit"
)
SEARCH_HINTS = "type to filter  [b]enter[/b] keep filter  [b]esc[/b] clear"

BANNER_STYLES = {
    BannerLevel.INFO: "blue",
    BannerLevel.SUCCESS: "green",
    BannerLevel.ERROR: "bold red",
}


class RowList(OptionList, can_focus=False):
    """Option list driven entirely by state snapshots."""


def _secret_row(secret: Secret) -> Text:
    row = Text(secret.name)
    if not secret.enabled:
        row.append("  (disabled)", style="dim red")
    if secret.updated_on is not None:
        row.append(f"  {secret.updated_on:%Y-%m-%d %H:%M}", style="dim")
    return row


def _input_line(label: str, text: str, focused: bool) -> Text:
    line = Text(f"{label}: ", style="bold" if focused else "dim")
    line.append(text)
    if focused:
        line.append("▌", style="blink")
    return line


def render_modal(modal: Modal, mask_values: bool = True) -> Panel:
    """Build the panel for an open modal."""
    body = Text()

    if modal.kind == ModalKind.SECRET_DETAIL:
        secret = modal.secret
        body.append(f"Name: {modal.secret_name}\n", style="bold")
        if secret is not None:
            body.append(f"Version: {secret.version or '-'}\n")
            body.append(f"Enabled: {'yes' if secret.enabled else 'no'}\n")
            updated = f"{secret.updated_on:%Y-%m-%d %H:%M:%S %Z}" if secret.updated_on else "-"
            body.append(f"Updated: {updated}\n")
            body.append(f"Content type: {secret.content_type or '-'}\n")
        if modal.loading:
            body.append("Value: loading…\n", style="dim")
        elif secret is not None and secret.value is not None:
            shown = secret.value if (modal.revealed or not mask_values) else MASK
            body.append(f"Value: {shown}\n")
        body.append("\ns reveal · c copy · esc close", style="dim")
        title = "Secret"

    elif modal.kind == ModalKind.ADD_SECRET:
        body.append_text(_input_line("Name", modal.secret_name, modal.focus == AddField.NAME))
        body.append("\n")
        body.append_text(_input_line("Value", modal.value, modal.focus == AddField.VALUE))
        body.append("\n\ntab switch field · enter save · esc cancel", style="dim")
        title = "Add secret"

    elif modal.kind == ModalKind.EDIT_SECRET:
        body.append(f"Name: {modal.secret_name}\n", style="bold")
        if modal.loading:
            body.append("Value: loading…", style="dim")
        else:
            body.append_text(_input_line("Value", modal.value, True))
        body.append("\n\nenter save · esc cancel", style="dim")
        title = "Edit secret"

    else:
        body.append(f"Delete secret '{modal.secret_name}'?\n\n", style="bold")
        body.append("y confirm · n cancel", style="dim")
        title = "Confirm delete"

    if modal.submitting:
        body.append("\nworking…", style="italic yellow")
    return Panel(body, title=title, border_style="red" if modal.kind == ModalKind.CONFIRM_DELETE else "cyan")


class AkvApp(App):
    """Azure Key Vault secrets browser."""

    TITLE = "Azure Key Vault"

    CSS = """
    Screen {
        background: $surface;
    }

    #context {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }

    #rows {
        height: 1fr;
        border: round $primary;
    }

    #modal {
        height: auto;
        max-height: 50%;
        margin: 0 4;
        display: none;
    }

    #banner {
        height: 1;
        padding: 0 1;
    }

    #hints {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    """

    def __init__(self, runtime: Runtime):
        """Initialize the application.

        Args:
            runtime: Assembled remote and caching stack.
        """
        super().__init__()
        self.runtime = runtime
        self.dispatcher: EventDispatcher | None = None
        self.startup_error: str | None = None
        self.theme = "textual-dark" if runtime.config.ui.dark else "textual-light"
        self._mask_values = runtime.config.ui.mask_values

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical():
            yield Static(id="context")
            yield RowList(id="rows")
            yield Static(id="modal")
            yield Static(id="banner")
            yield Static(id="hints")

    def on_mount(self) -> None:
        """Verify credentials, then hand control to the dispatcher."""
        self.query_one("#context", Static).update("Checking credentials…")
        self.run_worker(self._run_dispatcher(), name="dispatcher", exclusive=True)

    async def _run_dispatcher(self) -> None:
        try:
            await self.runtime.verify_credentials()
        except AuthenticationError as e:
            logger.error(f"Startup authentication failed: {e.message}")
            self.startup_error = e.message
            await self.runtime.aclose()
            self.exit(return_code=1)
            return

        cache_config = self.runtime.config.cache
        self.dispatcher = EventDispatcher(
            self.runtime.cache,
            render=self.render_state,
            clipboard=self.copy_to_clipboard,
            preload_all=cache_config.preload_all,
            preload_concurrency=cache_config.preload_concurrency,
        )
        try:
            await self.dispatcher.run()
        finally:
            await self.dispatcher.shutdown()
            await self.runtime.aclose()
        self.exit(return_code=0)

    def on_key(self, event: events.Key) -> None:
        """Forward every key press to the dispatcher."""
        if self.dispatcher is None:
            return
        self.dispatcher.submit(KeyPressed(event.key, event.character))
        event.stop()
        event.prevent_default()

    def render_state(self, state: AppState) -> None:
        """Paint a state snapshot."""
        self._render_context(state)
        self._render_rows(state)
        self._render_modal(state)
        self._render_banner(state)

        if state.search_active:
            hints = SEARCH_HINTS
        elif state.screen == Screen.SECRET_LIST:
            hints = SECRET_HINTS
        else:
            hints = VAULT_HINTS
        self.query_one("#hints", Static).update(hints)

    def _render_context(self, state: AppState) -> None:
        vault = state.selected_vault
        self.sub_title = vault.name if vault is not None else "Select a vault"

        line = Text()
        if state.search_active:
            line.append(f"🔍 {state.search_query}▌")
        elif state.search_query:
            line.append(f"Filter: {state.search_query}  (esc to clear)")
        elif state.screen == Screen.SECRET_LIST:
            line.append(f"{len(state.secrets)} secrets in {vault.name if vault else '-'}")
        else:
            line.append(f"{len(state.vaults)} vaults")

        if state.loading:
            line.append(f"  loading… {state.loaded_count}", style="italic yellow")
        self.query_one("#context", Static).update(line)

    def _render_rows(self, state: AppState) -> None:
        rows = self.query_one("#rows", RowList)
        rows.clear_options()
        if state.screen == Screen.VAULT_SELECTION:
            rows.add_options([Text(vault.name) for vault in state.visible_vaults])
        else:
            rows.add_options([_secret_row(secret) for secret in state.visible_secrets])
        if rows.option_count:
            rows.highlighted = state.cursor

    def _render_modal(self, state: AppState) -> None:
        panel = self.query_one("#modal", Static)
        if state.modal is None:
            panel.display = False
            return
        panel.update(render_modal(state.modal, mask_values=self._mask_values))
        panel.display = True

    def _render_banner(self, state: AppState) -> None:
        banner = state.banner
        widget = self.query_one("#banner", Static)
        if banner is None:
            widget.update("")
            return
        widget.update(Text(banner.message, style=BANNER_STYLES[banner.level]))


def run_tui(runtime: Runtime) -> int:
    """Run the TUI until the operator quits.

    Args:
        runtime: Assembled remote and caching stack.

    Returns:
        Process exit code.
    """
    app = AkvApp(runtime)
    app.run()
    if app.startup_error:
        from akv_tui.cli.output import print_error

        print_error(f"Authentication failed: {app.startup_error}")
    return app.return_code or 0
