"""
Event dispatcher.

The dispatcher is the single owner of AppState. Everything that can
change the state arrives as an event on one asyncio queue: key presses
from the renderer and completion messages from background tasks. The
loop applies exactly one event at a time, replaces the state snapshot
and asks the renderer to draw it.

Background work (listings, value fetches, mutations) runs as asyncio
tasks that talk to the resource cache and post their outcome back onto
the queue. They never touch AppState.

Stale results are dropped on receipt. Every listing request gets a
fresh request id; the latest id per vault (and one for the vault
inventory) is remembered, and a result is applied only when its vault
is still selected and its id is still the latest.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable, Coroutine
from dataclasses import replace
from typing import Any, Optional

from akv_tui.app import events as ev
from akv_tui.app.keymap import translate_key
from akv_tui.app.machine import ViewStateMachine, mode_of
from akv_tui.app.state import (
    AddField,
    AppState,
    Banner,
    BannerLevel,
    Modal,
    ModalKind,
    Screen,
)
from akv_tui.cache.resources import ResourceCache
from akv_tui.remote.client import validate_secret_name
from akv_tui.remote.exceptions import AkvError, ValidationError, classify_error
from akv_tui.remote.models import Secret, Vault

logger = logging.getLogger(__name__)

RenderCallback = Callable[[AppState], None]
ClipboardCallback = Callable[[str], None]

# request-id slot for the vault inventory
VAULTS_SLOT = "*vaults*"


def error_banner(error: AkvError, context: str = "") -> Banner:
    """Build an error banner for a surfaced failure."""
    message = f"{context}: {error.message}" if context else error.message
    return Banner(message=message, level=BannerLevel.ERROR, failure_type=classify_error(error))


class EventDispatcher:
    """
    Serial event loop owning the application state.

    Usage:
        dispatcher = EventDispatcher(cache, render=app.render_state)
        dispatcher.submit(KeyPressed("j"))
        await dispatcher.run()
    """

    def __init__(
        self,
        cache: ResourceCache,
        render: Optional[RenderCallback] = None,
        clipboard: Optional[ClipboardCallback] = None,
        preload_all: bool = False,
        preload_concurrency: int = 4,
        machine: Optional[ViewStateMachine] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            cache: Resource cache used by background work.
            render: Called with every new state snapshot.
            clipboard: Copies text to the system clipboard.
            preload_all: Warm every vault's listing after vaults load.
            preload_concurrency: Parallel listings while preloading.
            machine: Legality checks. Defaults to ViewStateMachine().
        """
        self.cache = cache
        self.machine = machine or ViewStateMachine()
        self.preload_all = preload_all
        self.preload_concurrency = preload_concurrency
        self._render = render
        self._clipboard = clipboard
        self._state = AppState()
        self._queue: asyncio.Queue[ev.Event] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._request_ids = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._started = False

        self._handlers: dict[type, Callable[[Any], AppState]] = {
            ev.MoveCursor: self._on_move_cursor,
            ev.Select: self._on_select,
            ev.StartSearch: self._on_start_search,
            ev.SearchInput: self._on_search_input,
            ev.SearchBackspace: self._on_search_backspace,
            ev.CommitSearch: self._on_commit_search,
            ev.CancelSearch: self._on_cancel_search,
            ev.ClearFilter: self._on_clear_filter,
            ev.OpenAdd: self._on_open_add,
            ev.OpenEdit: self._on_open_edit,
            ev.OpenDelete: self._on_open_delete,
            ev.CloseModal: self._on_close_modal,
            ev.ModalInput: self._on_modal_input,
            ev.ModalBackspace: self._on_modal_backspace,
            ev.ToggleField: self._on_toggle_field,
            ev.ToggleReveal: self._on_toggle_reveal,
            ev.SubmitModal: self._on_submit_modal,
            ev.Refresh: self._on_refresh,
            ev.SwitchVault: self._on_switch_vault,
            ev.CopyValue: self._on_copy_value,
            ev.Quit: self._on_quit,
            ev.LoadingProgress: self._on_loading_progress,
            ev.VaultsLoaded: self._on_vaults_loaded,
            ev.VaultsFailed: self._on_vaults_failed,
            ev.SecretsLoaded: self._on_secrets_loaded,
            ev.SecretsFailed: self._on_secrets_failed,
            ev.SecretValueLoaded: self._on_value_loaded,
            ev.SecretValueFailed: self._on_value_failed,
            ev.MutationSucceeded: self._on_mutation_succeeded,
            ev.MutationFailed: self._on_mutation_failed,
        }

    # =========================================================================
    # Public interface
    # =========================================================================

    @property
    def state(self) -> AppState:
        """Current state snapshot."""
        return self._state

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def submit(self, event: ev.Event) -> None:
        """Queue an event for the loop. Never blocks."""
        self._queue.put_nowait(event)

    def start(self) -> None:
        """Kick off the initial vault inventory load."""
        if self._started:
            return
        self._started = True
        self._state = self._request_vaults(self._state, refresh=False)
        self._emit()

    async def run(self) -> AppState:
        """
        Apply queued events until a quit is applied.

        Returns:
            The final state.
        """
        self.start()
        while not self._state.should_quit:
            event = await self._queue.get()
            self.apply(event)
        await self.shutdown()
        return self._state

    def apply(self, event: ev.Event) -> AppState:
        """
        Apply one event and render the result.

        Key presses are translated against the current state first.
        Illegal intents are ignored.

        Args:
            event: Event to apply.

        Returns:
            The (possibly unchanged) state.
        """
        if isinstance(event, ev.KeyPressed):
            intent = translate_key(self._state, event.key, event.character)
            if intent is None:
                return self._state
            event = intent

        if not self.machine.is_legal(self._state, event):
            logger.debug(f"Ignoring {type(event).__name__} in mode {mode_of(self._state).value}")
            return self._state

        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning(f"No handler for event {type(event).__name__}")
            return self._state

        state = self._state
        if isinstance(event, ev.Intent) and state.banner and not isinstance(event, ev.MoveCursor):
            state = replace(state, banner=None)
            self._state = state

        self._state = handler(event)
        self._emit()
        return self._state

    async def settle(self) -> AppState:
        """Wait for background work and apply everything it posted."""
        while True:
            while not self._queue.empty():
                self.apply(self._queue.get_nowait())
            if not self._tasks:
                break
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        return self._state

    async def shutdown(self) -> None:
        """Cancel outstanding background work."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # Plumbing
    # =========================================================================

    def _emit(self) -> None:
        if self._render is not None:
            self._render(self._state)

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task {task.get_name()} crashed", exc_info=task.exception())

    def _next_request(self, slot: str) -> int:
        request_id = next(self._request_ids)
        self._latest[slot] = request_id
        return request_id

    def _is_current_listing(self, vault_id: str, request_id: int) -> bool:
        selected = self._state.selected_vault
        return (
            selected is not None
            and selected.id == vault_id
            and self._latest.get(vault_id) == request_id
        )

    def _is_selected(self, vault_id: str) -> bool:
        selected = self._state.selected_vault
        return selected is not None and selected.id == vault_id

    # =========================================================================
    # Background work
    # =========================================================================

    def _request_vaults(self, state: AppState, refresh: bool) -> AppState:
        request_id = self._next_request(VAULTS_SLOT)
        self._spawn(self._load_vaults(request_id, refresh), name=f"vaults-{request_id}")
        return replace(state, loading=True, loaded_count=0)

    def _request_secrets(self, state: AppState, vault: Vault, refresh: bool) -> AppState:
        request_id = self._next_request(vault.id)
        self._spawn(
            self._load_secrets(vault, request_id, refresh),
            name=f"secrets-{vault.name}-{request_id}",
        )
        return replace(state, loading=True, loaded_count=0)

    async def _load_vaults(self, request_id: int, refresh: bool) -> None:
        def progress(count: int) -> None:
            self.submit(ev.LoadingProgress(ev.ListingKind.VAULTS, request_id, count))

        try:
            vaults = await self.cache.list_vaults(refresh=refresh, on_progress=progress)
        except AkvError as e:
            logger.debug("Vault listing failed", exc_info=True)
            self.submit(ev.VaultsFailed(request_id, e))
            return
        self.submit(ev.VaultsLoaded(request_id, vaults))

    async def _load_secrets(self, vault: Vault, request_id: int, refresh: bool) -> None:
        def progress(count: int) -> None:
            self.submit(ev.LoadingProgress(ev.ListingKind.SECRETS, request_id, count, vault.id))

        try:
            secrets = await self.cache.list_secrets(vault, refresh=refresh, on_progress=progress)
        except AkvError as e:
            logger.debug(f"Secret listing for {vault.name} failed", exc_info=True)
            self.submit(ev.SecretsFailed(vault.id, request_id, e))
            return
        self.submit(ev.SecretsLoaded(vault.id, request_id, secrets))

    async def _load_value(self, vault: Vault, name: str, purpose: ev.ValuePurpose) -> None:
        try:
            secret = await self.cache.get_secret(vault, name)
        except AkvError as e:
            logger.debug(f"Fetching {name} from {vault.name} failed", exc_info=True)
            self.submit(ev.SecretValueFailed(vault.id, purpose, name, e))
            return
        self.submit(ev.SecretValueLoaded(vault.id, purpose, secret))

    async def _put_secret(self, vault: Vault, name: str, value: str) -> None:
        try:
            secret = await self.cache.put_secret(vault, name, value)
        except AkvError as e:
            logger.debug(f"Storing {name} in {vault.name} failed", exc_info=True)
            self.submit(ev.MutationFailed(vault.id, ev.MutationKind.PUT, name, e))
            return
        self.submit(
            ev.MutationSucceeded(
                vault.id, ev.MutationKind.PUT, secret.name, self.cache.cached_secrets(vault.id)
            )
        )

    async def _delete_secret(self, vault: Vault, name: str) -> None:
        try:
            await self.cache.delete_secret(vault, name)
        except AkvError as e:
            logger.debug(f"Deleting {name} from {vault.name} failed", exc_info=True)
            self.submit(ev.MutationFailed(vault.id, ev.MutationKind.DELETE, name, e))
            return
        self.submit(
            ev.MutationSucceeded(
                vault.id, ev.MutationKind.DELETE, name, self.cache.cached_secrets(vault.id)
            )
        )

    async def _preload(self, vaults: tuple[Vault, ...]) -> None:
        await self.cache.preload(vaults, concurrency=self.preload_concurrency)

    # =========================================================================
    # Navigation and search
    # =========================================================================

    def _on_move_cursor(self, event: ev.MoveCursor) -> AppState:
        state = self._state
        return replace(state, cursor=state.clamp_cursor(state.cursor + event.delta))

    def _on_select(self, event: ev.Select) -> AppState:
        state = self._state
        item = state.current_item
        if isinstance(item, Secret):
            return self._open_detail(state, item)

        if isinstance(item, Vault):
            vault = item
            cached = self.cache.cached_secrets(vault.id)
            state = replace(
                state,
                screen=Screen.SECRET_LIST,
                selected_vault=vault,
                secrets=cached or (),
                search_active=False,
                search_query="",
                cursor=0,
            )
            logger.info(f"Selected vault {vault.name}")
            return self._request_secrets(state, vault, refresh=False)

        return state

    def _on_start_search(self, event: ev.StartSearch) -> AppState:
        return replace(self._state, search_active=True, search_query="", cursor=0)

    def _on_search_input(self, event: ev.SearchInput) -> AppState:
        state = self._state
        return replace(state, search_query=state.search_query + event.text, cursor=0)

    def _on_search_backspace(self, event: ev.SearchBackspace) -> AppState:
        state = self._state
        return replace(state, search_query=state.search_query[:-1], cursor=0)

    def _on_commit_search(self, event: ev.CommitSearch) -> AppState:
        return replace(self._state, search_active=False)

    def _on_cancel_search(self, event: ev.CancelSearch) -> AppState:
        return replace(self._state, search_active=False, search_query="", cursor=0)

    def _on_clear_filter(self, event: ev.ClearFilter) -> AppState:
        state = self._state
        if not state.search_query:
            return state
        return replace(state, search_query="", cursor=0)

    def _on_refresh(self, event: ev.Refresh) -> AppState:
        state = self._state
        if state.screen == Screen.VAULT_SELECTION:
            return self._request_vaults(state, refresh=True)
        vault = state.selected_vault
        if vault is None:
            return state
        return self._request_secrets(state, vault, refresh=True)

    def _on_switch_vault(self, event: ev.SwitchVault) -> AppState:
        state = self._state
        previous = state.selected_vault
        if previous is not None:
            # any outstanding listing for it is stale now
            self._latest.pop(previous.id, None)
        cursor = state.vaults.index(previous) if previous in state.vaults else 0
        return replace(
            state,
            screen=Screen.VAULT_SELECTION,
            selected_vault=None,
            secrets=(),
            modal=None,
            search_active=False,
            search_query="",
            cursor=cursor,
            loading=False,
            loaded_count=0,
        )

    def _on_quit(self, event: ev.Quit) -> AppState:
        logger.info("Quit requested")
        return replace(self._state, should_quit=True)

    # =========================================================================
    # Modals
    # =========================================================================

    def _current_secret(self, state: AppState) -> Optional[Secret]:
        item = state.current_item
        return item if isinstance(item, Secret) else None

    def _open_detail(self, state: AppState, secret: Secret) -> AppState:
        vault = state.selected_vault
        if vault is None:
            return state
        self._spawn(self._load_value(vault, secret.name, ev.ValuePurpose.DETAIL), name="detail")
        return replace(
            state,
            modal=Modal(kind=ModalKind.SECRET_DETAIL, secret_name=secret.name, secret=secret, loading=True),
        )

    def _on_open_add(self, event: ev.OpenAdd) -> AppState:
        return replace(self._state, modal=Modal(kind=ModalKind.ADD_SECRET))

    def _on_open_edit(self, event: ev.OpenEdit) -> AppState:
        state = self._state
        secret = self._current_secret(state)
        vault = state.selected_vault
        if secret is None or vault is None:
            return state
        self._spawn(self._load_value(vault, secret.name, ev.ValuePurpose.EDIT), name="edit")
        return replace(
            state,
            modal=Modal(
                kind=ModalKind.EDIT_SECRET,
                secret_name=secret.name,
                focus=AddField.VALUE,
                loading=True,
            ),
        )

    def _on_open_delete(self, event: ev.OpenDelete) -> AppState:
        state = self._state
        secret = self._current_secret(state)
        if secret is None:
            return state
        return replace(state, modal=Modal(kind=ModalKind.CONFIRM_DELETE, secret_name=secret.name))

    def _on_close_modal(self, event: ev.CloseModal) -> AppState:
        return replace(self._state, modal=None)

    def _on_modal_input(self, event: ev.ModalInput) -> AppState:
        state = self._state
        modal = state.modal
        if modal is None or modal.loading or modal.submitting:
            return state
        if modal.kind == ModalKind.ADD_SECRET and modal.focus == AddField.NAME:
            modal = replace(modal, secret_name=modal.secret_name + event.text)
        else:
            modal = replace(modal, value=modal.value + event.text)
        return replace(state, modal=modal)

    def _on_modal_backspace(self, event: ev.ModalBackspace) -> AppState:
        state = self._state
        modal = state.modal
        if modal is None or modal.loading or modal.submitting:
            return state
        if modal.kind == ModalKind.ADD_SECRET and modal.focus == AddField.NAME:
            modal = replace(modal, secret_name=modal.secret_name[:-1])
        else:
            modal = replace(modal, value=modal.value[:-1])
        return replace(state, modal=modal)

    def _on_toggle_field(self, event: ev.ToggleField) -> AppState:
        state = self._state
        modal = state.modal
        if modal is None:
            return state
        focus = AddField.VALUE if modal.focus == AddField.NAME else AddField.NAME
        return replace(state, modal=replace(modal, focus=focus))

    def _on_toggle_reveal(self, event: ev.ToggleReveal) -> AppState:
        state = self._state
        modal = state.modal
        if modal is None:
            return state
        return replace(state, modal=replace(modal, revealed=not modal.revealed))

    def _on_submit_modal(self, event: ev.SubmitModal) -> AppState:
        state = self._state
        modal = state.modal
        vault = state.selected_vault
        if modal is None or vault is None or modal.submitting or modal.loading:
            return state

        if modal.kind == ModalKind.CONFIRM_DELETE:
            self._spawn(self._delete_secret(vault, modal.secret_name), name=f"delete-{modal.secret_name}")
            return replace(state, modal=replace(modal, submitting=True))

        try:
            name = validate_secret_name(modal.secret_name)
        except ValidationError as e:
            return replace(state, banner=error_banner(e))

        self._spawn(self._put_secret(vault, name, modal.value), name=f"put-{name}")
        return replace(state, modal=replace(modal, secret_name=name, submitting=True))

    def _on_copy_value(self, event: ev.CopyValue) -> AppState:
        state = self._state
        vault = state.selected_vault
        if vault is None:
            return state

        modal = state.modal
        if modal is not None and modal.secret is not None and modal.secret.value is not None:
            return self._copy(state, modal.secret)

        secret = modal.secret if modal is not None else self._current_secret(state)
        if secret is None:
            return state
        self._spawn(self._load_value(vault, secret.name, ev.ValuePurpose.COPY), name="copy")
        return state

    def _copy(self, state: AppState, secret: Secret) -> AppState:
        if self._clipboard is None:
            return replace(state, banner=Banner("Clipboard is not available", BannerLevel.ERROR))
        self._clipboard(secret.value or "")
        return replace(state, banner=Banner(f"Copied '{secret.name}' to clipboard", BannerLevel.SUCCESS))

    # =========================================================================
    # Completions
    # =========================================================================

    def _on_loading_progress(self, event: ev.LoadingProgress) -> AppState:
        state = self._state
        if event.kind == ev.ListingKind.VAULTS:
            relevant = self._latest.get(VAULTS_SLOT) == event.request_id
        else:
            relevant = event.vault_id is not None and self._is_current_listing(
                event.vault_id, event.request_id
            )
        if not relevant:
            return state
        return replace(state, loaded_count=event.count)

    def _on_vaults_loaded(self, event: ev.VaultsLoaded) -> AppState:
        state = self._state
        if self._latest.get(VAULTS_SLOT) != event.request_id:
            logger.debug(f"Discarding stale vault listing #{event.request_id}")
            return state

        if state.screen == Screen.VAULT_SELECTION:
            state = replace(state, vaults=event.vaults, loading=False)
            state = replace(state, cursor=state.clamp_cursor(state.cursor))
        else:
            state = replace(state, vaults=event.vaults)

        if self.preload_all and event.vaults:
            self._spawn(self._preload(event.vaults), name="preload")
        return state

    def _on_vaults_failed(self, event: ev.VaultsFailed) -> AppState:
        state = self._state
        if self._latest.get(VAULTS_SLOT) != event.request_id:
            return state
        loading = False if state.screen == Screen.VAULT_SELECTION else state.loading
        return replace(state, loading=loading, banner=error_banner(event.error, "Loading vaults failed"))

    def _on_secrets_loaded(self, event: ev.SecretsLoaded) -> AppState:
        state = self._state
        if not self._is_current_listing(event.vault_id, event.request_id):
            logger.debug(f"Discarding stale secret listing #{event.request_id} for {event.vault_id}")
            return state
        state = replace(state, secrets=event.secrets, loading=False)
        return replace(state, cursor=state.clamp_cursor(state.cursor))

    def _on_secrets_failed(self, event: ev.SecretsFailed) -> AppState:
        state = self._state
        if not self._is_current_listing(event.vault_id, event.request_id):
            return state
        return replace(state, loading=False, banner=error_banner(event.error, "Loading secrets failed"))

    def _modal_for(self, state: AppState, kind: ModalKind, name: str) -> Optional[Modal]:
        modal = state.modal
        if modal is not None and modal.kind == kind and modal.secret_name == name:
            return modal
        return None

    def _on_value_loaded(self, event: ev.SecretValueLoaded) -> AppState:
        state = self._state
        if not self._is_selected(event.vault_id):
            return state
        secret = event.secret

        if event.purpose == ev.ValuePurpose.COPY:
            return self._copy(state, secret)

        if event.purpose == ev.ValuePurpose.DETAIL:
            modal = self._modal_for(state, ModalKind.SECRET_DETAIL, secret.name)
            if modal is None:
                return state
            return replace(state, modal=replace(modal, secret=secret, loading=False))

        modal = self._modal_for(state, ModalKind.EDIT_SECRET, secret.name)
        if modal is None:
            return state
        return replace(state, modal=replace(modal, value=secret.value or "", loading=False))

    def _on_value_failed(self, event: ev.SecretValueFailed) -> AppState:
        state = self._state
        if not self._is_selected(event.vault_id):
            return state
        banner = error_banner(event.error, f"Reading '{event.name}' failed")

        if event.purpose == ev.ValuePurpose.DETAIL:
            modal = self._modal_for(state, ModalKind.SECRET_DETAIL, event.name)
            if modal is not None:
                # metadata is still worth showing
                return replace(state, modal=replace(modal, loading=False), banner=banner)
        elif event.purpose == ev.ValuePurpose.EDIT:
            if self._modal_for(state, ModalKind.EDIT_SECRET, event.name) is not None:
                return replace(state, modal=None, banner=banner)
        return replace(state, banner=banner)

    def _on_mutation_succeeded(self, event: ev.MutationSucceeded) -> AppState:
        state = self._state
        if event.kind == ev.MutationKind.DELETE:
            banner = Banner(f"Deleted '{event.name}'", BannerLevel.SUCCESS)
            kinds = (ModalKind.CONFIRM_DELETE,)
        else:
            banner = Banner(f"Saved '{event.name}'", BannerLevel.SUCCESS)
            kinds = (ModalKind.ADD_SECRET, ModalKind.EDIT_SECRET)

        if not self._is_selected(event.vault_id):
            return replace(state, banner=banner)

        modal = state.modal
        if modal is not None and modal.kind in kinds and modal.submitting:
            modal = None

        secrets = event.secrets if event.secrets is not None else state.secrets
        state = replace(state, secrets=secrets, modal=modal, banner=banner)
        return replace(state, cursor=state.clamp_cursor(state.cursor))

    def _on_mutation_failed(self, event: ev.MutationFailed) -> AppState:
        state = self._state
        verb = "Deleting" if event.kind == ev.MutationKind.DELETE else "Saving"
        banner = error_banner(event.error, f"{verb} '{event.name}' failed")

        modal = state.modal
        if modal is not None and modal.submitting and self._is_selected(event.vault_id):
            if event.kind == ev.MutationKind.DELETE:
                modal = None
            else:
                # keep the form so the input is not lost
                modal = replace(modal, submitting=False)
        return replace(state, modal=modal, banner=banner)
