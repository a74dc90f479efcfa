"""View state machine.

Derives the current mode from an AppState and decides which intents are
legal in it. Illegal intents are dropped by the dispatcher without an
error. Completions are always accepted here; whether they are still
relevant is the dispatcher's call.
"""

import logging
from enum import Enum

from akv_tui.app import events as ev
from akv_tui.app.state import AppState, ModalKind, Screen

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    """Interaction modes, modal first, then search, then screen."""

    VAULT_SELECTION = "vault_selection"
    SECRET_LIST = "secret_list"
    SEARCH = "search"
    SECRET_DETAIL = "secret_detail"
    ADD_SECRET = "add_secret"
    EDIT_SECRET = "edit_secret"
    CONFIRM_DELETE = "confirm_delete"


_MODAL_MODES = {
    ModalKind.SECRET_DETAIL: Mode.SECRET_DETAIL,
    ModalKind.ADD_SECRET: Mode.ADD_SECRET,
    ModalKind.EDIT_SECRET: Mode.EDIT_SECRET,
    ModalKind.CONFIRM_DELETE: Mode.CONFIRM_DELETE,
}

# Modes that consume printable keys as text
TEXT_MODES = frozenset({Mode.SEARCH, Mode.ADD_SECRET, Mode.EDIT_SECRET})

_LIST_NAVIGATION: frozenset[type[ev.Intent]] = frozenset(
    {ev.MoveCursor, ev.Select, ev.StartSearch, ev.ClearFilter, ev.Refresh}
)

LEGAL_INTENTS: dict[Mode, frozenset[type[ev.Intent]]] = {
    Mode.VAULT_SELECTION: _LIST_NAVIGATION,
    Mode.SECRET_LIST: _LIST_NAVIGATION
    | {ev.OpenAdd, ev.OpenEdit, ev.OpenDelete, ev.SwitchVault, ev.CopyValue},
    Mode.SEARCH: frozenset(
        {ev.SearchInput, ev.SearchBackspace, ev.CommitSearch, ev.CancelSearch, ev.MoveCursor}
    ),
    Mode.SECRET_DETAIL: frozenset({ev.CloseModal, ev.ToggleReveal, ev.CopyValue, ev.SwitchVault}),
    Mode.ADD_SECRET: frozenset(
        {ev.ModalInput, ev.ModalBackspace, ev.ToggleField, ev.SubmitModal, ev.CloseModal}
    ),
    Mode.EDIT_SECRET: frozenset(
        {ev.ModalInput, ev.ModalBackspace, ev.SubmitModal, ev.CloseModal}
    ),
    Mode.CONFIRM_DELETE: frozenset({ev.SubmitModal, ev.CloseModal}),
}


def mode_of(state: AppState) -> Mode:
    """The interaction mode ``state`` is in."""
    if state.modal is not None:
        return _MODAL_MODES[state.modal.kind]
    if state.search_active:
        return Mode.SEARCH
    if state.screen == Screen.SECRET_LIST:
        return Mode.SECRET_LIST
    return Mode.VAULT_SELECTION


class ViewStateMachine:
    """Legality checks for events against the current mode."""

    def __init__(self, legal: dict[Mode, frozenset[type[ev.Intent]]] | None = None):
        self.legal = legal or LEGAL_INTENTS

    def is_legal(self, state: AppState, event: ev.Event) -> bool:
        """
        Check whether ``event`` may be applied to ``state``.

        Args:
            state: Current application state.
            event: Intent or completion to check.

        Returns:
            True for completions, and for intents allowed in the current mode.
        """
        if isinstance(event, ev.Completion):
            return True
        if isinstance(event, ev.Quit):
            return True
        if not isinstance(event, ev.Intent):
            return False
        return type(event) in self.legal.get(mode_of(state), frozenset())
