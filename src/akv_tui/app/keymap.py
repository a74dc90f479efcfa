"""Key press translation.

Maps a renderer key press to an intent for the current mode. Key names
follow Textual (``up``, ``enter``, ``escape``, ``ctrl+c``, ...).
"""

from typing import Optional

from akv_tui.app import events as ev
from akv_tui.app.machine import TEXT_MODES, Mode, mode_of
from akv_tui.app.state import AppState

NAVIGATION_KEYS: dict[str, ev.Intent] = {
    "up": ev.MoveCursor(-1),
    "k": ev.MoveCursor(-1),
    "down": ev.MoveCursor(1),
    "j": ev.MoveCursor(1),
    "pageup": ev.MoveCursor(-10),
    "pagedown": ev.MoveCursor(10),
    "enter": ev.Select(),
    "/": ev.StartSearch(),
    "escape": ev.ClearFilter(),
    "r": ev.Refresh(),
    "a": ev.OpenAdd(),
    "e": ev.OpenEdit(),
    "d": ev.OpenDelete(),
    "v": ev.SwitchVault(),
    "c": ev.CopyValue(),
    "q": ev.Quit(),
}

DETAIL_KEYS: dict[str, ev.Intent] = {
    "escape": ev.CloseModal(),
    "enter": ev.CloseModal(),
    "s": ev.ToggleReveal(),
    "c": ev.CopyValue(),
    "v": ev.SwitchVault(),
    "q": ev.Quit(),
}

CONFIRM_KEYS: dict[str, ev.Intent] = {
    "y": ev.SubmitModal(),
    "enter": ev.SubmitModal(),
    "n": ev.CloseModal(),
    "escape": ev.CloseModal(),
}


def _printable(character: Optional[str]) -> bool:
    return character is not None and len(character) == 1 and character.isprintable()


def _text_mode_intent(mode: Mode, key: str, character: Optional[str]) -> Optional[ev.Intent]:
    if mode == Mode.SEARCH:
        special: dict[str, ev.Intent] = {
            "escape": ev.CancelSearch(),
            "enter": ev.CommitSearch(),
            "backspace": ev.SearchBackspace(),
            "up": ev.MoveCursor(-1),
            "down": ev.MoveCursor(1),
        }
        if key in special:
            return special[key]
        return ev.SearchInput(character) if _printable(character) else None

    special = {
        "escape": ev.CloseModal(),
        "enter": ev.SubmitModal(),
        "backspace": ev.ModalBackspace(),
        "tab": ev.ToggleField(),
    }
    if key in special:
        return special[key]
    return ev.ModalInput(character) if _printable(character) else None


def translate_key(state: AppState, key: str, character: Optional[str] = None) -> Optional[ev.Intent]:
    """
    Translate a key press into an intent for ``state``'s mode.

    Args:
        state: Current application state.
        key: Textual key name.
        character: Printable character for the key, if any.

    Returns:
        The intent, or None if the key means nothing in this mode.
    """
    if key == "ctrl+c":
        return ev.Quit()

    mode = mode_of(state)
    if mode in TEXT_MODES:
        return _text_mode_intent(mode, key, character)

    if mode == Mode.CONFIRM_DELETE:
        table = CONFIRM_KEYS
    elif mode == Mode.SECRET_DETAIL:
        table = DETAIL_KEYS
    else:
        table = NAVIGATION_KEYS

    # printable keys come through as their character ("/" is "slash")
    lookup = character if _printable(character) else key
    return table.get(lookup) or table.get(key)
