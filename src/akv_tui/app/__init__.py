"""Application core: state, events, state machine and dispatcher.

Architecture:
    Renderer key press → EventDispatcher → ViewStateMachine (legality)
    → background task → ResourceCache → completion → EventDispatcher
"""

from akv_tui.app.dispatcher import EventDispatcher
from akv_tui.app.machine import Mode, ViewStateMachine, mode_of
from akv_tui.app.state import AddField, AppState, Banner, BannerLevel, Modal, ModalKind, Screen

__all__ = [
    "AddField",
    "AppState",
    "Banner",
    "BannerLevel",
    "EventDispatcher",
    "Modal",
    "ModalKind",
    "Mode",
    "Screen",
    "ViewStateMachine",
    "mode_of",
]
