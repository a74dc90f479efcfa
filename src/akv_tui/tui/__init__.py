"""
akv-tui terminal user interface.

Built with the Textual framework.
"""

from akv_tui.tui.app import AkvApp, run_tui

__all__ = ["AkvApp", "run_tui"]
