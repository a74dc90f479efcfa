"""Application state for akv-tui.

AppState is a frozen value. The event dispatcher is its only owner and
replaces it wholesale on every applied event; renderers only ever see
snapshots.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from akv_tui.fuzzy import fuzzy_filter
from akv_tui.remote.exceptions import FailureType
from akv_tui.remote.models import Secret, Vault


class Screen(str, Enum):
    """Top-level screens."""

    VAULT_SELECTION = "vault_selection"
    SECRET_LIST = "secret_list"


class ModalKind(str, Enum):
    """Modal panels drawn over the secret list."""

    SECRET_DETAIL = "secret_detail"
    ADD_SECRET = "add_secret"
    EDIT_SECRET = "edit_secret"
    CONFIRM_DELETE = "confirm_delete"


class AddField(str, Enum):
    """Input field focused in the add-secret modal."""

    NAME = "name"
    VALUE = "value"


class BannerLevel(str, Enum):
    """Severity of the status banner."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Modal:
    """An open modal.

    ``secret_name`` is the target secret (detail, edit, delete) or the
    name being typed (add). ``value`` is the text typed into the value
    field.
    """

    kind: ModalKind
    secret_name: str = ""
    value: str = ""
    focus: AddField = AddField.NAME
    loading: bool = False  # value fetch in flight
    submitting: bool = False  # mutation in flight
    secret: Optional[Secret] = field(default=None, repr=False)
    revealed: bool = False


@dataclass(frozen=True)
class Banner:
    """Status line message."""

    message: str
    level: BannerLevel = BannerLevel.INFO
    failure_type: Optional[FailureType] = None

    @property
    def is_error(self) -> bool:
        return self.level == BannerLevel.ERROR


@dataclass(frozen=True)
class AppState:
    """Snapshot of everything the UI shows."""

    screen: Screen = Screen.VAULT_SELECTION
    vaults: tuple[Vault, ...] = ()
    selected_vault: Optional[Vault] = None
    secrets: tuple[Secret, ...] = ()
    search_active: bool = False
    search_query: str = ""
    cursor: int = 0
    modal: Optional[Modal] = None
    banner: Optional[Banner] = None
    loading: bool = False
    loaded_count: int = 0  # running total while pages merge
    should_quit: bool = False

    @property
    def modal_depth(self) -> int:
        return 0 if self.modal is None else 1

    @property
    def visible_vaults(self) -> list[Vault]:
        return fuzzy_filter(self.search_query, list(self.vaults), key=lambda v: v.name)

    @property
    def visible_secrets(self) -> list[Secret]:
        return fuzzy_filter(self.search_query, list(self.secrets), key=lambda s: s.name)

    @property
    def visible_items(self) -> Union[list[Vault], list[Secret]]:
        """Rows of the current screen after search filtering."""
        if self.screen == Screen.VAULT_SELECTION:
            return self.visible_vaults
        return self.visible_secrets

    @property
    def current_item(self) -> Union[Vault, Secret, None]:
        """Row under the cursor, if any."""
        items = self.visible_items
        if 0 <= self.cursor < len(items):
            return items[self.cursor]
        return None

    def clamp_cursor(self, cursor: int) -> int:
        """Clamp ``cursor`` into the visible rows of this state."""
        count = len(self.visible_items)
        if count == 0:
            return 0
        return max(0, min(cursor, count - 1))
