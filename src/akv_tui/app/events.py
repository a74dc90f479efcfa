"""Events consumed by the dispatcher.

Two families travel through the same queue:

- Intents: what the operator asked for, usually translated from a key
  press by ``akv_tui.app.keymap``.
- Completions: results posted by background tasks. Each carries the
  request id it answers so the dispatcher can drop stale results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from akv_tui.remote.exceptions import AkvError
from akv_tui.remote.models import Secret, Vault


class Event:
    """Base class for everything submitted to the dispatcher."""


class Intent(Event):
    """An operator request."""


class Completion(Event):
    """A background task result."""


# =============================================================================
# Raw input
# =============================================================================


@dataclass(frozen=True)
class KeyPressed(Event):
    """A key press forwarded by the renderer, translated on intake."""

    key: str
    character: Optional[str] = None


# =============================================================================
# Intents
# =============================================================================


@dataclass(frozen=True)
class MoveCursor(Intent):
    delta: int


@dataclass(frozen=True)
class Select(Intent):
    """Enter on a list row: pick a vault, or open a secret's detail."""


@dataclass(frozen=True)
class StartSearch(Intent):
    pass


@dataclass(frozen=True)
class SearchInput(Intent):
    text: str


@dataclass(frozen=True)
class SearchBackspace(Intent):
    pass


@dataclass(frozen=True)
class CommitSearch(Intent):
    """Leave search mode keeping the filter."""


@dataclass(frozen=True)
class CancelSearch(Intent):
    """Leave search mode and clear the filter."""


@dataclass(frozen=True)
class ClearFilter(Intent):
    pass


@dataclass(frozen=True)
class OpenAdd(Intent):
    pass


@dataclass(frozen=True)
class OpenEdit(Intent):
    pass


@dataclass(frozen=True)
class OpenDelete(Intent):
    pass


@dataclass(frozen=True)
class CloseModal(Intent):
    pass


@dataclass(frozen=True)
class ModalInput(Intent):
    text: str


@dataclass(frozen=True)
class ModalBackspace(Intent):
    pass


@dataclass(frozen=True)
class ToggleField(Intent):
    pass


@dataclass(frozen=True)
class ToggleReveal(Intent):
    pass


@dataclass(frozen=True)
class SubmitModal(Intent):
    """Save (add/edit) or confirm (delete)."""


@dataclass(frozen=True)
class Refresh(Intent):
    pass


@dataclass(frozen=True)
class SwitchVault(Intent):
    pass


@dataclass(frozen=True)
class CopyValue(Intent):
    pass


@dataclass(frozen=True)
class Quit(Intent):
    pass


# =============================================================================
# Completions
# =============================================================================


class ListingKind(str, Enum):
    VAULTS = "vaults"
    SECRETS = "secrets"


class ValuePurpose(str, Enum):
    """Why a secret value was fetched."""

    DETAIL = "detail"
    EDIT = "edit"
    COPY = "copy"


class MutationKind(str, Enum):
    PUT = "put"
    DELETE = "delete"


@dataclass(frozen=True)
class LoadingProgress(Completion):
    kind: ListingKind
    request_id: int
    count: int
    vault_id: Optional[str] = None


@dataclass(frozen=True)
class VaultsLoaded(Completion):
    request_id: int
    vaults: tuple[Vault, ...]


@dataclass(frozen=True)
class VaultsFailed(Completion):
    request_id: int
    error: AkvError


@dataclass(frozen=True)
class SecretsLoaded(Completion):
    vault_id: str
    request_id: int
    secrets: tuple[Secret, ...]


@dataclass(frozen=True)
class SecretsFailed(Completion):
    vault_id: str
    request_id: int
    error: AkvError


@dataclass(frozen=True)
class SecretValueLoaded(Completion):
    vault_id: str
    purpose: ValuePurpose
    secret: Secret = field(repr=False)


@dataclass(frozen=True)
class SecretValueFailed(Completion):
    vault_id: str
    purpose: ValuePurpose
    name: str
    error: AkvError


@dataclass(frozen=True)
class MutationSucceeded(Completion):
    vault_id: str
    kind: MutationKind
    name: str
    secrets: Optional[tuple[Secret, ...]] = None  # cached listing after the change


@dataclass(frozen=True)
class MutationFailed(Completion):
    vault_id: str
    kind: MutationKind
    name: str
    error: AkvError
