"""
Remote data models for akv-tui.

Records built from remote responses. All of them are frozen: once a
listing is published it is shared by reference and never mutated.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Vault:
    """A Key Vault discovered through the management API."""

    name: str
    uri: str  # identity
    subscription_id: str | None = None
    resource_id: str | None = None

    @property
    def id(self) -> str:
        """Identity key used by the caches."""
        return self.uri

    @classmethod
    def from_arm(cls, item: dict[str, Any], subscription_id: str | None = None) -> "Vault":
        """Build from an ARM ``Microsoft.KeyVault/vaults`` resource."""
        return cls(
            name=item["name"],
            uri=item["properties"]["vaultUri"],
            subscription_id=subscription_id,
            resource_id=item.get("id"),
        )


@dataclass(frozen=True)
class Secret:
    """A secret in a vault. ``value`` is only set when explicitly fetched."""

    name: str
    value: str | None = None
    version: str | None = None
    enabled: bool = True
    updated_on: datetime | None = None
    content_type: str | None = None

    @classmethod
    def from_bundle(cls, bundle: dict[str, Any]) -> "Secret":
        """
        Build from a Key Vault secret bundle or secret item.

        Listing items carry an ``id`` of the form
        ``https://<vault>/secrets/<name>``; full bundles add ``/<version>``
        and a ``value``.
        """
        secret_id = bundle.get("id", "")
        parts = secret_id.rstrip("/").split("/secrets/", 1)[-1].split("/")
        name = parts[0]
        version = parts[1] if len(parts) > 1 else None

        attributes = bundle.get("attributes", {})
        updated = attributes.get("updated")

        return cls(
            name=name,
            value=bundle.get("value"),
            version=version,
            enabled=attributes.get("enabled", True),
            updated_on=datetime.fromtimestamp(updated, tz=timezone.utc) if updated else None,
            content_type=bundle.get("contentType"),
        )

    def without_value(self) -> "Secret":
        """Copy suitable for a listing (value dropped)."""
        if self.value is None:
            return self
        return Secret(
            name=self.name,
            version=self.version,
            enabled=self.enabled,
            updated_on=self.updated_on,
            content_type=self.content_type,
        )


@dataclass(frozen=True)
class Token:
    """An access token for one scope."""

    value: str = field(repr=False)
    expires_on: float  # epoch seconds
    scope: str = ""
    acquired_at: float = 0.0

    @property
    def lifetime(self) -> float:
        """Seconds between acquisition and expiry."""
        return max(0.0, self.expires_on - self.acquired_at)


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated listing."""

    items: tuple[T, ...]
    continuation: str | None = None

    @property
    def has_more(self) -> bool:
        return self.continuation is not None
