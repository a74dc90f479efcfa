"""
Azure implementations of the remote capabilities.

- AzureCredentialProvider: tokens from ``azure.identity``'s
  DefaultAzureCredential (az CLI, environment, managed identity, ...).
- AzureRestTransport: Azure Resource Manager for vault discovery and
  the Key Vault data plane for secrets, over ``httpx``.
"""

import asyncio
import contextlib
import json
import logging
import time
from typing import Any
from urllib.parse import quote

import httpx
from azure.identity import DefaultAzureCredential

from akv_tui.config.schema import RemoteConfig
from akv_tui.remote.exceptions import error_for_response
from akv_tui.remote.models import Page, Secret, Token, Vault
from akv_tui.remote.protocol import CredentialProvider, SecretStoreTransport

logger = logging.getLogger(__name__)


class AzureCredentialProvider(CredentialProvider):
    """Credential provider backed by DefaultAzureCredential.

    The azure-identity credential is synchronous (the developer-tool
    credentials shell out to ``az``/``azd``), so acquisition runs in a
    worker thread to keep the event loop free.
    """

    def __init__(
        self,
        exclude_interactive: bool = True,
        credential: Any | None = None,
    ):
        self._credential = credential or DefaultAzureCredential(
            exclude_interactive_browser_credential=exclude_interactive,
        )

    async def acquire_credential(self, scope: str) -> Token:
        started = time.time()
        access = await asyncio.to_thread(self._credential.get_token, scope)
        logger.debug(f"Credential acquired for {scope}, expires_on={access.expires_on}")
        return Token(
            value=access.token,
            expires_on=float(access.expires_on),
            scope=scope,
            acquired_at=started,
        )

    async def close(self) -> None:
        close = getattr(self._credential, "close", None)
        if close is not None:
            await asyncio.to_thread(close)


class AzureRestTransport(SecretStoreTransport):
    """
    Secret store transport speaking the Azure REST APIs.

    Vault discovery walks subscriptions, then the vaults of each
    subscription, following ``nextLink`` at both levels. Its position is
    carried between pages in an opaque JSON continuation token so that
    each ``list_vaults`` call performs one vault-page request.
    """

    def __init__(
        self,
        config: RemoteConfig,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the transport.

        Args:
            config: Remote endpoint and API version settings.
            client: HTTP client. Created (and owned) when not provided.
        """
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=config.timeout_seconds,
            follow_redirects=True,
        )

    @staticmethod
    def _headers(token: Token) -> dict[str, str]:
        return {"Authorization": f"Bearer {token.value}", "Accept": "application/json"}

    async def _request(
        self,
        method: str,
        url: str,
        token: Token,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._client.request(
            method,
            url,
            params=params,
            json=json_body,
            headers=self._headers(token),
        )
        logger.debug(f"{method} {response.url.host}{response.url.path} -> {response.status_code}")
        if response.is_error:
            raise error_for_response(response)
        if not response.content:
            return {}
        return response.json()

    # ------------------------------------------------------------------
    # Vault discovery (Azure Resource Manager)
    # ------------------------------------------------------------------

    async def _list_subscriptions(self, token: Token) -> list[str]:
        url: str | None = f"{self.config.management_endpoint}/subscriptions"
        params: dict[str, Any] | None = {"api-version": self.config.subscriptions_api_version}
        subscriptions: list[str] = []

        while url:
            page = await self._request("GET", url, token, params=params)
            for sub in page.get("value", []):
                if sub.get("subscriptionId"):
                    subscriptions.append(sub["subscriptionId"])
            url = page.get("nextLink")
            params = None  # nextLink already carries the query

        logger.debug(f"Discovered {len(subscriptions)} subscriptions")
        return subscriptions

    async def list_vaults(self, token: Token, continuation: str | None = None) -> Page[Vault]:
        if continuation is None:
            state: dict[str, Any] = {
                "subs": await self._list_subscriptions(token),
                "sub": None,
                "link": None,
                "found": 0,
            }
        else:
            state = json.loads(continuation)

        subs: list[str] = state["subs"]
        found: int = state["found"]

        if state["link"]:
            sub = state["sub"]
            page = await self._request("GET", state["link"], token)
        elif subs:
            sub, subs = subs[0], subs[1:]
            url = f"{self.config.management_endpoint}/subscriptions/{sub}/providers/Microsoft.KeyVault/vaults"
            page = await self._request(
                "GET", url, token, params={"api-version": self.config.vaults_api_version}
            )
        else:
            page = {}
            sub = None

        vaults = tuple(
            Vault.from_arm(item, sub)
            for item in page.get("value", [])
            if item.get("name") and item.get("properties", {}).get("vaultUri")
        )
        found += len(vaults)

        next_link = page.get("nextLink")
        if next_link or subs:
            next_state = {"subs": subs, "sub": sub, "link": next_link, "found": found}
            return Page(items=vaults, continuation=json.dumps(next_state))

        if found == 0 and self.config.cli_fallback:
            vaults = tuple(await self._list_vaults_with_cli())
        return Page(items=vaults, continuation=None)

    async def _list_vaults_with_cli(self) -> list[Vault]:
        """Fallback discovery through ``az keyvault list``."""
        logger.debug("No vaults from ARM; attempting az CLI fallback")
        try:
            process = await asyncio.create_subprocess_exec(
                "az", "keyvault", "list", "-o", "json",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.debug(f"az CLI fallback unavailable: {e}")
            return []

        try:
            stdout, _ = await process.communicate()
        finally:
            # cancelled or failed before az exited
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if process.returncode != 0:
            logger.debug(f"az CLI returned status {process.returncode}")
            return []

        try:
            items = json.loads(stdout)
        except json.JSONDecodeError:
            logger.debug("az CLI returned invalid JSON")
            return []

        vaults = []
        for item in items if isinstance(items, list) else []:
            uri = (item.get("properties") or {}).get("vaultUri")
            if item.get("name") and uri:
                vaults.append(Vault(name=item["name"], uri=uri, resource_id=item.get("id")))
        logger.debug(f"az CLI fallback found {len(vaults)} vaults")
        return vaults

    # ------------------------------------------------------------------
    # Secrets (Key Vault data plane)
    # ------------------------------------------------------------------

    def _secret_url(self, vault: Vault, name: str | None = None) -> str:
        base = f"{vault.uri.rstrip('/')}/secrets"
        return f"{base}/{quote(name, safe='')}" if name else base

    async def list_secrets(
        self,
        token: Token,
        vault: Vault,
        continuation: str | None = None,
    ) -> Page[Secret]:
        if continuation:
            page = await self._request("GET", continuation, token)
        else:
            page = await self._request(
                "GET",
                self._secret_url(vault),
                token,
                params={
                    "api-version": self.config.secrets_api_version,
                    "maxresults": self.config.page_size,
                },
            )

        secrets = tuple(Secret.from_bundle(item) for item in page.get("value", []) if item.get("id"))
        return Page(items=secrets, continuation=page.get("nextLink") or None)

    async def get_secret(self, token: Token, vault: Vault, name: str) -> Secret:
        bundle = await self._request(
            "GET",
            self._secret_url(vault, name),
            token,
            params={"api-version": self.config.secrets_api_version},
        )
        return Secret.from_bundle(bundle)

    async def set_secret(self, token: Token, vault: Vault, name: str, value: str) -> Secret:
        bundle = await self._request(
            "PUT",
            self._secret_url(vault, name),
            token,
            params={"api-version": self.config.secrets_api_version},
            json_body={"value": value},
        )
        return Secret.from_bundle(bundle)

    async def delete_secret(self, token: Token, vault: Vault, name: str) -> None:
        await self._request(
            "DELETE",
            self._secret_url(vault, name),
            token,
            params={"api-version": self.config.secrets_api_version},
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
