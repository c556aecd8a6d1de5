"""
JSON-RPC Ledger - talk to a ledger/emulator service over JSON-RPC 2.0.

Lightweight adapter: httpx for HTTP, the wire JSON form for datums and
redeemers. The service does balancing, script evaluation, signing and
submission; this module only moves requests and results.

Methods called on the service:
    completeTransaction, signTransaction, signTransactionWithKey,
    submitTransaction, awaitTransaction, utxosAt, utxoByUnit,
    paymentCredential
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
from collections.abc import Iterable
from typing import Any, Optional

import httpx

from ..config import get_rpc_timeout, get_rpc_url
from .ledger import CompletedTransaction, Credential, LedgerError, TxDraft, UTxO

logger = logging.getLogger(__name__)


def _error_message(error: Any) -> str:
    """Flatten a JSON-RPC error object, keeping script traces intact."""
    if not isinstance(error, dict):
        return str(error)
    message = str(error.get("message", "RPC error"))
    data = error.get("data")
    if data is None:
        return message
    if isinstance(data, str):
        return f"{message}\n{data}"
    if isinstance(data, list) and all(isinstance(line, str) for line in data):
        return "\n".join([message, *data])
    return f"{message}\n{json.dumps(data, sort_keys=True)}"


class JsonRpcLedger:
    """
    Ledger backed by a JSON-RPC service.

    ``payment_credential`` is synchronous and blocks the calling thread on
    a cache miss. Inside a running event loop, warm the cache first with
    ``await ledger.resolve_credentials(addresses)``.

    Args:
        url: RPC endpoint (default: TESSERA_RPC_URL)
        timeout: Per-request timeout in seconds (default: TESSERA_RPC_TIMEOUT)
        transport: Optional httpx.AsyncBaseTransport for the async client
        sync_transport: Optional httpx.BaseTransport for the sync client.
            Defaults to ``transport`` when that is an httpx.MockTransport,
            which implements both interfaces.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sync_transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url or get_rpc_url()
        self.timeout = timeout if timeout is not None else get_rpc_timeout()
        self._transport = transport
        if sync_transport is None and isinstance(transport, httpx.MockTransport):
            sync_transport = transport
        self._sync_transport = sync_transport
        self._client: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)
        self._credentials: dict[str, Credential] = {}

    async def __aenter__(self) -> "JsonRpcLedger":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _payload(self, method: str, params: list) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

    @staticmethod
    def _result(data: dict[str, Any]) -> Any:
        if "error" in data:
            raise LedgerError(_error_message(data["error"]), data=data["error"])
        return data.get("result")

    async def _call(self, method: str, params: list) -> Any:
        """
        Make an async JSON-RPC call.

        Raises:
            LedgerError: If the service answers with an error object
            httpx.HTTPError: On transport or HTTP status failures
        """
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        logger.debug("RPC %s -> %s", method, self.url)
        response = await self._client.post(self.url, json=self._payload(method, params))
        response.raise_for_status()
        return self._result(response.json())

    def _call_sync(self, method: str, params: list) -> Any:
        with httpx.Client(timeout=self.timeout, transport=self._sync_transport) as client:
            response = client.post(self.url, json=self._payload(method, params))
            response.raise_for_status()
            data = response.json()
        return self._result(data)

    # ============ Ledger ============

    async def complete(self, draft: TxDraft) -> CompletedTransaction:
        result = await self._call("completeTransaction", [draft.to_json()])
        return CompletedTransaction.from_json(result)

    async def sign(self, tx: CompletedTransaction) -> CompletedTransaction:
        result = await self._call("signTransaction", [tx.to_json()])
        return CompletedTransaction.from_json(result)

    async def sign_with_key(self, tx: CompletedTransaction, key: str) -> CompletedTransaction:
        result = await self._call("signTransactionWithKey", [tx.to_json(), key])
        return CompletedTransaction.from_json(result)

    async def submit(self, tx: CompletedTransaction) -> str:
        return await self._call("submitTransaction", [tx.to_json()])

    async def await_tx(
        self,
        tx_hash: str,
        timeout: float = 120,
        poll_interval: float = 1.0,
    ) -> bool:
        """
        Wait until the service reports the transaction as included.

        Raises:
            TimeoutError: If not confirmed within ``timeout`` seconds
        """
        start = time.monotonic()
        while time.monotonic() - start < timeout:
            if await self._call("awaitTransaction", [tx_hash]):
                return True
            await asyncio.sleep(poll_interval)
        raise TimeoutError(f"Transaction {tx_hash} not confirmed within {timeout}s")

    async def utxos_at(self, address: str) -> list[UTxO]:
        result = await self._call("utxosAt", [address])
        return [UTxO.from_json(entry) for entry in result or []]

    async def utxo_by_unit(self, unit: str) -> UTxO:
        result = await self._call("utxoByUnit", [unit])
        if result is None:
            raise LedgerError(f"No unspent output holds {unit}")
        return UTxO.from_json(result)

    def payment_credential(self, address: str) -> Credential:
        cached = self._credentials.get(address)
        if cached is None:
            result = self._call_sync("paymentCredential", [address])
            cached = Credential(type=result["type"], hash=result["hash"])
            self._credentials[address] = cached
        return cached

    async def resolve_credentials(self, addresses: Iterable[str]) -> dict[str, Credential]:
        """Fetch and cache payment credentials without blocking the event loop."""
        for address in addresses:
            if address not in self._credentials:
                result = await self._call("paymentCredential", [address])
                self._credentials[address] = Credential(type=result["type"], hash=result["hash"])
        return dict(self._credentials)


__all__ = ["JsonRpcLedger"]
