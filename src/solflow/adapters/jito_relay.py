"""
jito_relay.py - BundleRelayPort over JSON-RPC (Jito block engine / lil-jit add-on)

Methods used:
    getTipAccounts              []
    simulateBundle              [[<base64 tx>, ...]]
    sendBundle                  [[<base64 tx>, ...], {"encoding": "base64"}]
    getInflightBundleStatuses   [[<bundle id>]]
    getBundleStatuses           [[<bundle id>]]

Every failure to obtain a well-formed result (HTTP error, JSON-RPC error
object, unexpected shape) is a FetchError. Whether that is fatal is decided by
the caller.
"""

from __future__ import annotations

import base64
import itertools
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx
from loguru import logger
from solders.transaction import VersionedTransaction

from ..domain.errors import FetchError
from ..domain.models import InflightBundleStatus, LandedBundleStatus, SimulationResult
from ..ports import BundleRelayPort

T = TypeVar("T")


def encode_wire_transaction(tx: VersionedTransaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


class JitoBundleRelay(BundleRelayPort):
    def __init__(
        self,
        endpoint: str,
        http_timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint
        self.http_timeout = http_timeout
        self._client = client
        self._ids = itertools.count(1)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.http_timeout)
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _call(self, method: str, params: List[Any]) -> Any:
        client = await self._get_client()
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

        try:
            resp = await client.post(self.endpoint, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            logger.warning(f"RELAY | {method} | timeout")
            raise FetchError(method, "timeout", cause=e) from e
        except httpx.HTTPError as e:
            logger.error(f"RELAY | {method} | {type(e).__name__}: {e}")
            raise FetchError(method, str(e), cause=e) from e
        except ValueError as e:
            raise FetchError(method, f"invalid JSON: {e}", cause=e) from e

        if not isinstance(data, dict):
            raise FetchError(method, f"unexpected payload: {data!r}")
        if data.get("error"):
            err = data["error"]
            logger.error(f"RELAY | {method} | rpc error | {err}")
            raise FetchError(method, f"rpc error: {err}")
        if "result" not in data:
            raise FetchError(method, "response has no result")
        return data["result"]

    async def get_tip_accounts(self) -> List[str]:
        result = await self._call("getTipAccounts", [])
        if not isinstance(result, list):
            raise FetchError("getTipAccounts", f"unexpected result: {result!r}")
        return [str(a) for a in result]

    async def simulate_bundle(self, transactions: Sequence[VersionedTransaction]) -> SimulationResult:
        encoded = [encode_wire_transaction(tx) for tx in transactions]
        result = await self._call("simulateBundle", [encoded])
        if not isinstance(result, dict) or not isinstance(result.get("value", result), dict):
            raise FetchError("simulateBundle", f"unexpected result: {result!r}")
        return _parse("simulateBundle", SimulationResult.from_rpc, result)

    async def send_bundle(self, transactions: Sequence[VersionedTransaction]) -> str:
        encoded = [encode_wire_transaction(tx) for tx in transactions]
        result = await self._call("sendBundle", [encoded, {"encoding": "base64"}])
        if not isinstance(result, str) or not result:
            raise FetchError("sendBundle", f"no bundle id returned: {result!r}")
        return result

    async def get_inflight_bundle_statuses(self, bundle_ids: Sequence[str]) -> List[InflightBundleStatus]:
        result = await self._call("getInflightBundleStatuses", [list(bundle_ids)])
        return [
            _parse("getInflightBundleStatuses", InflightBundleStatus.from_rpc, item)
            for item in _values("getInflightBundleStatuses", result)
            if item
        ]

    async def get_bundle_statuses(self, bundle_ids: Sequence[str]) -> List[LandedBundleStatus]:
        result = await self._call("getBundleStatuses", [list(bundle_ids)])
        return [
            _parse("getBundleStatuses", LandedBundleStatus.from_rpc, item)
            for item in _values("getBundleStatuses", result)
            if item
        ]


def _values(method: str, result: Any) -> List[Any]:
    # {"context": {"slot": n}, "value": [...]}; value may be null for unknown ids
    if result is None:
        return []
    value = result.get("value") if isinstance(result, dict) else result
    if value is None:
        return []
    if not isinstance(value, list):
        raise FetchError(method, f"unexpected result: {result!r}")
    return value


def _parse(method: str, parser: Callable[[Dict[str, Any]], T], item: Any) -> T:
    if not isinstance(item, dict):
        raise FetchError(method, f"unexpected entry: {item!r}")
    try:
        return parser(item)
    except (AttributeError, TypeError, ValueError) as e:
        raise FetchError(method, f"unexpected entry: {item!r} ({e})", cause=e) from e
