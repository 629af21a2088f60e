"""
Async client for the OneBalance quote, execution and status API.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx
from pydantic import BaseModel

from ..config import settings
from ..core.operations import Quote, TargetCallQuote
from ..types import (
    AggregatedAsset,
    AggregatedBalanceResponse,
    BundleResponse,
    ExecutionStatusResponse,
    HistoryResponse,
    PredictAddressResponse,
    SupportedChain,
)
from ..types.requests import WireModel


logger = logging.getLogger(__name__)

Payload = Union[Mapping[str, Any], BaseModel, Quote, TargetCallQuote]


class OneBalanceAPIError(Exception):
    """Non-2xx response from the OneBalance API."""

    def __init__(self, status_code: int, body: Any, path: str = ""):
        self.status_code = status_code
        self.body = body
        self.path = path
        super().__init__(f"OneBalance API error {status_code} on {path or 'request'}: {body}")


def _serialize(payload: Payload) -> Dict[str, Any]:
    if isinstance(payload, (Quote, TargetCallQuote)):
        return payload.to_wire()
    if isinstance(payload, WireModel):
        return payload.to_wire()
    if isinstance(payload, BaseModel):
        return payload.model_dump(by_alias=True, exclude_none=True, mode="json")
    return dict(payload)


class OneBalanceClient:
    """
    Thin wrapper around the OneBalance REST endpoints.

    Satisfies the completion monitor's ``StatusSource`` protocol through
    ``fetch_execution_status``.
    """

    name = "onebalance"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.api_key
        self.timeout_s = timeout_s if timeout_s is not None else settings.request_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "OneBalanceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
        }
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_s,
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        client = self._get_client()
        logger.debug("OneBalance %s %s", method, path)
        response = await client.request(method, path, json=json, params=params)
        if response.is_error:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            logger.warning("OneBalance %s %s failed with %d", method, path, response.status_code)
            raise OneBalanceAPIError(response.status_code, body, path=path)
        return response.json()

    async def _post(self, path: str, payload: Payload) -> Any:
        return await self._request("POST", path, json=_serialize(payload))

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        cleaned = {key: value for key, value in (params or {}).items() if value is not None}
        return await self._request("GET", path, params=cleaned or None)

    # Accounts

    async def predict_address(self, session_address: str, admin_address: str) -> str:
        """Predict the address of a role-based account."""
        data = await self._post(
            "/api/account/predict-address",
            {"sessionAddress": session_address, "adminAddress": admin_address},
        )
        return PredictAddressResponse.model_validate(data).predicted_address

    async def predict_standard_address(self, account_type: str, signer_address: str) -> str:
        """Predict the address of a standard (kernel) account."""
        data = await self._post(
            "/api/account/predict-address",
            {"type": account_type, "signerAddress": signer_address},
        )
        return PredictAddressResponse.model_validate(data).predicted_address

    # Call quotes

    async def prepare_call_quote(self, request: Payload) -> TargetCallQuote:
        data = await self._post("/api/quotes/prepare-call-quote", request)
        return TargetCallQuote.from_wire(data)

    async def prepare_call_quote_v3(self, request: Payload) -> TargetCallQuote:
        data = await self._post("/api/v3/quote/prepare-call-quote", request)
        return TargetCallQuote.from_wire(data)

    async def fetch_call_quote(self, request: Payload) -> Quote:
        data = await self._post("/api/quotes/call-quote", request)
        return Quote.from_wire(data)

    async def fetch_call_quote_v3(self, request: Payload) -> Quote:
        data = await self._post("/api/v3/quote/call-quote", request)
        return Quote.from_wire(data)

    # Swap / transfer quotes

    async def get_quote(self, request: Payload) -> Quote:
        data = await self._post("/api/v1/quote", request)
        return Quote.from_wire(data)

    async def get_quote_v3(self, request: Payload) -> Quote:
        """V3 quote; supports Solana and multi-account operations."""
        data = await self._post("/api/v3/quote", request)
        return Quote.from_wire(data)

    async def execute_quote(self, quote: Payload) -> BundleResponse:
        data = await self._post("/api/quotes/execute-quote", quote)
        return BundleResponse.model_validate(data)

    async def execute_quote_v3(self, quote: Payload) -> BundleResponse:
        data = await self._post("/api/v3/quote/execute-quote", quote)
        return BundleResponse.model_validate(data)

    # Status

    async def fetch_execution_status(self, quote_id: str) -> ExecutionStatusResponse:
        data = await self._get("/api/status/get-execution-status", {"quoteId": quote_id})
        return ExecutionStatusResponse.model_validate(data)

    async def fetch_transaction_history(
        self,
        user: str,
        limit: Optional[int] = None,
        sort_by: str = "createdAt",
    ) -> HistoryResponse:
        data = await self._get(
            "/api/status/get-tx-history",
            {
                "user": user,
                "limit": limit if limit is not None else settings.history_default_limit,
                "sortBy": sort_by,
            },
        )
        return HistoryResponse.model_validate(data)

    # Balances and metadata

    async def fetch_balances(self, address: str) -> AggregatedBalanceResponse:
        data = await self._get("/api/v2/balances/aggregated-balance", {"address": address})
        return AggregatedBalanceResponse.model_validate(data)

    async def fetch_aggregated_balance_v3(
        self,
        account: str,
        aggregated_asset_id: Optional[str] = None,
        asset_id: Optional[str] = None,
    ) -> AggregatedBalanceResponse:
        """
        Aggregated balance for one or more accounts (CAIP-10, comma separated);
        supports Solana accounts.
        """
        data = await self._get(
            "/api/v3/balances/aggregated-balance",
            {"account": account, "aggregatedAssetId": aggregated_asset_id, "assetId": asset_id},
        )
        return AggregatedBalanceResponse.model_validate(data)

    async def list_aggregated_assets(self) -> List[AggregatedAsset]:
        data = await self._get("/api/assets/list")
        return [AggregatedAsset.model_validate(item) for item in data]

    async def list_supported_chains(self) -> List[SupportedChain]:
        data = await self._get("/api/chains/supported-list")
        return [SupportedChain.model_validate(item) for item in data]


_onebalance_client: Optional[OneBalanceClient] = None


def get_onebalance_client() -> OneBalanceClient:
    global _onebalance_client
    if _onebalance_client is None:
        _onebalance_client = OneBalanceClient()
    return _onebalance_client
