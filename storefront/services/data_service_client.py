"""
Data Service Client

Read/subscribe access to the managed data service that owns the catalog and
booking collections:
- Predefined rental catalog (system/rentalInventory)
- User-managed inventory (inventory/currentInventory, with the
  inventoryItems collection as fallback)
- Booking documents
- Change subscriptions implemented as fingerprint polling

The storefront never writes here. Transport failures surface as
DataServiceError; callers decide how to degrade.
"""

import asyncio
import hashlib
import inspect
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Wrapper for collection reads"""
    success: bool
    items: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    status_code: int = 0


class DataServiceError(Exception):
    """Transport or HTTP failure talking to the data service"""

    def __init__(self, message: str, status_code: int = 0, retryable: bool = False):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable


ERROR_MAP = {
    401: ("unauthorized", "Invalid or missing data service key", False),
    403: ("forbidden", "Access denied to this collection", False),
    404: ("not_found", "Collection not found", False),
    429: ("rate_limited", "Too many requests", True),
    500: ("server_error", "Data service error", True),
    502: ("bad_gateway", "Data service gateway error", True),
    503: ("service_unavailable", "Data service unavailable", True),
}

SubscriptionCallback = Callable[[List[Dict[str, Any]]], Union[None, Awaitable[None]]]


def collection_fingerprint(items: List[Dict[str, Any]]) -> str:
    """Stable digest of a collection snapshot, used to detect changes"""
    encoded = json.dumps(items, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


class DataServiceClient:
    """
    Async client for the data service.

    Retries server errors with exponential backoff; client errors are
    returned immediately.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 3,
        base_delay: float = 0.5,
    ):
        self.base_url = (base_url or settings.data_service_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.data_service_api_key
        self.timeout = timeout or settings.data_service_timeout_seconds
        self.poll_interval = poll_interval if poll_interval is not None else settings.sync_poll_interval
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._subscriptions: Set[asyncio.Task] = set()

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": "RP-Storefront/1.0",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._get_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _get(self, endpoint: str) -> Any:
        """GET a JSON document with retry on retryable failures"""
        last_error: Optional[DataServiceError] = None

        for attempt in range(self.max_retries):
            start_time = time.time()
            try:
                response = await self._http().get(endpoint)
            except httpx.HTTPError as e:
                last_error = DataServiceError(f"Request to {endpoint} failed: {e}", retryable=True)
            else:
                duration_ms = int((time.time() - start_time) * 1000)
                status_code = response.status_code
                if 200 <= status_code < 300:
                    logger.debug(f"GET {endpoint} -> {status_code} ({duration_ms}ms)")
                    try:
                        return response.json()
                    except ValueError:
                        raise DataServiceError(f"Invalid JSON from {endpoint}", status_code)

                code, message, retryable = ERROR_MAP.get(
                    status_code,
                    ("server_error" if status_code >= 500 else "unknown",
                     f"Unexpected status {status_code}",
                     status_code >= 500)
                )
                last_error = DataServiceError(f"{message} ({code})", status_code, retryable)
                if not retryable:
                    raise last_error

            if attempt < self.max_retries - 1:
                delay = self.base_delay * (2 ** attempt)
                logger.warning(f"{last_error.message}, retrying in {delay}s")
                await asyncio.sleep(delay)

        raise last_error

    # ==================
    # Collection reads
    # ==================

    async def get_rental_items(self) -> FetchResult:
        """Predefined catalog: {"rentalItems": [...]}"""
        data = await self._get("/system/rentalInventory")
        if data is None:
            return FetchResult(success=True, items=[])
        if not isinstance(data, dict):
            return FetchResult(success=False, error="Unexpected rental inventory payload")
        return FetchResult(success=True, items=list(data.get("rentalItems") or []))

    async def get_inventory_items(self) -> FetchResult:
        """Managed inventory document: {"items": [...]}"""
        data = await self._get("/inventory/currentInventory")
        if data is None:
            return FetchResult(success=True, items=[])
        if not isinstance(data, dict):
            return FetchResult(success=False, error="Unexpected inventory payload")
        return FetchResult(success=True, items=list(data.get("items") or []))

    async def get_all_inventory_items(self) -> FetchResult:
        """Fallback inventoryItems collection: {"documents": [{"id": ..., ...}]}"""
        data = await self._get("/inventoryItems")
        documents = data.get("documents") if isinstance(data, dict) else data
        if not isinstance(documents, list):
            return FetchResult(success=False, error="Unexpected inventoryItems payload")
        return FetchResult(success=True, items=documents)

    async def get_bookings(self) -> FetchResult:
        """Booking documents carrying startDate / endDate"""
        data = await self._get("/bookings")
        documents = data.get("documents") if isinstance(data, dict) else data
        if not isinstance(documents, list):
            return FetchResult(success=False, error="Unexpected bookings payload")
        return FetchResult(success=True, items=documents)

    async def ping(self) -> bool:
        try:
            await self._get("/system/rentalInventory")
            return True
        except DataServiceError:
            return False

    # ==================
    # Subscriptions
    # ==================

    def subscribe_to_rental_items(self, callback: SubscriptionCallback) -> Callable[[], None]:
        return self._subscribe("rentalItems", self.get_rental_items, callback)

    def subscribe_to_inventory(self, callback: SubscriptionCallback) -> Callable[[], None]:
        return self._subscribe("inventory", self.get_inventory_items, callback)

    def _subscribe(
        self,
        name: str,
        fetch: Callable[[], Awaitable[FetchResult]],
        callback: SubscriptionCallback
    ) -> Callable[[], None]:
        """
        Poll a collection and call back whenever its fingerprint changes.
        The first snapshot only primes the fingerprint. Must be called from
        a running event loop.
        """
        async def poll():
            fingerprint: Optional[str] = None
            while True:
                try:
                    result = await fetch()
                    if result.success:
                        current = collection_fingerprint(result.items)
                        if fingerprint is not None and current != fingerprint:
                            logger.info(f"Subscription {name}: change detected ({len(result.items)} items)")
                            outcome = callback(result.items)
                            if inspect.isawaitable(outcome):
                                await outcome
                        fingerprint = current
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning(f"Subscription {name} poll failed: {e}")
                await asyncio.sleep(self.poll_interval)

        task = asyncio.get_running_loop().create_task(poll(), name=f"subscribe-{name}")
        self._subscriptions.add(task)

        def unsubscribe():
            task.cancel()
            self._subscriptions.discard(task)

        return unsubscribe

    async def aclose(self):
        for task in list(self._subscriptions):
            task.cancel()
        self._subscriptions.clear()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
