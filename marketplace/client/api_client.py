"""Async HTTP client for the order and payment endpoints.

Every call goes through :meth:`MarketplaceAPI._request`, which is the only
place that turns httpx exceptions and HTTP error statuses into the client
error taxonomy.
"""

from typing import Any, Dict, List, Optional

import httpx
from cachetools import TTLCache

from shared.core import get_logger
from .config import ClientSettings, get_client_settings
from .errors import (
    ConcurrentModification,
    Forbidden,
    InvalidTransition,
    MarketplaceError,
    NotFound,
    RequestTimeout,
    ServerError,
    TransportError,
    ValidationFailed,
)

logger = get_logger(__name__)

# Shown when /payments/methods cannot be reached so checkout is never blocked
FALLBACK_PAYMENT_METHODS: List[Dict[str, Any]] = [
    {"id": "card", "name": "Credit/Debit Card", "description": "Pay securely with your card",
     "icons": ["visa", "mastercard"], "supported": True},
    {"id": "upi", "name": "UPI Payment", "description": "Google Pay, PhonePe, Paytm",
     "icons": ["upi"], "supported": True},
    {"id": "wallet", "name": "Digital Wallet", "description": "PhonePe, Google Pay, Amazon Pay",
     "icons": ["wallet"], "supported": True},
    {"id": "cash", "name": "Cash on Delivery", "description": "Pay when you receive your order",
     "icons": ["cash"], "supported": True},
]

_METHODS_KEY = "payment-methods"


def _validation_message(entry: Any) -> Optional[str]:
    if isinstance(entry, str):
        return entry
    if not isinstance(entry, dict):
        return None
    message = entry.get("msg") or entry.get("message")
    loc = [str(part) for part in entry.get("loc", []) if part not in ("body", "query", "path")]
    if message and loc:
        return f"{'.'.join(loc)}: {message}"
    return message


def first_error_message(body: Any) -> Optional[str]:
    """The first human-readable message of an error body, if it carries one.

    Understands FastAPI bodies (``detail`` as a string, a ``{code, message}``
    object or a list of validation errors) as well as plain ``message`` and
    ``errors`` keys.
    """
    if isinstance(body, str):
        return body or None
    if not isinstance(body, dict):
        return None
    detail = body.get("detail")
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict) and detail.get("message"):
        return detail["message"]
    if isinstance(detail, list) and detail:
        return _validation_message(detail[0])
    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        return _validation_message(errors[0])
    return body.get("message") or None


def _error_code(body: Any) -> Optional[str]:
    if isinstance(body, dict) and isinstance(body.get("detail"), dict):
        return body["detail"].get("code")
    return None


def error_from_response(response: httpx.Response) -> MarketplaceError:
    try:
        body = response.json()
    except ValueError:
        body = response.text
    status = response.status_code
    message = first_error_message(body)

    if status in (400, 422):
        errors = body.get("detail") if isinstance(body, dict) and isinstance(body.get("detail"), list) else None
        return ValidationFailed(message or "The request was rejected", status_code=status, errors=errors)
    if status in (401, 403):
        return Forbidden(message or "You are not allowed to do this")
    if status == 404:
        return NotFound(message or "Not found")
    if status == 409:
        code = _error_code(body)
        if code == InvalidTransition.code:
            return InvalidTransition(None, None, message)
        if code == ConcurrentModification.code:
            return ConcurrentModification(message or "The order changed meanwhile; reload it")
        error = MarketplaceError(message or "The request conflicts with the current order state")
        error.code = code or "conflict"
        return error
    if status >= 500:
        return ServerError(status_code=status)
    return MarketplaceError(message or f"Unexpected response ({status})")


class MarketplaceAPI:
    """Thin async wrapper over the REST endpoints; returns raw JSON records."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        settings: Optional[ClientSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_client_settings()
        headers = {"Accept": "application/json"}
        token = token or self.settings.TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or self.settings.BASE_URL,
            headers=headers,
            timeout=self.settings.DEFAULT_TIMEOUT,
            transport=transport,
        )
        self._methods_cache: TTLCache = TTLCache(maxsize=1, ttl=self.settings.PAYMENT_METHODS_CACHE_TTL)

    async def __aenter__(self) -> "MarketplaceAPI":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs) -> Any:
        try:
            response = await self._client.request(
                method, path, timeout=timeout or self.settings.DEFAULT_TIMEOUT, **kwargs
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out", extra={'extra_fields': {'error': str(e)}})
            raise RequestTimeout(str(e)) from e
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise TransportError(str(e)) from e

        if response.status_code >= 400:
            error = error_from_response(response)
            logger.info(
                f"{method} {path} returned {response.status_code}",
                extra={'extra_fields': {'status_code': response.status_code, 'code': error.code}}
            )
            raise error
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # -- orders --------------------------------------------------------

    async def create_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/orders/", json=payload, timeout=self.settings.CREATE_ORDER_TIMEOUT)

    async def get_order(self, order_id) -> Dict[str, Any]:
        return await self._request("GET", f"/orders/{order_id}")

    async def update_status(self, order_id, status: str, reason: Optional[str] = None) -> Dict[str, Any]:
        body = {"status": status}
        if reason:
            body["reason"] = reason
        return await self._request("PUT", f"/orders/{order_id}/status", json=body)

    async def cancel_order(self, order_id, reason: str = "Cancelled by user") -> Dict[str, Any]:
        return await self._request("PUT", f"/orders/{order_id}/cancel", json={"reason": reason})

    async def my_orders(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/orders/consumer/my-orders")

    async def farmer_orders(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/orders/farmer/my-orders")

    async def farmer_analytics(self, period: str = "month", start_date: Optional[str] = None,
                               end_date: Optional[str] = None) -> Dict[str, Any]:
        params = {"period": period}
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date
        return await self._request("GET", "/orders/farmer/analytics", params=params)

    # -- payments ------------------------------------------------------

    async def simulate_payment(self, order_id, method: str, details: Dict[str, Any]) -> Dict[str, Any]:
        body = {"orderId": order_id, "paymentMethod": method, "paymentDetails": details}
        return await self._request("POST", "/payments/simulate", json=body, timeout=self.settings.PAYMENT_TIMEOUT)

    async def verify_payment(self, order_id) -> Dict[str, Any]:
        return await self._request("GET", f"/payments/verify/{order_id}")

    async def payment_methods(self) -> List[Dict[str, Any]]:
        """Supported payment methods; the built-in list when the endpoint fails."""
        cached = self._methods_cache.get(_METHODS_KEY)
        if cached is not None:
            return cached
        try:
            methods = await self._request("GET", "/payments/methods")
        except MarketplaceError as e:
            logger.warning(f"Using fallback payment methods: {e.user_message}")
            return [dict(m) for m in FALLBACK_PAYMENT_METHODS]
        self._methods_cache[_METHODS_KEY] = methods
        return methods
