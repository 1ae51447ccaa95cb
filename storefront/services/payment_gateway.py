"""
Payment gateway adapter

All minor-unit conversion and signature logic lives here; the rest of the
service deals only in major currency units and opaque gateway ids.
"""
import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx
import structlog
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from storefront.exceptions import InvalidAmountError, PaymentProviderError

logger = structlog.get_logger(__name__)

MINIMUM_AMOUNT_MINOR = 100


def format_amount(amount: float) -> int:
    """Convert major units (rupees) to minor units (paise)"""
    return int(round(amount * 100))


def parse_amount(amount_minor: int) -> float:
    """Convert minor units (paise) to major units (rupees)"""
    return amount_minor / 100


@dataclass(frozen=True)
class RemotePaymentIntent:
    """Processor-side order awaiting payment"""
    id: str
    amount: int
    currency: str
    status: str
    receipt: Optional[str] = None


@dataclass(frozen=True)
class RemotePayment:
    id: str
    amount: int
    currency: str
    status: str
    method: Optional[str] = None
    order_id: Optional[str] = None


@dataclass(frozen=True)
class RemoteRefund:
    id: str
    payment_id: str
    amount: int
    status: str
    notes: Dict[str, str] = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface"""

    def __init__(self, key_id: str, key_secret: str):
        self.key_id = key_id
        self.key_secret = key_secret

    @abstractmethod
    async def create_remote_payment_intent(
        self,
        amount: float,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> RemotePaymentIntent:
        """Create a payment intent for `amount` major units"""
        ...

    @abstractmethod
    async def fetch_remote_order(self, remote_order_id: str) -> RemotePaymentIntent:
        ...

    @abstractmethod
    async def fetch_remote_payment(self, remote_payment_id: str) -> RemotePayment:
        ...

    @abstractmethod
    async def create_refund(
        self,
        remote_payment_id: str,
        amount_minor: Optional[int] = None,
        notes: Optional[Dict[str, str]] = None,
    ) -> RemoteRefund:
        """Refund a payment; full refund when `amount_minor` is omitted"""
        ...

    @abstractmethod
    async def fetch_refund(self, remote_payment_id: str, refund_id: str) -> RemoteRefund:
        ...

    async def aclose(self) -> None:
        pass

    def signature_for(self, remote_order_id: str, remote_payment_id: str) -> str:
        """HMAC-SHA256 hex digest of "order_id|payment_id" under the key secret"""
        body = f"{remote_order_id}|{remote_payment_id}"
        return hmac.new(
            self.key_secret.encode("utf-8"),
            body.encode("utf-8"),
            hashlib.sha256
        ).hexdigest()

    def verify_signature(self, remote_order_id: str, remote_payment_id: str, signature: str) -> bool:
        """
        Check the checkout signature returned to the client

        Never raises: computation errors are logged and reported as a mismatch.
        """
        try:
            expected = self.signature_for(remote_order_id, remote_payment_id)
            return hmac.compare_digest(expected, signature)
        except Exception as e:
            logger.error("signature_verification_error", error=str(e), remote_order_id=remote_order_id)
            return False

    @staticmethod
    def validate_amount(amount: float) -> int:
        """Return the amount in minor units or raise InvalidAmountError"""
        if amount is None or amount <= 0:
            raise InvalidAmountError("Amount must be a positive number")

        amount_minor = format_amount(amount)
        if amount_minor < MINIMUM_AMOUNT_MINOR:
            raise InvalidAmountError(f"Minimum amount is {MINIMUM_AMOUNT_MINOR} minor units")
        return amount_minor


class RazorpayGateway(PaymentGateway):
    """Client for the Razorpay REST API"""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(key_id, key_secret)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.client = httpx.AsyncClient(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    def _retrying(self, exceptions) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay, max=10),
            retry=retry_if_exception_type(exceptions),
            reraise=True
        )

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        # Only connection failures are retried; a timed-out POST may have landed
        async for attempt in self._retrying(httpx.ConnectError):
            with attempt:
                return await self.client.post(path, json=payload)

    async def _get(self, path: str) -> httpx.Response:
        async for attempt in self._retrying((httpx.TimeoutException, httpx.ConnectError)):
            with attempt:
                return await self.client.get(path)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error = response.json().get("error", {})
            return error.get("description") or f"status {response.status_code}"
        except ValueError:
            return f"status {response.status_code}"

    async def _call(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        try:
            if method == "POST":
                response = await self._post(path, payload or {})
            else:
                response = await self._get(path)
        except httpx.HTTPError as e:
            logger.error("gateway_unreachable", path=path, error=str(e))
            raise PaymentProviderError(f"Payment provider unavailable: {e}")

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error("gateway_request_failed", path=path, status=response.status_code, error=message)
            raise PaymentProviderError(message)

        return response.json()

    async def create_remote_payment_intent(
        self,
        amount: float,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> RemotePaymentIntent:
        amount_minor = self.validate_amount(amount)

        try:
            data = await self._call("POST", "/orders", {
                "amount": amount_minor,
                "currency": currency or "INR",
                "receipt": receipt,
                "notes": notes or {},
            })
        except PaymentProviderError as e:
            raise PaymentProviderError(f"Failed to create payment order: {e.message}")

        logger.info("gateway_order_created", remote_order_id=data["id"], amount=amount_minor)
        return RemotePaymentIntent(
            id=data["id"],
            amount=data["amount"],
            currency=data["currency"],
            status=data.get("status", "created"),
            receipt=data.get("receipt"),
        )

    async def fetch_remote_order(self, remote_order_id: str) -> RemotePaymentIntent:
        data = await self._call("GET", f"/orders/{remote_order_id}")
        return RemotePaymentIntent(
            id=data["id"],
            amount=data["amount"],
            currency=data["currency"],
            status=data.get("status", "created"),
            receipt=data.get("receipt"),
        )

    async def fetch_remote_payment(self, remote_payment_id: str) -> RemotePayment:
        data = await self._call("GET", f"/payments/{remote_payment_id}")
        return RemotePayment(
            id=data["id"],
            amount=data["amount"],
            currency=data.get("currency", "INR"),
            status=data.get("status", "unknown"),
            method=data.get("method"),
            order_id=data.get("order_id"),
        )

    async def create_refund(
        self,
        remote_payment_id: str,
        amount_minor: Optional[int] = None,
        notes: Optional[Dict[str, str]] = None,
    ) -> RemoteRefund:
        payload = {"notes": notes or {}}
        if amount_minor:
            payload["amount"] = amount_minor

        data = await self._call("POST", f"/payments/{remote_payment_id}/refund", payload)
        logger.info("gateway_refund_created", refund_id=data["id"], remote_payment_id=remote_payment_id)
        return RemoteRefund(
            id=data["id"],
            payment_id=data.get("payment_id", remote_payment_id),
            amount=data.get("amount", amount_minor or 0),
            status=data.get("status", "processed"),
            notes=data.get("notes") or {},
        )

    async def fetch_refund(self, remote_payment_id: str, refund_id: str) -> RemoteRefund:
        data = await self._call("GET", f"/payments/{remote_payment_id}/refunds/{refund_id}")
        return RemoteRefund(
            id=data["id"],
            payment_id=data.get("payment_id", remote_payment_id),
            amount=data.get("amount", 0),
            status=data.get("status", "unknown"),
            notes=data.get("notes") or {},
        )
