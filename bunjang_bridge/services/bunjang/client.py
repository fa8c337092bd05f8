import base64
import binascii
import json
import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx
import jwt

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.exceptions import BunjangAPIError, ServerMisconfigurationError
from bunjang_bridge.schemas.bunjang import (
    BunjangOrderPage,
    BunjangOrderPayload,
    BunjangPointBalance,
    BunjangProductDetail,
)

logger = logging.getLogger(__name__)


class BunjangClient:
    """
    Asynchronous client for the Bunjang Open API.

    Every request carries a short-lived HS256 JWT (access key, nonce, iat)
    signed with the base64-decoded secret key. Non-2xx responses raise
    BunjangAPIError with the ``errorCode`` / ``reason`` Bunjang returns, so
    callers can branch on domain errors such as POINT_SHORTAGE.
    """

    def __init__(self, base_url: str, access_key: str, secret_key: str, timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self.access_key = access_key
        self.secret_key = secret_key
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "BunjangClient":
        return cls(
            base_url=settings.BUNJANG_API_GENERAL_URL,
            access_key=settings.BUNJANG_API_ACCESS_KEY,
            secret_key=settings.BUNJANG_API_SECRET_KEY,
            timeout=settings.BUNJANG_API_TIMEOUT_SECONDS,
        )

    def _generate_token(self) -> str:
        if not self.access_key or not self.secret_key:
            raise ServerMisconfigurationError("Bunjang API credentials are not configured")
        try:
            signing_key = base64.b64decode(self.secret_key)
        except (binascii.Error, ValueError) as e:
            raise ServerMisconfigurationError(f"Bunjang secret key is not valid base64: {e}")

        payload = {
            "accessKey": self.access_key,
            "nonce": str(uuid.uuid4()),
            "iat": int(time.time()),
        }
        return jwt.encode(payload, signing_key, algorithm="HS256")

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for API requests"""
        return {
            "Authorization": f"Bearer {self._generate_token()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @staticmethod
    def _parse_error(response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
    ) -> Dict:
        """
        Make a request to the Bunjang API

        Raises:
            BunjangAPIError: If the API request fails
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = self._get_headers()

        logger.debug(f"Making {method} request to {url}")
        if params:
            logger.debug(f"Params: {params}")
        if data:
            logger.debug(f"Data: {json.dumps(data)[:500]}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    json=data,
                    params=params
                )
        except httpx.TimeoutException as e:
            logger.error(f"Bunjang timeout on {method} {endpoint}: {str(e)}")
            raise BunjangAPIError(f"Request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"Bunjang network error on {method} {endpoint}: {str(e)}")
            raise BunjangAPIError(f"Network error: {str(e)}")

        if response.status_code not in (200, 201, 202, 204):
            error = self._parse_error(response)
            error_code = error.get("errorCode")
            reason = error.get("reason")
            logger.error(
                f"Bunjang API error on {method} {endpoint}: "
                f"status={response.status_code} errorCode={error_code} reason={reason}"
            )
            raise BunjangAPIError(
                f"Request failed with status {response.status_code}: {reason or response.text}",
                status_code=response.status_code,
                error_code=error_code,
                reason=reason,
            )

        if response.status_code == 204:
            return {}

        return response.json()

    async def get_product_details(self, pid: str) -> Optional[BunjangProductDetail]:
        """Live product detail, or None when Bunjang no longer knows the product."""
        try:
            response = await self._make_request("GET", f"/api/v1/products/{pid}")
        except BunjangAPIError as e:
            if e.status_code == 404 or e.error_code == "PRODUCT_NOT_FOUND":
                logger.warning(f"Bunjang product {pid} not found")
                return None
            raise

        data = response.get("data")
        if not data:
            return None
        return BunjangProductDetail.model_validate(data)

    async def create_order(self, payload: BunjangOrderPayload) -> Dict[str, Any]:
        """Create a Bunjang order (v2). Returns the ``data`` object, which holds the new order ``id``."""
        response = await self._make_request(
            "POST", "/api/v2/orders", data=payload.model_dump(by_alias=True)
        )
        return response.get("data") or {}

    async def get_point_balance(self) -> Optional[BunjangPointBalance]:
        response = await self._make_request("GET", "/api/v1/point/balance")
        data = response.get("data")
        if not data:
            return None
        return BunjangPointBalance.model_validate(data)

    async def get_orders(
        self,
        status_update_start: str,
        status_update_end: str,
        page: int = 0,
        size: int = 100,
    ) -> BunjangOrderPage:
        """One page of orders whose status changed inside the window (ISO-8601 UTC bounds)."""
        params = {
            "statusUpdateStartDate": status_update_start,
            "statusUpdateEndDate": status_update_end,
            "page": page,
            "size": size,
        }
        response = await self._make_request("GET", "/api/v2/orders", params=params)
        return BunjangOrderPage.model_validate(response or {})
