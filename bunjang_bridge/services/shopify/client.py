import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.exceptions import ShopifyAPIError, ShopifyGraphQLError
from bunjang_bridge.core.utils import shopify_gid
from bunjang_bridge.schemas.shopify import Metafield, ProductInventory, ShopifyOrderRef

logger = logging.getLogger(__name__)


TAGS_ADD_MUTATION = """
mutation tagsAdd($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    node { id }
    userErrors { field message }
  }
}
"""

METAFIELDS_SET_MUTATION = """
mutation metafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { key namespace }
    userErrors { field message code }
  }
}
"""

FIND_ORDER_QUERY = """
query findOrder($query: String!) {
  orders(first: 1, query: $query) {
    edges { node { id name tags } }
  }
}
"""

PRODUCT_INVENTORY_QUERY = """
query productInventory($id: ID!) {
  product(id: $id) {
    id
    variants(first: 1) {
      edges {
        node {
          id
          inventoryQuantity
          inventoryItem { id }
        }
      }
    }
  }
}
"""

INVENTORY_SET_MUTATION = """
mutation inventorySetQuantities($input: InventorySetQuantitiesInput!) {
  inventorySetQuantities(input: $input) {
    inventoryAdjustmentGroup { reason }
    userErrors { field message }
  }
}
"""


class ShopifyClient:
    """
    Async client for the Shopify Admin API.

    GraphQL calls respect Shopify's cost-based throttling: the throttle status
    reported in ``extensions.cost`` is tracked and we back off before the
    bucket drops below a safety buffer. A handful of REST endpoints are used
    for webhook registration only.
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = "2025-04",
        timeout: float = 30.0,
        safety_buffer_percentage: float = 0.2,
    ):
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout

        self.graphql_url = f"https://{shop_domain}/admin/api/{api_version}/graphql.json"
        self.rest_base_url = f"https://{shop_domain}/admin/api/{api_version}"

        # Initial throttle status; updated after the first call
        self.max_available_points = 1000.0
        self.currently_available_points = self.max_available_points
        self.restore_rate = 50.0
        self.safety_buffer_percentage = safety_buffer_percentage

    @classmethod
    def from_settings(cls, settings: Settings) -> "ShopifyClient":
        return cls(
            shop_domain=settings.SHOPIFY_SHOP_DOMAIN,
            access_token=settings.SHOPIFY_ADMIN_ACCESS_TOKEN,
            api_version=settings.SHOPIFY_API_VERSION,
        )

    def _get_headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @property
    def safety_buffer_points(self) -> float:
        return self.max_available_points * self.safety_buffer_percentage

    def _update_throttle_status(self, extensions: Dict[str, Any]):
        throttle = (extensions or {}).get("cost", {}).get("throttleStatus")
        if throttle:
            self.max_available_points = float(throttle["maximumAvailable"])
            self.currently_available_points = float(throttle["currentlyAvailable"])
            self.restore_rate = float(throttle["restoreRate"])

    async def _wait_for_budget(self, estimated_cost: int):
        required = estimated_cost + self.safety_buffer_points
        if self.currently_available_points >= required:
            return
        points_needed = required - self.currently_available_points
        wait_time = (points_needed / self.restore_rate) if self.restore_rate > 0 else 10
        wait_time = max(wait_time, 0) + 0.5
        logger.info(
            f"Shopify throttle: {self.currently_available_points} points available, "
            f"need ~{required}. Waiting {wait_time:.2f}s"
        )
        await asyncio.sleep(wait_time)
        self.currently_available_points = min(
            self.max_available_points,
            self.currently_available_points + self.restore_rate * wait_time,
        )

    async def _send(self, method: str, url: str, json_body: Optional[Dict] = None, params: Optional[Dict] = None):
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    json=json_body,
                    params=params,
                )
        except httpx.TimeoutException as e:
            logger.error(f"Shopify timeout on {method} {url}: {str(e)}")
            raise ShopifyAPIError(f"Request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"Shopify network error on {method} {url}: {str(e)}")
            raise ShopifyAPIError(f"Network error: {str(e)}")

    async def _make_request(self, query: str, variables: Optional[Dict] = None, estimated_cost: int = 10) -> Dict:
        """
        Makes a GraphQL request to Shopify, handling rate limits.
        Returns the ``data`` object.
        """
        await self._wait_for_budget(estimated_cost)

        payload = {"query": query}
        if variables:
            payload["variables"] = variables

        response = await self._send("POST", self.graphql_url, json_body=payload)

        if response.status_code == 429:
            # Force an internal wait before the next call
            self.currently_available_points = 0
            raise ShopifyAPIError("Shopify rate limit exceeded (429)")
        if response.status_code not in (200, 201):
            logger.error(f"Shopify GraphQL HTTP {response.status_code}: {response.text}")
            raise ShopifyAPIError(f"Request failed with status {response.status_code}: {response.text}")

        try:
            response_data = response.json()
        except ValueError:
            raise ShopifyGraphQLError([{"message": "Failed to decode JSON response", "response_text": response.text}])

        if "extensions" in response_data:
            self._update_throttle_status(response_data["extensions"])

        if response_data.get("errors"):
            raise ShopifyGraphQLError(response_data["errors"])

        return response_data.get("data") or {}

    async def execute(self, query: str, variables: Optional[Dict] = None, estimated_cost: int = 10) -> Dict:
        return await self._make_request(query, variables, estimated_cost)

    @staticmethod
    def _raise_user_errors(result: Optional[Dict], operation: str):
        user_errors = (result or {}).get("userErrors") or []
        if user_errors:
            logger.error(f"Shopify {operation} user errors: {user_errors}")
            raise ShopifyGraphQLError(user_errors)

    # --- Order annotations ---

    async def add_order_tags(self, order_gid: str, tags: List[str]):
        if not tags:
            return
        data = await self._make_request(TAGS_ADD_MUTATION, {"id": order_gid, "tags": tags})
        self._raise_user_errors(data.get("tagsAdd"), "tagsAdd")

    async def set_order_metafields(self, order_gid: str, metafields: List[Metafield]):
        if not metafields:
            return
        variables = {
            "metafields": [
                {
                    "ownerId": order_gid,
                    "namespace": m.namespace,
                    "key": m.key,
                    "value": m.value,
                    "type": m.type,
                }
                for m in metafields
            ]
        }
        data = await self._make_request(METAFIELDS_SET_MUTATION, variables)
        self._raise_user_errors(data.get("metafieldsSet"), "metafieldsSet")

    async def update_order(
        self,
        order_gid: str,
        tags: Optional[List[str]] = None,
        metafields: Optional[List[Metafield]] = None,
    ):
        """Add tags and/or set metafields on an order. Existing tags are kept."""
        await self.add_order_tags(order_gid, tags or [])
        await self.set_order_metafields(order_gid, metafields or [])

    async def find_order_by_tag(self, tag: str) -> Optional[ShopifyOrderRef]:
        data = await self._make_request(FIND_ORDER_QUERY, {"query": f'tag:"{tag}"'})
        edges = (data.get("orders") or {}).get("edges") or []
        if not edges:
            return None
        return ShopifyOrderRef.model_validate(edges[0]["node"])

    # --- Inventory ---

    async def get_product_inventory(self, product_gid: str) -> Optional[ProductInventory]:
        """First variant of the product with its inventory item and quantity."""
        data = await self._make_request(PRODUCT_INVENTORY_QUERY, {"id": product_gid})
        product = data.get("product")
        if not product:
            return None
        edges = (product.get("variants") or {}).get("edges") or []
        if not edges:
            return None
        node = edges[0]["node"]
        return ProductInventory(
            variant_gid=node["id"],
            inventory_item_id=node["inventoryItem"]["id"],
            quantity=node.get("inventoryQuantity") or 0,
        )

    async def set_inventory_quantity(self, inventory_item_id: str, location_id: str, quantity: int):
        variables = {
            "input": {
                "name": "available",
                "reason": "correction",
                "ignoreCompareQuantity": True,
                "quantities": [
                    {
                        "inventoryItemId": inventory_item_id,
                        "locationId": shopify_gid("Location", location_id),
                        "quantity": quantity,
                    }
                ],
            }
        }
        data = await self._make_request(INVENTORY_SET_MUTATION, variables)
        self._raise_user_errors(data.get("inventorySetQuantities"), "inventorySetQuantities")

    # --- Webhook registration (REST) ---

    async def _rest_request(self, method: str, path: str, data: Optional[Dict] = None) -> Dict:
        url = f"{self.rest_base_url}/{path.lstrip('/')}"
        response = await self._send(method, url, json_body=data)
        if response.status_code not in (200, 201, 202, 204):
            logger.error(f"Shopify REST error on {method} {path}: {response.text}")
            raise ShopifyAPIError(f"Request failed with status {response.status_code}: {response.text}")
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def list_webhooks(self) -> List[Dict]:
        response = await self._rest_request("GET", "/webhooks.json")
        return response.get("webhooks", [])

    async def delete_webhook(self, webhook_id) -> None:
        await self._rest_request("DELETE", f"/webhooks/{webhook_id}.json")

    async def create_webhook(self, topic: str, address: str) -> Dict:
        body = {"webhook": {"topic": topic, "address": address, "format": "json"}}
        response = await self._rest_request("POST", "/webhooks.json", data=body)
        return response.get("webhook", {})
