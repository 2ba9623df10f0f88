# procredit/clients/shopify.py

import httpx
from procredit.core.config import settings
from procredit.core.exceptions import ShopifyAPIError, ShopifyAccessDenied
import logging

logger = logging.getLogger(__name__)

ACCESS_DENIED_CODES = {"ACCESS_DENIED", "FORBIDDEN", "UNAUTHORIZED"}

class ShopifyAdminClient:
    """
    Асинхронный клиент Admin GraphQL API Shopify для одного магазина.
    Аутентификация через offline access token (X-Shopify-Access-Token).
    """
    def __init__(self, shop: str, access_token: str, api_version: str | None = None):
        if not shop or not access_token:
            raise ValueError("ShopifyAdminClient requires shop and access_token")
        self.shop = shop.lower().strip()
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self.base_url = f"https://{self.shop}/admin/api/{self.api_version}"
        timeouts = httpx.Timeout(settings.HTTP_CONNECT_TIMEOUT, read=settings.HTTP_READ_TIMEOUT)
        self.async_client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeouts,
        )

    async def graphql(self, query: str, variables: dict | None = None) -> dict:
        """
        Выполняет GraphQL-запрос и возвращает содержимое `data`.
        HTTP 401/403 и ошибки с кодом ACCESS_DENIED поднимаются как ShopifyAccessDenied,
        остальные сетевые, HTTP и GraphQL-ошибки как ShopifyAPIError.
        `userErrors` мутаций не проверяются: это забота вызывающего кода.
        """
        payload = {"query": query, "variables": variables or {}}
        try:
            response = await self.async_client.post("/graphql.json", json=payload)
            response.raise_for_status()
        except httpx.RequestError as e:
            logger.error(f"Network error during GraphQL request to {e.request.url!r}.", exc_info=True)
            raise ShopifyAPIError(f"Network error: {e}") from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"HTTP error during GraphQL request to {e.request.url!r}: {e.response.text}")
            if status_code in (401, 403):
                raise ShopifyAccessDenied(e.response.text, status_code=status_code) from e
            raise ShopifyAPIError(e.response.text, status_code=status_code) from e

        try:
            body = response.json()
        except ValueError as e:
            # Например, HTML-страница техобслуживания с кодом 200
            logger.error(f"Non-JSON GraphQL response from {self.shop} (HTTP {response.status_code}): {response.text[:200]!r}")
            raise ShopifyAPIError(f"Invalid JSON in GraphQL response: {e}", status_code=response.status_code) from e
        if not isinstance(body, dict):
            raise ShopifyAPIError(f"Unexpected GraphQL response shape: {type(body).__name__}", status_code=response.status_code)
        errors = body.get("errors")
        if errors:
            if isinstance(errors, str):
                errors = [{"message": errors}]
            codes = {(err.get("extensions") or {}).get("code") for err in errors}
            message = "; ".join(err.get("message", "") for err in errors)
            if codes & ACCESS_DENIED_CODES:
                logger.warning(f"GraphQL access denied for shop {self.shop}: {message}")
                raise ShopifyAccessDenied(message, errors=errors, status_code=response.status_code)
            logger.error(f"GraphQL errors for shop {self.shop}: {message}")
            raise ShopifyAPIError(message, errors=errors, status_code=response.status_code)

        return body.get("data") or {}

    async def aclose(self):
        await self.async_client.aclose()
