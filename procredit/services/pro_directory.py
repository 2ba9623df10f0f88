# procredit/services/pro_directory.py

import logging
from typing import List, Optional

from procredit.clients.shopify import ShopifyAdminClient
from procredit.core.config import settings
from procredit.core.exceptions import CacheCommitError, ShopifyAPIError
from procredit.schemas.pro import (
    Pro, ProPage,
    CACHE_REVENUE_FIELD, CACHE_ORDERS_COUNT_FIELD, CACHE_CREDIT_EARNED_FIELD,
)

logger = logging.getLogger(__name__)

SEARCH_PROS_QUERY = """
query searchPros($type: String!, $first: Int!, $query: String!) {
  metaobjects(type: $type, first: $first, query: $query) {
    edges { node { id fields { key value } } }
  }
}
"""

LIST_PROS_QUERY = """
query listPros($type: String!, $first: Int!, $after: String) {
  metaobjects(type: $type, first: $first, after: $after) {
    edges { node { id fields { key value } } }
    pageInfo { hasNextPage endCursor }
  }
}
"""

GET_PRO_QUERY = """
query getPro($id: ID!) {
  metaobject(id: $id) { id fields { key value } }
}
"""

UPDATE_PRO_MUTATION = """
mutation metaobjectUpdate($id: ID!, $metaobject: MetaobjectUpdateInput!) {
  metaobjectUpdate(id: $id, metaobject: $metaobject) {
    metaobject { id fields { key value } }
    userErrors { field message }
  }
}
"""


async def search_pros(client: ShopifyAdminClient, query: str, limit: Optional[int] = None) -> List[Pro]:
    """Поиск по индексу метаобъектов. Индекс может возвращать неточные совпадения."""
    data = await client.graphql(SEARCH_PROS_QUERY, {
        "type": settings.PRO_METAOBJECT_TYPE,
        "first": limit or settings.RESOLVER_SEARCH_LIMIT,
        "query": query,
    })
    edges = (data.get("metaobjects") or {}).get("edges") or []
    return [Pro.from_metaobject(edge["node"]) for edge in edges if edge.get("node")]


async def list_pros_page(client: ShopifyAdminClient, first: int, after: Optional[str] = None) -> ProPage:
    """Одна страница полного перечисления про (курсорная пагинация)."""
    data = await client.graphql(LIST_PROS_QUERY, {
        "type": settings.PRO_METAOBJECT_TYPE,
        "first": min(first, 250),
        "after": after,
    })
    connection = data.get("metaobjects") or {}
    page_info = connection.get("pageInfo") or {}
    return ProPage(
        pros=[Pro.from_metaobject(edge["node"]) for edge in connection.get("edges") or [] if edge.get("node")],
        has_next_page=bool(page_info.get("hasNextPage")),
        end_cursor=page_info.get("endCursor"),
    )


async def get_pro(client: ShopifyAdminClient, pro_id: str) -> Optional[Pro]:
    data = await client.graphql(GET_PRO_QUERY, {"id": pro_id})
    node = data.get("metaobject")
    return Pro.from_metaobject(node) if node else None


async def commit_cache(client: ShopifyAdminClient, pro_id: str, new_revenue, new_count: int, new_credit_earned) -> None:
    """
    Записывает три накопительных поля про. Остальные поля метаобъекта не трогаются
    (metaobjectUpdate с частичным списком полей).
    """
    variables = {
        "id": pro_id,
        "metaobject": {
            "fields": [
                {"key": CACHE_REVENUE_FIELD, "value": str(new_revenue)},
                {"key": CACHE_ORDERS_COUNT_FIELD, "value": str(new_count)},
                {"key": CACHE_CREDIT_EARNED_FIELD, "value": str(new_credit_earned)},
            ]
        },
    }
    try:
        data = await client.graphql(UPDATE_PRO_MUTATION, variables)
    except ShopifyAPIError as e:
        raise CacheCommitError(f"metaobjectUpdate failed for {pro_id}: {e}") from e

    user_errors = (data.get("metaobjectUpdate") or {}).get("userErrors") or []
    if user_errors:
        raise CacheCommitError(f"metaobjectUpdate userErrors for {pro_id}: {user_errors}")

    logger.info(
        f"Cache committed for pro {pro_id}: revenue={new_revenue} orders={new_count} credit_earned={new_credit_earned}"
    )
