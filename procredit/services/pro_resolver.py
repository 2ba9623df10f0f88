# procredit/services/pro_resolver.py

import logging
from typing import Optional

from procredit.clients.shopify import ShopifyAdminClient
from procredit.core.config import settings
from procredit.core.exceptions import ProResolutionError, ShopifyAPIError
from procredit.schemas.pro import Pro
from procredit.services import pro_directory

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return (code or "").strip().lower()


async def resolve(client: ShopifyAdminClient, code: str) -> Optional[Pro]:
    """
    Находит про по промокоду без учета регистра и пробелов по краям.

    1. Быстрый путь: поиск по индексу метаобъектов + точная фильтрация
       (индекс может вернуть частичные/токенизированные совпадения).
    2. Запасной путь: полный перебор страницами, пока не найдется точное совпадение
       или не будет просмотрено RESOLVER_SCAN_LIMIT записей.

    Возвращает None, если про не найден. Ошибки Shopify поднимаются как ProResolutionError.
    """
    normalized = normalize_code(code)
    if not normalized:
        return None

    try:
        candidates = await pro_directory.search_pros(client, normalized)
    except ShopifyAPIError as e:
        raise ProResolutionError(f"Indexed search failed for code '{normalized}': {e}") from e

    for candidate in candidates:
        if candidate.normalized_code == normalized:
            logger.info(f"Pro {candidate.id} resolved for code '{normalized}' via search index")
            return candidate

    logger.info(
        f"Search index returned no exact match for code '{normalized}' "
        f"({len(candidates)} candidates). Falling back to full scan."
    )
    return await _scan_for_code(client, normalized)


async def _scan_for_code(client: ShopifyAdminClient, normalized: str) -> Optional[Pro]:
    scanned = 0
    cursor = None
    while scanned < settings.RESOLVER_SCAN_LIMIT:
        page_size = min(settings.RESOLVER_PAGE_SIZE, settings.RESOLVER_SCAN_LIMIT - scanned)
        try:
            page = await pro_directory.list_pros_page(client, first=page_size, after=cursor)
        except ShopifyAPIError as e:
            raise ProResolutionError(f"Full scan failed for code '{normalized}' after {scanned} records: {e}") from e

        for pro in page.pros[:page_size]:
            scanned += 1
            if pro.normalized_code == normalized:
                logger.info(f"Pro {pro.id} resolved for code '{normalized}' via full scan ({scanned} records scanned)")
                return pro

        if not page.pros or not page.has_next_page or not page.end_cursor:
            logger.info(f"Full scan finished: no pro for code '{normalized}' ({scanned} records scanned)")
            return None
        cursor = page.end_cursor

    logger.warning(
        f"Full scan stopped at the limit of {settings.RESOLVER_SCAN_LIMIT} records without a match for code '{normalized}'"
    )
    return None
