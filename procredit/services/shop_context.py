# procredit/services/shop_context.py

import logging
from sqlalchemy.orm import Session

from procredit.clients.shopify import ShopifyAdminClient
from procredit.core.exceptions import MissingContextError
from procredit.crud import shop_session as crud_shop_session

logger = logging.getLogger(__name__)

def get_admin_client(db: Session, shop: str) -> ShopifyAdminClient:
    """
    Создает клиента Admin API по сохраненной offline-сессии магазина.
    Если сессии нет (приложение удалено или установка не завершена), поднимает MissingContextError.
    """
    shop_session = crud_shop_session.get_session_by_shop(db, shop)
    if not shop_session or not shop_session.access_token:
        raise MissingContextError(f"No stored admin session for shop {shop}")
    return ShopifyAdminClient(shop=shop, access_token=shop_session.access_token)
