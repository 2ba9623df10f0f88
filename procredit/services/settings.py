# procredit/services/settings.py

import logging
from sqlalchemy.orm import Session

from procredit.core.config import settings as app_settings # псевдоним, чтобы не путать с настройками магазина
from procredit.crud import shop_config as crud_shop_config
from procredit.schemas.settings import ShopConfigSchema

logger = logging.getLogger(__name__)

def get_shop_config(db: Session, shop: str) -> ShopConfigSchema:
    """
    Возвращает порог и сумму кредита для магазина.
    При первом обращении создает запись со значениями по умолчанию (500 / 10).
    Движок начисления эту запись только читает.
    """
    config = crud_shop_config.get_or_create_config(
        db,
        shop=shop,
        threshold=app_settings.DEFAULT_THRESHOLD,
        credit_amount=app_settings.DEFAULT_CREDIT_AMOUNT,
    )
    return ShopConfigSchema.model_validate(config)
