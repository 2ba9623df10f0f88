# procredit/crud/shop_config.py
from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procredit.models.shop_config import ShopConfig

def get_config(db: Session, shop: str) -> ShopConfig | None:
    return db.query(ShopConfig).filter(ShopConfig.shop == shop).first()

def get_or_create_config(db: Session, shop: str, threshold: Decimal, credit_amount: Decimal) -> ShopConfig:
    """
    Возвращает конфигурацию магазина, создавая ее со значениями по умолчанию при первом чтении.
    Два одновременных первых чтения не падают: проигравший перечитывает запись победителя.
    """
    config = get_config(db, shop)
    if config:
        return config

    config = ShopConfig(shop=shop, threshold=threshold, credit_amount=credit_amount)
    db.add(config)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return get_config(db, shop)
    db.refresh(config)
    return config
