# procredit/crud/shop_session.py
from sqlalchemy.orm import Session

from procredit.models.shop_session import ShopSession

def get_session_by_shop(db: Session, shop: str) -> ShopSession | None:
    return db.query(ShopSession).filter(ShopSession.shop == shop).first()

def save_session(db: Session, shop: str, access_token: str, scope: str | None = None) -> ShopSession:
    """Создает или обновляет offline-сессию магазина."""
    shop_session = get_session_by_shop(db, shop)
    if shop_session:
        shop_session.access_token = access_token
        shop_session.scope = scope
    else:
        shop_session = ShopSession(shop=shop, access_token=access_token, scope=scope)
        db.add(shop_session)
    db.commit()
    db.refresh(shop_session)
    return shop_session

def delete_sessions_for_shop(db: Session, shop: str) -> int:
    """Удаляет все сессии магазина. Возвращает количество удаленных строк."""
    deleted = db.query(ShopSession).filter(ShopSession.shop == shop).delete(synchronize_session=False)
    db.commit()
    return deleted
