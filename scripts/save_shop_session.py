# scripts/save_shop_session.py

import logging
import sys
import os

# Хак для импорта наших модулей из родительской директории
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from procredit.db.session import SessionLocal
from procredit.crud import shop_session as crud_shop_session

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

USAGE = "Usage: python scripts/save_shop_session.py <shop>.myshopify.com <offline_access_token> [scope]"


def main(argv):
    """
    Сохраняет offline-токен магазина, полученный при установке приложения вне этого сервиса.
    Без сохраненной сессии вебхуки заказов магазина игнорируются.
    """
    if len(argv) < 2:
        print(USAGE)
        return 1

    shop, access_token = argv[0].strip().lower(), argv[1].strip()
    scope = argv[2] if len(argv) > 2 else None

    db = SessionLocal()
    try:
        crud_shop_session.save_session(db, shop, access_token, scope=scope)
        logger.info(f"Session saved for shop {shop} (scope: {scope or 'not specified'})")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
