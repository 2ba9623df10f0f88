# procredit/routers/webhooks.py

import hmac
import hashlib
import base64
import json
import logging
from fastapi import APIRouter, Request, Depends, Header, HTTPException, status
from redis.asyncio import Redis
from sqlalchemy.orm import Session

from procredit.core.config import settings
from procredit.core.redis import get_redis_client
from procredit.crud import shop_session as crud_shop_session
from procredit.dependencies import get_db
from procredit.services import accrual_cycle

logger = logging.getLogger(__name__)

# Подключается в main.py с префиксом /webhooks
router = APIRouter()


def compute_signature(raw_body: bytes, secret: str) -> str:
    return base64.b64encode(hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()).decode()


# --- Зависимость для проверки подписи Shopify ---
async def verify_webhook_signature(
    request: Request,
    x_shopify_hmac_sha256: str | None = Header(None),
):
    """
    Проверяет HMAC-SHA256 тела запроса общим секретом приложения.
    Неверная или отсутствующая подпись -> 401 (Shopify повторит доставку).
    """
    raw_body = await request.body()

    if not x_shopify_hmac_sha256:
        logger.warning("Webhook received without X-Shopify-Hmac-Sha256 header. Rejecting.")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook signature")

    expected_signature = compute_signature(raw_body, settings.SHOPIFY_API_SECRET)
    if not hmac.compare_digest(expected_signature, x_shopify_hmac_sha256):
        logger.warning("Invalid webhook signature. Rejecting.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature"
        )
    logger.debug("Webhook signature verified successfully.")


@router.post("/orders/create", dependencies=[Depends(verify_webhook_signature)])
async def orders_create_webhook(
    request: Request,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis_client),
    x_shopify_shop_domain: str | None = Header(None),
    x_shopify_topic: str | None = Header(None),
    x_shopify_webhook_id: str | None = Header(None),
):
    """
    Начисление выручки и store credit про по промокоду заказа.
    Всегда отвечает 200 после успешной проверки подписи, чтобы Shopify
    не повторял доставку из-за ошибок конфигурации.
    """
    raw_body = await request.body()
    try:
        order_data = json.loads(raw_body) if raw_body else None
    except json.JSONDecodeError:
        logger.warning(f"orders/create webhook from {x_shopify_shop_domain} with non-JSON payload")
        return {"status": "skipped", "message": "Invalid JSON payload."}

    if not isinstance(order_data, dict):
        return {"status": "skipped", "message": "Empty payload."}
    if not x_shopify_shop_domain:
        logger.warning("orders/create webhook without X-Shopify-Shop-Domain header")
        return {"status": "skipped", "message": "Missing shop domain."}

    logger.info(f"Order webhook received from {x_shopify_shop_domain}: {order_data.get('name') or order_data.get('id')}")

    try:
        outcome = await accrual_cycle.process_order_webhook(
            db,
            redis,
            shop=x_shopify_shop_domain,
            topic=x_shopify_topic or "orders/create",
            webhook_id=x_shopify_webhook_id,
            order=order_data,
        )
    except Exception:
        logger.error(
            f"Unexpected error while processing order {order_data.get('id')} from {x_shopify_shop_domain}",
            exc_info=True,
        )
        return {"status": "error", "message": "Order could not be processed; see logs."}

    return {"status": outcome.status.value, "message": outcome.message}


@router.post("/app/uninstalled", dependencies=[Depends(verify_webhook_signature)])
async def app_uninstalled_webhook(
    db: Session = Depends(get_db),
    x_shopify_shop_domain: str | None = Header(None),
    x_shopify_topic: str | None = Header(None),
):
    """Удаляет сохраненные сессии магазина после удаления приложения."""
    logger.info(f"Received {x_shopify_topic} webhook for {x_shopify_shop_domain}")
    if not x_shopify_shop_domain:
        return {"status": "skipped", "message": "Missing shop domain."}

    try:
        deleted = crud_shop_session.delete_sessions_for_shop(db, x_shopify_shop_domain)
    except Exception:
        logger.error(f"Failed to delete sessions for {x_shopify_shop_domain}", exc_info=True)
        return {"status": "error", "message": "Sessions could not be deleted; see logs."}

    logger.info(f"Sessions deleted for shop {x_shopify_shop_domain}: {deleted}")
    return {"status": "ok", "message": f"{deleted} session(s) deleted"}
