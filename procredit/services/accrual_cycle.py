# procredit/services/accrual_cycle.py

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.asyncio.lock import Lock
from redis.exceptions import LockError, RedisError
from sqlalchemy.orm import Session

from procredit.clients.shopify import ShopifyAdminClient
from procredit.core.config import settings
from procredit.core.exceptions import (
    AccrualLockTimeout, CacheCommitError, MissingContextError, ProResolutionError, ShopifyAPIError,
)
from procredit.crud import processed_event as crud_processed_event
from procredit.schemas.accrual import AccrualOutcome, CycleStatus, DepositOutcome, OrderEvent
from procredit.schemas.pro import Pro
from procredit.services import accrual, ledger, order_extraction, pro_directory, pro_resolver, shop_context
from procredit.services import settings as settings_service

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = "procredit:pro-lock:"


def build_event_id(topic: str, order: Dict[str, Any], webhook_id: str | None) -> str:
    """X-Shopify-Webhook-Id, а без него - "<topic>:<id заказа>"."""
    if webhook_id:
        return webhook_id
    return f"{topic}:{order.get('id')}"


async def process_order_webhook(
    db: Session,
    redis: Redis,
    shop: str,
    topic: str,
    webhook_id: str | None,
    order: Dict[str, Any],
) -> AccrualOutcome:
    """
    Полный цикл начисления по одному заказу.

    Код -> сумма до скидки -> контекст магазина -> про -> (блокировка про) ->
    проверка дубля -> расчет -> зачисление store credit -> запись счетчиков.

    Ожидаемые сбои (Shopify, Redis, некорректная конфигурация магазина) возвращаются
    как AccrualOutcome. Непредвиденные исключения доходят до роутера.
    Запись счетчиков выполняется даже если зачисление не удалось.
    """
    reference = order_extraction.extract_code_reference(order)
    if reference is None:
        logger.info(f"Order {order.get('name') or order.get('id')} from {shop} has no discount code. Nothing to do.")
        return AccrualOutcome(status=CycleStatus.NO_CODE, message="Order has no discount code")

    amount = order_extraction.extract_pre_discount_amount(order)
    if amount is None:
        logger.warning(f"Order {order.get('id')} from {shop}: could not determine the pre-discount amount. Skipping.")
        return AccrualOutcome(status=CycleStatus.NO_AMOUNT, message="Pre-discount amount unavailable", code=reference.code)

    try:
        client = shop_context.get_admin_client(db, shop)
    except MissingContextError as e:
        logger.warning(f"{e}. Order {order.get('id')} ignored; reinstall the app to restore the session.")
        return AccrualOutcome(status=CycleStatus.MISSING_CONTEXT, message=str(e), code=reference.code)

    try:
        code = reference.code
        if not code:
            try:
                code = await order_extraction.lookup_discount_code(client, reference.discount_id)
            except ShopifyAPIError as e:
                logger.error(f"Could not read the code text of discount {reference.discount_id} ({shop}): {e}")
                return AccrualOutcome(status=CycleStatus.RESOLUTION_FAILED, message=str(e))
            if not code:
                logger.info(f"Discount {reference.discount_id} on order {order.get('id')} has no code text. Nothing to do.")
                return AccrualOutcome(status=CycleStatus.NO_CODE, message="Discount has no code text")

        event = OrderEvent(
            shop=shop,
            topic=topic,
            event_id=build_event_id(topic, order, webhook_id),
            order_id=str(order.get("id")) if order.get("id") is not None else None,
            order_name=order.get("name"),
            code=code,
            pre_discount_amount=amount,
            currency=order.get("currency") or settings.DEFAULT_CURRENCY,
        )
        return await _accrue_for_code(db, redis, client, event)
    finally:
        await client.aclose()


async def _accrue_for_code(db: Session, redis: Redis, client: ShopifyAdminClient, event: OrderEvent) -> AccrualOutcome:
    try:
        pro = await pro_resolver.resolve(client, event.code)
    except ProResolutionError as e:
        logger.error(f"[{event.shop}] Pro resolution failed for code '{event.code}' (order {event.order_id}): {e}")
        return AccrualOutcome(status=CycleStatus.RESOLUTION_FAILED, message=str(e), code=event.code)

    if pro is None:
        logger.info(f"[{event.shop}] Code '{event.code}' used on order {event.order_id} does not belong to any pro.")
        return AccrualOutcome(status=CycleStatus.UNRESOLVED, message="No pro for this code", code=event.code)

    try:
        config = settings_service.get_shop_config(db, event.shop)
    except ValidationError as e:
        logger.error(
            f"[{event.shop}] Stored shop config is invalid: {e}. Order {event.order_id} (code '{event.code}', "
            f"amount {event.pre_discount_amount}) was NOT attributed to pro {pro.id}; fix the config and reconcile."
        )
        return AccrualOutcome(status=CycleStatus.CONFIG_INVALID, message=str(e), code=event.code, pro_id=pro.id)

    try:
        async with pro_lock(redis, pro.id) as lock:
            return await _run_locked_cycle(db, client, event, pro, config, lock)
    except AccrualLockTimeout as e:
        logger.error(
            f"[{event.shop}] {e}. Order {event.order_id} (code '{event.code}', amount {event.pre_discount_amount}) "
            f"was NOT attributed to pro {pro.id}; reconcile manually."
        )
        return AccrualOutcome(status=CycleStatus.LOCK_TIMEOUT, message=str(e), code=event.code, pro_id=pro.id)


@asynccontextmanager
async def pro_lock(redis: Redis, pro_id: str):
    """
    Блокировка Redis на про: чтение-изменение-запись счетчиков одного про
    никогда не выполняются параллельно.
    """
    lock = redis.lock(
        f"{LOCK_KEY_PREFIX}{pro_id}",
        timeout=settings.ACCRUAL_LOCK_TTL,
        blocking_timeout=settings.ACCRUAL_LOCK_WAIT,
    )
    try:
        acquired = await lock.acquire()
    except RedisError as e:
        raise AccrualLockTimeout(f"Could not acquire accrual lock for pro {pro_id}: Redis unavailable ({e})") from e
    if not acquired:
        raise AccrualLockTimeout(f"Could not acquire accrual lock for pro {pro_id} within {settings.ACCRUAL_LOCK_WAIT}s")
    try:
        yield lock
    finally:
        try:
            await lock.release()
        except LockError:
            logger.warning(f"Accrual lock for pro {pro_id} expired before release")
        except RedisError as e:
            logger.warning(f"Accrual lock for pro {pro_id} could not be released: {e}")


async def _keep_lock_for_commit(lock: Lock) -> bool:
    """
    Продлевает блокировку на время записи счетчиков.
    False, если блокировка уже потеряна (истек TTL) или Redis недоступен.
    """
    try:
        await lock.extend(settings.SHOPIFY_CALL_BUDGET, replace_ttl=True)
    except LockError:
        return False
    except RedisError as e:
        logger.warning(f"Could not extend accrual lock: {e}")
        return False
    return True


async def _run_locked_cycle(
    db: Session, client: ShopifyAdminClient, event: OrderEvent, pro: Pro, config, lock: Lock,
) -> AccrualOutcome:
    if crud_processed_event.is_processed(db, event.event_id):
        logger.info(f"[{event.shop}] Event {event.event_id} (order {event.order_id}) already processed. Skipping.")
        return AccrualOutcome(status=CycleStatus.DUPLICATE, message="Event already processed", code=event.code, pro_id=pro.id)

    # Под блокировкой перечитываем про: счетчики могли измениться после поиска
    try:
        fresh = await pro_directory.get_pro(client, pro.id)
    except ShopifyAPIError as e:
        logger.error(f"[{event.shop}] Could not re-read pro {pro.id} before accrual: {e}")
        return AccrualOutcome(status=CycleStatus.RESOLUTION_FAILED, message=str(e), code=event.code, pro_id=pro.id)
    if fresh is None:
        logger.warning(f"[{event.shop}] Pro {pro.id} disappeared before accrual of order {event.order_id}.")
        return AccrualOutcome(status=CycleStatus.UNRESOLVED, message="Pro no longer exists", code=event.code, pro_id=pro.id)

    if not fresh.status:
        # TODO: confirm with the program owner whether inactive pros should keep accruing
        logger.info(f"[{event.shop}] Pro {fresh.id} (code '{fresh.code}') is inactive; accruing anyway.")

    result = accrual.accrue(fresh, event.pre_discount_amount, config)
    logger.info(
        f"[{event.shop}] Accrual for pro {fresh.id} (code '{event.code}', order {event.order_id}): "
        f"amount={event.pre_discount_amount} revenue {fresh.cache_revenue} -> {result.new_revenue}, "
        f"orders {fresh.cache_orders_count} -> {result.new_count}, "
        f"credit {fresh.cache_credit_earned} -> {result.new_credit_earned}, delta={result.deposit_delta} "
        f"(threshold={config.threshold}, credit_amount={config.credit_amount})"
    )
    if result.is_inconsistent:
        logger.warning(
            f"[{event.shop}] Negative credit delta {result.raw_delta} for pro {fresh.id}: "
            f"shop config was lowered since the last cycle. Depositing nothing."
        )

    try:
        deposit_outcome = await _deposit(client, event, fresh, result.deposit_delta)
    except Exception:
        # Сбой зачисления не должен отменять запись выручки
        logger.error(
            f"[{event.shop}] Unexpected error while depositing {result.deposit_delta} {event.currency} "
            f"for pro {fresh.id} (customer {fresh.customer_id}); check the store credit account manually.",
            exc_info=True,
        )
        deposit_outcome = DepositOutcome.TRANSPORT_ERROR

    if not await _keep_lock_for_commit(lock):
        logger.error(
            f"[{event.shop}] Accrual lock for pro {fresh.id} was lost before the counters were written; "
            f"another event may have updated them. Counters NOT written. Manual reconciliation needed for "
            f"order {event.order_id}: amount={event.pre_discount_amount} computed revenue={result.new_revenue} "
            f"orders={result.new_count} credit_earned={result.new_credit_earned} "
            f"(deposit outcome: {deposit_outcome.value}, delta={result.deposit_delta})"
        )
        return AccrualOutcome(
            status=CycleStatus.LOCK_LOST, message="Accrual lock lost before commit", code=event.code,
            pro_id=fresh.id, accrual=result, deposit=deposit_outcome,
        )

    try:
        await pro_directory.commit_cache(
            client, fresh.id, result.new_revenue, result.new_count, result.new_credit_earned,
        )
    except CacheCommitError as e:
        logger.error(
            f"[{event.shop}] {e}. Manual reconciliation needed for pro {fresh.id}: "
            f"revenue={result.new_revenue} orders={result.new_count} credit_earned={result.new_credit_earned} "
            f"(deposit outcome: {deposit_outcome.value}, delta={result.deposit_delta})"
        )
        return AccrualOutcome(
            status=CycleStatus.COMMIT_FAILED, message=str(e), code=event.code,
            pro_id=fresh.id, accrual=result, deposit=deposit_outcome,
        )

    if not crud_processed_event.mark_processed(db, event.event_id, event.shop, event.topic, pro_id=fresh.id):
        logger.warning(f"[{event.shop}] Event {event.event_id} was recorded concurrently by another worker.")

    return AccrualOutcome(
        status=CycleStatus.COMMITTED,
        message=f"Pro {fresh.id} updated",
        code=event.code,
        pro_id=fresh.id,
        accrual=result,
        deposit=deposit_outcome,
    )


async def _deposit(client: ShopifyAdminClient, event: OrderEvent, pro: Pro, amount) -> DepositOutcome:
    if amount <= 0:
        return DepositOutcome.SKIPPED
    if not pro.customer_id:
        logger.warning(
            f"[{event.shop}] Pro {pro.id} earned {amount} {event.currency} but has no linked customer. "
            f"Credit is tracked in cache_credit_earned only."
        )
        return DepositOutcome.SKIPPED
    outcome = await ledger.deposit(client, pro.customer_id, amount, event.currency)
    if outcome is not DepositOutcome.DEPOSITED:
        logger.warning(
            f"[{event.shop}] Deposit of {amount} {event.currency} for pro {pro.id} "
            f"(customer {pro.customer_id}) not completed: {outcome.value}. Counters are committed anyway."
        )
    return outcome
