# procredit/services/order_extraction.py

"""
Разбор payload заказа Shopify (orders/create): какой промокод использован и
какова сумма заказа до применения скидки.

Сумма считается цепочкой стратегий: каждая стратегия - чистая функция payload,
возвращающая Decimal или None. Берется результат первой стратегии, вернувшей значение.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from procredit.clients.shopify import ShopifyAdminClient
from procredit.services.accrual import to_money

logger = logging.getLogger(__name__)

Order = Dict[str, Any]
AmountStrategy = Callable[[Order], Optional[Decimal]]


class CodeReference(BaseModel):
    """Промокод из заказа: либо сам текст кода, либо только внутренний ID скидки."""
    code: Optional[str] = None
    discount_id: Optional[str] = None
    source: str


DISCOUNT_CODE_NODE_QUERY = """
query discountCodeText($id: ID!) {
  codeDiscountNode(id: $id) {
    id
    codeDiscount {
      ... on DiscountCodeBasic { codes(first: 1) { nodes { code } } }
      ... on DiscountCodeBxgy { codes(first: 1) { nodes { code } } }
      ... on DiscountCodeFreeShipping { codes(first: 1) { nodes { code } } }
      ... on DiscountCodeApp { codes(first: 1) { nodes { code } } }
    }
  }
}
"""


def _parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _money_field(order: Order, name: str) -> Optional[Decimal]:
    """Значение денежного поля: сначала `<name>_set.shop_money.amount`, затем плоское `<name>`."""
    money_set = order.get(f"{name}_set") or {}
    amount = _parse_decimal((money_set.get("shop_money") or {}).get("amount"))
    if amount is not None:
        return amount
    return _parse_decimal(order.get(name))


# --- Извлечение кода ---

def extract_code_reference(order: Order) -> Optional[CodeReference]:
    """
    Приоритет:
    1. `discount_codes[].code`
    2. `discount_applications` с type == "discount_code": `code`, а если его нет -
       внутренний ID скидки для последующего запроса текста кода.
    """
    for entry in order.get("discount_codes") or []:
        code = (entry.get("code") or "").strip()
        if code:
            return CodeReference(code=code, source="discount_codes")

    for application in order.get("discount_applications") or []:
        if application.get("type") != "discount_code":
            continue
        code = (application.get("code") or "").strip()
        if code:
            return CodeReference(code=code, source="discount_applications")
        discount_id = application.get("discount_id") or application.get("admin_graphql_api_id")
        if discount_id:
            return CodeReference(discount_id=str(discount_id), source="discount_applications")

    return None


def _to_discount_gid(discount_id: str) -> str:
    if discount_id.startswith("gid://"):
        return discount_id
    return f"gid://shopify/DiscountCodeNode/{discount_id}"


async def lookup_discount_code(client: ShopifyAdminClient, discount_id: str) -> Optional[str]:
    """Получает текст промокода по внутреннему ID скидки. Ошибки Shopify пробрасываются."""
    data = await client.graphql(DISCOUNT_CODE_NODE_QUERY, {"id": _to_discount_gid(discount_id)})
    node = data.get("codeDiscountNode") or {}
    codes = ((node.get("codeDiscount") or {}).get("codes") or {}).get("nodes") or []
    if not codes:
        return None
    return (codes[0].get("code") or "").strip() or None


# --- Стратегии суммы до скидки ---

def amount_from_line_items(order: Order) -> Optional[Decimal]:
    line_items = order.get("line_items") or []
    if not line_items:
        return None
    total = Decimal("0")
    for item in line_items:
        price = _money_field(item, "price")
        quantity = item.get("quantity")
        if price is None or quantity is None:
            return None
        try:
            total += price * int(quantity)
        except (TypeError, ValueError):
            return None
    return total


def amount_from_total_line_items_price(order: Order) -> Optional[Decimal]:
    return _money_field(order, "total_line_items_price")


def amount_from_subtotal_plus_discounts(order: Order) -> Optional[Decimal]:
    subtotal = _money_field(order, "subtotal_price")
    if subtotal is None:
        return None
    discounts = _money_field(order, "total_discounts")
    if discounts is None:
        discounts = sum(
            (_parse_decimal(entry.get("amount")) or Decimal("0") for entry in order.get("discount_codes") or []),
            Decimal("0"),
        )
    return subtotal + discounts


def amount_from_total_minus_shipping_and_tax(order: Order) -> Optional[Decimal]:
    total = _money_field(order, "total_price")
    if total is None:
        return None
    shipping = _money_field(order, "total_shipping_price") or Decimal("0")
    tax = _money_field(order, "total_tax") or Decimal("0")
    return total - shipping - tax


AMOUNT_STRATEGIES: List[AmountStrategy] = [
    amount_from_line_items,
    amount_from_total_line_items_price,
    amount_from_subtotal_plus_discounts,
    amount_from_total_minus_shipping_and_tax,
]


def extract_pre_discount_amount(order: Order, strategies: Optional[List[AmountStrategy]] = None) -> Optional[Decimal]:
    for strategy in AMOUNT_STRATEGIES if strategies is None else strategies:
        amount = strategy(order)
        if amount is None:
            continue
        if amount < 0:
            logger.warning(f"Strategy {strategy.__name__} produced a negative amount {amount}, skipping it")
            continue
        logger.debug(f"Pre-discount amount {amount} taken from {strategy.__name__}")
        return to_money(amount)
    return None
