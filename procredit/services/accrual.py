# procredit/services/accrual.py

from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

from procredit.schemas.accrual import AccrualResult
from procredit.schemas.pro import Pro
from procredit.schemas.settings import ShopConfigSchema

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Приводит сумму к Decimal с точностью до копеек (центов)."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def credit_for_revenue(revenue: Decimal, threshold: Decimal, credit_amount: Decimal) -> Decimal:
    """floor(revenue / threshold) * credit_amount"""
    if threshold <= 0:
        raise ValueError("threshold must be > 0")
    tiers = (revenue / threshold).to_integral_value(rounding=ROUND_FLOOR)
    return to_money(tiers * credit_amount)


def accrue(pro: Pro, order_amount: Decimal, config: ShopConfigSchema) -> AccrualResult:
    """
    Считает новые накопительные счетчики про после одного заказа.
    Чистая функция: без I/O, одинаковые входы дают одинаковый результат.
    """
    new_revenue = to_money(pro.cache_revenue + to_money(order_amount))
    new_count = pro.cache_orders_count + 1
    new_credit_earned = credit_for_revenue(new_revenue, config.threshold, config.credit_amount)
    raw_delta = new_credit_earned - to_money(pro.cache_credit_earned)

    return AccrualResult(
        new_revenue=new_revenue,
        new_count=new_count,
        new_credit_earned=new_credit_earned,
        deposit_delta=raw_delta if raw_delta > 0 else Decimal("0.00"),
        raw_delta=raw_delta,
    )
