# procredit/schemas/pro.py
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Ключи полей метаобъекта про
CODE_FIELD = "code"
CUSTOMER_ID_FIELD = "customer_id"
STATUS_FIELD = "status"
CACHE_REVENUE_FIELD = "cache_revenue"
CACHE_ORDERS_COUNT_FIELD = "cache_orders_count"
CACHE_CREDIT_EARNED_FIELD = "cache_credit_earned"


def _to_decimal(value: Optional[str]) -> Decimal:
    if value is None or str(value).strip() == "":
        return Decimal("0")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        logger.warning(f"Non-numeric cache value {value!r}, treating as 0")
        return Decimal("0")


def _to_int(value: Optional[str]) -> int:
    if value is None or str(value).strip() == "":
        return 0
    try:
        return int(Decimal(str(value).strip()))
    except InvalidOperation:
        logger.warning(f"Non-numeric orders count {value!r}, treating as 0")
        return 0


class Pro(BaseModel):
    id: str
    code: str
    customer_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    status: bool = True
    cache_revenue: Decimal = Decimal("0")
    cache_orders_count: int = 0
    cache_credit_earned: Decimal = Decimal("0")

    @property
    def normalized_code(self) -> str:
        return self.code.strip().lower()

    @classmethod
    def from_metaobject(cls, node: Dict[str, Any]) -> "Pro":
        """Собирает Pro из узла `metaobject { id fields { key value } }`."""
        fields: Dict[str, Optional[str]] = {
            f.get("key"): f.get("value") for f in (node.get("fields") or [])
        }
        status_raw = fields.get(STATUS_FIELD)
        return cls(
            id=node["id"],
            code=fields.get(CODE_FIELD) or "",
            customer_id=fields.get(CUSTOMER_ID_FIELD) or None,
            name=fields.get("name"),
            email=fields.get("email"),
            # Пустой статус у старых записей означает "активен"
            status=True if status_raw in (None, "") else status_raw == "true",
            cache_revenue=_to_decimal(fields.get(CACHE_REVENUE_FIELD)),
            cache_orders_count=_to_int(fields.get(CACHE_ORDERS_COUNT_FIELD)),
            cache_credit_earned=_to_decimal(fields.get(CACHE_CREDIT_EARNED_FIELD)),
        )


class ProPage(BaseModel):
    pros: List[Pro]
    has_next_page: bool
    end_cursor: Optional[str] = None
