# procredit/schemas/accrual.py
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class AccrualResult(BaseModel):
    new_revenue: Decimal
    new_count: int
    new_credit_earned: Decimal
    # Сумма к зачислению сейчас, никогда не отрицательная
    deposit_delta: Decimal
    # Разница до обрезки нулем; отрицательная, если порог/сумму кредита изменили вниз
    raw_delta: Decimal

    @property
    def is_inconsistent(self) -> bool:
        return self.raw_delta < 0


class DepositOutcome(str, Enum):
    DEPOSITED = "deposited"
    NO_ACCOUNT = "no_account"
    PERMISSION_DENIED = "permission_denied"
    TRANSPORT_ERROR = "transport_error"
    SKIPPED = "skipped"


class CycleStatus(str, Enum):
    NO_CODE = "no_code"
    NO_AMOUNT = "no_amount"
    MISSING_CONTEXT = "missing_context"
    UNRESOLVED = "unresolved"
    RESOLUTION_FAILED = "resolution_failed"
    DUPLICATE = "duplicate"
    LOCK_TIMEOUT = "lock_timeout"
    LOCK_LOST = "lock_lost"
    CONFIG_INVALID = "config_invalid"
    COMMIT_FAILED = "commit_failed"
    COMMITTED = "committed"


class OrderEvent(BaseModel):
    shop: str
    topic: str
    event_id: str
    order_id: Optional[str] = None
    order_name: Optional[str] = None
    code: Optional[str] = None
    pre_discount_amount: Optional[Decimal] = None
    currency: str


class AccrualOutcome(BaseModel):
    status: CycleStatus
    message: str
    code: Optional[str] = None
    pro_id: Optional[str] = None
    accrual: Optional[AccrualResult] = None
    deposit: Optional[DepositOutcome] = None
