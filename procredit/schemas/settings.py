# procredit/schemas/settings.py
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field

class ShopConfigSchema(BaseModel):
    """Параметры начисления кредита для магазина."""
    model_config = ConfigDict(from_attributes=True)

    shop: str
    threshold: Decimal = Field(gt=0)
    credit_amount: Decimal = Field(ge=0)
