# procredit/models/shop_config.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime, func

from procredit.db.session import Base

class ShopConfig(Base):
    __tablename__ = "shop_configs"
    id = Column(Integer, primary_key=True, index=True)
    shop = Column(String, unique=True, index=True, nullable=False)

    # Сколько выручки (в валюте магазина) нужно на один уровень кредита
    threshold = Column(Numeric(12, 2), nullable=False)
    # Сколько кредита дается за каждый пройденный уровень
    credit_amount = Column(Numeric(12, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
