# procredit/models/shop_session.py
from sqlalchemy import Column, Integer, String, DateTime, func

from procredit.db.session import Base

class ShopSession(Base):
    __tablename__ = "shop_sessions"
    id = Column(Integer, primary_key=True, index=True)
    shop = Column(String, unique=True, index=True, nullable=False)

    # Offline-токен Admin API, сохраненный при установке приложения
    access_token = Column(String, nullable=False)
    scope = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
