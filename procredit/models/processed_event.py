# procredit/models/processed_event.py
from sqlalchemy import Column, Integer, String, DateTime, Index, func

from procredit.db.session import Base

class ProcessedEvent(Base):
    """Запись о вебхуке, который уже изменил счетчики про. Защищает от повторной доставки."""
    __tablename__ = "processed_events"
    id = Column(Integer, primary_key=True, index=True)

    # X-Shopify-Webhook-Id или "<topic>:<order id>", если заголовка нет
    event_id = Column(String, unique=True, index=True, nullable=False)
    shop = Column(String, nullable=False)
    topic = Column(String, nullable=False)
    pro_id = Column(String, nullable=True)

    processed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_processed_events_shop_processed_at", "shop", "processed_at"),
    )
