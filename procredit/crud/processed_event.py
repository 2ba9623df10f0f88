# procredit/crud/processed_event.py
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procredit.models.processed_event import ProcessedEvent

def is_processed(db: Session, event_id: str) -> bool:
    return db.query(ProcessedEvent.id).filter(ProcessedEvent.event_id == event_id).first() is not None

def mark_processed(db: Session, event_id: str, shop: str, topic: str, pro_id: str | None = None) -> bool:
    """
    Сохраняет запись об обработанном событии.
    Возвращает False, если событие уже было записано (уникальный индекс по event_id).
    """
    db.add(ProcessedEvent(event_id=event_id, shop=shop, topic=topic, pro_id=pro_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True

def delete_processed_before(db: Session, cutoff: datetime) -> int:
    deleted = db.query(ProcessedEvent).filter(
        ProcessedEvent.processed_at < cutoff
    ).delete(synchronize_session=False)
    db.commit()
    return deleted
