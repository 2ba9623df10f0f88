from decimal import Decimal
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Shopify
    SHOPIFY_API_SECRET: str
    SHOPIFY_API_VERSION: str = "2025-10"
    PRO_METAOBJECT_TYPE: str = "mm_pro_de_sante"

    # Таймауты внешних вызовов (секунды)
    HTTP_CONNECT_TIMEOUT: float = 10.0
    HTTP_READ_TIMEOUT: float = 30.0

    # База данных (конфиг магазинов, сессии, обработанные события)
    DATABASE_URL: str = "sqlite:///./procredit.db"

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    # Значения по умолчанию для лениво создаваемой конфигурации магазина
    DEFAULT_THRESHOLD: Decimal = Decimal("500")
    DEFAULT_CREDIT_AMOUNT: Decimal = Decimal("10")
    DEFAULT_CURRENCY: str = "EUR"

    # Ограничения поиска про по коду
    RESOLVER_SEARCH_LIMIT: int = Field(default=10, ge=1, le=250)
    RESOLVER_PAGE_SIZE: int = Field(default=250, ge=1, le=250)
    RESOLVER_SCAN_LIMIT: int = Field(default=1000, ge=1)

    # Блокировка начисления по про
    ACCRUAL_LOCK_TIMEOUT: float = 60.0
    ACCRUAL_LOCK_WAIT: float = 30.0

    PROCESSED_EVENT_RETENTION_DAYS: int = 30
    ENABLE_SCHEDULER: bool = True
    LOG_LEVEL: str = "INFO"

    @field_validator("DEFAULT_THRESHOLD")
    def threshold_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("DEFAULT_THRESHOLD must be > 0")
        return v

    @field_validator("DEFAULT_CREDIT_AMOUNT")
    def credit_amount_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError("DEFAULT_CREDIT_AMOUNT must be >= 0")
        return v

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"

    @property
    def SHOPIFY_CALL_BUDGET(self) -> float:
        """Максимальная длительность одного вызова Shopify (подключение + чтение)."""
        return self.HTTP_CONNECT_TIMEOUT + self.HTTP_READ_TIMEOUT

    @property
    def ACCRUAL_LOCK_TTL(self) -> float:
        """
        TTL блокировки про. До записи счетчиков под блокировкой идут до трех вызовов Shopify
        (перечитывание про, поиск счета, зачисление), TTL не может быть меньше их суммы.
        Перед записью счетчиков блокировка продлевается отдельно.
        """
        return max(self.ACCRUAL_LOCK_TIMEOUT, 3 * self.SHOPIFY_CALL_BUDGET)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
