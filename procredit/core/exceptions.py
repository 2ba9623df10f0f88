# procredit/core/exceptions.py


class ProCreditError(Exception):
    """Базовое исключение сервиса."""


class ShopifyAPIError(ProCreditError):
    """Сетевая ошибка, HTTP-ошибка или GraphQL `errors` в ответе Shopify."""

    def __init__(self, message: str, errors: list | None = None, status_code: int | None = None):
        super().__init__(message)
        self.errors = errors or []
        self.status_code = status_code


class ShopifyAccessDenied(ShopifyAPIError):
    """У приложения нет нужного scope (ACCESS_DENIED, 401/403)."""


class MissingContextError(ProCreditError):
    """Для магазина нет сохраненной сессии, админ-контекст недоступен."""


class ProResolutionError(ProCreditError):
    """Поиск про не удался из-за ошибки бэкенда (а не потому что про нет)."""


class CacheCommitError(ProCreditError):
    """Не удалось записать накопительные счетчики про."""


class AccrualLockTimeout(ProCreditError):
    """Не удалось дождаться блокировки про."""
