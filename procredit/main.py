# procredit/main.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler

# Конфигурация и ядро
from procredit.core.config import settings as config
from procredit.core.logging_config import setup_logging
from procredit.core.redis import redis_client

# Роутеры FastAPI
from procredit.routers.webhooks import router as webhooks_router

# Фоновые задачи
from procredit.services.processed_event_cleanup import cleanup_processed_events_task

# --- Инициализация ---
logger = logging.getLogger(__name__)
scheduler = AsyncIOScheduler()

# --- Обработчик критических ошибок ---
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Глобальный обработчик для всех необработанных исключений.
    Логирует ошибку и возвращает обобщенный ответ без деталей.
    """
    logger.critical(f"Unhandled exception for request: {request.method} {request.url}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error."},
    )

# --- Lifespan Manager (запуск и остановка приложения) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Application lifespan startup...")

    if config.ENABLE_SCHEDULER:
        # Блокировка через Redis, чтобы планировщик работал только в одном воркере
        is_main_worker = await redis_client.set("procredit:scheduler_lock", "1", ex=60, nx=True)
    else:
        is_main_worker = False

    if is_main_worker and not scheduler.running:
        scheduler.add_job(cleanup_processed_events_task, 'cron', hour=4, minute=0, timezone='UTC')
        scheduler.start()
        logger.info("Scheduler started with background jobs.")
    else:
        logger.info("Scheduler not started in this worker.")

    yield

    if is_main_worker:
        if scheduler.running:
            scheduler.shutdown()
            logger.info("Scheduler shut down.")
        await redis_client.delete("procredit:scheduler_lock")
    await redis_client.aclose()
    logger.info("Application shut down.")

# --- Создание FastAPI приложения ---
app = FastAPI(
    title="Pro Credit Accrual Service",
    description="Shopify order webhooks -> pro revenue attribution and store credit rewards",
    version="0.1.0",
    lifespan=lifespan
)

# --- Регистрация обработчика исключений ---
app.add_exception_handler(Exception, unhandled_exception_handler)

@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}

# Веб-хуки Shopify
app.include_router(webhooks_router, prefix="/webhooks", tags=["Shopify Webhooks"])
