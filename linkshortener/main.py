from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
import uvicorn
import time
import asyncio
from loguru import logger

from linkshortener import crud
from linkshortener.database import engine, Base, SessionLocal
from linkshortener.routers import auth, links, pages
from linkshortener.config import settings
from linkshortener.log import setup_logging


def remove_expired_links() -> int:
    """Удаляет истекшие ссылки в отдельной сессии"""
    with SessionLocal() as db:
        removed = crud.cleanup_expired_links(db)
    if removed:
        logger.info(f"Удалено {removed} истекших ссылок")
    return removed


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управляет жизненным циклом приложения"""
    logger.info("Запуск приложения...")

    Base.metadata.create_all(bind=engine)
    remove_expired_links()

    cleanup_task = asyncio.create_task(periodically_cleanup_expired_links())

    app.state.background_tasks = {
        "cleanup": cleanup_task
    }

    yield

    logger.info("Завершение работы приложения...")

    for name, task in app.state.background_tasks.items():
        if not task.done():
            task.cancel()
            try:
                await asyncio.wait_for(task, timeout=5.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                logger.info(f"Задача {name} остановлена")


async def periodically_cleanup_expired_links():
    """Периодически удаляет ссылки с истекшим сроком действия"""
    while True:
        try:
            await asyncio.sleep(settings.CLEANUP_INTERVAL_SECONDS)
            logger.info("Запуск плановой очистки истекших ссылок")
            await asyncio.to_thread(remove_expired_links)
        except asyncio.CancelledError:
            logger.info("Задача очистки истекших ссылок отменена")
            break
        except Exception:
            logger.exception("Ошибка при очистке истекших ссылок")
            await asyncio.sleep(3600)


setup_logging()

app = FastAPI(
    title=settings.APP_NAME,
    description="Сервис сокращения ссылок со статистикой переходов",
    version="1.0.0",
    lifespan=lifespan
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    logger.info(f"{request.method} {request.url.path} - {response.status_code} - {process_time:.4f}s")

    return response


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


app.include_router(pages.router)
app.include_router(auth.router)
app.include_router(auth.pages_router)
app.include_router(links.router)


if __name__ == "__main__":
    uvicorn.run("linkshortener.main:app", host="0.0.0.0", port=8000, reload=True)
