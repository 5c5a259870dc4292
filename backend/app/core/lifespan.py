# app/core/lifespan.py
import asyncio
from contextlib import asynccontextmanager
from app.config import settings
from app.utils.logging import logger
from app.api.dependencies import download_store, stats_cache


@asynccontextmanager
async def lifespan(app):
    """Run setup and teardown logic for the app lifecycle."""

    # ---------- Startup ----------
    logger.info("Application starting", extra={
        "environment": settings.environment,
        "excel_max_rows": settings.export_excel_max_rows,
        "pdf_max_rows": settings.export_pdf_max_rows,
        "downloads_enabled": settings.export_downloads_enabled,
    })

    if not settings.export_downloads_enabled:
        logger.warning("Download URLs disabled - delivery=url requests will be rejected")

    # Start background cleanup task (transient downloads + stats cache)
    cleanup_task = asyncio.create_task(periodic_cleanup(settings.cleanup_interval_seconds))

    # yield control to the running app
    yield

    # ---------- Shutdown ----------

    cleanup_task.cancel()  # Stop background task
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    released = download_store.clear_expired()
    logger.info("Application shutting down", extra={"released_downloads": released})


def run_cleanup() -> dict:
    """Release expired downloads and drop stale statistics."""
    return {
        "released_downloads": download_store.clear_expired(),
        "expired_stats": stats_cache.clear_expired(),
    }


async def periodic_cleanup(interval_seconds: float):
    """Run periodic cleanup of transient downloads + stats cache"""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = run_cleanup()
            if any(removed.values()):
                logger.info("Periodic cleanup complete", extra=removed)
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled")
            break
        except Exception as e:
            logger.error(f"Error in periodic cleanup: {e}", exc_info=True)
            # Continue loop after logging
