"""FastAPI application entry point."""
import asyncio
import logging
import signal
from contextlib import asynccontextmanager

from fastapi import FastAPI

from clipwatch import __version__
from clipwatch.api.routes import router
from clipwatch.config import settings
from clipwatch.db.state_store import StateStore
from clipwatch.pipeline.processor import VideoPipeline
from clipwatch.services.analyzer import GeminiAnalyzer
from clipwatch.services.upload_service import YouTubeUploader
from clipwatch.utils.ffmpeg import FFmpegEncoder
from clipwatch.workers.job_runner import WorkQueue
from clipwatch.workers.watcher import FolderWatcher

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def build_watcher(store: StateStore) -> FolderWatcher:
    """
    Wire the pipeline collaborators from settings.

    Raises:
        ConfigError: If the watch folder or Gemini key is missing
    """
    settings.require_watch_config()

    uploader = YouTubeUploader.from_settings(settings.youtube)
    if uploader is None:
        logger.info("YouTube not configured, montages will stop at render")

    pipeline = VideoPipeline(
        store=store,
        analyzer=GeminiAnalyzer(api_key=settings.gemini_api_key),
        encoder=FFmpegEncoder(),
        uploader=uploader,
        watch_path=settings.watch_path,
        stage_timeout=settings.stage_timeout_seconds,
    )
    queue = WorkQueue(max_concurrent=settings.max_concurrent)
    return FolderWatcher(pipeline, queue, store, watch_path=settings.watch_path)


def _on_watcher_exit(task: asyncio.Task):
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.critical(f"Watcher stopped with a fatal error: {error}")
        signal.raise_signal(signal.SIGTERM)


def create_app(start_watcher: bool = True) -> FastAPI:
    """Create the status API, optionally running the watch loop alongside it."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info("Starting ClipWatch...")
        app.state.store = StateStore(settings.state_file)
        app.state.watcher = None
        watch_task = None

        if start_watcher:
            watcher = build_watcher(app.state.store)
            app.state.watcher = watcher
            watch_task = asyncio.create_task(watcher.run())
            watch_task.add_done_callback(_on_watcher_exit)
            logger.info(f"Watching: {settings.watch_path}")

        yield

        logger.info("Shutting down ClipWatch...")
        if watch_task is not None:
            app.state.watcher.stop()
            await app.state.watcher.queue.shutdown()
            await asyncio.gather(watch_task, return_exceptions=True)
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        description="Watch-folder highlight montage pipeline",
        version=__version__,
        lifespan=lifespan
    )

    app.include_router(router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": settings.app_name,
            "version": __version__,
            "api": "/api",
            "docs": "/docs"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "clipwatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
