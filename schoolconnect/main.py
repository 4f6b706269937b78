from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

from .core.config import settings
from .core.database import close_db_connections
from .core.error_handlers import register_exception_handlers
from .core.logging import setup_logging
from .services.realtime import connection_registry

from .routers import health, notifications, device_tokens, classes, chat_router, websocket_router

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    connection_registry.start()

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await connection_registry.shutdown()
    await close_db_connections()
    logger.info("Shutdown complete")

app = FastAPI(
    title="SchoolConnect Messaging Core",
    description="Moderated school chat and targeted notification delivery",
    version=settings.app_version,
    lifespan=lifespan
)

@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {process_time:.3f}s")
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

register_exception_handlers(app)

app.include_router(health.router)
app.include_router(chat_router)
app.include_router(websocket_router)
app.include_router(notifications.router)
app.include_router(device_tokens.router)
app.include_router(classes.router)

@app.get("/")
async def root():
    return {
        "message": "SchoolConnect Messaging Core",
        "version": settings.app_version,
        "features": ["Moderated chat", "Targeted notifications", "Live delivery", "Mobile push"],
        "status": "active"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
