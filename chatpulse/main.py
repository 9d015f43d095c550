import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from chatpulse.config import settings
from chatpulse.database.connection import close_mongo_connection, connect_to_mongo
from chatpulse.routers.chat import router as chat_router
from chatpulse.routers.conversations import router as conversations_router
from chatpulse.routers.presence import router as presence_router
from chatpulse.routers.typing import router as typing_router
from chatpulse.routers.users import router as users_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    try:
        yield
    finally:
        await close_mongo_connection()


app = FastAPI(title="chatpulse", lifespan=lifespan)


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


app.include_router(users_router)
app.include_router(conversations_router)
app.include_router(typing_router)
app.include_router(presence_router)
app.include_router(chat_router)


@app.get("/")
async def root():
    return {"message": "chatpulse running"}
