import logging

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from messageboard.core.database import engine, AsyncSessionLocal, check_connection, init_models
from messageboard.core.config import settings
from messageboard.core.errors import ConnectionFailure
from messageboard.core.state import AppState
from messageboard.routers import messages
from messageboard.services.image_store import ImageStore
from messageboard.services.message_store import MessageStore

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Message Board API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(messages.router)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )

@app.exception_handler(ConnectionFailure)
async def connection_failure_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database unavailable: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database unavailable"},
    )

@app.on_event("startup")
async def startup():
    logger.info("Connecting to database...")
    await check_connection()
    logger.info("Connected to database.")
    if settings.CREATE_SCHEMA_ON_STARTUP:
        await init_models()
    app.state.board = AppState(
        store=MessageStore(AsyncSessionLocal),
        images=ImageStore(settings.IMAGES_BASE_PATH),
        page_size=settings.PAGINATION_PAGE_SIZE,
    )

@app.on_event("shutdown")
async def shutdown():
    await engine.dispose()
    logger.info("Database connection closed.")

@app.get("/")
async def root():
    return {"message": "Message Board API is running"}

def run():
    uvicorn.run(
        "messageboard.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )

if __name__ == "__main__":
    run()
