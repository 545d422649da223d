from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from config import get_settings
from database import engine, init_db
from exceptions import NotFoundError, StorageError, ValidationError
from logger import configure_logging, get_logger
from router import router

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    await init_db(engine)
    log.info(
        "app_started",
        database_url=engine.url.render_as_string(hide_password=True),
    )
    yield
    await engine.dispose()


app = FastAPI(title="Personal Finance Tracker API", lifespan=lifespan)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": "Expense not found"},
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage is unavailable, try again later"},
    )


app.include_router(router, prefix="/api", tags=["expenses"])


@app.get("/")
def home():
    return {"message": "Welcome to Personal Finance Tracker API"}


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(app, host=settings.app_host, port=settings.app_port)
