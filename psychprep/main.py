import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from psychprep.auth.router import router as auth_router
from psychprep.config import settings
from psychprep.content.router import router as content_router
from psychprep.db import ContentStore
from psychprep.errors import AppError
from psychprep.seed import ensure_admin, seed_default_content
from psychprep.uploads.router import router as uploads_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.images_dir.mkdir(parents=True, exist_ok=True)
    settings.ppt_dir.mkdir(parents=True, exist_ok=True)

    store = ContentStore(settings.database_path)
    store.init()
    ensure_admin(store, settings.admin_username, settings.admin_email, settings.admin_password)
    if settings.seed_default_content:
        seed_default_content(store)
    app.state.store = store

    logger.info(f"psychprep started (database: {settings.database_path})")
    yield


app = FastAPI(title="psychprep", version="0.1.0", lifespan=lifespan)


@app.middleware("http")
async def no_store_api_responses(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    body = {"message": exc.message}
    if exc.errors is not None:
        body["errors"] = jsonable_encoder(exc.errors)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid data", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Server error"})


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(uploads_router)
app.include_router(content_router)
