from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import health, processing, search
from content_search import __version__
from content_search.exception import ContentSearchException, NotFoundError, ValidationError
from content_search.logger import GLOBAL_LOGGER as log
from db.database import init_db
from orchestrator.orchestrator_manager import orchestrator_manager


# Use lifespan instead of deprecated on_event
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Application startup initiated")
    await init_db()
    yield
    if orchestrator_manager.is_built:
        await orchestrator_manager.get_services().scheduler.drain()
    log.info("Application shutdown")


app = FastAPI(title="Content Search Backend", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ContentSearchException)
async def content_search_error_handler(request: Request, exc: ContentSearchException):
    log.error("Unhandled service error | path=%s | error=%s", request.url.path, exc.describe())
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# Router Registration
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(search.router, prefix="/search", tags=["search"])
app.include_router(processing.router, prefix="/search", tags=["processing"])


@app.get("/")
async def root():
    return {"message": "Backend is running"}
