import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from socialfeed.config import settings
from socialfeed.database import engine
from socialfeed.dependencies import has_stale_access_token
from socialfeed.exceptions import ServiceError
from socialfeed.middleware import TimingMiddleware
from socialfeed.routers import auth, posts, users
from socialfeed.security import clear_access_token

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting socialfeed (%s)", settings.APP_ENV)
    yield
    # Shutdown
    await engine.dispose()

app = FastAPI(
    title="Social Feed API",
    description="Posts, likes and feeds over per-transaction batching loaders",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    response = JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
    if has_stale_access_token(request):
        clear_access_token(response)
    return response

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    response = await http_exception_handler(request, exc)
    if has_stale_access_token(request):
        clear_access_token(response)
    return response

# Routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(posts.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
