from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.core.config import get_settings
from src.core.logging import configure_logging
from src.api.dependencies import close_http_client

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_json)
    yield
    await close_http_client()


app = FastAPI(
    title="IssueIndex API",
    description="GitHub issue crawl, summarization and hybrid search",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(",") if settings.cors_origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies are a client error, not an unprocessable entity
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.get("/health")
async def health_check():
    return {"status": "ok"}


from src.api.routes import runs, search, issues

app.include_router(runs.router, prefix="/run", tags=["pipeline"])
app.include_router(search.router, tags=["search"])
app.include_router(issues.router, tags=["issues"])
