import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
import uvicorn
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from kpi_reports.context import AppContext, build_context
from kpi_reports.core.logging import configure_logging
from kpi_reports.errors import InvalidRequest, MethodNotAllowed, ReportError, Unauthenticated

logger = logging.getLogger(__name__)

def get_context(request: Request) -> AppContext:
    return request.app.state.context

def require_bearer(authorization: Optional[str] = Header(None)) -> str:
    """Presence check for ``Authorization: Bearer <token>``; verifying the token is not this service's job."""
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated()
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise Unauthenticated()
    return token

async def read_json_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidRequest("Invalid JSON body")
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return body

def parse_limit(value: Optional[str], default: int = 10) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidRequest("limit must be a positive integer")

def parse_flag(value: Optional[str]) -> bool:
    return (value or "false").strip().lower() in ("true", "1", "yes")

@asynccontextmanager
async def lifespan(app: FastAPI):
    context: AppContext = app.state.context
    stop = asyncio.Event()
    task = None
    interval = context.settings.PROCESSOR_INTERVAL_SECONDS
    if interval > 0:
        logger.info(f"Starting scheduled report processor every {interval}s")
        task = asyncio.create_task(context.processor.run_forever(interval, stop))
    yield
    stop.set()
    if task:
        await task

def create_app(context: Optional[AppContext] = None) -> FastAPI:
    context = context or build_context()
    configure_logging(context.settings.LOG_LEVEL, context.settings.LOG_FILE_PATH)

    app = FastAPI(title="KPI AI Reports", lifespan=lifespan)
    app.state.context = context

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code}")
        return response

    @app.exception_handler(ReportError)
    async def report_error_handler(request: Request, exc: ReportError):
        if exc.status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == MethodNotAllowed.status_code:
            return await report_error_handler(request, MethodNotAllowed())
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request"})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {str(exc)}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.post("/api/report-request", status_code=202, dependencies=[Depends(require_bearer)])
    async def request_report(request: Request, ctx: AppContext = Depends(get_context)):
        """Queue a report; processing happens in a later processor pass."""
        body = await read_json_body(request)
        return ctx.requests.submit(body.get("type"), body.get("data"), body.get("userId"))

    @app.get("/api/report-status", dependencies=[Depends(require_bearer)])
    async def report_status(reportId: Optional[str] = None, ctx: AppContext = Depends(get_context)):
        return ctx.status.get_status(reportId)

    @app.post("/api/report-status", dependencies=[Depends(require_bearer)])
    async def report_status_post(request: Request, ctx: AppContext = Depends(get_context)):
        body = await read_json_body(request)
        return ctx.status.get_status(body.get("reportId"))

    @app.post("/api/report-processor-trigger", dependencies=[Depends(require_bearer)])
    async def trigger_processor(ctx: AppContext = Depends(get_context)):
        """Run one processing pass now and report what it did."""
        logger.info("Manual trigger received for report processor")
        run = await ctx.processor.run_once()
        return {
            "message": "Report processor triggered successfully",
            "status": "accepted",
            "processorResult": {"message": run.message, **run.model_dump()},
        }

    @app.post("/api/process-now", dependencies=[Depends(require_bearer)])
    async def process_now(request: Request, ctx: AppContext = Depends(get_context)):
        """Process one pending report immediately."""
        body = await read_json_body(request)
        return await ctx.processor.process_report(body.get("reportId"))

    @app.get("/api/report-history", dependencies=[Depends(require_bearer)])
    async def report_history(userId: Optional[str] = None, limit: Optional[str] = None,
                             includeProcessing: Optional[str] = None,
                             ctx: AppContext = Depends(get_context)):
        return ctx.history.list_reports(userId, parse_limit(limit), parse_flag(includeProcessing))

    return app

app = create_app()

if __name__ == "__main__":
    settings = app.state.context.settings
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
