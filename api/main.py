import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.correlation import REQUEST_ID_HEADER, request_id_from, set_request_id
from core.logging import configure_logging
from core.settings import get_settings
from observability.metrics import metrics_endpoint

from .routes.admin import router as admin_router
from .routes.auth import router as auth_router
from .routes.datasets import router as datasets_router
from .routes.files import router as files_router
from .routes.problems import router as problems_router

settings = get_settings()

app = FastAPI(title="Problem Curation API")
configure_logging()
logger = logging.getLogger(__name__)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request_id_from(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(rid)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        response = JSONResponse(
            status_code=500, content={"detail": "internal server error"}
        )
    response.headers[REQUEST_ID_HEADER] = rid
    return response


# Must stay outermost: 500 responses carry CORS headers too.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = sorted(
        {".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()}
    )
    detail = f"invalid request: {', '.join(f for f in fields if f) or 'body'}"
    return JSONResponse(status_code=400, content={"detail": detail})


app.include_router(auth_router)
app.include_router(datasets_router)
app.include_router(problems_router)
app.include_router(admin_router)
app.include_router(files_router)
app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
