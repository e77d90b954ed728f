from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.auth import router as auth_router
from app.api.v1.mfa import router as mfa_router
from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import REQUEST_ID_HEADER, register_middlewares

configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)

app = FastAPI(title=f"{settings.APP_NAME} API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)
register_middlewares(app)
register_exception_handlers(app)

app.include_router(auth_router, prefix="/api/v1")
app.include_router(mfa_router, prefix="/api/v1")


@app.get("/healthz")
async def health():
    return {"status": "ok"}
