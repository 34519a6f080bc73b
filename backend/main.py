import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from db.database import engine, Base, run_startup_migrations
from db import models  # noqa: F401
from api.clients import router as clients_router
from services.diagnostics import EngineDiagnostics

logging.basicConfig(
    level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

settings.validate_configuration()

Base.metadata.create_all(bind=engine)
run_startup_migrations()

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

app = FastAPI(title=settings.APP_NAME, version="1.0.0")
# One failure latch per process; handed to services through a dependency.
app.state.diagnostics = EngineDiagnostics(logging.getLogger("coachos.engine"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    if settings.SECURITY_HEADERS_ENABLED:
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
    return response


app.include_router(clients_router, prefix="/api")


@app.get("/api/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME, "environment": settings.ENVIRONMENT}
