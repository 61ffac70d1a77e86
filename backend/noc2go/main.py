import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from noc2go.api.v1.router import api_router
from noc2go.config import settings
from noc2go.models.config import ConfigStore
from noc2go.services.dns_lookup import DnsCache, DnsResolver
from noc2go.services.ping_dialects import get_dialect

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
_log_file = os.getenv("NOC2GO_LOG_FILE")
if _log_file:
    try:
        log_path = Path(_log_file).expanduser().resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"))
        logging.getLogger().addHandler(handler)
        logging.getLogger(__name__).info("Logging to %s", log_path)
    except OSError as e:
        logging.getLogger(__name__).warning("Failed to init file logging: %s", e)
logger = logging.getLogger(__name__)


def build_resolver() -> DnsResolver:
    return DnsResolver(
        cache=DnsCache(ttl=settings.DNS_CACHE_TTL),
        timeout=settings.DNS_TIMEOUT,
        fallback_server=settings.DNS_FALLBACK_SERVER,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s v%s [%s]", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
    # The launcher may have prepared these already (first-run password, CLI servers)
    if getattr(app.state, "config_store", None) is None:
        app.state.config_store = ConfigStore.load_or_init(settings.CONFIG_PATH, port=settings.DEFAULT_PORT)
    if getattr(app.state, "dns_resolver", None) is None:
        app.state.dns_resolver = build_resolver()
    try:
        logger.info("Ping dialect: %s", get_dialect(settings.PING_DIALECT).name)
    except ValueError as exc:
        logger.error("%s; ping requests will fail until PING_DIALECT is fixed", exc)
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/health")
def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# ── Serve a prebuilt frontend, if one is installed ──

_static_dir = os.getenv("NOC2GO_STATIC_DIR")
if _static_dir and Path(_static_dir).is_dir():
    app.mount("/", StaticFiles(directory=_static_dir, html=True), name="frontend")
