import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.core.errors import install_error_handlers
from app.core.http_hardening import install_http_hardening
from app.api.public.router import router as public_router
from app.services.gem_backends import get_gem_service
from app.services.gem_cache import NullGemCache, VersionedCache, get_versioned_cache
from app.services.gem_service import GemService

logging.getLogger("app").setLevel(settings.LOG_LEVEL.upper())

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)
install_error_handlers(app)

app.include_router(public_router, prefix="/api")

@app.get("/", include_in_schema=False)
def api_info():
    return JSONResponse(
        {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "ok",
            "endpoints": {
                "gems": "/api/gems",
                "search": "/api/gems/search?q={term}",
                "metadata": "/api/gems/metadata/{colors|categories|formulas}",
                "health": "/health",
            },
        }
    )

@app.get("/health")
def health(
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    return {
        "status": "ok",
        "backend": service.backend_name,
        "backend_available": service.is_available(),
        "cache": "disabled" if isinstance(cache.backend, NullGemCache) else "enabled",
    }
