"""DESBUGUEI — FastAPI Application Entry Point."""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from desbuguei.config import Settings, settings as default_settings
from desbuguei.deps import Services, build_services
from desbuguei.middleware.rate_limit import build_limiter
from desbuguei.routers import terms, voice

logger = logging.getLogger("desbuguei")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    services = services or build_services(settings)

    app = FastAPI(
        title="DESBUGUEI",
        description="Glossário técnico para quem não é técnico.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.services = services

    # Rate limiting
    limiter = build_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(terms.router)
    app.include_router(terms.resolve_router(limiter, settings.RESOLVE_RATE_LIMIT))
    app.include_router(voice.router)

    @app.on_event("startup")
    async def on_startup():
        provider = services.ai.provider_name()
        if provider == "none":
            logger.warning(
                "AI NOT CONFIGURED. Set GEMINI_API_KEY in backend/.env and restart. "
                "Visit /api/health/ai to verify."
            )
        else:
            logger.info("AI provider: %s", provider)
        if not services.store.persistent:
            logger.warning("Term cache disabled: every lookup will be generated")

    @app.on_event("shutdown")
    async def on_shutdown():
        await services.terms.drain()

    @app.get("/")
    def root():
        return {
            "name": "DESBUGUEI API",
            "version": "1.0.0",
            "docs": "/docs",
            "ai_provider": services.ai.provider_name(),
        }

    @app.get("/health")
    def health():
        return {"status": "ok", "ai_provider": services.ai.provider_name()}

    @app.get("/api/health/ai")
    async def health_ai():
        """Live connectivity test for the configured AI provider.

        Returns:
            provider: which AI is active
            status:   "ok" | "error" | "unconfigured"
            test_reply / error: result of a tiny test call
        """
        return await services.ai.health_check()

    return app
