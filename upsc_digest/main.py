from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from upsc_digest.adapters.llm.base import LLM
from upsc_digest.api.dependencies import get_governor, get_llm, get_settings
from upsc_digest.api.routes_analyze import router as analyze_router
from upsc_digest.core.config import Settings, settings
from upsc_digest.core.errors import AnalysisError, analysis_error_handler, unhandled_exception_handler
from upsc_digest.core.logging import setup_logging
from upsc_digest.services.governor_service import RequestGovernor


def create_app():
    setup_logging()

    app = FastAPI(title=settings.APP_NAME)

    # Allow browser-based UIs to call the API from localhost
    origins = [o.strip() for o in (settings.CORS_ORIGINS or "").split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["Retry-After"],
        )

    app.add_exception_handler(AnalysisError, analysis_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(analyze_router)

    @app.get("/health")
    async def health(
        llm: LLM = Depends(get_llm),
        governor: RequestGovernor = Depends(get_governor),
        cfg: Settings = Depends(get_settings),
    ):
        status = governor.status()
        configured = llm.is_configured()
        return {
            "ok": configured,
            "app": cfg.APP_NAME,
            "env": cfg.ENV,
            "provider": llm.name,
            "strategy": cfg.ANALYSIS_STRATEGY,
            "deps": {"llm_configured": configured},
            "governor": {
                "state": status.state.value,
                "cooldown_remaining": round(status.cooldown_remaining, 1),
            },
        }

    return app

app = create_app()
