from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from paperdesk import __version__
from paperdesk.api.router import paperdesk_error_handler, router
from paperdesk.errors import PaperDeskError
from paperdesk.observability import init_observability
from paperdesk.settings import Settings, settings


def _split_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


def create_app(cfg: Settings = settings) -> FastAPI:
    app = FastAPI(title=cfg.app_name, version=__version__)
    init_observability(app, cfg)

    # Browser clients only ever send JSON plus the actor header.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_split_origins(cfg.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Actor-Id"],
    )

    app.add_exception_handler(PaperDeskError, paperdesk_error_handler)  # type: ignore[arg-type]
    app.include_router(router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {
            "status": "ok",
            "env": cfg.env,
            "version": __version__,
            "storage": cfg.storage_backend,
            "jobs": cfg.job_backend,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("paperdesk.main:app", host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())
