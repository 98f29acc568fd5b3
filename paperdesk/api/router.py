from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from paperdesk.api.attempts import router as attempts_router
from paperdesk.api.papers import router as papers_router
from paperdesk.errors import PaperDeskError

router = APIRouter()
router.include_router(papers_router)
router.include_router(attempts_router)


async def paperdesk_error_handler(request: Request, exc: PaperDeskError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "retryable": exc.retryable},
    )
