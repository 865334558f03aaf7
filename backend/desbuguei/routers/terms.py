"""Terms router — glossary lookup, listing and seeding."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from slowapi import Limiter

from desbuguei.deps import get_term_service
from desbuguei.errors import GenerationError, InvalidQueryError, NotFoundError, StoreUnavailableError
from desbuguei.schemas.term import ResolvePending, SeedRequest, TermListResponse, TermRecord
from desbuguei.services.term_service import TermService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/terms", tags=["terms"])

# Resolutions that outlived the escape wait keep running here until they finish.
_background: set[asyncio.Task] = set()


def _finish_in_background(task: asyncio.Task, query: str) -> None:
    _background.add(task)

    def _done(t: asyncio.Task) -> None:
        _background.discard(t)
        if t.cancelled():
            return
        error = t.exception()
        if error is not None:
            logger.warning("Background resolution of %r failed: %s", query, error)
        else:
            logger.info("Background resolution of %r finished", query)

    task.add_done_callback(_done)


@router.get("", response_model=TermListResponse)
def list_terms(
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: TermService = Depends(get_term_service),
):
    """List cached terms, newest first."""
    try:
        terms = service.store.list_terms(category=category, search=search, limit=limit, offset=offset)
    except StoreUnavailableError as e:
        logger.warning("Listing terms failed: %s", e)
        terms = []
    return TermListResponse(terms=terms, count=len(terms))


@router.post("/seed")
async def seed_terms(
    req: Optional[SeedRequest] = None,
    service: TermService = Depends(get_term_service),
):
    """Generate and cache a list of well-known terms, streaming one log line per step."""
    lines: asyncio.Queue = asyncio.Queue()

    async def run():
        try:
            await service.seed(lines.put_nowait, terms=req.terms if req else None)
        finally:
            lines.put_nowait(None)

    async def stream():
        task = asyncio.create_task(run())
        try:
            while (line := await lines.get()) is not None:
                yield line + "\n"
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(stream(), media_type="text/plain; charset=utf-8")


async def get_term(
    query: str,
    request: Request,
    service: TermService = Depends(get_term_service),
):
    """Resolve a term: cache first, generation on a miss."""
    task = asyncio.ensure_future(service.resolve(query))
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=service.settings.RESOLVE_ESCAPE_SECONDS)
    except asyncio.TimeoutError:
        _finish_in_background(task, query)
        return JSONResponse(status_code=202, content=ResolvePending(query=query).model_dump())
    except InvalidQueryError:
        raise HTTPException(status_code=400, detail="Digite um termo válido para buscar.")
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Termo não encontrado.")
    except GenerationError as e:
        logger.warning("Generation failed for %r: %s", query, e)
        return JSONResponse(
            status_code=502,
            content={"detail": "Não conseguimos gerar este termo agora. Tente novamente.", "retryable": True},
        )


def resolve_router(limiter: Limiter, rate_limit: str) -> APIRouter:
    """The resolve route, limited with the app's own limiter.

    Include it after `router` so "/seed" is matched before the catch-all path.
    """
    resolve = APIRouter(prefix="/api/terms", tags=["terms"])
    resolve.add_api_route(
        "/{query:path}",
        limiter.limit(rate_limit)(get_term),
        methods=["GET"],
        response_model=TermRecord,
        responses={202: {"model": ResolvePending}},
    )
    return resolve
