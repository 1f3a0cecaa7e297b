from fastapi import APIRouter, Depends

from api.dependencies import get_services
from api.schemas import (
    SmartSearchRequest,
    TagSearchRequest,
    TextSearchRequest,
    serialize_result,
)
from content_search.logger import GLOBAL_LOGGER as log
from content_search.src.search.schemas import DateRange, SearchOptions
from orchestrator.orchestrator_manager import Services

router = APIRouter()


def _response(query: str, results, search_type: str) -> dict:
    return {
        "query": query,
        "search_type": search_type,
        "total": len(results),
        "results": [serialize_result(r) for r in results],
    }


@router.post("/smart")
async def smart_search(req: SmartSearchRequest, services: Services = Depends(get_services)):
    """
    Hybrid search: lexical matches fused with embedding similarity.
    """
    date_range = None
    if req.date_range:
        date_range = DateRange(preset=req.date_range, start=req.start_date, end=req.end_date)

    options = SearchOptions(
        limit=req.limit,
        min_score=req.min_score,
        category=req.category,
        date_range=date_range,
    )
    log.info("Smart search | user_id=%s | category=%s | date_range=%s", req.user_id, req.category, req.date_range)
    results = await services.search_engine.search(req.user_id, req.query, options)
    return _response(req.query, results, "hybrid")


@router.post("/content")
async def content_search(req: TextSearchRequest, services: Services = Depends(get_services)):
    results = await services.search_engine.search_by_content(req.user_id, req.query, req.limit)
    return _response(req.query, results, "content")


@router.post("/filename")
async def filename_search(req: TextSearchRequest, services: Services = Depends(get_services)):
    results = await services.search_engine.search_by_name(req.user_id, req.query, req.limit)
    return _response(req.query, results, "filename")


@router.post("/tags")
async def tag_search(req: TagSearchRequest, services: Services = Depends(get_services)):
    results = await services.search_engine.search_by_tags(req.user_id, req.tag, req.limit)
    return _response(req.tag, results, "tags")


@router.get("/provider-status")
async def provider_status(services: Services = Depends(get_services)):
    """Which embedding provider currently answers, probed with a short test string."""
    return await services.embedder.check_connection()
