from fastapi import APIRouter, Depends

from api.dependencies import get_services
from api.schemas import BatchProcessRequest, serialize_item
from content_search.logger import GLOBAL_LOGGER as log
from orchestrator.orchestrator_manager import Services

router = APIRouter()


@router.post("/process/{item_id}")
async def process_item(item_id: str, background: bool = False, services: Services = Depends(get_services)):
    """
    Run the processing pipeline for one item.
    With background=true the request returns immediately and the outcome is logged.
    """
    if background:
        services.scheduler.schedule(item_id)
        log.info("Processing scheduled | item_id=%s", item_id)
        return {"item_id": item_id, "scheduled": True}

    item = await services.orchestrator.process_entity(item_id)
    return {"item_id": item_id, "scheduled": False, "item": serialize_item(item)}


@router.post("/reprocess/{item_id}")
async def reprocess_item(item_id: str, services: Services = Depends(get_services)):
    item = await services.orchestrator.reprocess_entity(item_id)
    return {"item_id": item_id, "item": serialize_item(item)}


@router.post("/process-batch")
async def process_batch(req: BatchProcessRequest, services: Services = Depends(get_services)):
    services.scheduler.schedule_batch(req.ids, batch_size=req.batch_size, delay=req.delay)
    log.info("Batch processing scheduled | count=%d", len(req.ids))
    return {"scheduled": len(req.ids)}
