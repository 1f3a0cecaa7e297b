from fastapi import APIRouter

from content_search import __version__

router = APIRouter()


@router.get("")
async def health():
    return {"status": "ok", "version": __version__}
