from fastapi import APIRouter

from busline.core.config import settings

router = APIRouter()


@router.get("")
def health():
    return {"status": "ok", "version": settings.version}
