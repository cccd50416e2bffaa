from fastapi import APIRouter

from prscore import __version__
from prscore.core.config import settings

router = APIRouter()


@router.get("")
def health_check():
    """Liveness probe. Does not touch the database or the judgment service."""
    return {"status": "ok", "service": settings.PROJECT_NAME, "version": __version__}
