from .health import router as health_router
from .evaluations import router as evaluations_router

__all__ = ["health_router", "evaluations_router"]
