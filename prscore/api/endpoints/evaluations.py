import uuid
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from prscore.core.exceptions import ConfigurationError
from prscore.core.logging import get_logger
from prscore.db.models import EvaluationBatchPublic
from prscore.dependencies.database import get_batch_service, get_session_factory
from prscore.services.evaluation.batches import BatchRunOptions, BatchService
from prscore.services.evaluation.batches import list_batches as query_batches

logger = get_logger(__name__)

router = APIRouter()

BatchServiceDep = Annotated[BatchService, Depends(get_batch_service)]
SessionFactoryDep = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


@router.post("/batches", response_model=EvaluationBatchPublic)
async def run_batch(options: BatchRunOptions, service: BatchServiceDep):
    """
    Run an evaluation batch for an organization and return the finished batch.

    Configuration problems are reported as 422 before any batch is created;
    a batch that fails while running is reported as 500 with its error.
    """
    try:
        batch = await service.run_batch(options)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except Exception as e:
        logger.error("Batch run for org %s failed: %s", options.org_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e
    return batch.to_public()


@router.get("/batches", response_model=List[EvaluationBatchPublic])
async def list_batches(
    session_factory: SessionFactoryDep,
    org_id: Optional[uuid.UUID] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """Get evaluation batches with pagination, most recent first."""
    batches = await query_batches(
        session_factory, org_id=org_id, skip=skip, limit=limit
    )
    return [batch.to_public() for batch in batches]
