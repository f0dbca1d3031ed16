"""Service info and health routes."""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cdn import __version__
from cdn.database import get_db
from cdn.schemas.file import ServiceResponse
from cdn.stores import get_stores

router = APIRouter(tags=["service"])

SERVICE = "cdn"


@router.get("/", response_model=ServiceResponse, response_model_exclude_none=True)
async def service_info():
    """Service name, version and the store map clients validate uploads against."""
    return ServiceResponse(service=SERVICE, version=__version__, stores=dict(get_stores()))


@router.get("/api/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Verify API and database connectivity."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except SQLAlchemyError as e:
        return {"status": "error", "database": str(e)}
