"""Health check endpoint with store connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from uplus.core.config import settings
from uplus.core.database import Database, check_db_connected, get_database, get_db
from uplus.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(
    database: Annotated[Database, Depends(get_database)],
    db: Annotated[Session, Depends(get_db)],
) -> HealthResponse:
    """
    Return service health and whether the credential store answers.
    Used by load balancers and monitoring.
    """
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
        dialect=database.engine.dialect.name,
    )
