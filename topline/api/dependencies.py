"""FastAPI dependency injection -- Depends() patterns over app.state."""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request

from ..config import Settings, get_settings
from ..database import Database, get_database
from ..pipeline import CurationPipeline


def get_db(request: Request) -> Database:
    return getattr(request.app.state, "db", None) or get_database()


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_pipeline(
    db: Annotated[Database, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> CurationPipeline:
    return CurationPipeline(db=db, settings=settings)


async def verify_api_key(
    settings: Annotated[Settings, Depends(get_app_settings)],
    x_api_key: Annotated[Optional[str], Header()] = None,
):
    """API key gate. Empty API_KEY = dev mode (all requests pass)."""
    required_key = settings.api_key
    if required_key and x_api_key != required_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


# Type aliases for cleaner route signatures
DB = Annotated[Database, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Pipeline = Annotated[CurationPipeline, Depends(get_pipeline)]
