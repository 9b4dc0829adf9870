from fastapi import APIRouter, Depends, status
from shortlink_app.schemas.url import URLCreate, URLResponse, URLStats
from shortlink_app.services.url_service import URLService
from shortlink_app.dependencies import get_url_service

router = APIRouter(prefix="/urls", tags=["urls"])


@router.post("/", response_model=URLResponse, status_code=status.HTTP_201_CREATED)
async def create_short_url(
    url_data: URLCreate,
    url_service: URLService = Depends(get_url_service)
):
    """Create a new short URL"""
    return await url_service.create_short_url(str(url_data.long_url))


@router.get("/{alias}/stats", response_model=URLStats)
async def get_url_stats(
    alias: str,
    url_service: URLService = Depends(get_url_service)
):
    """Get click statistics for a short URL"""
    return await url_service.get_url_stats(alias)
