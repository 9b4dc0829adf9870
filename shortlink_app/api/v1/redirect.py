from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from shortlink_app.services.url_service import URLService
from shortlink_app.dependencies import get_url_service

router = APIRouter(tags=["redirect"])


@router.get("/{alias}")
async def redirect_to_long_url(
    alias: str,
    url_service: URLService = Depends(get_url_service)
):
    """
    Redirect to the original URL.

    Flow:
    1. Look up the target (NotFound -> 404 via exception handler)
    2. Append a click event (best effort, never fails the request)
    3. Redirect immediately

    Counting happens later in the click aggregator,
    so it doesn't slow down the redirect.
    """
    long_url = await url_service.get_long_url_for_redirect(alias)

    await url_service.publish_click(alias)

    return RedirectResponse(url=long_url, status_code=status.HTTP_302_FOUND)
