import logging

from fastapi import APIRouter, Depends, HTTPException, status

from recipe_harvester.app.api.deps import get_pipeline
from recipe_harvester.app.schemas.extraction import ExtractRequest
from recipe_harvester.app.services.recipe_pipeline import RecipePipeline
from recipe_harvester.app.services.url_parsing.errors import FetchError, InvalidUrlError
from recipe_harvester.app.services.url_parsing.models import ExtractionResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes", tags=["extraction"])


@router.post("/extract", response_model=ExtractionResult)
async def extract_recipe(
    payload: ExtractRequest,
    pipeline: RecipePipeline = Depends(get_pipeline),
):
    """Extract a recipe draft from a URL, or from HTML the client already fetched."""
    try:
        return await pipeline.extract(payload.url, html=payload.html)
    except InvalidUrlError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error_code": "invalid_url", "message": str(exc)},
        ) from exc
    except FetchError as exc:
        logger.warning("Fetch failed for %s after %d attempts", payload.url, exc.attempts)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error_code": "fetch_failed", "message": str(exc), "attempts": exc.attempts},
        ) from exc
