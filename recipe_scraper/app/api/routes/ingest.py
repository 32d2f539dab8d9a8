import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, HttpUrl
from starlette import status

from recipe_scraper.app.api.deps import get_llm_service
from recipe_scraper.app.services.url_parsing.extractors.llm import LLMRecipeService
from recipe_scraper.app.services.url_parsing.pipeline import parse_recipe_from_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recipes"])

ERROR_STATUS = {
    "invalid_url": status.HTTP_400_BAD_REQUEST,
    "fetch_failed": status.HTTP_502_BAD_GATEWAY,
    "fetch_timeout": status.HTTP_504_GATEWAY_TIMEOUT,
    "parse_failed": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


class IngestRequest(BaseModel):
    url: HttpUrl
    use_llm: bool = True


@router.post("/recipes/ingest")
async def ingest_recipe(
    payload: IngestRequest,
    llm_service: LLMRecipeService = Depends(get_llm_service),
):
    result = await parse_recipe_from_url(
        str(payload.url), llm_service=llm_service, use_llm=payload.use_llm
    )
    if result.success:
        status_code = status.HTTP_200_OK
    else:
        status_code = ERROR_STATUS.get(result.error_code or "", status.HTTP_422_UNPROCESSABLE_ENTITY)
        logger.info("Ingest of %s failed: %s (%s)", payload.url, result.error_code, result.error_message)
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", by_alias=True),
    )
