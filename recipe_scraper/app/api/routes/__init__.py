from fastapi import APIRouter

from recipe_scraper.app.api.routes import ingest

api_router = APIRouter()
api_router.include_router(ingest.router)
