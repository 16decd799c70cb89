from fastapi import APIRouter
from app.api.endpoints import auth, records, stats, ingestion, export, clear

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(records.router, prefix="/records", tags=["records"])
api_router.include_router(stats.router, prefix="/stats", tags=["stats"])
api_router.include_router(ingestion.router, prefix="/import", tags=["import"])
api_router.include_router(export.router, prefix="/export", tags=["export"])
api_router.include_router(clear.router, prefix="/clear", tags=["clear"])
