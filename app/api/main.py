from fastapi import APIRouter

from .endpoints.batch import router as batch_router
from .endpoints.health import router as health_router
from .endpoints.recommendations import router as recommendations_router

api_router = APIRouter()


@api_router.get("/")
async def root():
    return {"message": "Recommendation service is running"}


api_router.include_router(recommendations_router)
api_router.include_router(batch_router)
api_router.include_router(health_router)
