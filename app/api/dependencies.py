from fastapi import Request

from app.services.batch_service import BatchRecommendationService
from app.services.recommendation_cache import RecommendationCache
from app.services.recommendation_service import RecommendationService
from app.services.repository import Repository


def get_recommendation_service(request: Request) -> RecommendationService:
    return request.app.state.recommendation_service


def get_batch_service(request: Request) -> BatchRecommendationService:
    return request.app.state.batch_service


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_cache(request: Request) -> RecommendationCache:
    return request.app.state.cache
