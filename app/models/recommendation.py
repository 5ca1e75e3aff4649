from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    age: int
    country: str
    subscription_type: str
    created_at: datetime


class WatchHistoryItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_id: int
    genre: str
    watched_at: datetime


class CandidateContent(BaseModel):
    """Unwatched content item eligible for scoring."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    title: str
    genre: str
    popularity_score: float = Field(ge=0.0, le=1.0)
    created_at: datetime


class ScoredRecommendation(BaseModel):
    content_id: int
    title: str
    genre: str
    popularity_score: float
    score: float


class RecommendationResult(BaseModel):
    recommendations: list[ScoredRecommendation] = Field(default_factory=list)
    cache_hit: bool = False


class RecommendationMeta(BaseModel):
    cache_hit: bool
    generated_at: str
    total_count: int


class RecommendationResponse(BaseModel):
    user_id: int
    recommendations: list[ScoredRecommendation]
    metadata: RecommendationMeta


BatchStatus = Literal["success", "failed"]


class BatchUserResult(BaseModel):
    """
    Outcome for one user inside a batch.

    Exactly one of `recommendations` (success) or `error`/`message` (failure) is set.
    """

    user_id: int
    recommendations: list[ScoredRecommendation] | None = None
    status: BatchStatus
    error: str | None = None
    message: str | None = None

    @classmethod
    def success(cls, user_id: int, recommendations: list[ScoredRecommendation]) -> "BatchUserResult":
        return cls(user_id=user_id, recommendations=recommendations, status="success")

    @classmethod
    def failure(cls, user_id: int, error: str, message: str) -> "BatchUserResult":
        return cls(user_id=user_id, status="failed", error=error, message=message)


class BatchSummary(BaseModel):
    success_count: int
    failed_count: int
    processing_time_ms: int


class BatchMeta(BaseModel):
    generated_at: str


class BatchResponse(BaseModel):
    page: int
    limit: int
    total_users: int
    results: list[BatchUserResult]
    summary: BatchSummary
    metadata: BatchMeta


class WatchHistoryCreate(BaseModel):
    content_id: int = Field(gt=0)


class ErrorResponse(BaseModel):
    error: str
    message: str
