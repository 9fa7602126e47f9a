from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InsightPublic(CamelModel):
    category: str
    percentage: float
    trend: Literal["up", "down", "stable"]
    advice: str


class PredictionPublic(CamelModel):
    next_month_spending: float
    confidence: float
    trend: Literal["increasing", "stable"]


class RecommendationPublic(CamelModel):
    title: str
    description: str
    potential_savings: float
    priority: Literal["high", "medium", "low"]


class AnalysisPublic(CamelModel):
    insights: List[InsightPublic] = Field(default_factory=list)
    predictions: List[PredictionPublic] = Field(default_factory=list)
    recommendations: List[RecommendationPublic] = Field(default_factory=list)
    summary: str
    risk_score: int = Field(ge=0, le=100)


class ProjectionPointPublic(CamelModel):
    month: str
    projected: float = Field(ge=0)


class AnalysisResponse(CamelModel):
    analysis: AnalysisPublic
    future_projection: List[ProjectionPointPublic] = Field(default_factory=list)
