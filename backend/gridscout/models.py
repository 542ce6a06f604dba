from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Title(str, Enum):
    val = "val"
    lol = "lol"


class ScoutingReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_id: str = Field(..., alias="teamId", min_length=1)
    series_ids: List[str] = Field(..., alias="seriesIds", min_length=1, max_length=100)
    opponents: Optional[Dict[str, str]] = None


class ConvertResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    series_id: str = Field(..., alias="seriesId")
    title: Title
    source: str
    teams: List[str]
    games_played: int = Field(..., alias="gamesPlayed")


class AnalyzerResultModel(BaseModel):
    name: str
    description: str
    data: Any
    generated_at: str = Field(..., alias="generatedAt")


class AnalyticsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    series_id: str = Field(..., alias="seriesId")
    generated_at: str = Field(..., alias="generatedAt")
    results: List[AnalyzerResultModel]


class SeriesAnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    series_id: str = Field(..., alias="seriesId", min_length=1)


class SeriesAnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    series_id: str = Field(..., alias="seriesId")
    cache_hit: bool = Field(..., alias="cacheHit")
    has_analytics: bool = Field(..., alias="hasAnalytics")
