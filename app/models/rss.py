from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

SPIEGEL_SOURCE = "SPIEGEL"


class Headline(BaseModel):
    """One normalized feed item as exposed by the public API."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    link: str
    published_at: str = Field(
        alias="publishedAt",
        description="RFC3339 timestamp of the item's publication.",
    )
    source: str = SPIEGEL_SOURCE


class HeadlinesResponse(BaseModel):
    """Response for /api/rss/spiegel/top5."""

    model_config = ConfigDict(populate_by_name=True)

    headlines: List[Headline]
    total_count: int = Field(
        alias="totalCount",
        description="Size of the fetched pool before filtering.",
    )


class ExportEnvelope(BaseModel):
    """Body of a JSON export download."""

    export_date: str
    total_items: int
    filter_applied: Optional[str] = None
    headlines: List[Headline] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
