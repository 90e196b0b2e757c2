"""
Presentation models for processed query results.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Trend(str, Enum):
    """Direction of a range query between its first and last point."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class VisualizationType(str, Enum):
    """Panel type best suited to a result."""
    TIME_SERIES = "time_series"
    STAT = "stat"
    TABLE = "table"


class ResultPoint(BaseModel):
    """A single point of a range series."""

    timestamp: datetime
    value: float


class MetricSample(BaseModel):
    """One series as presented to the caller."""

    labels: Dict[str, str] = Field(default_factory=dict, description="Series labels")
    value: Optional[float] = Field(None, description="Instant value")
    values: List[ResultPoint] = Field(default_factory=list, description="Range points")
    timestamp: Optional[datetime] = Field(None, description="Instant sample timestamp")
    text: Optional[str] = Field(None, description="Value of a string result")


class ResultStats(BaseModel):
    """Statistics over every point of a range result."""

    min: float
    max: float
    avg: float
    current: float
    trend: Trend = Trend.STABLE


class ProcessedResult(BaseModel):
    """A bounded, presentable view of a backend result."""

    result_type: str = Field(..., description="vector, matrix, scalar or string")
    summary: str = Field(..., description="Human-readable summary")
    samples: List[MetricSample] = Field(default_factory=list)
    total_series: int = Field(0, description="Series count before truncation")
    truncated: bool = False
    statistics: Optional[ResultStats] = None
    warnings: List[str] = Field(default_factory=list)


class ResultMetadata(BaseModel):
    """Visualization hint and follow-up suggestions for a result."""

    visualization_type: Optional[VisualizationType] = None
    recommendation: str = ""
    next_steps: List[str] = Field(default_factory=list)
    grafana_link: str = ""
