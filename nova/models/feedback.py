"""Feedback, learning and prompt adjustment models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedbackRating(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class FeedbackCategory(str, Enum):
    DATA_ACCURACY = "data_accuracy"
    ADHERENCE_TO_RULES = "adherence_to_rules"
    COMPLETENESS = "completeness"
    TONE = "tone"
    HELPFULNESS = "helpfulness"
    GENERAL = "general"


class Feedback(BaseModel):
    """A rating the user gave to one assistant message."""

    message_id: str = Field(alias="messageId")
    conversation_id: str | None = Field(default=None, alias="conversationId")
    rating: FeedbackRating
    category: FeedbackCategory = FeedbackCategory.GENERAL
    comment: str | None = None
    user_message: str | None = Field(default=None, alias="userMessage")
    assistant_response: str | None = Field(default=None, alias="assistantResponse")
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = {"populate_by_name": True}


class AdjustmentType(str, Enum):
    ADD_RULE = "add_rule"
    MODIFY_RULE = "modify_rule"
    ADD_EXAMPLE = "add_example"
    EMPHASIZE_RULE = "emphasize_rule"


class AdjustmentPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PromptAdjustment(BaseModel):
    """An instruction appended to the system prompt."""

    type: AdjustmentType
    rule: str
    priority: AdjustmentPriority = AdjustmentPriority.MEDIUM
    reason: str


class LearnedPattern(BaseModel):
    """A correction the user made, kept as a standing instruction."""

    id: str
    pattern: str
    instruction: str
    context: str | None = None
    learned_from: str = Field(serialization_alias="learnedFrom")
    timestamp: datetime = Field(default_factory=_utcnow)
    applied_count: int = Field(default=0, serialization_alias="appliedCount")


class FeedbackAnalysis(BaseModel):
    """Aggregate view over stored feedback."""

    total_feedback: int = Field(serialization_alias="totalFeedback")
    average_rating: float = Field(serialization_alias="averageRating")
    category_breakdown: dict[str, int] = Field(serialization_alias="categoryBreakdown")
    recent_issues: list[Feedback] = Field(serialization_alias="recentIssues")
    critical_alerts: list[Feedback] = Field(serialization_alias="criticalAlerts")
    suggested_improvements: list[str] = Field(serialization_alias="suggestedImprovements")
