"""Feedback and conversational learning stores.

Both stores keep a bounded, in-memory window and turn what they hold into
system prompt adjustments. They are process-scoped and non-durable, so they
are not suitable for multi-instance deployments.
"""

import uuid
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import BaseModel

from nova.core.logging import LogEvents, get_logger
from nova.models.feedback import (
    AdjustmentPriority,
    AdjustmentType,
    Feedback,
    FeedbackAnalysis,
    FeedbackCategory,
    FeedbackRating,
    LearnedPattern,
    PromptAdjustment,
)
from nova.utils.intent_parser import detect_correction

logger = get_logger("feedback_service")

CRITICAL_CATEGORIES = frozenset(
    {FeedbackCategory.DATA_ACCURACY, FeedbackCategory.ADHERENCE_TO_RULES}
)
URGENT_KEYWORDS = ("wrong", "incorrect", "error", "broken", "not working", "failed")
RATING_SCORES = {
    FeedbackRating.POSITIVE: 1,
    FeedbackRating.NEGATIVE: -1,
    FeedbackRating.NEUTRAL: 0,
}


class AdjustmentRule(BaseModel):
    """An adjustment that applies while ``condition`` holds over stored feedback."""

    condition: Callable[[list[Feedback]], bool]
    adjustment: PromptAdjustment


def _negatives(feedback: list[Feedback], category: FeedbackCategory, window: int) -> int:
    return sum(
        1
        for f in feedback[-window:]
        if f.rating == FeedbackRating.NEGATIVE and f.category == category
    )


def _reports_missing_access(feedback: list[Feedback]) -> bool:
    for f in feedback[-5:]:
        comment = (f.comment or "").lower()
        if f.rating == FeedbackRating.NEGATIVE and "can't" in comment and "access" in comment:
            return True
    return False


ADJUSTMENT_RULES = [
    AdjustmentRule(
        condition=lambda fb: _negatives(fb, FeedbackCategory.DATA_ACCURACY, 10) >= 3,
        adjustment=PromptAdjustment(
            type=AdjustmentType.EMPHASIZE_RULE,
            rule="ALWAYS verify data returned by tools before responding. Never make up numbers.",
            priority=AdjustmentPriority.HIGH,
            reason="Multiple reports of inaccurate data",
        ),
    ),
    AdjustmentRule(
        condition=lambda fb: _negatives(fb, FeedbackCategory.ADHERENCE_TO_RULES, 10) >= 2,
        adjustment=PromptAdjustment(
            type=AdjustmentType.EMPHASIZE_RULE,
            rule="CRITICAL: Follow all conversation rules strictly. Review rules before responding.",
            priority=AdjustmentPriority.HIGH,
            reason="Rule violations detected",
        ),
    ),
    AdjustmentRule(
        condition=_reports_missing_access,
        adjustment=PromptAdjustment(
            type=AdjustmentType.ADD_RULE,
            rule=(
                "NEVER say \"I can't\" or \"I don't have access\" when data is available. "
                "Always check whether a tool returned data before responding."
            ),
            priority=AdjustmentPriority.HIGH,
            reason="User reported unnecessary restrictions",
        ),
    ),
    AdjustmentRule(
        condition=lambda fb: _negatives(fb, FeedbackCategory.COMPLETENESS, 10) >= 2,
        adjustment=PromptAdjustment(
            type=AdjustmentType.MODIFY_RULE,
            rule="Provide complete, detailed answers. Include all relevant information from tool results.",
            priority=AdjustmentPriority.MEDIUM,
            reason="Responses too brief or incomplete",
        ),
    ),
]

SUGGESTIONS = {
    FeedbackCategory.DATA_ACCURACY: "Improve data verification before responding",
    FeedbackCategory.ADHERENCE_TO_RULES: "Strengthen rule enforcement in responses",
    FeedbackCategory.COMPLETENESS: "Provide more complete and detailed responses",
}


def is_critical(feedback: Feedback) -> bool:
    """Negative feedback on accuracy or rule adherence, or with an urgent comment."""
    if feedback.rating != FeedbackRating.NEGATIVE:
        return False
    if feedback.category in CRITICAL_CATEGORIES:
        return True
    comment = (feedback.comment or "").lower()
    return any(keyword in comment for keyword in URGENT_KEYWORDS)


class FeedbackStore:
    """Bounded window of user feedback (oldest entries are dropped)."""

    def __init__(self, capacity: int = 100) -> None:
        self._items: deque[Feedback] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._items)

    def submit(self, feedback: Feedback) -> tuple[list[PromptAdjustment], bool]:
        """Store feedback; return the active adjustments and whether it is critical."""
        self._items.append(feedback)
        critical = is_critical(feedback)

        logger.info(
            LogEvents.FEEDBACK_SUBMITTED,
            message_id=feedback.message_id,
            rating=feedback.rating.value,
            category=feedback.category.value,
        )
        if critical:
            logger.error(
                LogEvents.FEEDBACK_CRITICAL,
                message_id=feedback.message_id,
                category=feedback.category.value,
                comment=feedback.comment,
            )
        return self.get_adjustments(), critical

    def get_adjustments(self) -> list[PromptAdjustment]:
        items = list(self._items)
        return [rule.adjustment for rule in ADJUSTMENT_RULES if rule.condition(items)]

    def analyze(self) -> FeedbackAnalysis:
        items = list(self._items)
        total = len(items)
        average = sum(RATING_SCORES[f.rating] for f in items) / total if total else 0.0

        breakdown: dict[str, int] = {}
        for f in items:
            breakdown[f.category.value] = breakdown.get(f.category.value, 0) + 1

        negatives = [f for f in items if f.rating == FeedbackRating.NEGATIVE]
        critical = [f for f in negatives if f.category in CRITICAL_CATEGORIES]

        return FeedbackAnalysis(
            total_feedback=total,
            average_rating=average,
            category_breakdown=breakdown,
            recent_issues=list(reversed(negatives[-5:])),
            critical_alerts=list(reversed(critical[-3:])),
            suggested_improvements=[
                text for category, text in SUGGESTIONS.items() if breakdown.get(category.value)
            ],
        )


class LearningStore:
    """Standing instructions learned from user corrections."""

    def __init__(self, capacity: int = 50) -> None:
        self._items: deque[LearnedPattern] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._items)

    def learn_from_conversation(
        self,
        user_message: str,
        previous_response: str | None = None,
        context: str | None = None,
    ) -> LearnedPattern | None:
        """Record the correction in ``user_message``, if there is one.

        A correction similar to an existing one bumps that learning's
        ``applied_count`` instead of adding a new entry.
        """
        correction = detect_correction(user_message)
        if correction is None:
            return None

        instruction = correction.instruction
        existing = self._find_similar(instruction)
        if existing is not None:
            existing.applied_count += 1
            existing.timestamp = datetime.now(timezone.utc)
            logger.info(LogEvents.LEARNING_RECORDED, instruction=instruction, updated=True)
            return existing

        learning = LearnedPattern(
            id=f"learned_{uuid.uuid4().hex[:12]}",
            pattern=correction.pattern,
            instruction=instruction,
            context=context or (previous_response[:200] if previous_response else None),
            learned_from=user_message,
        )
        self._items.append(learning)
        logger.info(LogEvents.LEARNING_RECORDED, instruction=instruction, updated=False)
        return learning

    def _find_similar(self, instruction: str) -> LearnedPattern | None:
        lowered = instruction.lower()
        for item in self._items:
            existing = item.instruction.lower()
            if existing == lowered:
                return item
            if len(instruction) > 20 and lowered[:20] in existing:
                return item
        return None

    def get_adjustments(self) -> list[PromptAdjustment]:
        adjustments = []
        for learning in list(self._items)[-20:]:
            text = learning.instruction.lower()
            adjustment_type = AdjustmentType.ADD_RULE
            priority = AdjustmentPriority.MEDIUM
            if any(word in text for word in ("always", "never", "must")):
                adjustment_type = AdjustmentType.EMPHASIZE_RULE
                priority = AdjustmentPriority.HIGH
            if "example" in text or "like this" in text:
                adjustment_type = AdjustmentType.ADD_EXAMPLE
            adjustments.append(
                PromptAdjustment(
                    type=adjustment_type,
                    rule=learning.instruction,
                    priority=priority,
                    reason=f'Learned from user correction: "{learning.learned_from[:100]}"',
                )
            )
        return adjustments

    def get_learnings(self) -> list[LearnedPattern]:
        return list(self._items)

    def clear_learnings(self) -> int:
        count = len(self._items)
        self._items.clear()
        logger.info(LogEvents.LEARNINGS_CLEARED, count=count)
        return count
