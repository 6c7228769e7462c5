"""Handlers for ``POST /feedback`` and ``POST /learning``."""

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import ValidationError

from nova.core.logging import get_logger
from nova.handlers.responses import error_response
from nova.models.api import FeedbackRequest, LearningRequest
from nova.models.feedback import Feedback
from nova.services.feedback_service import FeedbackStore, LearningStore

logger = get_logger("feedback_handler")


def _dump(items: list[Any]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json", by_alias=True) for item in items]


class FeedbackHandler:
    """Feedback submission and analysis."""

    def __init__(self, store: FeedbackStore) -> None:
        self._store = store

    async def handle(self, request: FeedbackRequest) -> JSONResponse:
        if request.action == "submit":
            if not request.feedback:
                return error_response("feedback is required")
            try:
                feedback = Feedback.model_validate(request.feedback)
            except ValidationError as e:
                return error_response(f"Invalid feedback: {e.errors()[0]['msg']}")

            adjustments, critical = self._store.submit(feedback)
            content: dict[str, Any] = {"success": True}
            if adjustments:
                content["adjustments"] = _dump(adjustments)
            if critical:
                content["criticalAlert"] = {
                    "message": "Critical feedback received",
                    "category": feedback.category.value,
                    "requiresImmediateReview": True,
                }
            return JSONResponse(content)

        if request.action == "analyze":
            analysis = self._store.analyze().model_dump(mode="json", by_alias=True)
            analysis["realTimeAdjustments"] = _dump(self._store.get_adjustments())
            return JSONResponse(analysis)

        if request.action == "get_adjustments":
            return JSONResponse({"adjustments": _dump(self._store.get_adjustments())})

        return error_response(f"Unknown action: {request.action}")


class LearningHandler:
    """Learning from user corrections."""

    def __init__(self, store: LearningStore) -> None:
        self._store = store

    async def handle(self, request: LearningRequest) -> JSONResponse:
        data = request.data

        if request.action == "learn_from_conversation":
            user_message = data.get("userMessage")
            if not user_message:
                return error_response("data.userMessage is required")

            learning = self._store.learn_from_conversation(
                user_message,
                previous_response=data.get("previousAssistantResponse"),
                context=data.get("conversationContext"),
            )
            if learning is None:
                return JSONResponse(
                    {"success": True, "learned": False, "message": "No correction pattern detected"}
                )
            return JSONResponse(
                {
                    "success": True,
                    "learned": True,
                    "instruction": learning.instruction,
                    "totalLearnings": len(self._store),
                }
            )

        if request.action == "get_adjustments":
            recent = self._store.get_learnings()[-5:]
            return JSONResponse(
                {
                    "adjustments": _dump(self._store.get_adjustments()),
                    "totalLearnings": len(self._store),
                    "recentLearnings": [
                        {
                            "instruction": item.instruction,
                            "learnedFrom": item.learned_from[:100],
                            "appliedCount": item.applied_count,
                        }
                        for item in recent
                    ],
                }
            )

        if request.action == "get_learnings":
            learnings = self._store.get_learnings()
            return JSONResponse({"learnings": _dump(learnings), "total": len(learnings)})

        if request.action == "clear_learnings":
            cleared = self._store.clear_learnings()
            return JSONResponse({"success": True, "cleared": cleared})

        return error_response(f"Unknown action: {request.action}")
