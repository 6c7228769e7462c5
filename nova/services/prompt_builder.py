"""System prompt assembly."""

from collections.abc import Iterable

from nova.models.connectors import ConnectorType
from nova.models.feedback import AdjustmentPriority, AdjustmentType, PromptAdjustment

PERSONA = (
    "You are NOVA, an assistant that answers questions using the user's connected "
    "work tools. Use the available tools to fetch real data instead of guessing, and "
    "report numbers exactly as the tools return them."
)

CONNECTOR_HINTS: dict[ConnectorType, str] = {
    ConnectorType.SERVICENOW: (
        "For 'how many' questions about articles, incidents or catalog items use the "
        "matching count tool. Incident numbers look like INC0010010."
    ),
    ConnectorType.JIRA: "Issue keys look like PROJ-123. Search with plain words or JQL.",
    ConnectorType.CONFLUENCE: "Search Confluence pages before answering documentation questions.",
    ConnectorType.GOOGLE_DRIVE: "List or search Drive files first, then read a file by its id.",
    ConnectorType.EMAIL: "Search Gmail with Gmail query syntax, e.g. from:alice subject:report.",
    ConnectorType.GITHUB: "Repositories are addressed as owner/repo.",
    ConnectorType.SLACK: "Search Slack messages by keyword; post only when the user asks.",
    ConnectorType.WEBEX: "List rooms to find a room id before reading or sending messages.",
    ConnectorType.NOTION: "Search Notion pages and databases by title.",
    ConnectorType.FILE: "Search the user's uploaded documents for answers grounded in their files.",
}

ERROR_GUIDANCE = (
    "Tool results are JSON. A result with an `error` field means the call failed: "
    "explain the problem to the user in plain conversational language, mention the "
    "hint if one is given, and never show raw JSON. If a source is not connected, "
    "tell the user to connect it in Settings."
)

_PRIORITY_ORDER = {
    AdjustmentPriority.HIGH: 0,
    AdjustmentPriority.MEDIUM: 1,
    AdjustmentPriority.LOW: 2,
}


class PromptBuilder:
    """Builds the base system prompt for a chat request."""

    def __init__(self, persona: str = PERSONA) -> None:
        self._persona = persona

    def build(
        self,
        connected: Iterable[ConnectorType],
        adjustments: Iterable[PromptAdjustment] = (),
    ) -> str:
        connected = sorted(set(connected), key=lambda c: c.value)
        sections = [self._persona]

        if connected:
            names = ", ".join(c.display_name for c in connected)
            lines = [f"Connected sources: {names}."]
            lines.extend(
                f"- {c.display_name}: {CONNECTOR_HINTS[c]}" for c in connected if c in CONNECTOR_HINTS
            )
            sections.append("\n".join(lines))
        else:
            sections.append(
                "No data sources are connected. If the user asks for data, explain how to "
                "connect a source in Settings."
            )

        sections.append(ERROR_GUIDANCE)

        rendered = self._render_adjustments(adjustments)
        if rendered:
            sections.append(rendered)

        return "\n\n".join(sections)

    def _render_adjustments(self, adjustments: Iterable[PromptAdjustment]) -> str:
        seen: set[str] = set()
        lines = []
        for adjustment in sorted(adjustments, key=lambda a: _PRIORITY_ORDER[a.priority]):
            if adjustment.rule in seen:
                continue
            seen.add(adjustment.rule)
            prefix = "IMPORTANT: " if adjustment.type == AdjustmentType.EMPHASIZE_RULE else ""
            if adjustment.type == AdjustmentType.ADD_EXAMPLE:
                prefix = "Example of the preferred style: "
            lines.append(f"- {prefix}{adjustment.rule}")

        if not lines:
            return ""
        return "Learned guidance from user feedback:\n" + "\n".join(lines)
