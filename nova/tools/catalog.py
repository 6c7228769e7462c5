"""Static catalog of tools advertised to the model.

Every tool is bound here, once, to the connector type and adapter action that
serve it. Nothing is inferred from tool names.
"""

from typing import Any

from nova.models.connectors import ConnectorType
from nova.models.tools import ToolDescriptor, ToolSpec

DOCUMENT_SOURCES = frozenset({ConnectorType.FILE, ConnectorType.CONFLUENCE, ConnectorType.NOTION})


def _string(description: str, enum: list[str] | None = None) -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "string", "description": description}
    if enum:
        prop["enum"] = enum
    return prop


def _integer(description: str) -> dict[str, Any]:
    return {"type": "integer", "description": description}


def _tool(
    name: str,
    description: str,
    connector: ConnectorType,
    action: str,
    properties: dict[str, Any] | None = None,
    required: tuple[str, ...] = (),
    visible_with: frozenset[ConnectorType] = frozenset(),
) -> ToolSpec:
    return ToolSpec(
        descriptor=ToolDescriptor(
            name=name,
            description=description,
            parameters={
                "type": "object",
                "properties": properties or {},
                "required": list(required),
            },
        ),
        connector=connector,
        action=action,
        visible_with=visible_with,
    )


SN = ConnectorType.SERVICENOW

SERVICENOW_TOOLS = [
    _tool(
        "servicenow_get_article_count",
        "Get the exact total number of knowledge base articles in ServiceNow. "
        "Use for any 'how many articles' question.",
        SN,
        "get_article_count",
    ),
    _tool(
        "servicenow_get_incident_count",
        "Get the exact total number of incidents in ServiceNow.",
        SN,
        "get_incident_count",
    ),
    _tool(
        "servicenow_get_catalog_item_count",
        "Get the exact total number of service catalog items in ServiceNow.",
        SN,
        "get_catalog_item_count",
    ),
    _tool(
        "servicenow_search_articles",
        "Search ServiceNow knowledge base articles by keyword.",
        SN,
        "search_articles",
        {"query": _string("Keywords to search for")},
        ("query",),
    ),
    _tool(
        "servicenow_get_article",
        "Get one knowledge base article by its number, for example KB0010002.",
        SN,
        "get_article_by_number",
        {"article_number": _string("Article number, e.g. KB0010002")},
        ("article_number",),
    ),
    _tool(
        "servicenow_get_incident",
        "Get the details of one incident by its number, for example INC0010010.",
        SN,
        "get_incident",
        {"incident_number": _string("Incident number, e.g. INC0010010")},
        ("incident_number",),
    ),
    _tool(
        "servicenow_list_incidents",
        "List recent incidents, optionally filtered by status or priority.",
        SN,
        "list_incidents",
        {
            "status": _string("Incident status", ["new", "in_progress", "resolved", "closed"]),
            "priority": _string("Priority from 1 (critical) to 5 (planning)"),
            "limit": _integer("Maximum number of incidents (default 10)"),
        },
    ),
    _tool(
        "servicenow_create_incident",
        "Create a new incident. Confirm the details with the user before calling.",
        SN,
        "create_incident",
        {
            "short_description": _string("One-line summary of the problem"),
            "description": _string("Full description of the problem"),
            "urgency": _string("1 (high), 2 (medium) or 3 (low)", ["1", "2", "3"]),
            "impact": _string("1 (high), 2 (medium) or 3 (low)", ["1", "2", "3"]),
            "category": _string("Incident category, e.g. software, hardware, network"),
        },
        ("short_description",),
    ),
    _tool(
        "servicenow_update_incident",
        "Update an existing incident: change its state, add work notes or comments, or resolve it.",
        SN,
        "update_incident",
        {
            "incident_number": _string("Incident number, e.g. INC0010010"),
            "state": _string(
                "New state",
                ["new", "in_progress", "on_hold", "resolved", "closed", "canceled"],
            ),
            "short_description": _string("New summary"),
            "description": _string("New description"),
            "urgency": _string("1 (high), 2 (medium) or 3 (low)", ["1", "2", "3"]),
            "impact": _string("1 (high), 2 (medium) or 3 (low)", ["1", "2", "3"]),
            "work_notes": _string("Internal work notes to add"),
            "comments": _string("Customer-visible comment to add"),
            "close_notes": _string("Resolution notes, required when resolving"),
        },
        ("incident_number",),
    ),
    _tool(
        "servicenow_list_catalog_items",
        "List items available in the ServiceNow service catalog.",
        SN,
        "list_catalog_items",
    ),
]

JIRA_TOOLS = [
    _tool(
        "jira_list_projects",
        "List the Jira projects the user can access.",
        ConnectorType.JIRA,
        "list_projects",
    ),
    _tool(
        "jira_search_issues",
        "Search Jira issues by text, project or status. Accepts raw JQL as the query.",
        ConnectorType.JIRA,
        "search_issues",
        {
            "query": _string("Search text or a JQL expression"),
            "project": _string("Project key to restrict the search to"),
            "status": _string("Issue status, e.g. 'In Progress'"),
        },
    ),
    _tool(
        "jira_get_issue",
        "Get one Jira issue by key, for example PROJ-123.",
        ConnectorType.JIRA,
        "get_issue",
        {"issue_key": _string("Issue key, e.g. PROJ-123")},
        ("issue_key",),
    ),
    _tool(
        "jira_create_issue",
        "Create a Jira issue. Confirm the project and summary with the user before calling.",
        ConnectorType.JIRA,
        "create_issue",
        {
            "project_key": _string("Project key, e.g. PROJ"),
            "summary": _string("Issue title"),
            "description": _string("Issue description"),
            "issue_type": _string("Issue type, e.g. Task, Bug, Story"),
            "priority": _string("Priority name, e.g. High"),
        },
        ("project_key", "summary"),
    ),
    _tool(
        "jira_update_issue",
        "Update a Jira issue's fields, move it to another status, or add a comment.",
        ConnectorType.JIRA,
        "update_issue",
        {
            "issue_key": _string("Issue key, e.g. PROJ-123"),
            "summary": _string("New title"),
            "description": _string("New description"),
            "priority": _string("New priority name"),
            "status": _string("Target status or transition name"),
            "comment": _string("Comment to add"),
        },
        ("issue_key",),
    ),
    _tool(
        "jira_add_comment",
        "Add a comment to a Jira issue.",
        ConnectorType.JIRA,
        "add_comment",
        {
            "issue_key": _string("Issue key, e.g. PROJ-123"),
            "comment": _string("Comment text"),
        },
        ("issue_key", "comment"),
    ),
]

CONFLUENCE_TOOLS = [
    _tool(
        "confluence_search",
        "Search Confluence pages by text or title.",
        ConnectorType.CONFLUENCE,
        "search",
        {"query": _string("Search text")},
        ("query",),
    ),
    _tool(
        "confluence_list_spaces",
        "List Confluence spaces.",
        ConnectorType.CONFLUENCE,
        "list_spaces",
    ),
]

GOOGLE_DRIVE_TOOLS = [
    _tool(
        "google_drive_list_files",
        "List files in Google Drive, optionally filtered by name.",
        ConnectorType.GOOGLE_DRIVE,
        "list_files",
        {"query": _string("Text the file name must contain")},
    ),
    _tool(
        "google_drive_search_files",
        "Search Google Drive files by their content and name.",
        ConnectorType.GOOGLE_DRIVE,
        "search_files",
        {"query": _string("Search text")},
        ("query",),
    ),
    _tool(
        "google_drive_read_file",
        "Read the text content of a Google Drive file by its id.",
        ConnectorType.GOOGLE_DRIVE,
        "read_file",
        {"file_id": _string("Drive file id from a list or search result")},
        ("file_id",),
    ),
]

GMAIL_TOOLS = [
    _tool(
        "gmail_list_emails",
        "List the most recent emails in the user's Gmail inbox.",
        ConnectorType.EMAIL,
        "list_emails",
        {"limit": _integer("Number of emails (default 10, max 15)")},
    ),
    _tool(
        "gmail_search_emails",
        "Search Gmail using Gmail search syntax, e.g. 'from:alice subject:invoice'.",
        ConnectorType.EMAIL,
        "search_emails",
        {"query": _string("Gmail search query")},
        ("query",),
    ),
    _tool(
        "gmail_get_email",
        "Read the full body of one email by id.",
        ConnectorType.EMAIL,
        "get_email",
        {"email_id": _string("Message id from a list or search result")},
        ("email_id",),
    ),
]

_REPO_PROPERTIES = {
    "owner": _string("Repository owner (user or organization)"),
    "repo": _string("Repository name, or 'owner/name'"),
}

GITHUB_TOOLS = [
    _tool(
        "github_list_repos",
        "List the user's (or the configured organization's) GitHub repositories.",
        ConnectorType.GITHUB,
        "list_repos",
        {
            "type": _string("Repository type", ["all", "owner", "member", "public", "private"]),
            "sort": _string("Sort order", ["updated", "created", "pushed", "full_name"]),
        },
    ),
    _tool(
        "github_get_repo",
        "Get details of one GitHub repository.",
        ConnectorType.GITHUB,
        "get_repo",
        dict(_REPO_PROPERTIES),
        ("repo",),
    ),
    _tool(
        "github_search_repos",
        "Search public and accessible GitHub repositories.",
        ConnectorType.GITHUB,
        "search_repos",
        {"query": _string("Search text"), "language": _string("Programming language filter")},
        ("query",),
    ),
    _tool(
        "github_search_code",
        "Search code on GitHub, optionally within one repository.",
        ConnectorType.GITHUB,
        "search_code",
        {
            "query": _string("Code search text"),
            "repo": _string("Restrict to 'owner/name'"),
            "language": _string("Programming language filter"),
        },
        ("query",),
    ),
    _tool(
        "github_get_file",
        "Read a file from a GitHub repository.",
        ConnectorType.GITHUB,
        "get_file",
        {
            **_REPO_PROPERTIES,
            "path": _string("File path inside the repository"),
            "branch": _string("Branch or ref (default main)"),
        },
        ("repo", "path"),
    ),
    _tool(
        "github_list_issues",
        "List issues (not pull requests) in a GitHub repository.",
        ConnectorType.GITHUB,
        "list_issues",
        {**_REPO_PROPERTIES, "state": _string("Issue state", ["open", "closed", "all"])},
        ("repo",),
    ),
    _tool(
        "github_list_pulls",
        "List pull requests in a GitHub repository.",
        ConnectorType.GITHUB,
        "list_pulls",
        {**_REPO_PROPERTIES, "state": _string("Pull request state", ["open", "closed", "all"])},
        ("repo",),
    ),
]

SLACK_TOOLS = [
    _tool(
        "slack_search_messages",
        "Search Slack messages.",
        ConnectorType.SLACK,
        "search_messages",
        {"query": _string("Search text")},
        ("query",),
    ),
    _tool("slack_list_channels", "List Slack channels.", ConnectorType.SLACK, "list_channels"),
    _tool(
        "slack_post_message",
        "Post a message to a Slack channel. Confirm the text with the user before calling.",
        ConnectorType.SLACK,
        "post_message",
        {"channel": _string("Channel id or name"), "text": _string("Message text")},
        ("channel", "text"),
    ),
]

WEBEX_TOOLS = [
    _tool("webex_list_rooms", "List recent Webex spaces.", ConnectorType.WEBEX, "list_rooms"),
    _tool(
        "webex_list_messages",
        "List recent messages in a Webex space, optionally filtered by text.",
        ConnectorType.WEBEX,
        "list_messages",
        {"room_id": _string("Webex space id"), "query": _string("Text to filter messages by")},
        ("room_id",),
    ),
    _tool(
        "webex_send_message",
        "Send a message to a Webex space. Confirm the text with the user before calling.",
        ConnectorType.WEBEX,
        "send_message",
        {"room_id": _string("Webex space id"), "text": _string("Markdown message text")},
        ("room_id", "text"),
    ),
]

NOTION_TOOLS = [
    _tool(
        "notion_search",
        "Search Notion pages and databases shared with the integration.",
        ConnectorType.NOTION,
        "search",
        {"query": _string("Search text")},
        ("query",),
    ),
    _tool("notion_list_databases", "List Notion databases.", ConnectorType.NOTION, "list_databases"),
]

DOCUMENT_TOOLS = [
    _tool(
        "file_search_documents",
        "Search the content of documents the user uploaded.",
        ConnectorType.FILE,
        "search_documents",
        {
            "query": _string("Search text"),
            "file_type": _string("Restrict to a source type, e.g. pdf or txt"),
        },
        ("query",),
    ),
    _tool(
        "file_list_documents",
        "List documents the user uploaded.",
        ConnectorType.FILE,
        "list_documents",
        {"limit": _integer("Maximum number of documents (default 20)")},
    ),
    _tool(
        "search_documents",
        "Search every indexed document source (uploads and synced pages) at once.",
        ConnectorType.FILE,
        "search_all",
        {
            "query": _string("Search text"),
            "source_type": _string("Restrict to one source type"),
        },
        ("query",),
        visible_with=DOCUMENT_SOURCES,
    ),
]

ALL_TOOLS: list[ToolSpec] = [
    *SERVICENOW_TOOLS,
    *JIRA_TOOLS,
    *CONFLUENCE_TOOLS,
    *GOOGLE_DRIVE_TOOLS,
    *GMAIL_TOOLS,
    *GITHUB_TOOLS,
    *SLACK_TOOLS,
    *WEBEX_TOOLS,
    *NOTION_TOOLS,
    *DOCUMENT_TOOLS,
]


class ToolCatalog:
    """Immutable lookup of tool specs by name."""

    def __init__(self, specs: list[ToolSpec] | None = None) -> None:
        specs = ALL_TOOLS if specs is None else specs
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise ValueError(f"Duplicate tool name in catalog: {spec.name}")
            self._specs[spec.name] = spec

    def get(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def __iter__(self):
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def names(self) -> list[str]:
        return list(self._specs)
