"""GitHub REST API adapter."""

import base64
from typing import Any

from nova.connectors.base import BaseConnector, action, truncate
from nova.core.exceptions import ValidationError
from nova.models.connectors import ConnectorType, Credentials

GITHUB_API = "https://api.github.com"
FILE_CONTENT_LIMIT = 5000


class GitHubConnector(BaseConnector):
    """Repositories, code search, files, issues and pull requests."""

    connector_type = ConnectorType.GITHUB

    def _headers(self, credentials: Credentials) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credentials.get('accessToken')}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _get(
        self, credentials: Credentials, path: str, params: dict[str, Any] | None = None
    ) -> Any:
        response = await self._request(
            "GET", f"{GITHUB_API}{path}", headers=self._headers(credentials), params=params
        )
        return response.json()

    def _repo_path(self, params: dict[str, Any]) -> str:
        owner = params.get("owner")
        repo = str(params.get("repo") or "")
        if not owner and "/" in repo:
            owner, repo = repo.split("/", 1)
        if not owner or not repo:
            raise ValidationError("Both owner and repo are required (or repo as 'owner/name')")
        return f"/repos/{owner}/{repo}"

    def _format_repo(self, repo: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": repo.get("name"),
            "full_name": repo.get("full_name"),
            "description": repo.get("description"),
            "language": repo.get("language"),
            "stars": repo.get("stargazers_count", 0),
            "private": repo.get("private", False),
            "updated_at": repo.get("updated_at"),
            "url": repo.get("html_url"),
        }

    async def test_connection(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        user = await self._get(credentials, "/user")
        return {"connected": True, "message": f"Connected to GitHub as {user.get('login')}"}

    @action(aliases=("getRepos", "listRepos"))
    async def list_repos(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        query = {
            "sort": params.get("sort") or "updated",
            "per_page": 20,
        }
        organization = params.get("organization") or credentials.get("organization")
        if organization:
            query["type"] = params.get("type") or "all"
            repos = await self._get(credentials, f"/orgs/{organization}/repos", query)
        else:
            query["type"] = params.get("type") or "owner"
            repos = await self._get(credentials, "/user/repos", query)
        formatted = [self._format_repo(r) for r in repos]
        return {"total": len(formatted), "repositories": formatted}

    @action(required=("repo",), aliases=("getRepo",))
    async def get_repo(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        repo = await self._get(credentials, self._repo_path(params))
        formatted = self._format_repo(repo)
        formatted.update(
            default_branch=repo.get("default_branch"),
            open_issues=repo.get("open_issues_count", 0),
            forks=repo.get("forks_count", 0),
        )
        return {"repository": formatted}

    @action(required=("query",), aliases=("searchRepos",))
    async def search_repos(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        q = str(params["query"])
        if params.get("language"):
            q += f" language:{params['language']}"
        body = await self._get(credentials, "/search/repositories", {"q": q, "per_page": 10})
        repos = [self._format_repo(r) for r in body.get("items", [])]
        return {"query": q, "total_count": body.get("total_count", 0), "repositories": repos}

    @action(required=("query",), aliases=("searchCode",))
    async def search_code(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        q = str(params["query"])
        if params.get("repo"):
            q += f" repo:{params['repo']}"
        if params.get("language"):
            q += f" language:{params['language']}"
        body = await self._get(credentials, "/search/code", {"q": q, "per_page": 10})
        matches = [
            {
                "name": item.get("name"),
                "path": item.get("path"),
                "repository": (item.get("repository") or {}).get("full_name"),
                "url": item.get("html_url"),
            }
            for item in body.get("items", [])
        ]
        return {"query": q, "total_count": body.get("total_count", 0), "results": matches}

    @action(required=("repo", "path"), aliases=("getFile", "getFileContent"))
    async def get_file(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        path = str(params["path"]).lstrip("/")
        body = await self._get(
            credentials,
            f"{self._repo_path(params)}/contents/{path}",
            {"ref": params.get("branch") or "main"},
        )
        if isinstance(body, list) or body.get("type") != "file":
            raise ValidationError(f"{path} is a directory, not a file")
        raw = base64.b64decode(body.get("content") or "").decode("utf-8", errors="replace")
        content, truncated = truncate(raw, FILE_CONTENT_LIMIT)
        return {
            "path": body.get("path"),
            "size": body.get("size"),
            "content": content,
            "truncated": truncated,
            "url": body.get("html_url"),
        }

    @action(required=("repo",), aliases=("listIssues", "getIssues"))
    async def list_issues(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        items = await self._get(
            credentials,
            f"{self._repo_path(params)}/issues",
            {"state": params.get("state") or "open", "per_page": 15},
        )
        issues = [
            {
                "number": i.get("number"),
                "title": i.get("title"),
                "state": i.get("state"),
                "author": (i.get("user") or {}).get("login"),
                "labels": [label.get("name") for label in i.get("labels", [])],
                "created_at": i.get("created_at"),
                "url": i.get("html_url"),
            }
            for i in items
            if "pull_request" not in i
        ]
        return {"total": len(issues), "issues": issues}

    @action(required=("repo",), aliases=("listPulls", "listPullRequests"))
    async def list_pulls(
        self, params: dict[str, Any], credentials: Credentials
    ) -> dict[str, Any]:
        items = await self._get(
            credentials,
            f"{self._repo_path(params)}/pulls",
            {"state": params.get("state") or "open", "per_page": 15},
        )
        pulls = [
            {
                "number": p.get("number"),
                "title": p.get("title"),
                "state": p.get("state"),
                "author": (p.get("user") or {}).get("login"),
                "draft": p.get("draft", False),
                "created_at": p.get("created_at"),
                "url": p.get("html_url"),
            }
            for p in items
        ]
        return {"total": len(pulls), "pull_requests": pulls}
