"""GitHub issue tracker used to escalate proposals that need human review."""

from typing import Protocol

import httpx
import structlog

from edgecal.config import settings
from edgecal.schemas.agent import IssueReference

logger = structlog.get_logger()


class IssueTracker(Protocol):
    async def create_issue(
        self, title: str, body: str, labels: list[str]
    ) -> IssueReference | None: ...


class GitHubIssueTracker:
    """Client for the GitHub issues API."""

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        repo: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token if token is not None else settings.github_token
        self.repo = repo if repo is not None else settings.github_repo
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.token and self.repo)

    async def create_issue(
        self, title: str, body: str, labels: list[str]
    ) -> IssueReference | None:
        """
        Open an issue in the configured repository.

        Returns:
            The issue URL and number, or None when the tracker is not
            configured or the request fails
        """
        if not self.configured:
            logger.info("GitHub tracker not configured, skipping issue creation")
            return None

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    f"{self.BASE_URL}/repos/{self.repo}/issues",
                    headers={
                        "Authorization": f"token {self.token}",
                        "Accept": "application/vnd.github.v3+json",
                    },
                    json={"title": title, "body": body, "labels": labels},
                    timeout=30.0,
                )
                response.raise_for_status()
                issue = response.json()
        except httpx.HTTPError as e:
            logger.error("GitHub issue creation failed", title=title, error=str(e))
            return None
        except ValueError as e:
            logger.error("GitHub response was not JSON", error=str(e))
            return None

        try:
            reference = IssueReference(url=issue["html_url"], number=issue["number"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error("GitHub response missing issue fields", error=str(e))
            return None

        logger.info("Created GitHub issue", number=reference.number, url=reference.url)
        return reference
