"""GitHub publisher: repository creation over REST and pushing with git."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
import time
from urllib.parse import quote, urlsplit, urlunsplit

import requests
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gencode.core.exceptions import PublisherError

logger = structlog.get_logger(__name__)

COMMIT_AUTHOR_NAME = "Gen Code Bot"
COMMIT_AUTHOR_EMAIL = "bot@gencode.dev"
DEFAULT_BRANCH = "main"


@dataclass(frozen=True)
class Repository:
    """A created repository."""

    name: str
    html_url: str
    clone_url: str


class GitHubPublisher:
    """
    Create repositories and push generated projects to them.

    Both operations stop when the caller's deadline does: REST requests never
    outlive the `timeout` passed to create_repository, and a git process is
    killed when push_directory is cancelled.
    """

    def __init__(
        self,
        token: str,
        owner: str = "",
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        """
        Args:
            token: Personal access token with `repo` scope
            owner: Default org for new repositories; empty means the
                authenticated user
            api_url: GitHub REST API base URL
            timeout: Per-request timeout in seconds
            session: HTTP session, mainly for tests
        """
        self.token = token
        self.owner = owner
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    async def create_repository(
        self,
        name: str,
        description: str = "",
        org: str | None = None,
        private: bool = False,
        timeout: float | None = None,
    ) -> Repository:
        """
        Create a repository under org, the default owner, or the user.

        Args:
            timeout: Overall budget in seconds, retries included; no request
                is sent once it is spent
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        return await asyncio.to_thread(
            self._create_repository, name, description, org or self.owner, private, deadline
        )

    async def push_directory(
        self, clone_url: str, path: Path, commit_message: str
    ) -> None:
        """Initialise a git repository in path, commit everything and push it."""
        path = Path(path)
        if not path.is_dir():
            raise PublisherError(f"{path} is not a directory")

        author = [
            "-c",
            f"user.name={COMMIT_AUTHOR_NAME}",
            "-c",
            f"user.email={COMMIT_AUTHOR_EMAIL}",
        ]
        await self._git(path, ["init", "--initial-branch", DEFAULT_BRANCH])
        await self._git(path, ["add", "--all"])
        await self._git(path, [*author, "commit", "--message", commit_message])
        await self._git(
            path, ["push", self._authenticated_url(clone_url), f"HEAD:{DEFAULT_BRANCH}"]
        )
        logger.info("Files pushed", clone_url=clone_url, path=str(path))

    @retry(
        retry=retry_if_exception_type(requests.ConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    def _post(self, url: str, payload: dict, deadline: float | None) -> requests.Response:
        return self.session.post(url, json=payload, timeout=self._request_timeout(deadline))

    def _request_timeout(self, deadline: float | None) -> float:
        if deadline is None:
            return self.timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise PublisherError("deadline exceeded before GitHub request was sent")
        return min(self.timeout, remaining)

    def _create_repository(
        self,
        name: str,
        description: str,
        owner: str,
        private: bool,
        deadline: float | None = None,
    ) -> Repository:
        if owner:
            url = f"{self.api_url}/orgs/{quote(owner)}/repos"
        else:
            url = f"{self.api_url}/user/repos"
        payload = {
            "name": name,
            "description": description,
            "private": private,
            "auto_init": False,
        }

        try:
            response = self._post(url, payload, deadline)
        except requests.RequestException as e:
            raise PublisherError(f"failed to reach GitHub: {e}") from e

        if response.status_code == 404:
            if owner:
                raise PublisherError(
                    f"organization or user '{owner}' not found, or token lacks permission. "
                    "Check: 1) Organization exists 2) You are a member "
                    "3) Token has 'repo' and 'admin:org' permissions. "
                    "To create under your personal account, remove GITHUB_OWNER"
                )
            raise PublisherError(
                "authentication failed or token lacks 'repo' permission"
            )
        if response.status_code >= 400:
            raise PublisherError(
                f"GitHub API returned {response.status_code}: {_error_message(response)}"
            )

        data = response.json()
        repository = Repository(
            name=data["name"], html_url=data["html_url"], clone_url=data["clone_url"]
        )
        logger.info(
            "Repository created",
            repo=repository.name,
            owner=owner or "<authenticated user>",
            html_url=repository.html_url,
        )
        return repository

    def _authenticated_url(self, clone_url: str) -> str:
        parts = urlsplit(clone_url)
        netloc = f"x-access-token:{quote(self.token, safe='')}@{parts.hostname}"
        if parts.port:
            netloc += f":{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    async def _git(self, cwd: Path, args: list[str]) -> str:
        """
        Run a git command and return its stdout.

        The process is killed if the caller is cancelled while it runs.

        Raises:
            PublisherError: If git is missing or the command fails; the token
                is masked in the message
        """
        command = "commit" if args[0] == "-c" else args[0]
        try:
            process = await asyncio.create_subprocess_exec(
                "git",
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise PublisherError("git executable not found") from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            logger.warning("git process killed", command=command, cwd=str(cwd))
            raise

        if process.returncode != 0:
            detail = (stderr or stdout or b"").decode(errors="replace").strip()
            raise PublisherError(f"git {command} failed: {self._mask(detail)}")
        return stdout.decode(errors="replace")

    def _mask(self, text: str) -> str:
        return text.replace(self.token, "***") if self.token else text


def _error_message(response: requests.Response) -> str:
    try:
        return response.json().get("message", response.text)
    except ValueError:
        return response.text
