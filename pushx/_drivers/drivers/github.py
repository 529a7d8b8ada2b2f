"""GitHub driver: commits the payload as a file in a repository.

Uses the git data API: resolve the base ref, optionally create a branch,
create a tree holding the file, commit it and move the ref. With
``--github-open-pr`` a pull request from the branch into the base branch
is opened afterwards; a random branch name is generated if none is given.

The file path may contain ``{{selector}}`` tokens resolved against the
payload.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, Optional

import requests

from pushx.exceptions import ConfigurationError, DeliveryError
from pushx.http_client import DEFAULT_TIMEOUT, get_default_headers
from pushx.logging_config import logger
from pushx.template import render

from ..protocol import BaseDriver, Setting, parse_bool

GITHUB_API_URL = "https://api.github.com"


class GitHubDriver(BaseDriver):
    name = "github"
    description = "Commit the payload as a file to a GitHub repository"

    SETTINGS = (
        Setting("api_url", "github-api-url", "GITHUB_API_URL", "GitHub API base URL", default=GITHUB_API_URL),
        Setting("repo", "github-repo", "GITHUB_REPO", "GitHub repo"),
        Setting("owner", "github-owner", "GITHUB_OWNER", "GitHub owner"),
        Setting("token", "github-token", "GITHUB_TOKEN", "GitHub token", secret=True),
        Setting("file", "github-file", "GITHUB_FILE", "Path of the file to write; may contain {{selector}} tokens"),
        Setting("ref", "github-ref", "GITHUB_REF", "Ref to commit on top of, e.g. refs/heads/main"),
        Setting(
            "open_pr",
            "github-open-pr",
            "GITHUB_OPEN_PR",
            "Open a pull request with the change",
            default=False,
            parser=parse_bool,
            is_bool=True,
        ),
        Setting("base_branch", "github-base-branch", "GITHUB_BASE_BRANCH", "Base branch for the change"),
        Setting("branch", "github-branch", "GITHUB_BRANCH", "Branch to create for the change"),
        Setting("commit_name", "github-commit-name", "GITHUB_COMMIT_NAME", "Commit author name"),
        Setting("commit_email", "github-commit-email", "GITHUB_COMMIT_EMAIL", "Commit author email"),
        Setting("commit_message", "github-commit-message", "GITHUB_COMMIT_MESSAGE", "Commit message"),
        Setting("pr_title", "github-pr-title", "GITHUB_PR_TITLE", "Pull request title (default: commit message)"),
        Setting("pr_body", "github-pr-body", "GITHUB_PR_BODY", "Pull request body", default=""),
    )

    def __init__(self) -> None:
        super().__init__()
        self._session: Optional[requests.Session] = None

    def init(self) -> None:
        super().init()
        self.require("owner", "repo", "token", "file", "commit_name", "commit_email", "commit_message")
        if not self.ref and not self.base_branch:
            raise ConfigurationError("github: --github-ref or --github-base-branch is required")
        if self.open_pr and not self.base_branch:
            raise ConfigurationError("github: --github-base-branch is required to open a pull request")
        self.api_url = self.api_url.rstrip("/")

        self._session = requests.Session()
        self._session.headers.update(get_default_headers(token=self.token))
        self._session.headers["Accept"] = "application/vnd.github+json"

    @property
    def _repo_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}"

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        assert self._session is not None
        url = f"{self._repo_url}{path}"
        try:
            response = self._session.request(method, url, json=payload, timeout=DEFAULT_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise DeliveryError(f"github: {method} {path} failed: {e}")

        if not response.ok:
            err_msg = f"github: {method} {path} failed. [{response.status_code}]"
            try:
                error_data = response.json()
                if "message" in error_data:
                    err_msg += f" - {error_data['message']}"
            except ValueError:
                pass
            raise DeliveryError(err_msg)
        return response.json()

    def _base_ref(self) -> str:
        ref = self.ref or f"refs/heads/{self.base_branch}"
        return ref[len("refs/") :] if ref.startswith("refs/") else ref

    def push(self, stream: BinaryIO) -> None:
        if self._session is None:
            raise DeliveryError("github: driver not initialized")

        payload = stream.read()
        path = render(payload, self.file)
        if not path:
            raise DeliveryError("github: resolved file path is empty")

        base_ref = self._base_ref()
        base = self._request("GET", f"/git/ref/{base_ref}")
        head_sha = base["object"]["sha"]
        target_ref = base_ref

        if self.open_pr and not self.branch:
            self.branch = str(uuid.uuid4())
        if self.branch:
            logger.info(f"Creating branch {self.branch} from {base_ref}")
            self._request("POST", "/git/refs", {"ref": f"refs/heads/{self.branch}", "sha": head_sha})
            target_ref = f"heads/{self.branch}"

        parent = self._request("GET", f"/git/commits/{head_sha}")
        tree = self._request(
            "POST",
            "/git/trees",
            {
                "base_tree": parent["tree"]["sha"],
                "tree": [
                    {
                        "path": path,
                        "mode": "100644",
                        "type": "blob",
                        "content": payload.decode("utf-8", errors="replace"),
                    }
                ],
            },
        )
        commit = self._request(
            "POST",
            "/git/commits",
            {
                "message": self.commit_message,
                "tree": tree["sha"],
                "parents": [head_sha],
                "author": {
                    "name": self.commit_name,
                    "email": self.commit_email,
                    "date": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                },
            },
        )
        self._request("PATCH", f"/git/refs/{target_ref}", {"sha": commit["sha"], "force": False})
        logger.info(f"Committed {path} to {self.owner}/{self.repo} ({commit['sha'][:7]})")

        if self.open_pr:
            pr = self._request(
                "POST",
                "/pulls",
                {
                    "title": self.pr_title or self.commit_message,
                    "head": f"{self.owner}:{self.branch}",
                    "base": self.base_branch,
                    "body": self.pr_body or "",
                    "maintainer_can_modify": True,
                },
            )
            logger.info(f"Pull request created: {pr.get('html_url')}")

    def cleanup(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
