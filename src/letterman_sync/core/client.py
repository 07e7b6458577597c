"""GitHub contents API client.

Three calls are used: read a file, create a file, and update a file
guarded by its current blob sha.  Every call is attempted once; there is
no retry.  ``requests`` failures are mapped onto the engine's error
types so callers never see a ``requests`` exception.
"""

import base64
import logging
import threading
from typing import Any
from urllib.parse import quote

import requests

from ..config import Config
from ..errors import (
    ClientBuilderError,
    DecodeError,
    NetworkError,
    RemoteServerError,
)
from ..sync.models import RemoteArticle, RemoteWrite
from ..validators import require_location

logger = logging.getLogger(__name__)

ACCEPT = "application/vnd.github+json"


class GithubClient:
    def __init__(self, config: Config):
        if not config.github_token:
            raise ClientBuilderError(
                "GitHub token is not configured. Set GITHUB_TOKEN."
            )
        if not config.github_api_url.startswith(("http://", "https://")):
            raise ClientBuilderError(
                f"Invalid GitHub API URL '{config.github_api_url}'"
            )
        self.config = config
        self.base_url = config.github_api_url.rstrip("/")
        self.timeout = config.request_timeout
        self._thread_local = threading.local()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.github_token}",
                "Accept": ACCEPT,
                "User-Agent": self.config.user_agent,
            }
        )
        return session

    def _contents_url(self, repository: str, path: str) -> str:
        return (
            f"{self.base_url}/repos/{repository}/contents/"
            f"{quote(path, safe='/')}"
        )

    def _request(
        self, method: str, url: str, payload: dict | None = None
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        session = self._get_session()
        logger.debug("%s %s", method, url)
        try:
            response = session.request(
                method, url, json=payload, timeout=self.timeout
            )
        except (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
        ) as e:
            raise ClientBuilderError(f"Invalid request URL {url}: {e}") from e
        except requests.exceptions.Timeout as e:
            raise NetworkError(
                f"Request to {url} timed out after {self.timeout}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise RemoteServerError(
                response.status_code, self._error_message(response)
            )

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(
                f"Invalid JSON from {url}: {e}"
            ) from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or ""
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason or ""

    def get_content(self, repository: str, path: str) -> RemoteArticle:
        """
        Fetch a file.  The content is returned still encoded; call
        ``RemoteArticle.decode()`` to get the text.

        Raises:
            UserError: invalid repository or path
            RemoteServerError: e.g. 404 when the file does not exist
            DecodeError: the path names a directory or the reply is malformed
        """
        require_location(repository, path)
        data = self._request("GET", self._contents_url(repository, path))
        if not isinstance(data, dict):
            raise DecodeError(f"'{path}' in {repository} is not a file")
        try:
            return RemoteArticle(
                name=data.get("name", ""),
                path=data["path"],
                content=data.get("content") or "",
                sha=data["sha"],
                url=data.get("url") or "",
                html_url=data.get("html_url"),
                encoding=data.get("encoding") or "base64",
            )
        except KeyError as e:
            raise DecodeError(f"Contents reply is missing {e}") from e

    def create_content(
        self, repository: str, path: str, message: str, body: bytes
    ) -> RemoteWrite:
        """Create a new file at ``path``."""
        require_location(repository, path)
        payload = {
            "message": message,
            "content": base64.b64encode(body).decode("ascii"),
        }
        data = self._request(
            "PUT", self._contents_url(repository, path), payload
        )
        return self._parse_write(data)

    def update_content(
        self,
        repository: str,
        path: str,
        message: str,
        body: bytes,
        expected_sha: str,
    ) -> RemoteWrite:
        """
        Replace the file at ``path``.  The server rejects the write
        (409) when the file's current sha is not ``expected_sha``.
        """
        require_location(repository, path)
        payload = {
            "message": message,
            "content": base64.b64encode(body).decode("ascii"),
            "sha": expected_sha,
        }
        data = self._request(
            "PUT", self._contents_url(repository, path), payload
        )
        return self._parse_write(data)

    @staticmethod
    def _parse_write(data: Any) -> RemoteWrite:
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, dict) or "sha" not in content:
            raise DecodeError("Write reply is missing the content object")
        return RemoteWrite(
            sha=content["sha"],
            path=content.get("path", ""),
            url=content.get("html_url") or content.get("url") or "",
        )
