"""File store backed by the GitHub repository contents API."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .base import (
    FileStore,
    NotFoundError,
    RemoteFileEntry,
    StoreError,
    StoredFile,
    VersionConflictError,
    WriteReceipt,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return response.text[:200]


class GitHubContentsStore(FileStore):
    """Read and write files of one repository branch through ``/repos/{repo}/contents``.

    The blob ``sha`` GitHub reports for a file is the version tag.  Writes send
    it back so GitHub rejects them when the file changed in between.
    """

    def __init__(
        self,
        repo: str,
        *,
        token: Optional[str] = None,
        branch: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not repo or "/" not in repo:
            raise StoreError(f"Repository must look like 'owner/name', got {repo!r}")
        self.repo = repo
        self.branch = branch or None
        headers = {"Accept": "application/vnd.github.v3+json"}
        if token:
            headers["Authorization"] = f"token {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # --------------------------------------------------------------- transport
    def _contents_url(self, path: str) -> str:
        return f"/repos/{self.repo}/contents/{quote(path.strip('/'), safe='/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, self._contents_url(path), **kwargs)
        except httpx.HTTPError as error:
            LOGGER.error("GitHub %s %s failed: %s", method, path, error)
            raise StoreError(f"GitHub request failed for {path}: {error}", details={"path": path}) from error

    def _raise_for_status(self, response: httpx.Response, path: str, action: str) -> None:
        status = response.status_code
        if status < 400:
            return
        message = _error_message(response)
        details = {"path": path, "status": status, "message": message}
        LOGGER.error("GitHub %s error (%s) for %s: %s", action, status, path, message)
        if status == 404:
            raise NotFoundError(f"File not found: {path} (404)", details=details)
        if status == 409 or (status == 422 and "sha" in message.lower()):
            raise VersionConflictError(
                f"Failed to {action} file: {path} (version conflict: {message})",
                details=details,
            )
        raise StoreError(f"Failed to {action} file: {path} (Status: {status}: {message})", details=details)

    def _write_body(self, content: Optional[str], message: str, sha: Optional[str]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": message}
        if content is not None:
            body["content"] = base64.b64encode(content.encode("utf-8")).decode("ascii")
        if sha:
            body["sha"] = sha
        if self.branch:
            body["branch"] = self.branch
        return body

    @staticmethod
    def _receipt(response: httpx.Response, path: str) -> WriteReceipt:
        try:
            commit = response.json()["commit"]["sha"]
        except (ValueError, KeyError, TypeError) as error:
            raise StoreError(f"GitHub response for {path} did not include a commit", details={"path": path}) from error
        return WriteReceipt(path=path, commit=str(commit))

    @staticmethod
    def _json_body(response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as error:
            LOGGER.error("GitHub returned a non-JSON body for %s: %s", path, response.text[:200])
            raise StoreError(f"GitHub response for {path} is not JSON", details={"path": path}) from error

    def _read_params(self) -> Dict[str, str]:
        return {"ref": self.branch} if self.branch else {}

    # -------------------------------------------------------------- operations
    async def get(self, path: str) -> StoredFile:
        response = await self._request("GET", path, params=self._read_params())
        self._raise_for_status(response, path, "get")
        data = self._json_body(response, path)
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise StoreError(f"Not a file: {path}", details={"path": path})
        encoded = data.get("content")
        sha = data.get("sha")
        if not isinstance(sha, str) or not sha:
            raise StoreError(f"GitHub response for {path} did not include a sha", details={"path": path})
        if data.get("encoding") != "base64" or not isinstance(encoded, str):
            raise StoreError(
                f"File content unavailable for {path} (encoding {data.get('encoding')!r})",
                details={"path": path},
            )
        try:
            content = base64.b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as error:
            raise StoreError(f"File is not UTF-8 text: {path}", details={"path": path}) from error
        return StoredFile(path=data.get("path", path), content=content, version_tag=sha)

    async def put(
        self,
        path: str,
        content: str,
        *,
        expected_version: Optional[str] = None,
        message: str,
    ) -> WriteReceipt:
        body = self._write_body(content, message, expected_version)
        response = await self._request("PUT", path, json=body)
        self._raise_for_status(response, path, "update" if expected_version else "create")
        return self._receipt(response, path)

    async def delete(self, path: str, *, expected_version: str, message: str) -> WriteReceipt:
        body = self._write_body(None, message, expected_version)
        response = await self._request("DELETE", path, json=body)
        self._raise_for_status(response, path, "delete")
        return self._receipt(response, path)

    async def list_files(self, path: str = "") -> List[RemoteFileEntry]:
        response = await self._request("GET", path, params=self._read_params())
        self._raise_for_status(response, path or "/", "list")
        data = self._json_body(response, path or "/")
        items = data if isinstance(data, list) else [data]
        files: List[RemoteFileEntry] = []
        for item in items:
            try:
                kind = item.get("type")
                item_path = str(item["path"])
                if kind == "file":
                    files.append(
                        RemoteFileEntry(
                            path=item_path,
                            name=item.get("name") or item_path.rsplit("/", 1)[-1],
                            size=int(item.get("size") or 0),
                            version_tag=str(item.get("sha") or ""),
                        )
                    )
            except (AttributeError, KeyError, TypeError, ValueError) as error:
                raise StoreError(
                    f"Unexpected listing entry under {path or '/'}: {item!r}",
                    details={"path": path or "/"},
                ) from error
            if kind == "dir":
                files.extend(await self.list_files(item_path))
        return files


__all__ = ["DEFAULT_API_URL", "GitHubContentsStore"]
