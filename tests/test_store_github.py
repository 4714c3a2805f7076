from __future__ import annotations

import asyncio
import base64
import json
from typing import Dict, List

import httpx
import pytest

from patchbot.directives import DeleteFileDirective, InsertDirective
from patchbot.executor import apply_batch
from patchbot.store import GitHubContentsStore, NotFoundError, StoreError, VersionConflictError


def _encode(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class FakeGitHub:
    """Minimal contents API keyed by path, recording every request."""

    def __init__(self, files: Dict[str, str]) -> None:
        self.files = {path: (content, f"sha-{index}") for index, (path, content) in enumerate(files.items())}
        self.requests: List[httpx.Request] = []
        self.commits = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        prefix = "/repos/octo/demo/contents/"
        path = request.url.path[len(prefix):] if request.url.path.startswith(prefix) else ""
        if request.method == "GET":
            return self._get(path)
        body = json.loads(request.content)
        current = self.files.get(path)
        if request.method == "PUT":
            if current is not None and body.get("sha") != current[1]:
                return httpx.Response(409, json={"message": f"{path} does not match {body.get('sha')}"})
            if current is None and "sha" in body:
                return httpx.Response(422, json={"message": "Invalid request. \"sha\" wasn't supplied."})
            self.commits += 1
            self.files[path] = (base64.b64decode(body["content"]).decode("utf-8"), f"sha-new-{self.commits}")
            return httpx.Response(200, json={"commit": {"sha": f"commit-{self.commits}"}})
        if request.method == "DELETE":
            if current is None:
                return httpx.Response(404, json={"message": "Not Found"})
            if body.get("sha") != current[1]:
                return httpx.Response(409, json={"message": "sha mismatch"})
            del self.files[path]
            self.commits += 1
            return httpx.Response(200, json={"commit": {"sha": f"commit-{self.commits}"}})
        return httpx.Response(405)

    def _get(self, path: str) -> httpx.Response:
        if path in self.files:
            content, sha = self.files[path]
            return httpx.Response(
                200,
                json={"type": "file", "path": path, "sha": sha, "encoding": "base64", "content": _encode(content)},
            )
        children = sorted({p[len(path):].lstrip("/").split("/")[0] for p in self.files if p.startswith(path)})
        if not children:
            return httpx.Response(404, json={"message": "Not Found"})
        listing = []
        for child in children:
            full = f"{path}/{child}".strip("/")
            if full in self.files:
                listing.append({"type": "file", "path": full, "name": child, "size": 1, "sha": self.files[full][1]})
            else:
                listing.append({"type": "dir", "path": full, "name": child})
        return httpx.Response(200, json=listing)


def _store(fake: FakeGitHub, **kwargs) -> GitHubContentsStore:
    return GitHubContentsStore(
        "octo/demo",
        token="secret",
        transport=httpx.MockTransport(fake),
        **kwargs,
    )


def test_get_decodes_content_and_sends_auth_headers() -> None:
    fake = FakeGitHub({"src/app.py": "print('hi')\n"})

    stored = asyncio.run(_store(fake, branch="main").get("src/app.py"))

    assert stored.content == "print('hi')\n"
    assert stored.version_tag == "sha-0"
    request = fake.requests[0]
    assert request.headers["Authorization"] == "token secret"
    assert request.headers["Accept"] == "application/vnd.github.v3+json"
    assert request.url.params["ref"] == "main"


def test_missing_file_raises_not_found() -> None:
    with pytest.raises(NotFoundError, match="404"):
        asyncio.run(_store(FakeGitHub({})).get("nope.txt"))


def test_update_sends_version_tag_and_branch() -> None:
    fake = FakeGitHub({"a.txt": "one\n"})

    receipt = asyncio.run(_store(fake, branch="dev").put("a.txt", "two\n", expected_version="sha-0", message="edit"))

    body = json.loads(fake.requests[-1].content)
    assert body == {"message": "edit", "content": _encode("two\n"), "sha": "sha-0", "branch": "dev"}
    assert receipt.commit == "commit-1"
    assert fake.files["a.txt"][0] == "two\n"


def test_create_omits_version_tag() -> None:
    fake = FakeGitHub({})

    asyncio.run(_store(fake).put("docs/new.md", "# New\n", message="add"))

    body = json.loads(fake.requests[-1].content)
    assert "sha" not in body
    assert "branch" not in body
    assert fake.files["docs/new.md"][0] == "# New\n"


def test_stale_version_tag_is_a_conflict() -> None:
    fake = FakeGitHub({"a.txt": "one\n"})

    with pytest.raises(VersionConflictError):
        asyncio.run(_store(fake).put("a.txt", "two\n", expected_version="sha-old", message="edit"))
    assert fake.files["a.txt"][0] == "one\n"


def test_unprocessable_sha_is_a_conflict() -> None:
    fake = FakeGitHub({})

    with pytest.raises(VersionConflictError):
        asyncio.run(_store(fake).put("gone.txt", "x", expected_version="sha-0", message="edit"))


def test_delete_sends_json_body() -> None:
    fake = FakeGitHub({"old.txt": "bye\n"})

    receipt = asyncio.run(_store(fake).delete("old.txt", expected_version="sha-0", message="remove"))

    request = fake.requests[-1]
    assert request.method == "DELETE"
    assert json.loads(request.content) == {"message": "remove", "sha": "sha-0"}
    assert receipt.commit == "commit-1"
    assert "old.txt" not in fake.files


def test_server_errors_become_store_errors() -> None:
    store = GitHubContentsStore(
        "octo/demo",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"message": "boom"})),
    )

    with pytest.raises(StoreError, match="boom") as excinfo:
        asyncio.run(store.get("a.txt"))
    assert not isinstance(excinfo.value, NotFoundError)


def test_transport_failures_become_store_errors() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = GitHubContentsStore("octo/demo", transport=httpx.MockTransport(refuse))

    with pytest.raises(StoreError, match="connection refused"):
        asyncio.run(store.get("a.txt"))


def test_list_files_walks_directories() -> None:
    fake = FakeGitHub({"README.md": "x", "src/a.py": "a", "src/pkg/b.py": "b"})

    entries = asyncio.run(_store(fake).list_files())

    assert [entry.path for entry in entries] == ["README.md", "src/a.py", "src/pkg/b.py"]
    assert entries[1].name == "a.py"


def test_repository_name_must_include_owner() -> None:
    with pytest.raises(StoreError):
        GitHubContentsStore("demo")


def test_non_json_bodies_become_store_errors() -> None:
    store = GitHubContentsStore(
        "octo/demo",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>proxy login</html>")),
    )

    with pytest.raises(StoreError, match="not JSON"):
        asyncio.run(store.get("a.txt"))
    with pytest.raises(StoreError, match="not JSON"):
        asyncio.run(store.list_files())


def test_file_payload_without_sha_is_a_store_error() -> None:
    payload = {"type": "file", "path": "a.txt", "encoding": "base64", "content": _encode("x")}
    store = GitHubContentsStore(
        "octo/demo",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload)),
    )

    with pytest.raises(StoreError, match="sha"):
        asyncio.run(store.get("a.txt"))


def test_malformed_listing_entries_are_store_errors() -> None:
    store = GitHubContentsStore(
        "octo/demo",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[{"type": "file"}, "junk"])),
    )

    with pytest.raises(StoreError, match="Unexpected listing entry"):
        asyncio.run(store.list_files())


def test_malformed_response_fails_only_its_own_batch_item() -> None:
    fake = FakeGitHub({"other.txt": "keep\n"})

    def transport(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/bad.txt"):
            return httpx.Response(200, text="<html>proxy login</html>")
        return fake(request)

    store = GitHubContentsStore("octo/demo", transport=httpx.MockTransport(transport))
    directives = [
        DeleteFileDirective(file="bad.txt"),
        InsertDirective(file="other.txt", line=2, code="added"),
    ]

    results = asyncio.run(apply_batch(directives, store))

    assert [(result.file, result.success) for result in results] == [("bad.txt", False), ("other.txt", True)]
    assert "not JSON" in results[0].error
    assert fake.files["other.txt"][0] == "keep\nadded\n"
