import asyncio
import sys
import unittest
from pathlib import Path

import httpx

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from swf_backend.clients.base import ClientError
from swf_backend.clients.github import GitHubClient
from swf_backend.input_schema.templates import (
    GitHubLocation,
    TemplateScanner,
    find_template_values,
    naming_variants,
    parse_github_url,
)

LOCATION = GitHubLocation(owner="acme", repo="templates", ref="main", path="skeleton")
CONTENTS = "/repos/acme/templates/contents/"


def _is_raw(request: httpx.Request) -> bool:
    return request.headers.get("accept") == "application/vnd.github.raw+json"


class GitHubUrlTests(unittest.TestCase):
    def test_parses_tree_and_api_urls(self):
        self.assertEqual(
            parse_github_url("https://github.com/acme/templates/tree/main/skeleton/service"),
            GitHubLocation("acme", "templates", "main", "skeleton/service"),
        )
        self.assertEqual(
            parse_github_url("https://api.github.com/repos/acme/templates/contents/skeleton?ref=v1.2"),
            GitHubLocation("acme", "templates", "v1.2", "skeleton"),
        )

    def test_rejects_other_urls(self):
        self.assertIsNone(parse_github_url("./skeleton"))
        self.assertIsNone(parse_github_url("https://gitlab.com/acme/templates/-/tree/main/skeleton"))
        self.assertIsNone(parse_github_url("https://api.github.com/repos/acme/templates/contents/skeleton"))


class PlaceholderTests(unittest.TestCase):
    def test_finds_values_placeholders(self):
        text = "name: ${{ values.component_id }}\nowner: {{values.owner}}\nother: {{ parameters.x }}"
        self.assertEqual(find_template_values(text), ["component_id", "owner"])

    def test_naming_variants(self):
        self.assertEqual(naming_variants("region"), ["region"])
        self.assertEqual(naming_variants("repo_name"), ["repo_name", "repoName"])
        self.assertEqual(naming_variants("repoName"), ["repoName", "repo_name"])


class TemplateScannerTests(unittest.TestCase):
    def _scan(self, handler, token=None, max_concurrency=8):
        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                scanner = TemplateScanner(GitHubClient(http, token=token), max_concurrency=max_concurrency)
                return await scanner.scan(LOCATION)

        return asyncio.run(run())

    def test_scans_paths_and_contents_under_folder(self):
        requested: list[str] = []
        files = {
            "skeleton/README.md": "Owned by ${{ values.owner }} in {{values.region}}",
            "skeleton/{{ values.region }}/main.tf": "bucket = \"{{ values.bucket }}\"",
        }

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            self.assertEqual(request.headers["authorization"], "Bearer ghp_test")
            if request.url.path == "/repos/acme/templates/git/trees/main":
                return httpx.Response(
                    200,
                    json={
                        "truncated": False,
                        "tree": [
                            {"path": "skeleton", "type": "tree"},
                            {"path": "skeleton/README.md", "type": "blob"},
                            {"path": "skeleton/{{ values.region }}", "type": "tree"},
                            {"path": "skeleton/{{ values.region }}/main.tf", "type": "blob"},
                            {"path": "other/notes.md", "type": "blob"},
                        ],
                    },
                )
            path = request.url.path[len(CONTENTS):]
            self.assertTrue(_is_raw(request))
            return httpx.Response(200, text=files[path])

        values = self._scan(handler, token="ghp_test")

        self.assertEqual(values, {"owner", "region", "bucket"})
        self.assertNotIn(CONTENTS + "other/notes.md", requested)

    def test_walks_folders_when_tree_is_truncated(self):
        listings = {
            "skeleton": [
                {"type": "file", "path": "skeleton/a.txt"},
                {"type": "dir", "path": "skeleton/sub"},
            ],
            "skeleton/sub": [{"type": "file", "path": "skeleton/sub/b.txt"}],
        }
        texts = {"skeleton/a.txt": "{{ values.first }}", "skeleton/sub/b.txt": "{{ values.second }}"}

        def handler(request: httpx.Request) -> httpx.Response:
            self.assertNotIn("authorization", request.headers)
            if "/git/trees/" in request.url.path:
                return httpx.Response(200, json={"truncated": True, "tree": []})
            path = request.url.path[len(CONTENTS):]
            if _is_raw(request):
                return httpx.Response(200, text=texts[path])
            return httpx.Response(200, json=listings[path])

        self.assertEqual(self._scan(handler), {"first", "second"})

    def test_file_failure_keeps_other_files(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if "/git/trees/" in request.url.path:
                return httpx.Response(
                    200,
                    json={
                        "tree": [
                            {"path": "skeleton/ok.txt", "type": "blob"},
                            {"path": "skeleton/{{ values.fromPath }}.txt", "type": "blob"},
                        ]
                    },
                )
            if request.url.path.endswith("ok.txt"):
                return httpx.Response(200, text="{{ values.kept }}")
            return httpx.Response(500, text="boom")

        self.assertEqual(self._scan(handler), {"kept", "fromPath"})

    def test_tree_failure_propagates(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        with self.assertRaises(ClientError):
            self._scan(handler)

    def test_concurrent_requests_are_bounded(self):
        in_flight = 0
        peak = 0
        blobs = [{"path": f"skeleton/f{i}.txt", "type": "blob"} for i in range(10)]

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            if "/git/trees/" in request.url.path:
                return httpx.Response(200, json={"tree": blobs})
            return httpx.Response(200, text="{{ values.name }}")

        self.assertEqual(self._scan(handler, max_concurrency=2), {"name"})
        self.assertLessEqual(peak, 2)


if __name__ == "__main__":
    unittest.main()
