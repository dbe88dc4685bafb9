import asyncio
import json
import sys
import unittest
from pathlib import Path

import httpx

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from swf_backend.events.cloudevents import CloudEvent, CloudEventClient
from swf_backend.events.jira import JiraEvent, JiraService

ENGINE_URL = "http://engine.test:8899"


def _jira_event(event_type="issue_resolved", labels=None, status="Done") -> JiraEvent:
    payload = {
        "webhookEvent": "jira:issue_updated",
        "issue_event_type_name": event_type,
        "issue": {
            "id": "10001",
            "key": "OPS-7",
            "fields": {"labels": ["team-a", "workflowId=proc-123"] if labels is None else labels},
        },
        "changelog": {"items": [{"field": "status", "fromString": "In Progress", "toString": status}]},
    }
    return JiraEvent.model_validate(payload)


class CloudEventTests(unittest.TestCase):
    def test_headers_carry_attributes_and_extensions(self):
        event = CloudEvent(type="jira_webhook_callback", source="jira", extensions={"kogitoprocrefid": "proc-1"})
        headers = event.to_headers()

        self.assertEqual(headers["ce-specversion"], "1.0")
        self.assertEqual(headers["ce-type"], "jira_webhook_callback")
        self.assertEqual(headers["ce-source"], "jira")
        self.assertEqual(headers["ce-id"], event.id)
        self.assertEqual(headers["ce-kogitoprocrefid"], "proc-1")
        self.assertEqual(headers["content-type"], "application/json")

    def test_send_failure_is_reported_not_raised(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                return await CloudEventClient(http, ENGINE_URL).send(CloudEvent(type="t", source="s"))

        response = asyncio.run(run())

        self.assertFalse(response.success)
        self.assertIn("refused", response.error)


class JiraServiceTests(unittest.TestCase):
    def _handle(self, event, status_code=202):
        requests: list[httpx.Request] = []

        def handler(request):
            requests.append(request)
            return httpx.Response(status_code)

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                await JiraService(CloudEventClient(http, ENGINE_URL)).handle_event(event)

        asyncio.run(run())
        return requests

    def test_resolved_issue_wakes_workflow(self):
        requests = self._handle(_jira_event())

        self.assertEqual(len(requests), 1)
        request = requests[0]
        self.assertEqual((request.url.host, request.url.port), ("engine.test", 8899))
        self.assertEqual(request.headers["ce-type"], "jira_webhook_callback")
        self.assertEqual(request.headers["ce-source"], "jira")
        self.assertEqual(request.headers["ce-kogitoprocrefid"], "proc-123")
        body = json.loads(request.content)
        self.assertEqual(body["issue"]["key"], "OPS-7")
        self.assertEqual(body["changelog"]["items"][0]["toString"], "Done")

    def test_resolved_status_is_accepted(self):
        self.assertEqual(len(self._handle(_jira_event(status="Resolved"))), 1)

    def test_ignored_events(self):
        cases = {
            "empty": None,
            "commented": _jira_event(event_type="issue_commented"),
            "no label": _jira_event(labels=["team-a"]),
            "still open": _jira_event(status="In Review"),
        }
        for name, event in cases.items():
            with self.subTest(name):
                self.assertEqual(self._handle(event), [])

    def test_engine_rejection_is_logged(self):
        with self.assertLogs("swf_backend.events.jira", level="ERROR"):
            self._handle(_jira_event(), status_code=500)


if __name__ == "__main__":
    unittest.main()
