import asyncio
import sys
import unittest
from pathlib import Path

import httpx

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from swf_backend.catalog.provider import MemoryEntityConnection, ServerlessWorkflowEntityProvider
from swf_backend.clients.engine import EngineClient

ENGINE_URL = "http://engine.test:8899"

ENGINE_OPEN_API = """
openapi: 3.0.3
paths:
  /jsongreet:
    post:
      requestBody:
        content:
          application/json:
            schema:
              type: object
              required: [name]
              properties:
                name:
                  type: string
"""


def _engine_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/management/processes":
        return httpx.Response(200, json=["jsongreet", "yamlgreet"])
    if path == "/management/processes/jsongreet":
        return httpx.Response(200, json={"id": "jsongreet", "name": "Greeting", "description": "Say hello"})
    if path == "/management/processes/yamlgreet":
        return httpx.Response(200, json={"id": "yamlgreet", "name": "YAML greeting"})
    if path == "/q/openapi":
        return httpx.Response(200, text=ENGINE_OPEN_API)
    return httpx.Response(404)


class EntityProviderTests(unittest.TestCase):
    def test_refresh_publishes_full_mutation(self):
        connection = MemoryEntityConnection()

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(_engine_handler)) as http:
                engine = EngineClient(http, ENGINE_URL, backoff_seconds=0, max_errors=1)
                provider = ServerlessWorkflowEntityProvider(engine, connection, env="test", owner="team-a")
                return await provider.refresh()

        with self.assertLogs("swf_backend.catalog.provider", level="ERROR") as logs:
            count = asyncio.run(run())

        self.assertEqual(count, 2)
        self.assertEqual(connection.mutation.type, "full")
        self.assertEqual(
            {item["locationKey"] for item in connection.mutation.entities}, {"swf-provider:test"}
        )

        greet, yaml_greet = connection.entities
        self.assertEqual(greet["apiVersion"], "scaffolder.backstage.io/v1beta3")
        self.assertEqual(greet["kind"], "Template")
        self.assertEqual(greet["metadata"]["name"], "jsongreet")
        self.assertEqual(greet["metadata"]["tags"], ["experimental", "swf"])
        self.assertEqual(
            greet["metadata"]["annotations"]["backstage.io/managed-by-location"], f"url:{ENGINE_URL}"
        )
        self.assertEqual(greet["spec"]["owner"], "team-a")
        self.assertEqual(greet["spec"]["type"], "serverless-workflow")
        self.assertEqual(greet["spec"]["steps"], [])
        self.assertEqual(greet["spec"]["parameters"]["required"], ["name"])
        self.assertIn("name", greet["spec"]["parameters"]["properties"])

        # no schema for yamlgreet: published without parameters, error logged
        self.assertNotIn("parameters", yaml_greet["spec"])
        self.assertTrue(any("yamlgreet" in line for line in logs.output))

    def test_malformed_round_does_not_stop_polling(self):
        connection = MemoryEntityConnection()
        rounds = {"n": 0}

        async def run():
            second_round = asyncio.Event()

            def handler(request):
                if request.url.path == "/management/processes":
                    rounds["n"] += 1
                    if rounds["n"] == 1:
                        return httpx.Response(200, text="<html>starting</html>")
                    second_round.set()
                return _engine_handler(request)

            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                engine = EngineClient(http, ENGINE_URL, backoff_seconds=0, max_errors=1)
                provider = ServerlessWorkflowEntityProvider(engine, connection)
                task = asyncio.create_task(provider.run(0))
                await asyncio.wait_for(second_round.wait(), timeout=5)
                # let the second round finish publishing
                for _ in range(50):
                    if connection.mutation is not None:
                        break
                    await asyncio.sleep(0.01)
                alive = not task.done()
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                return alive

        with self.assertLogs("swf_backend.catalog.provider", level="ERROR") as logs:
            alive = asyncio.run(run())

        self.assertTrue(alive)
        self.assertGreaterEqual(rounds["n"], 2)
        self.assertTrue(any("unexpected engine response" in line for line in logs.output))
        self.assertEqual(len(connection.entities), 2)

    def test_template_parameters_without_paths(self):
        provider = ServerlessWorkflowEntityProvider(None, MemoryEntityConnection())
        with self.assertLogs("swf_backend.catalog.provider", level="ERROR"):
            self.assertIsNone(provider.template_parameters("jsongreet", {}))


if __name__ == "__main__":
    unittest.main()
