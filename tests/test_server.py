"""Tests for the HTTP and stdio channels."""

import io
import json

import pytest
from fastapi.testclient import TestClient

from requirements_mcp.observability import MCPLogger
from requirements_mcp.protocol import MCPProcessor
from requirements_mcp.server import _parse_args, _stdio_actor, create_app, init_database, run_stdio

from conftest import ADMIN_TOKEN, COMMENTER_TOKEN, USER_TOKEN


@pytest.fixture
def processor(db_manager, test_config):
    return MCPProcessor(db_manager=db_manager, mcp_logger=MCPLogger(), config=test_config)


@pytest.fixture
def client(processor, test_config):
    return TestClient(create_app(processor=processor, config=test_config))


def rpc(method, params=None, id=1):
    message = {"jsonrpc": "2.0", "id": id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def auth(token):
    return {"Authorization": f"Bearer {token}"}


class TestHttpChannel:
    def test_ping(self, client, test_config):
        response = client.post(test_config.mcp_path, json=rpc("ping"), headers=auth(USER_TOKEN))

        assert response.status_code == 200
        assert response.json() == {"jsonrpc": "2.0", "id": 1, "result": {}}
        assert response.headers["X-Correlation-ID"].startswith("corr-")

    def test_incoming_correlation_id_is_echoed(self, client, test_config):
        response = client.post(
            test_config.mcp_path,
            json=rpc("nope"),
            headers={**auth(USER_TOKEN), "X-Correlation-ID": "client-42"},
        )

        assert response.headers["X-Correlation-ID"] == "client-42"
        assert response.json()["error"]["data"]["correlation_id"] == "client-42"

    def test_malformed_correlation_id_replaced(self, client, test_config):
        response = client.post(
            test_config.mcp_path,
            json=rpc("ping"),
            headers={**auth(USER_TOKEN), "X-Correlation-ID": "bad id with spaces"},
        )
        assert response.headers["X-Correlation-ID"].startswith("corr-")

    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "Bearer wrong-token"}, {"Authorization": f"Basic {ADMIN_TOKEN}"}],
    )
    def test_unauthenticated(self, client, test_config, headers):
        response = client.post(test_config.mcp_path, json=rpc("tools/list"), headers=headers)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == -32003

    def test_unauthenticated_notification_only_request(self, client, test_config):
        response = client.post(
            test_config.mcp_path, json={"jsonrpc": "2.0", "method": "notifications/initialized"}
        )

        assert response.status_code == 401
        assert response.content == b""
        assert response.headers["X-Correlation-ID"].startswith("corr-")

    def test_unauthenticated_malformed_frame(self, client, test_config):
        response = client.post(test_config.mcp_path, json={"jsonrpc": "1.0", "id": 7, "method": "ping"})

        assert response.status_code == 401
        assert response.json()["id"] == 7
        assert response.json()["error"]["code"] == -32003

    def test_notification_only_request(self, client, test_config):
        response = client.post(
            test_config.mcp_path,
            json={"jsonrpc": "2.0", "method": "notifications/initialized"},
            headers=auth(USER_TOKEN),
        )

        assert response.status_code == 202
        assert response.content == b""

    def test_batch(self, client, test_config):
        response = client.post(
            test_config.mcp_path,
            json=[rpc("ping", id=1), rpc("tools/list", id=2)],
            headers=auth(ADMIN_TOKEN),
        )

        body = response.json()
        assert [item["id"] for item in body] == [1, 2]
        assert len(body[1]["result"]["tools"]) == 22

    def test_parse_error(self, client, test_config):
        response = client.post(
            test_config.mcp_path,
            content=b"{oops",
            headers={**auth(USER_TOKEN), "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json()["error"]["code"] == -32700

    def test_commenter_can_read_but_not_write(self, client, test_config):
        read = client.post(test_config.mcp_path, json=rpc("resources/list"), headers=auth(COMMENTER_TOKEN))
        write = client.post(
            test_config.mcp_path,
            json=rpc("tools/call", {"name": "create_epic", "arguments": {"title": "x", "priority": 1}}),
            headers=auth(COMMENTER_TOKEN),
        )

        assert "result" in read.json()
        assert write.json()["error"]["code"] == -32004

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected", "version": "1.0.0"}

    def test_health_unavailable(self, client, processor, monkeypatch):
        monkeypatch.setattr(processor.db_manager, "verify_connection", lambda: False)

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


@pytest.mark.asyncio
class TestStdioChannel:
    async def test_line_protocol(self, processor, admin_actor):
        stdin = io.StringIO(
            "\n".join(
                [
                    json.dumps(rpc("ping", id=1)),
                    "",
                    json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
                    json.dumps(rpc("nope", id=2)),
                ]
            )
            + "\n"
        )
        stdout = io.StringIO()

        await run_stdio(processor, admin_actor, stdin=stdin, stdout=stdout)

        lines = [json.loads(line) for line in stdout.getvalue().splitlines()]
        assert [line["id"] for line in lines] == [1, 2]
        assert lines[0]["result"] == {}
        assert lines[1]["error"]["code"] == -32601

    async def test_without_actor_everything_is_refused(self, processor):
        stdin = io.StringIO(json.dumps(rpc("ping")) + "\n")
        stdout = io.StringIO()

        await run_stdio(processor, None, stdin=stdin, stdout=stdout)

        assert json.loads(stdout.getvalue())["error"]["code"] == -32003


class TestEntryPoint:
    def test_stdio_actor_from_token(self, test_config):
        actor = _stdio_actor(test_config)
        assert actor.username == "admin"

    def test_stdio_actor_missing_token(self, test_config):
        test_config.stdio_token = None
        assert _stdio_actor(test_config) is None

    def test_parse_args(self):
        args = _parse_args(["--transport", "stdio", "--port", "9000"])
        assert args.transport == "stdio"
        assert args.port == 9000
        assert args.init_db is False

    def test_init_database_is_idempotent(self, db_manager):
        assert init_database() == {}
        assert init_database() == {}

    def test_demo_data(self, db_manager):
        counts = init_database(seed_demo=True)

        assert counts["epics"] == 5
        assert counts["user_stories"] == 15
        assert counts["acceptance_criteria"] >= counts["user_stories"]
        assert init_database(seed_demo=True) == {}
