import json

import pytest
from fastapi.testclient import TestClient

from astock_research.api.app import create_app
from conftest import MOUTAI_RESPONSES, FakeLLM, FakeTransport, build_workflow, envelope


def _events(response):
    return [
        json.loads(chunk[len("data: "):])
        for chunk in response.text.split("\n\n")
        if chunk.startswith("data: ")
    ]


@pytest.fixture
def client(config, moutai_transport, moutai_search):
    workflow = build_workflow(config, moutai_transport, moutai_search, FakeLLM("市盈率是股价与每股收益之比。"))
    with TestClient(create_app(config, workflow)) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["llm"] is True


@pytest.mark.parametrize(
    "body, error",
    [
        ({"reportDate": "20240331"}, "股票代码不能为空"),
        ({"stockCode": "600519.SH"}, "报告日期不能为空"),
    ],
)
def test_research_report_requires_code_and_date(client, body, error):
    response = client.post("/api/research-report", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": error}


def test_research_report_rejects_malformed_input(client):
    assert client.post("/api/research-report", json={"stockCode": "茅台", "reportDate": "20240331"}).status_code == 400
    assert client.post("/api/research-report", json={"stockCode": "600519.SH", "reportDate": "soon"}).status_code == 400


def test_research_report_streams_workflow(client):
    response = client.post(
        "/api/research-report",
        json={
            "stockCode": "600519.SH",
            "reportDate": "20240331",
            "reportType": "一季报",
            "additionalInfo": [{"title": "研报", "content": "摘要", "url": "https://example.com"}],
        },
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _events(response)
    assert events[0]["type"] == "workflow-start"
    assert events[-1]["type"] == "workflow-complete"


def test_research_report_failure_is_streamed(config, moutai_search):
    responses = dict(MOUTAI_RESPONSES)
    responses["stock_basic"] = envelope(["ts_code", "name"], [])
    workflow = build_workflow(config, FakeTransport(responses), moutai_search)
    with TestClient(create_app(config, workflow)) as test_client:
        response = test_client.post("/api/research-report", json={"stockCode": "600519.SH", "reportDate": "20240331"})
    events = _events(response)
    assert [event["type"] for event in events] == ["workflow-start", "workflow-error"]
    assert "600519.SH" in events[-1]["error"]


def test_chat_routes_stock_names_to_report_tool(client):
    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "贵州茅台"}]})
    events = _events(response)
    assert events[0]["display"]["kind"] == "search_results"
    assert events[-1]["type"] == "workflow-complete"


def test_chat_answers_general_questions_with_model(client):
    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "请问什么是市盈率"}]})
    assert _events(response) == [{"type": "text", "content": "市盈率是股价与每股收益之比。"}]


def test_chat_respects_disabled_research(client):
    response = client.post(
        "/api/chat",
        json={"messages": [{"role": "user", "content": "贵州茅台"}], "researchEnabled": False},
    )
    assert _events(response)[0]["type"] == "text"


def test_chat_without_model_reports_error(config, moutai_transport):
    with TestClient(create_app(config, build_workflow(config, moutai_transport))) as test_client:
        response = test_client.post("/api/chat", json={"messages": [{"role": "user", "content": "你好啊，今天市场怎么样？"}]})
    events = _events(response)
    assert events[0]["type"] == "workflow-error"
    assert events[0]["error"] == "未配置语言模型"


def test_chat_requires_a_user_message(client):
    assert client.post("/api/chat", json={"messages": []}).status_code == 400
