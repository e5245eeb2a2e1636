import json
from datetime import date

import pytest

from astock_research.streaming.sink import RecordingSink
from astock_research.workflows.tool import ResearchReportTool
from conftest import FakeLLM, FakeSearch, build_workflow


class PickySearch(FakeSearch):
    """Fails the pre-search queries but still answers ticker lookups."""

    async def search(self, query, max_results=5, depth="advanced"):
        if "股票代码" not in query:
            self.queries.append(query)
            raise RuntimeError("quota exceeded")
        return await super().search(query, max_results, depth)


@pytest.mark.anyio
async def test_tool_streams_search_panels_then_workflow(config, moutai_transport, moutai_search):
    llm = FakeLLM()
    workflow = build_workflow(config, moutai_transport, moutai_search, llm)
    sink = RecordingSink()

    await ResearchReportTool(workflow, moutai_search).execute(
        "贵州茅台", sink, report_date=date(2024, 3, 31), model="poe:gpt-4o"
    )

    first, second = sink.messages[0], sink.messages[1]
    assert first["display"]["kind"] == "search_results"
    assert first["display"]["query"] == "贵州茅台 股票 公司简介 行业分析"
    assert second["display"]["query"] == "贵州茅台 最新研报 投资分析 财务数据"
    assert len(json.loads(second["display"]["results"])) == 5
    assert sink.messages[2]["type"] == "workflow-start"
    assert sink.types()[-1] == "workflow-complete"

    payload = json.loads(llm.calls[0]["messages"][1]["content"].split("\n\n", 1)[1])
    assert [item["title"] for item in payload["additionalInfo"]] == ["研报0", "研报1", "研报2"]
    assert llm.calls[0]["model"] == "gpt-4o"


@pytest.mark.anyio
async def test_pre_search_failures_are_skipped(config, moutai_transport, moutai_search):
    search = PickySearch(moutai_search.hits)
    workflow = build_workflow(config, moutai_transport, search)
    sink = RecordingSink()

    await ResearchReportTool(workflow, search).execute("贵州茅台", sink, report_date=date(2024, 3, 31))

    assert sink.types()[0] == "workflow-start"
    assert sink.types()[-1] == "workflow-complete"
    assert len(search.queries) == 3


@pytest.mark.anyio
async def test_tool_rejects_blank_names(config, moutai_transport):
    tool = ResearchReportTool(build_workflow(config, moutai_transport), None)
    with pytest.raises(ValueError):
        await tool.execute("  ", RecordingSink())
