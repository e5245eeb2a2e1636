"""FastAPI surface streaming workflow events as Server-Sent Events."""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from config import Config
from astock_research.domain.models.events import WorkflowError
from astock_research.domain.models.report import (
    ReportKind,
    ReportRequest,
    SupplementaryItem,
    TICKER_PATTERN,
)
from astock_research.domain.services.intent import DEFAULT_RULES, IntentRules, classify_message
from astock_research.domain.services.periods import parse_period
from astock_research.infrastructure.llm.chat_client import resolve_model_id
from astock_research.reports.generator import TextGenerator
from astock_research.streaming.sink import STREAM_CLOSED, EventSink, Message, QueueSink, to_message
from astock_research.utils.logging import resolve_logger
from astock_research.workflows.graph import ReportWorkflow
from astock_research.workflows.tool import ResearchReportTool

SSE_MEDIA_TYPE = "text/event-stream"


class ResearchReportBody(BaseModel):
    stockCode: Optional[str] = None
    reportDate: Optional[str] = None
    reportType: Optional[str] = None
    currentModel: Optional[str] = None
    additionalInfo: List[Dict[str, Any]] = Field(default_factory=list)


class ChatMessage(BaseModel):
    role: str
    content: str


class ChatBody(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    researchEnabled: bool = True
    model: Optional[str] = None


def encode_sse(message: Message) -> str:
    return f"data: {json.dumps(message, ensure_ascii=False)}\n\n"


async def stream_job(
    job: Callable[[EventSink], Awaitable[Any]],
    logger: logging.Logger,
) -> AsyncIterator[str]:
    """Run ``job`` as a task feeding a queue and relay every message until it closes."""
    queue: "asyncio.Queue[Optional[Message]]" = asyncio.Queue()
    sink = QueueSink(queue, logger)

    async def runner() -> None:
        try:
            await job(sink)
        except Exception as exc:  # pylint: disable=broad-except
            # The workflow already streamed a workflow-error event for this failure.
            logger.error("Streaming job ended with an error: %s", exc)
        finally:
            sink.close()

    task = asyncio.create_task(runner())
    try:
        while True:
            message = await queue.get()
            if message is STREAM_CLOSED:
                break
            yield encode_sse(message)
    finally:
        if not task.done():
            task.cancel()


def _bad_request(error: str) -> JSONResponse:
    return JSONResponse({"error": error}, status_code=400)


def create_app(
    config: Config,
    workflow: ReportWorkflow,
    *,
    tool: Optional[ResearchReportTool] = None,
    llm: Optional[TextGenerator] = None,
    rules: IntentRules = DEFAULT_RULES,
    logger: Optional[logging.Logger] = None,
) -> FastAPI:
    log = resolve_logger(logger, "api")
    tool = tool or ResearchReportTool(
        workflow,
        workflow.search,
        max_results=config.search_max_results,
        depth=config.search_depth,
    )
    llm = llm if llm is not None else workflow.llm

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await workflow.aclose()

    app = FastAPI(title="A-share research reports", lifespan=lifespan)

    @app.get("/api/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "model": config.report_model,
            "search": workflow.search is not None,
            "llm": llm is not None,
        }

    @app.post("/api/research-report")
    async def research_report(body: ResearchReportBody):
        if not body.stockCode:
            return _bad_request("股票代码不能为空")
        if not body.reportDate:
            return _bad_request("报告日期不能为空")
        ticker = body.stockCode.strip().upper()
        if not TICKER_PATTERN.match(ticker):
            return _bad_request(f"股票代码格式不正确: {body.stockCode}")
        try:
            request = ReportRequest(
                subject_name=ticker,
                ticker=ticker,
                as_of_date=parse_period(body.reportDate),
                report_kind=ReportKind.parse(body.reportType),
                model_selector=body.currentModel,
                supplementary_context=[SupplementaryItem.from_mapping(item) for item in body.additionalInfo],
            )
        except ValueError as exc:
            return _bad_request(str(exc))

        log.info("Research report requested for %s at %s", request.ticker, request.report_date)
        return StreamingResponse(
            stream_job(lambda sink: workflow.run(request, sink), log),
            media_type=SSE_MEDIA_TYPE,
        )

    @app.post("/api/chat")
    async def chat(body: ChatBody):
        user_messages = [message for message in body.messages if message.role == "user"]
        if not user_messages:
            return _bad_request("消息不能为空")
        last = user_messages[-1].content.strip()

        decision = classify_message(last, rules)
        log.info("Chat message classified as %s (%s)", decision.intent.value, decision.reason)
        if body.researchEnabled and decision.is_report:
            return StreamingResponse(
                stream_job(lambda sink: tool.execute(last, sink, model=body.model), log),
                media_type=SSE_MEDIA_TYPE,
            )

        history = [{"role": message.role, "content": message.content} for message in body.messages]
        return StreamingResponse(_chat_reply(history, body.model), media_type=SSE_MEDIA_TYPE)

    async def _chat_reply(history: List[Dict[str, str]], model: Optional[str]) -> AsyncIterator[str]:
        if llm is None:
            yield encode_sse(
                to_message(
                    WorkflowError(
                        error="未配置语言模型",
                        details="服务端缺少模型访问凭证",
                        suggestion="请设置 LLM_API_KEY 或 POE_API_KEY 后重试",
                    )
                )
            )
            return
        try:
            text = await llm.generate(history, model=resolve_model_id(model, config.report_model))
        except Exception as exc:  # pylint: disable=broad-except
            log.error("Chat completion failed: %s", exc)
            yield encode_sse(
                to_message(
                    WorkflowError(
                        error=f"模型调用失败: {exc}",
                        details="调用语言模型时遇到了问题",
                        suggestion="请检查您的网络连接或稍后再试",
                    )
                )
            )
            return
        yield encode_sse({"type": "text", "content": text})

    return app
