"""LangGraph workflow assembly for the streaming research-report pipeline."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph

from config import Config
from astock_research.domain.errors import ReportWorkflowError
from astock_research.domain.models.events import WorkflowError, WorkflowStart
from astock_research.domain.models.report import ReportRequest
from astock_research.infrastructure.data_providers.tushare_client import (
    TuShareClient,
    build_transport,
)
from astock_research.infrastructure.llm.chat_client import ChatModelClient
from astock_research.infrastructure.search.tavily_client import SearchClient, TavilySearchClient
from astock_research.reports.generator import ReportContentGenerator, TextGenerator
from astock_research.streaming.sink import EventSink
from astock_research.utils.logging import resolve_logger
from astock_research.workflows import context as context_module
from astock_research.workflows.blueprint import (
    DISPLAY_STEPS,
    StageSpec,
    build_default_stages,
    describe_stages as describe_blueprint,
)
from astock_research.workflows.context import WorkflowStage
from astock_research.workflows.resolver import StockIdentifierResolver
from astock_research.workflows.state import ReportState

CONTEXT_KEY = "context"


def build_error_event(exc: BaseException, stage: Optional[StageSpec]) -> WorkflowError:
    """User-facing error payload; known failures carry their own details and suggestion."""
    if isinstance(exc, ReportWorkflowError):
        return WorkflowError(error=exc.message, details=exc.details, suggestion=exc.suggestion)
    return WorkflowError(
        error=f"研报生成失败: {exc}",
        details=stage.failure_details if stage is not None else ReportWorkflowError.details,
        suggestion=ReportWorkflowError.suggestion,
    )


class ReportWorkflow:
    """Compose LangGraph nodes into a runnable, event-streaming workflow."""

    def __init__(
        self,
        config: Config,
        *,
        provider: TuShareClient,
        resolver: StockIdentifierResolver,
        generator: ReportContentGenerator,
        search: Optional[SearchClient] = None,
        llm: Optional[TextGenerator] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config
        self.search = search
        self.llm = llm
        self._provider = provider
        self._resolver = resolver
        self._generator = generator
        self._logger = resolve_logger(logger, "workflow")
        self._stages: List[StageSpec] = build_default_stages()
        self._graph = self._build_graph()

    @classmethod
    def from_config(cls, config: Config, *, logger: Optional[logging.Logger] = None) -> "ReportWorkflow":
        """Wire the TuShare, Tavily and chat-model clients described by ``config``."""
        transport = build_transport(
            config.tushare_base_url,
            config.tushare_api_key,
            mode=config.tushare_transport,
            proxy_url=config.proxy_url,
        )
        provider = TuShareClient(
            transport,
            max_retries=config.provider_max_retries,
            basic_info_ttl=config.basic_info_cache_ttl,
            daily_ttl=config.daily_cache_ttl,
        )

        search: Optional[TavilySearchClient] = None
        if config.tavily_api_key:
            search = TavilySearchClient(config.tavily_api_key, proxy_url=config.proxy_url)

        llm: Optional[ChatModelClient]
        try:
            llm = ChatModelClient(
                api_key=config.llm_api_key or "",
                model=config.report_model,
                base_url=config.llm_base_url,
                proxy_url=config.proxy_url,
                default_web_search=config.poe_web_search,
                default_thinking_budget=config.poe_thinking_budget,
            )
        except ValueError:
            llm = None

        return cls(
            config,
            provider=provider,
            resolver=StockIdentifierResolver(
                search,
                max_results=config.search_max_results,
                depth=config.search_depth,
            ),
            generator=ReportContentGenerator(llm, default_model=config.report_model),
            search=search,
            llm=llm,
            logger=logger,
        )

    def _build_graph(self):
        builder = StateGraph(dict)

        if not self._stages:
            raise RuntimeError("Workflow blueprint is empty; cannot build LangGraph.")

        for stage in self._stages:
            builder.add_node(stage.key, self._wrap(stage))

        # Stages run strictly in declared order; events must reach the wire in that order.
        builder.set_entry_point(self._stages[0].key)
        for current, nxt in zip(self._stages, self._stages[1:]):
            builder.add_edge(current.key, nxt.key)
        builder.add_edge(self._stages[-1].key, END)

        return builder.compile(checkpointer=None)

    def _wrap(self, stage: StageSpec):
        async def wrapper(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
            run_context: context_module.WorkflowContext = config["configurable"][CONTEXT_KEY]
            run_context.advance(stage.stage)
            return await stage.handler(state, run_context)

        return wrapper

    def new_context(self, sink: EventSink) -> context_module.WorkflowContext:
        return context_module.WorkflowContext(
            config=self._config,
            provider=self._provider,
            resolver=self._resolver,
            generator=self._generator,
            sink=sink,
            logger=self._logger,
        )

    async def run(self, request: ReportRequest, sink: EventSink) -> str:
        """Execute the pipeline for one request, streaming events into ``sink``.

        Returns the final report text. Terminal failures are emitted as a
        ``workflow-error`` event and then re-raised.
        """
        run_context = self.new_context(sink)
        subject = request.subject_name
        run_context.emit(
            WorkflowStart(
                message=f"开始生成{subject}的研究报告",
                title=f"{subject} 投资研究报告生成",
                steps=list(DISPLAY_STEPS),
            )
        )
        initial_state: ReportState = {
            "request": request,
            "logs": [],
        }
        try:
            result = await self._graph.ainvoke(
                initial_state,
                config={"configurable": {CONTEXT_KEY: run_context}},
            )
        except Exception as exc:
            failed_in = self._spec_for(run_context.stage)
            self._logger.error(
                "Report workflow for %s failed during %s: %s", subject, run_context.stage.value, exc
            )
            run_context.advance(WorkflowStage.FAILED)
            run_context.emit(build_error_event(exc, failed_in))
            raise

        run_context.advance(WorkflowStage.DONE)
        for line in result.get("logs", []):
            self._logger.debug(line)
        return result["final_report"]

    def _spec_for(self, stage: WorkflowStage) -> Optional[StageSpec]:
        for spec in self._stages:
            if spec.stage is stage:
                return spec
        return None

    def describe_stages(self) -> List[str]:
        """Return human-readable workflow stage descriptions."""
        return describe_blueprint(self._stages)

    async def aclose(self) -> None:
        """Release the HTTP sessions held by the provider, search and model clients."""
        for client in (self._provider, self.search, self.llm):
            closer = getattr(client, "aclose", None)
            if closer is not None:
                await closer()
