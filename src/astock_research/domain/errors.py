"""Error taxonomy shared by the report workflow and its collaborators."""
from __future__ import annotations

from typing import Optional


class ReportWorkflowError(Exception):
    """Base class for failures that end up in a ``workflow-error`` event."""

    details = "处理过程中遇到了问题，请稍后再试"
    suggestion = "您可以尝试使用不同的股票名称或股票代码"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if details is not None:
            self.details = details
        if suggestion is not None:
            self.suggestion = suggestion


class ResolutionError(ReportWorkflowError):
    """The subject name could not be mapped to an exchange-qualified ticker."""

    details = "无法通过搜索结果确认股票代码或股票基本信息"
    suggestion = "请尝试使用完整的公司名称或股票代码（如 600519.SH）"

    def __init__(self, subject: str, message: Optional[str] = None, **kwargs) -> None:
        super().__init__(message or f"未找到股票代码: {subject}", **kwargs)
        self.subject = subject


class ProviderError(ReportWorkflowError):
    """Upstream financial-data call failed after exhausting retries."""

    details = "获取金融数据时遇到了问题"
    suggestion = "数据服务暂时不可用，请稍后再试"

    def __init__(self, endpoint: str, message: str, **kwargs) -> None:
        super().__init__(f"调用Tushare API失败 ({endpoint}): {message}", **kwargs)
        self.endpoint = endpoint
        self.reason = message


class GenerationError(ReportWorkflowError):
    """Report text could not be produced, not even by the template fallback."""

    details = "生成研报内容时缺少可用的财务数据"
    suggestion = "请确认报告日期对应的财报已披露，或更换报告日期后重试"


class SerializationError(Exception):
    """A workflow event field could not be converted to a wire-safe value."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
