"""Resolve a free-text company name to an exchange-qualified ticker via web search."""
from __future__ import annotations

import logging
import re
from typing import List, Optional, Pattern, Tuple

from astock_research.domain.errors import ResolutionError
from astock_research.domain.models.report import Market, ResolvedIdentifier
from astock_research.infrastructure.search.tavily_client import SearchClient
from astock_research.utils.logging import resolve_logger

QUERY_TEMPLATE = "{subject} 股票代码 交易所"

# Priority order matters: the first exchange whose pattern matches wins.
EXCHANGE_PATTERNS: List[Tuple[Market, Pattern[str]]] = [
    (Market.SH, re.compile(r"(\d{6})\.SH", re.IGNORECASE)),
    (Market.SZ, re.compile(r"(\d{6})\.SZ", re.IGNORECASE)),
    (Market.BJ, re.compile(r"([894]\d{5})\.BJ", re.IGNORECASE)),
    (Market.HK, re.compile(r"(\d{5})\.HK", re.IGNORECASE)),
]

BARE_CODE_PATTERN = re.compile(r"(\d{6})")

# Leading digit -> exchange for bare codes. 3xxxxx is ChiNext, listed in Shenzhen.
PREFIX_MARKETS = {
    "6": Market.SH,
    "3": Market.SZ,
    "0": Market.SZ,
    "8": Market.BJ,
    "4": Market.BJ,
    "9": Market.BJ,
}
DEFAULT_MARKET = Market.SZ


def extract_identifier(text: str) -> Optional[ResolvedIdentifier]:
    """Pull the first ticker out of ``text``; qualified codes beat bare 6-digit runs."""
    for market, pattern in EXCHANGE_PATTERNS:
        match = pattern.search(text)
        if match:
            return ResolvedIdentifier(ticker=f"{match.group(1)}.{market.value}", market=market)

    bare = BARE_CODE_PATTERN.search(text)
    if bare:
        code = bare.group(1)
        market = PREFIX_MARKETS.get(code[0], DEFAULT_MARKET)
        return ResolvedIdentifier(ticker=f"{code}.{market.value}", market=market)
    return None


class StockIdentifierResolver:
    """Search-backed ticker lookup; a miss is terminal for the request."""

    def __init__(
        self,
        search_client: Optional[SearchClient],
        *,
        max_results: int = 5,
        depth: str = "advanced",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._search = search_client
        self._max_results = max_results
        self._depth = depth
        self._logger = resolve_logger(logger, "resolver")

    async def resolve(self, subject_name: str) -> ResolvedIdentifier:
        subject = subject_name.strip()
        try:
            return ResolvedIdentifier.parse(subject)
        except ValueError:
            pass

        if self._search is None:
            raise ResolutionError(subject, details="未配置搜索服务，无法根据名称查找股票代码")

        query = QUERY_TEMPLATE.format(subject=subject)
        self._logger.info("Resolving ticker via search: %s", query)
        try:
            results = await self._search.search(query, self._max_results, self._depth)
        except Exception as exc:  # pylint: disable=broad-except
            self._logger.warning("Ticker search failed for %s: %s", subject, exc)
            raise ResolutionError(subject) from exc

        blob = results.text_blob()
        self._logger.debug("Search digest: %s...", blob[:200])
        identifier = extract_identifier(blob)
        if identifier is None:
            self._logger.info("No ticker found for %s", subject)
            raise ResolutionError(subject)
        self._logger.info("Resolved %s -> %s", subject, identifier.ticker)
        return identifier
