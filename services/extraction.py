"""Strategies for locating a displayed price inside arbitrary HTML."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from models import ExtractionResult
from services.errors import NotFoundError, ParseError
from services.prices import parse_price

logger = logging.getLogger(__name__)

NON_DIGITS = re.compile(r"\D")

COMPOSITE_STRATEGY_ID = ".a-price-whole (composite)"

# Structural hints in priority order: screen-reader price spans, schema.org
# and Open Graph markers, common class names, then legacy price blocks.
DEFAULT_CSS_SELECTORS: tuple[str, ...] = (
    ".a-price.a-text-price .a-offscreen",
    ".a-price .a-offscreen",
    ".a-price-range .a-offscreen",
    ".a-offscreen",
    "[itemprop='price']",
    "meta[property='product:price:amount']",
    ".price",
    ".product-price",
    ".current-price",
    "#priceblock_ourprice",
    "#priceblock_dealprice",
    ".priceInfo .price .value",
)


@dataclass(frozen=True, slots=True)
class PriceCandidate:
    """Text located by a strategy, before it is validated by the parser."""

    text: str
    display: str


class PriceStrategy:
    """Base class for one way of finding the price on a page."""

    strategy_id: str = ""

    def locate(self, soup: BeautifulSoup) -> Optional[PriceCandidate]:
        raise NotImplementedError


class CompositePriceStrategy(PriceStrategy):
    """Join a whole-number element with its fractional sibling.

    Some storefronts render ``1,234`` and ``99`` in separate nodes, so neither
    node alone carries the full price.
    """

    def __init__(
        self,
        whole_selector: str = ".a-price-whole",
        fraction_class: str = "a-price-fraction",
        strategy_id: str = COMPOSITE_STRATEGY_ID,
    ) -> None:
        self.whole_selector = whole_selector
        self.fraction_class = fraction_class
        self.strategy_id = strategy_id

    def locate(self, soup: BeautifulSoup) -> Optional[PriceCandidate]:
        whole_tag = soup.select_one(self.whole_selector)
        if whole_tag is None:
            return None

        whole_text = whole_tag.get_text(strip=True).rstrip(".,")
        whole_digits = NON_DIGITS.sub("", whole_text)
        if not whole_digits:
            return None

        fraction_digits = "00"
        fraction_tag = self._find_fraction(whole_tag)
        if fraction_tag is not None:
            fraction_digits = NON_DIGITS.sub("", fraction_tag.get_text(strip=True)) or "00"

        return PriceCandidate(
            text=f"{whole_digits}.{fraction_digits}",
            display=f"{whole_text}.{fraction_digits}",
        )

    def _find_fraction(self, whole_tag: Tag) -> Optional[Tag]:
        return whole_tag.find_next_sibling(class_=self.fraction_class) or whole_tag.find_previous_sibling(
            class_=self.fraction_class
        )


class CssPriceStrategy(PriceStrategy):
    """Take the first matching element's text, or its ``content`` attribute."""

    def __init__(self, selector: str, attribute: str = "content") -> None:
        self.selector = selector
        self.attribute = attribute
        self.strategy_id = selector

    def locate(self, soup: BeautifulSoup) -> Optional[PriceCandidate]:
        for element in soup.select(self.selector):
            text = element.get_text(" ", strip=True)
            if text:
                return PriceCandidate(text=text, display=text)
            attribute_value = (element.get(self.attribute) or "").strip()
            if attribute_value:
                return PriceCandidate(text=attribute_value, display=attribute_value)
        return None


def default_strategies() -> list[PriceStrategy]:
    strategies: list[PriceStrategy] = [CompositePriceStrategy()]
    strategies.extend(CssPriceStrategy(selector) for selector in DEFAULT_CSS_SELECTORS)
    return strategies


class SelectorEngine:
    """Runs price strategies in priority order until one yields a valid price."""

    def __init__(self, strategies: Iterable[PriceStrategy] | None = None) -> None:
        self.strategies: Sequence[PriceStrategy] = tuple(
            strategies if strategies is not None else default_strategies()
        )
        self._by_id = {strategy.strategy_id: strategy for strategy in self.strategies}

    @staticmethod
    def load(document) -> BeautifulSoup:
        if isinstance(document, BeautifulSoup):
            return document
        return BeautifulSoup(document, "html.parser")

    def extract(self, document) -> ExtractionResult:
        """Return the first price any strategy can locate and parse."""
        soup = self.load(document)
        for strategy in self.strategies:
            result = self._apply(strategy, soup)
            if result is not None:
                logger.debug("Found price %s using %s", result.price, strategy.strategy_id)
                return result
        raise NotFoundError("could not find or parse price on page with known selectors")

    def extract_with_strategy(self, document, strategy_id: str) -> ExtractionResult:
        """Re-run a single strategy, typically the one that worked last time."""
        strategy = self._by_id.get(strategy_id)
        if strategy is None:
            raise NotFoundError(f"unknown extraction strategy: {strategy_id}")

        result = self._apply(strategy, self.load(document))
        if result is None:
            raise NotFoundError(f"could not find price with selector: {strategy_id}")
        return result

    def locate_price(self, document, cached_strategy: str | None = None) -> ExtractionResult:
        """Try ``cached_strategy`` first, then fall back to the full list."""
        soup = self.load(document)
        if cached_strategy:
            try:
                return self.extract_with_strategy(soup, cached_strategy)
            except NotFoundError as exc:
                logger.info("Cached strategy failed (%s); trying all strategies", exc)
        return self.extract(soup)

    @staticmethod
    def _apply(strategy: PriceStrategy, soup: BeautifulSoup) -> Optional[ExtractionResult]:
        candidate = strategy.locate(soup)
        if candidate is None:
            return None
        try:
            price = parse_price(candidate.text)
        except ParseError as exc:
            logger.debug("Strategy %s matched unusable text: %s", strategy.strategy_id, exc)
            return None
        return ExtractionResult(price=price, display_text=candidate.display, strategy_id=strategy.strategy_id)


__all__ = [
    "COMPOSITE_STRATEGY_ID",
    "CompositePriceStrategy",
    "CssPriceStrategy",
    "DEFAULT_CSS_SELECTORS",
    "PriceCandidate",
    "PriceStrategy",
    "SelectorEngine",
    "default_strategies",
]
