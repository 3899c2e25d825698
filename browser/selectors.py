"""
Ordered selector fallback chains.

Marketplace UIs change without notice, so every element is described as a
prioritized list of (selector, predicate) candidates: specific test ids
first, generic attribute heuristics last. The first candidate whose match
satisfies its predicate wins.

Chains only depend on the locator protocol (locator/count/nth), so they run
against Playwright pages and against the fakes used in tests alike.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from core.errors import ElementNotFoundError

logger = logging.getLogger(__name__)

Predicate = Callable[[Any], Awaitable[bool]]

# Matches per selector inspected before moving to the next candidate
MAX_MATCHES_PER_SELECTOR = 5


async def is_visible(locator) -> bool:
    try:
        return await locator.is_visible()
    except Exception:
        return False


async def is_enabled(locator) -> bool:
    try:
        return await locator.is_enabled()
    except Exception:
        return False


async def is_visible_and_enabled(locator) -> bool:
    return await is_visible(locator) and await is_enabled(locator)


@dataclass(frozen=True)
class SelectorCandidate:
    selector: str
    predicate: Optional[Predicate] = None


@dataclass
class ChainMatch:
    """The winning candidate and the concrete locator it produced."""
    selector: str
    locator: Any
    index: int = 0


class SelectorChain:
    """First-match-wins evaluation over ordered selector candidates."""

    def __init__(self, name: str, candidates: Sequence[SelectorCandidate]):
        self.name = name
        self.candidates: List[SelectorCandidate] = list(candidates)

    @classmethod
    def of(cls, name: str, *selectors: str, predicate: Optional[Predicate] = None) -> "SelectorChain":
        """Build a chain where every selector shares one predicate."""
        return cls(name, [SelectorCandidate(s, predicate) for s in selectors])

    @property
    def selectors(self) -> List[str]:
        return [c.selector for c in self.candidates]

    async def resolve(self, scope) -> Optional[ChainMatch]:
        """Return the first acceptable match, or None."""
        for candidate in self.candidates:
            try:
                locator = scope.locator(candidate.selector)
                count = await locator.count()
            except Exception as e:
                logger.debug(f"{self.name}: selector {candidate.selector!r} failed: {e}")
                continue

            for index in range(min(count, MAX_MATCHES_PER_SELECTOR)):
                element = locator.nth(index)
                if candidate.predicate is None or await candidate.predicate(element):
                    logger.debug(f"{self.name}: matched {candidate.selector!r} [{index}]")
                    return ChainMatch(candidate.selector, element, index)
        return None

    async def require(self, scope) -> ChainMatch:
        match = await self.resolve(scope)
        if match is None:
            raise ElementNotFoundError(self.name, self.selectors)
        return match
