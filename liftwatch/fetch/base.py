from dataclasses import dataclass
from typing import Union


class RetrievalError(Exception):
    """A strategy could not produce usable markup (non-2xx, missing landmark, transport failure)."""


@dataclass(frozen=True)
class RawMarkup:
    html: str
    strategy: str
    fetched_at: str  # ISO 8601


@dataclass(frozen=True)
class NoData:
    reason: str


RetrievalOutcome = Union[RawMarkup, NoData]


class BaseStrategy:
    """One way of obtaining the page markup. Raises RetrievalError on failure."""

    name: str = "base"

    async def fetch(self, url: str) -> str:
        raise NotImplementedError
