"""ModelUsage value object — per-model token and cost accounting."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from tether.messages._coerce import as_finite, as_int

#: Field → wire aliases, tried in order.  camelCase wins when both spellings
#: are present on the same record.
_ALIASES: dict[str, tuple[str, ...]] = {
    "input_tokens": ("inputTokens", "input_tokens"),
    "output_tokens": ("outputTokens", "output_tokens"),
    "cache_read_input_tokens": ("cacheReadInputTokens", "cache_read_input_tokens"),
    "cache_creation_input_tokens": (
        "cacheCreationInputTokens",
        "cache_creation_input_tokens",
    ),
    "web_search_requests": ("webSearchRequests", "web_search_requests"),
    "cost_usd": ("costUSD", "cost_usd"),
    "context_window": ("contextWindow", "context_window"),
}


def _lookup(data: dict[str, Any], field: str) -> Any:
    for key in _ALIASES[field]:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _count(value: Any) -> int:
    """Coerce a token count; unusable or negative values become 0."""
    return max(0, as_int(value))


def _cost(value: Any) -> float:
    cost = as_finite(value)
    return 0.0 if cost is None else cost


class ModelUsage(BaseModel):
    """Immutable token/cost snapshot for one model within a result."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation_input_tokens: int = 0
    web_search_requests: int = 0
    cost_usd: float = 0.0
    context_window: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelUsage:
        """Build from either the camelCase or the snake_case record shape."""
        if not isinstance(data, dict):
            return cls()
        return cls(
            input_tokens=_count(_lookup(data, "input_tokens")),
            output_tokens=_count(_lookup(data, "output_tokens")),
            cache_read_input_tokens=_count(_lookup(data, "cache_read_input_tokens")),
            cache_creation_input_tokens=_count(
                _lookup(data, "cache_creation_input_tokens")
            ),
            web_search_requests=_count(_lookup(data, "web_search_requests")),
            cost_usd=_cost(_lookup(data, "cost_usd")),
            context_window=_count(_lookup(data, "context_window")),
        )

    @property
    def total_input_tokens(self) -> int:
        """Input tokens including cached reads and cache writes."""
        return (
            self.input_tokens
            + self.cache_read_input_tokens
            + self.cache_creation_input_tokens
        )

    @property
    def cache_hit_rate(self) -> float:
        """Share of input served from cache, in ``[0.0, 1.0]``."""
        total = self.total_input_tokens
        if total <= 0:
            return 0.0
        return self.cache_read_input_tokens / total
