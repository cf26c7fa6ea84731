"""Monotonic per-category id allocation ("load-0001", "quote-0002", ...)."""

from freight_market.domain.enums import IdPrefix
from freight_market.infra.repository import MarketRepository

ID_WIDTH = 4


def format_id(prefix: str, value: int) -> str:
    return f"{prefix}-{value:0{ID_WIDTH}d}"


async def next_id(repo: MarketRepository, prefix: IdPrefix | str) -> str:
    """Allocate the next id of a category inside the caller's transaction.

    The counter is incremented in a single UPDATE, so concurrent sessions
    never read the same value.
    """
    category = prefix.value if isinstance(prefix, IdPrefix) else prefix
    value = await repo.bump_counter(category)
    if value is None:
        await repo.create_counter(category)
        value = await repo.bump_counter(category)
    return format_id(category, value)
