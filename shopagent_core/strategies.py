"""
Ordered strategy evaluation.

Every fallback ladder in the agent (container selectors, link resolution,
JSON recovery, filter application) is an ordered list of strategies evaluated
by ``first_match_named``: the first strategy producing a usable result wins and later
ones are never tried.

Usage:
    from shopagent_core.strategies import first_match_named, named

    match = first_match_named([
        named("config_selector", by_config),
        named("data_attribute", by_data_attr),
        named("first_anchor", by_first_anchor),
    ], container)
    match.strategy, match.value
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

In = TypeVar("In")
Out = TypeVar("Out")


@dataclass(frozen=True)
class Strategy(Generic[In, Out]):
    """A named step of a fallback ladder"""
    name: str
    fn: Callable[[In], Optional[Out]]

    def __call__(self, value: In) -> Optional[Out]:
        return self.fn(value)


@dataclass(frozen=True)
class Match(Generic[Out]):
    """Winning strategy name and its result"""
    strategy: str
    value: Out


def named(name: str, fn: Callable[[In], Optional[Out]]) -> Strategy:
    return Strategy(name=name, fn=fn)


def is_usable(result) -> bool:
    if result is None:
        return False
    if isinstance(result, (str, list, tuple, dict, set)) and len(result) == 0:
        return False
    return True


def first_match_named(
    strategies: Iterable[Callable[[In], Optional[Out]]],
    value: In,
    tolerate: Tuple[Type[BaseException], ...] = (),
    usable: Callable[[Any], bool] = is_usable,
) -> Optional[Match]:
    """
    Evaluate strategies in order and return the first usable result.

    By default a result is usable when it is not None and not an empty
    container or string.

    Args:
        strategies: Callables (plain or ``Strategy``) taking ``value``
        value: Input handed to every strategy
        tolerate: Exception types treated as a miss instead of propagating
        usable: Predicate deciding whether a result wins

    Returns:
        Match(strategy, value) or None when every strategy missed
    """
    for index, strategy in enumerate(strategies):
        name = getattr(strategy, "name", None) or getattr(strategy, "__name__", f"strategy_{index}")
        try:
            result = strategy(value)
        except tolerate as e:
            logger.debug(f"Strategy {name} raised {type(e).__name__}: {e}")
            continue
        if usable(result):
            return Match(strategy=name, value=result)
    return None



def first_match(
    strategies: Iterable[Callable[[In], Optional[Out]]],
    value: In,
    tolerate: Tuple[Type[BaseException], ...] = (),
    usable: Callable[[Any], bool] = is_usable,
) -> Optional[Out]:
    """Like ``first_match_named`` but returns only the winning value."""
    match = first_match_named(strategies, value, tolerate=tolerate, usable=usable)
    return match.value if match else None
