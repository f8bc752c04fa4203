"""
Container Locator component.

Best-effort fuzzy match of a deployed container to the repository it was
built from. Matcher strategies are tried in order and the first hit wins.
"""

import re
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from pipeline_sync.models.container import ContainerSummary
from pipeline_sync.utils.logging import get_logger

logger = get_logger(__name__)


_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")

Matcher = Callable[[str, str], bool]


def _normalize(name: str) -> str:
    return _NON_ALPHANUMERIC.sub("", name.lower())


def exact_match(candidate: str, container_name: str) -> bool:
    return container_name.lower() == candidate.lower()


def contains_match(candidate: str, container_name: str) -> bool:
    return candidate.lower() in container_name.lower()


def normalized_contains_match(candidate: str, container_name: str) -> bool:
    normalized = _normalize(candidate)
    return bool(normalized) and normalized in _normalize(container_name)


MATCHERS: Tuple[Tuple[str, Matcher], ...] = (
    ("exact", exact_match),
    ("contains", contains_match),
    ("normalized", normalized_contains_match),
)


def locate(
    candidate_name: str,
    containers: Iterable[Union[ContainerSummary, str]],
    matchers: Sequence[Tuple[str, Matcher]] = MATCHERS
) -> Optional[str]:
    """
    Find the container matching a repository or job name.

    Each strategy scans the whole container list in its original order
    before the next strategy is tried.

    Args:
        candidate_name: Repository short name or CI job name
        containers: Container summaries or bare container names
        matchers: Ordered (label, matcher) strategies

    Returns:
        Matching container name, or None
    """
    if not candidate_name:
        return None

    names: List[str] = [
        c.name if isinstance(c, ContainerSummary) else str(c)
        for c in containers
    ]

    for label, matcher in matchers:
        for name in names:
            if matcher(candidate_name, name):
                logger.info(
                    f"Located container {name} for {candidate_name}",
                    extra={"strategy": label, "container": name}
                )
                return name

    logger.info(
        f"No container matches {candidate_name}",
        extra={"candidates": names}
    )
    return None
