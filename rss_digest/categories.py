from __future__ import annotations

import logging
from typing import Iterable, List


logger = logging.getLogger(__name__)

DEFAULT_DISCOVERED_CAP = 20


class CategoryRegistry:
    """
    Known category labels: a fixed predefined set plus labels discovered on stored
    articles. The discovered overlay is capped and can be reset, so it does not grow
    without bound across cycles.
    """

    def __init__(self, predefined: Iterable[str], *, cap: int = DEFAULT_DISCOVERED_CAP) -> None:
        self._predefined: List[str] = list(dict.fromkeys(predefined))
        self._discovered: List[str] = []
        self.cap = cap

    @property
    def predefined(self) -> List[str]:
        return list(self._predefined)

    @property
    def discovered(self) -> List[str]:
        return list(self._discovered)

    def observe(self, labels: Iterable[str]) -> List[str]:
        """Record labels seen on articles. Returns the labels newly added to the overlay."""
        added: List[str] = []
        for label in labels:
            if label in self._predefined or label in self._discovered:
                continue
            if len(self._discovered) >= self.cap:
                logger.info("Category overlay full (%d), ignoring %r", self.cap, label)
                continue
            self._discovered.append(label)
            added.append(label)
        return added

    def reset_discovered(self) -> None:
        self._discovered = []

    def labels(self) -> List[str]:
        return self._predefined + self._discovered

    def __contains__(self, label: object) -> bool:
        return label in self._predefined or label in self._discovered

    def __len__(self) -> int:
        return len(self._predefined) + len(self._discovered)
