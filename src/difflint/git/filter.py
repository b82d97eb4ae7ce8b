"""Include / exclude path filtering."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


def compile_patterns(patterns: Optional[Iterable[str]]) -> List[re.Pattern[str]]:
    """Compile anchored patterns. Raises re.error on an invalid one."""
    return [re.compile(f"^{p}$") for p in patterns or ()]


class PathFilter:
    """Decide which changed paths are tracked.

    Patterns are anchored regular expressions. Exclude wins over include;
    with no include patterns every non-excluded path is allowed.
    """

    def __init__(
        self,
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> None:
        self.include = compile_patterns(include)
        self.exclude = compile_patterns(exclude)

    def is_path_allowed(self, path: str) -> bool:
        for pattern in self.exclude:
            if pattern.match(path):
                logger.debug("File path %s is in the exclude list", path)
                return False
        if not self.include:
            return True
        for pattern in self.include:
            if pattern.match(path):
                return True
        logger.debug("File path %s is not in the include list", path)
        return False
