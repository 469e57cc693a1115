import logging
import random
from typing import Iterable, List, Optional, Sequence, Set

from .records import Category

log = logging.getLogger(__name__)


def _available(pool: Iterable[Category], used_ids: Set[str], exclude: Optional[str]) -> List[Category]:
    return [c for c in pool if c.id not in used_ids and c.id != exclude]


def select_category(custom_pool: Sequence[Category],
                    shared_pool: Sequence[Category],
                    used_ids: Set[str],
                    exclude: Optional[str] = None,
                    rng: Optional[random.Random] = None) -> Optional[Category]:
    """Pick the next category for an announcer.

    - The announcer's own unused custom categories come first
    - Otherwise an unused category from the shared pool
    - ``None`` when both are exhausted; the turn cannot begin until a
      category is added
    ``exclude`` drops one extra id for this call only (the one being skipped).
    """
    rng = rng or random
    candidates = _available(custom_pool, used_ids, exclude)
    if candidates:
        return rng.choice(candidates)
    candidates = _available(shared_pool, used_ids, exclude)
    if candidates:
        return rng.choice(candidates)
    log.debug("category pools exhausted: %d used", len(used_ids))
    return None


def can_skip(selected: Optional[Category], shared_pool: Sequence[Category], skips_used: int, max_skips: int) -> bool:
    """Only shared-pool categories can be skipped, and only ``max_skips`` times per turn."""
    if selected is None or skips_used >= max_skips:
        return False
    return any(c.id == selected.id for c in shared_pool)
