"""Merging and ordering of holiday and custom events."""
import logging
import re
from typing import Callable, Dict, List, Sequence, Tuple

from pypinyin import Style, lazy_pinyin

from processor.models import Event, SortOption

logger = logging.getLogger(__name__)

HAN_RUN = re.compile(r"([\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]+)")


def title_sort_key(title: str) -> Tuple[Tuple[int, str], ...]:
    """
    Build a Chinese-collation sort key for a title.

    Han characters sort by their pinyin and rank before any other text,
    which compares case-insensitively. So "春节" < "中秋节" < "Anniversary".
    """
    key = []
    for run in HAN_RUN.split(title):
        if not run:
            continue
        if HAN_RUN.fullmatch(run):
            key.extend((0, syllable) for syllable in lazy_pinyin(run, style=Style.TONE3))
        else:
            key.append((1, run.lower()))
    return tuple(key)


def _date_key(event: Event):
    return event.target_instant


def _title_key(event: Event):
    return title_sort_key(event.title)


def _created_key(event: Event):
    # Equal timestamps (e.g. legacy records backfilled to 0) keep input order.
    return -event.created_at


SORT_KEYS: Dict[SortOption, Callable[[Event], object]] = {
    SortOption.DATE_ASC: _date_key,
    SortOption.TITLE_ASC: _title_key,
    SortOption.CREATED_DESC: _created_key,
}


def view(
    holidays: Sequence[Event],
    customs: Sequence[Event],
    sort_option: SortOption = SortOption.DATE_ASC
) -> List[Event]:
    """
    Merge holidays and custom events into one ordered list.

    The sort is stable: events comparing equal keep their relative order
    from ``holidays + customs``.

    Args:
        holidays: Current holiday events
        customs: Current custom events
        sort_option: Ordering to apply

    Returns:
        New list of events; inputs are not modified
    """
    sort_option = SortOption(sort_option)
    combined = list(holidays) + list(customs)
    key = SORT_KEYS.get(sort_option)
    if key is None:
        raise ValueError(f"Unsupported sort option: {sort_option}")

    logger.debug(f"Sorting {len(combined)} events by {sort_option.value}")
    return sorted(combined, key=key)
