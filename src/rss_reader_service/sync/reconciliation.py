"""Reconciliation filter between an upstream batch and local tombstones.

A tombstone records that the reader deleted an article locally (usually by
cleanup after reading it). Inoreader has no notion of that deletion, so the
next sync would bring the article straight back. The filter decides, item by
item, whether an upstream article is admitted into the local store:

- tombstoned and still read upstream: skipped
- tombstoned and unread upstream again: admitted, and its tombstone must be
  removed by the caller (``resurrected``)
- not tombstoned: admitted

Items whose origin feed is not known locally cannot be stored and are
reported as ``orphaned`` after the tombstone check.

The filter is pure: one pass over the batch with set lookups, no I/O.
"""

from collections.abc import Container, Iterable
from dataclasses import dataclass, field

from rss_reader_service.inoreader.labels import has_state
from rss_reader_service.inoreader.schemas import StreamItem


def is_read_upstream(item: StreamItem) -> bool:
    """True when the item carries the read state category."""
    return has_state(item.categories, "read")


def is_starred_upstream(item: StreamItem) -> bool:
    """True when the item carries the starred state category."""
    return has_state(item.categories, "starred")


@dataclass
class ReconciliationResult:
    """Outcome of filtering one upstream batch.

    ``resurrected`` items are also in ``admitted``; the separate list tells
    the caller which tombstones to delete.
    """

    admitted: list[StreamItem] = field(default_factory=list)
    skipped: list[StreamItem] = field(default_factory=list)
    resurrected: list[StreamItem] = field(default_factory=list)
    orphaned: list[StreamItem] = field(default_factory=list)

    @property
    def resurrected_ids(self) -> list[str]:
        return [item.id for item in self.resurrected]


def reconcile_batch(
    items: Iterable[StreamItem],
    tombstoned_ids: Container[str],
    known_feed_ids: Container[str] | None = None,
) -> ReconciliationResult:
    """Split an upstream batch into admitted, skipped and orphaned items.

    Args:
        items: Upstream stream items in fetch order
        tombstoned_ids: Upstream ids with a local tombstone
        known_feed_ids: Upstream feed ids stored locally. When given, items
            from other feeds are moved to ``orphaned`` instead of admitted.

    Returns:
        ReconciliationResult preserving the input order within each list

    Example:
        >>> result = reconcile_batch(items, {"tag:google.com,2005:reader/item/1"})
        >>> [item.id for item in result.skipped]
        ['tag:google.com,2005:reader/item/1']
    """
    result = ReconciliationResult()

    for item in items:
        if item.id in tombstoned_ids:
            if is_read_upstream(item):
                # Deleted locally and still read upstream: stay deleted
                result.skipped.append(item)
                continue
            result.resurrected.append(item)

        if known_feed_ids is not None and item.feed_stream_id not in known_feed_ids:
            result.orphaned.append(item)
            continue

        result.admitted.append(item)

    return result
