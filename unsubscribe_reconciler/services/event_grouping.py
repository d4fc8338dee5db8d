"""Pure helpers shaping parsed events into reconciliation work."""
from __future__ import annotations

from typing import Iterable, Iterator, Sequence

from unsubscribe_reconciler.models.domain import TenantBatch, UnsubscribeEvent


def dedupe_events(events: Iterable[UnsubscribeEvent]) -> list[UnsubscribeEvent]:
    """Collapse repeats of ``(tenant_id, lowercased email)`` to the first occurrence.

    Order of first appearance is preserved. Scope is a single run; nothing is
    remembered across runs.
    """
    seen: set[tuple[str, str]] = set()
    unique: list[UnsubscribeEvent] = []
    for event in events:
        key = event.key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique


def group_by_tenant(events: Iterable[UnsubscribeEvent]) -> dict[str, list[UnsubscribeEvent]]:
    """Stable partition by tenant; tenants keep first-seen order."""
    groups: dict[str, list[UnsubscribeEvent]] = {}
    for event in events:
        groups.setdefault(event.tenant_id, []).append(event)
    return groups


def iter_batches(tenant_id: str, events: Sequence[UnsubscribeEvent], size: int) -> Iterator[TenantBatch]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for index, start in enumerate(range(0, len(events), size)):
        yield TenantBatch(tenant_id=tenant_id, events=tuple(events[start:start + size]), index=index)


__all__ = ["dedupe_events", "group_by_tenant", "iter_batches"]
