"""Which existing items may be wrapped into forms automatically."""

from __future__ import annotations

from typing import Iterable, List, Optional

from compass.models import ContentBank, Item, ItemType

APPROVED = "approved"


def is_eligible(item: Item) -> bool:
    """Passages need an explicit approval in their payload; anything else is usable as-is."""

    if item.item_type == ItemType.PASSAGE.value:
        payload = item.content_payload or {}
        return payload.get("validation_status") == APPROVED
    return True


def filter_eligible(items: Iterable[Item]) -> List[Item]:
    return [item for item in items if is_eligible(item)]


def bank_has_content(bank: ContentBank, items: Optional[List[Item]]) -> bool:
    return (bank.current_size or 0) > 0 or bool(items)
