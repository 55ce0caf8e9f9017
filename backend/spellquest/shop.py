from __future__ import annotations

from .schemas import ShopItem, Student


class ShopError(Exception):
    pass


def slot_for(item: ShopItem) -> str:
    return item.type.lower()


def purchase_or_toggle(student: Student, item: ShopItem) -> Student:
    """Buy an item and wear it, or take an owned item on or off.

    Returns an updated copy; the caller persists it.
    """
    updated = student.model_copy(deep=True)
    slot = slot_for(item)
    if item.id in updated.inventory:
        current = getattr(updated.equipped, slot)
        setattr(updated.equipped, slot, None if current == item.id else item.id)
        return updated
    if updated.stars < item.cost:
        raise ShopError(f"Not enough stars for {item.name} (need {item.cost}, have {updated.stars})")
    updated.stars -= item.cost
    updated.inventory.append(item.id)
    setattr(updated.equipped, slot, item.id)
    return updated
