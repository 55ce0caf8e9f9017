"""Unit tests for the avatar shop."""
import pytest

from spellquest.curriculum import SHOP_ITEMS_BY_ID
from spellquest.schemas import Student
from spellquest.shop import ShopError, purchase_or_toggle, slot_for


def _student(**fields) -> Student:
    return Student(id="s1", login_code="MOA-176", name="Nethalee", **fields)


@pytest.mark.unit
class TestShop:
    def test_purchase_deducts_and_equips(self):
        result = purchase_or_toggle(_student(stars=30), SHOP_ITEMS_BY_ID["hat_top"])
        assert result.stars == 10
        assert result.inventory == ["hat_top"]
        assert result.equipped.hat == "hat_top"

    def test_input_record_untouched(self):
        student = _student(stars=30)
        purchase_or_toggle(student, SHOP_ITEMS_BY_ID["hat_top"])
        assert student.stars == 30
        assert student.inventory == []

    def test_insufficient_stars(self):
        with pytest.raises(ShopError):
            purchase_or_toggle(_student(stars=5), SHOP_ITEMS_BY_ID["hat_crown"])

    def test_owned_item_toggles_without_charge(self):
        owned = purchase_or_toggle(_student(stars=20), SHOP_ITEMS_BY_ID["glass_nerd"])
        off = purchase_or_toggle(owned, SHOP_ITEMS_BY_ID["glass_nerd"])
        assert off.equipped.glasses is None
        assert off.stars == 10
        on = purchase_or_toggle(off, SHOP_ITEMS_BY_ID["glass_nerd"])
        assert on.equipped.glasses == "glass_nerd"
        assert on.stars == 10

    def test_new_item_replaces_slot(self):
        student = purchase_or_toggle(_student(stars=40), SHOP_ITEMS_BY_ID["hat_top"])
        student = purchase_or_toggle(student, SHOP_ITEMS_BY_ID["hat_cap"])
        assert student.equipped.hat == "hat_cap"
        assert student.inventory == ["hat_top", "hat_cap"]
        assert student.stars == 5

    def test_slot_names(self):
        assert slot_for(SHOP_ITEMS_BY_ID["bg_space"]) == "background"
        assert slot_for(SHOP_ITEMS_BY_ID["acc_bow"]) == "accessory"
