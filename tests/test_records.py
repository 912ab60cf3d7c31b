"""Tests for decoded asset records and curves."""

import pytest

from treasury.assets.records import (
    AssetRecord,
    CurveInterpMode,
    ItemQuantityPair,
    RowHandle,
    SimpleCurve,
    resolve_object_path,
    resolve_text,
)

from factories import curve_row, curve_table, item_record, quantity_pair, soft_path


class TestTextAndPaths:
    """FText and soft object path resolution."""

    def test_plain_string(self):
        assert resolve_text("Sword") == "Sword"

    def test_localized_string_preferred(self):
        assert resolve_text({"SourceString": "src", "LocalizedString": "loc"}) == "loc"

    def test_source_string_fallback(self):
        assert resolve_text({"SourceString": "src"}) == "src"

    def test_localization_table(self):
        text = {"Namespace": "Items", "Key": "K", "LocalizedString": "loc"}
        assert resolve_text(text, {"Items": {"K": "Übersetzt"}}) == "Übersetzt"
        assert resolve_text(text, {"Items": {}}) == "loc"
        assert resolve_text(text, {}) == "loc"

    def test_unresolvable(self):
        assert resolve_text(5) is None

    def test_object_path_dict(self):
        assert resolve_object_path(soft_path("/Game/T_A.T_A")) == "/Game/T_A.T_A"

    def test_none_name_is_none(self):
        assert resolve_object_path("None") is None
        assert resolve_object_path({"AssetPathName": "None"}) is None


class TestAssetRecord:
    """Property bag accessors."""

    def test_get_is_case_insensitive(self):
        record = item_record("a", Rarity="EFortRarity::Epic")
        assert record.get("rarity") == "EFortRarity::Epic"
        assert record.get("missing", 3) == 3

    def test_data_list_wins_over_property(self):
        record = item_record("a", Tier="EFortItemTier::I", DataList=[{"Other": 1}, {"Tier": "EFortItemTier::III"}])
        assert record.get_from_data_list("Tier") == "EFortItemTier::III"

    def test_data_list_falls_back_to_property(self):
        record = item_record("a", Tier="EFortItemTier::II", DataList=[{"Other": 1}])
        assert record.get_from_data_list("tier") == "EFortItemTier::II"

    def test_soft_path_from_data_list(self):
        record = item_record("a", DataList=[{"Icon": soft_path("/Game/T_Icon.T_Icon")}])
        assert record.get_soft_asset_path_from_data_list("Icon") == "/Game/T_Icon.T_Icon"

    def test_from_dict(self):
        record = AssetRecord.from_dict(
            {"Name": "Table", "Type": "DataTable", "Rows": {"Row": {"A": 1}}}
        )
        assert record.class_name == "DataTable"
        assert record.find_row("ROW") == {"A": 1}
        assert record.find_row("Other") is None

    def test_row_handles(self):
        record = item_record(
            "a",
            ConversionRecipes=[{"DataTable": "T", "RowName": "R1"}, {"DataTable": "T", "RowName": "None"}],
        )
        handles = record.get_row_handles("ConversionRecipes")
        assert handles[0] == RowHandle("T", "R1")
        assert handles[0].is_usable
        assert not handles[1].is_usable

    def test_curve_table_handle(self):
        record = item_record("a", LevelToSacrificeXpHandle={"CurveTable": "XP", "RowName": "Row"})
        assert record.get_row_handle("LevelToSacrificeXpHandle", table_key="CurveTable") == RowHandle("XP", "Row")


class TestSimpleCurve:
    """Curve evaluation."""

    @pytest.fixture
    def curve(self):
        return SimpleCurve.from_value(curve_row((0, 10.0), (10, 20.0), (20, 40.0)))

    def test_exact_key(self, curve):
        assert curve.eval(10) == 20.0

    def test_linear_between_keys(self, curve):
        assert curve.eval(5) == pytest.approx(15.0)
        assert curve.eval(15) == pytest.approx(30.0)

    def test_clamps_at_ends(self, curve):
        assert curve.eval(-5) == 10.0
        assert curve.eval(100) == 40.0

    def test_constant_steps(self):
        curve = SimpleCurve.from_value(curve_row((0, 1.0), (10, 2.0), interp="ERichCurveInterpMode::RCIM_Constant"))
        assert curve.interp_mode is CurveInterpMode.CONSTANT
        assert curve.eval(9.9) == 1.0

    def test_empty_curve_uses_default(self):
        assert SimpleCurve(default_value=7.0).eval(3) == 7.0

    def test_keys_sorted(self):
        curve = SimpleCurve(keys=[(10, 2.0), (0, 1.0)])
        assert curve.eval(5) == pytest.approx(1.5)

    def test_find_curve(self):
        table = curve_table("Scaling", {"Row": curve_row((1, 5.0))})
        assert table.find_curve("row").eval(1) == 5.0
        assert table.find_curve("missing") is None


class TestItemQuantityPair:
    def test_nested_asset_id(self):
        pair = ItemQuantityPair.from_value(quantity_pair("AccountResource", "reagent_c_t01", 3))
        assert pair.template_id == "AccountResource:reagent_c_t01"
        assert pair.quantity == 3

    def test_string_asset_id(self):
        pair = ItemQuantityPair.from_value({"ItemPrimaryAssetId": "Ingredient:ore", "Quantity": 2})
        assert pair.template_id == "Ingredient:ore"

    def test_missing_asset_id(self):
        with pytest.raises(ValueError):
            ItemQuantityPair.from_value({"Quantity": 2})
