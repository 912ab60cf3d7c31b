"""Tests for the JSON artifacts and the split tool."""

import json
import os
import time

import pytest

from treasury.artifacts import (
    AssetsJsonArtifact,
    ImageMode,
    SchematicsJsonArtifact,
    display_name_for,
    overlay,
    split_assets_file,
    write_json_atomic,
)
from treasury.export.cancellation import CancellationToken
from treasury.export.output import ExportedAssets
from treasury.export.types import (
    HeroStat,
    HeroStatTable,
    ImageType,
    ItemRecipe,
    NamedItemData,
    WeaponItemData,
)
from treasury.types.errors import ArtifactError, ErrorCode, RunCancelledError


def read(path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def exported():
    data = ExportedAssets()
    data.add_named_item(
        "Weapon:wid_sword",
        WeaponItemData(
            name="wid_sword",
            type="Weapon",
            display_name="Sword",
            sub_type="Sword",
            image_paths={ImageType.SMALL_PREVIEW: "ExportedImages/T_Sword.png"},
        ),
    )
    data.add_named_item("CardPack:cp_a", NamedItemData(name="cp_a", type="CardPack", display_name="Pack"))
    data.add_named_item("Ingredient:ore", NamedItemData(name="ore", type="Ingredient", display_name="Ore"))
    data.add_named_item("Ingredient:ore2", NamedItemData(name="ore2", type="Ingredient", display_name="Ore"))
    data.add_named_item("Ingredient:blank", NamedItemData(name="blank", type="Ingredient", display_name="<blank>"))
    return data


# =============================================================================
# Helpers
# =============================================================================


class TestOverlay:
    def test_fresh_wins_and_old_keys_survive(self):
        assert overlay({"K": 1, "Old": 2}, {"K": 3, "New": 4}) == {"K": 3, "Old": 2, "New": 4}

    def test_keys_matched_case_insensitively(self):
        assert overlay({"Weapon:A": 1}, {"weapon:a": 2}) == {"weapon:a": 2}


class TestWriteJsonAtomic:
    def test_writes_and_replaces(self, tmp_path):
        path = tmp_path / "nested" / "out.json"
        write_json_atomic(path, {"a": 1})
        write_json_atomic(path, {"b": "é"})
        assert read(path) == {"b": "é"}
        assert "é" in path.read_text(encoding="utf-8")
        assert [p.name for p in path.parent.iterdir()] == ["out.json"]

    def test_failure_leaves_old_file(self, tmp_path):
        path = tmp_path / "out.json"
        write_json_atomic(path, {"a": 1})
        with pytest.raises(TypeError):
            write_json_atomic(path, {"bad": object()})
        assert read(path) == {"a": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["out.json"]


# =============================================================================
# assets.json
# =============================================================================


class TestAssetsJson:
    def test_document_shape(self, exported, tmp_path):
        exported.hero_stats = HeroStatTable({"Ninja_Shields": {"SR_T01": {"Stat": HeroStat(0, [1.0, 2.0])}}})
        exported.homebase_rating_requirements = {"1": 10}
        path = AssetsJsonArtifact(tmp_path / "assets.json").generate(exported, CancellationToken())
        document = read(path)

        assert "ExportedAt" in document
        items = document["NamedItems"]
        assert list(items)[:2] == ["CardPack:cp_a", "Ingredient:blank"]
        sword = items["Weapon:wid_sword"]
        assert sword["DisplayName"] == "Sword"
        assert sword["SubType"] == "Sword"
        assert sword["ImagePaths"] == {"SmallPreview": "ExportedImages/T_Sword.png"}
        assert "Rarity" not in sword
        assert document["HeroStats"]["Ninja_Shields"]["SR_T01"]["Stat"] == {"FirstLevel": 0, "Values": [1.0, 2.0]}
        assert document["HomebaseRatingRequirements"] == {"1": 10}

    def test_optional_tables_omitted(self, exported, tmp_path):
        document = read(AssetsJsonArtifact(tmp_path / "assets.json").generate(exported, CancellationToken()))
        assert "HeroStats" not in document
        assert "HomebaseRatingRequirements" not in document

    def test_without_merge_overwrites(self, exported, tmp_path):
        path = tmp_path / "assets.json"
        path.write_text(json.dumps({"NamedItems": {"Old:x": {"Name": "x", "Type": "Old"}}}))
        document = read(AssetsJsonArtifact(path).generate(exported, CancellationToken()))
        assert "Old:x" not in document["NamedItems"]

    def test_merge_preserves_old_and_prefers_new(self, exported, tmp_path):
        path = tmp_path / "assets.json"
        path.write_text(
            json.dumps(
                {
                    "ExportedAt": "2020-01-01T00:00:00+00:00",
                    "NamedItems": {
                        "weapon:WID_SWORD": {"Name": "wid_sword", "Type": "Weapon", "DisplayName": "Old Sword"},
                        "Trap:tid_old": {"Name": "tid_old", "Type": "Trap", "DisplayName": "Old Trap", "Junk": 1},
                    },
                    "HeroStats": {"Keep": {}},
                    "Custom": [1, 2],
                }
            )
        )
        document = read(AssetsJsonArtifact(path, merge=True).generate(exported, CancellationToken()))
        items = document["NamedItems"]

        assert items["Weapon:wid_sword"]["DisplayName"] == "Sword"
        assert "weapon:WID_SWORD" not in items
        assert items["Trap:tid_old"] == {
            "Name": "tid_old",
            "Type": "Trap",
            "DisplayName": "Old Trap",
            "IsInventoryLimitExempt": False,
        }
        assert list(items) == sorted(items, key=str.casefold)
        assert document["HeroStats"] == {"Keep": {}}
        assert document["Custom"] == [1, 2]
        assert document["ExportedAt"] != "2020-01-01T00:00:00+00:00"

    def test_merge_with_unreadable_file_fails(self, exported, tmp_path):
        path = tmp_path / "assets.json"
        path.write_text("{not json")
        with pytest.raises(ArtifactError) as excinfo:
            AssetsJsonArtifact(path, merge=True).generate(exported, CancellationToken())
        assert excinfo.value.code is ErrorCode.ARTIFACT_READ_FAILED
        assert path.read_text() == "{not json"

    def test_cancelled_writes_nothing(self, exported, tmp_path):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(RunCancelledError):
            AssetsJsonArtifact(tmp_path / "assets.json").generate(exported, token)
        assert not (tmp_path / "assets.json").exists()


# =============================================================================
# schematics.json
# =============================================================================


class TestSchematicsJson:
    def test_display_name_for(self, exported):
        assert display_name_for(exported, "Weapon:WID_SWORD") == "Sword"
        assert display_name_for(exported, "Ingredient:blank") == "Ingredient:blank"
        assert display_name_for(exported, "Ingredient:unknown") == "Ingredient:unknown"

    def test_document(self, exported, tmp_path):
        exported.add_recipe(ItemRecipe("Weapon:wid_sword", {"Ingredient:ore": 3, "Ingredient:mystery": 1}))
        exported.add_recipe(ItemRecipe("Ingredient:ore", {"Ingredient:blank": 2}, amount=5))
        document = read(SchematicsJsonArtifact(tmp_path / "schematics.json").generate(exported, CancellationToken()))
        recipes = document["Recipes"]

        assert recipes["Weapon:wid_sword"] == {
            "DisplayName": "Sword",
            "Ingredients": {"Ore": 3, "Ingredient:mystery": 1},
        }
        assert recipes["Ingredient:ore"]["Amount"] == 5
        assert recipes["Ingredient:ore"]["Ingredients"] == {"Ingredient:blank": 2}

    def test_colliding_ingredient_names_kept_apart(self, exported, tmp_path):
        exported.add_recipe(ItemRecipe("Weapon:wid_sword", {"Ingredient:ore": 1, "Ingredient:ore2": 2}))
        document = read(SchematicsJsonArtifact(tmp_path / "schematics.json").generate(exported, CancellationToken()))
        assert document["Recipes"]["Weapon:wid_sword"]["Ingredients"] == {"Ore": 1, "Ingredient:ore2": 2}


# =============================================================================
# split
# =============================================================================


class TestSplit:
    @pytest.fixture
    def source_dir(self, tmp_path):
        directory = tmp_path / "src"
        directory.mkdir()
        (directory / "assets.json").write_text(
            json.dumps(
                {
                    "ExportedAt": "2024-01-01T00:00:00+00:00",
                    "NamedItems": {
                        "Weapon:WID_Sword": {"Name": "WID_Sword", "Type": "Weapon", "DisplayName": "Sword"},
                        "Trap:tid_a": {"Name": "tid_a", "Type": "Trap", "DisplayName": "A"},
                        "Bad/Type:x": {"Name": "x", "Type": "Bad/Type"},
                    },
                    "HeroStats": {"Ninja": {}},
                    "HomebaseRatingRequirements": {"1": 10},
                }
            )
        )
        images = directory / "ExportedImages"
        images.mkdir()
        (images / "T_A.png").write_bytes(b"new")
        return directory

    def test_layout(self, source_dir, tmp_path):
        dest = tmp_path / "dest"
        result = split_assets_file(source_dir, dest)

        assert read(dest / "NamedItems" / "Weapon.json") == {
            "Weapon:wid_sword": {"Name": "WID_Sword", "Type": "Weapon", "DisplayName": "Sword"}
        }
        assert list(read(dest / "NamedItems" / "Trap.json")) == ["Trap:tid_a"]
        assert read(dest / "HeroStats.json") == {"Ninja": {}}
        assert read(dest / "HomebaseRatingRequirements.json") == {"1": 10}
        assert not (dest / "ExportedAt.json").exists()
        assert result.skipped == ["Bad/Type"]
        assert result.images == 0
        assert not (dest / "ExportedImages").exists()

    def test_copy_images(self, source_dir, tmp_path):
        dest = tmp_path / "dest"
        result = split_assets_file(source_dir, dest, ImageMode.COPY)
        assert result.images == 1
        assert (dest / "ExportedImages" / "T_A.png").read_bytes() == b"new"
        assert (source_dir / "ExportedImages" / "T_A.png").exists()

    def test_move_images(self, source_dir, tmp_path):
        dest = tmp_path / "dest"
        split_assets_file(source_dir, dest, ImageMode.MOVE)
        assert (dest / "ExportedImages" / "T_A.png").exists()
        assert not (source_dir / "ExportedImages" / "T_A.png").exists()

    def test_newer_destination_image_kept(self, source_dir, tmp_path):
        dest_images = tmp_path / "dest" / "ExportedImages"
        dest_images.mkdir(parents=True)
        kept = dest_images / "T_A.png"
        kept.write_bytes(b"keep")
        future = time.time() + 3600
        os.utime(kept, (future, future))
        result = split_assets_file(source_dir, tmp_path / "dest", ImageMode.COPY)
        assert result.images == 0
        assert kept.read_bytes() == b"keep"

    def test_missing_assets_file(self, tmp_path):
        with pytest.raises(ArtifactError):
            split_assets_file(tmp_path, tmp_path / "dest")
