"""Tests for the image post-exporter."""

import pytest

from treasury.config import ImageExportOptions, PerformanceOptions
from treasury.export.cancellation import CancellationToken
from treasury.export.output import ExportedAssets
from treasury.export.post_exporters import ImageFilesPostExporter
from treasury.export.types import ImageType, NamedItemData
from treasury.types.errors import RunCancelledError

PNG = b"\x89PNG\r\n\x1a\nfake"


def exported_with(*entries):
    """``entries`` are ``(template_id, {ImageType: asset_path})``."""
    exported = ExportedAssets()
    for template_id, images in entries:
        item_type, name = template_id.split(":", 1)
        exported.add_named_item(template_id, NamedItemData(name=name, type=item_type, display_name=name))
        for image_type, path in images.items():
            exported.add_image(template_id, image_type, path)
    return exported


@pytest.fixture
def post_exporter(source, tmp_path):
    def _make(options=None, max_parallelism=4):
        return ImageFilesPostExporter(
            source,
            options or ImageExportOptions(),
            tmp_path,
            performance=PerformanceOptions(max_parallelism=max_parallelism),
        )

    return _make


class TestImageFiles:
    def test_writes_file_and_sets_relative_path(self, source, post_exporter, tmp_path):
        source.add_image("/Game/UI/T_Sword", PNG)
        exported = exported_with(("Weapon:wid_sword", {ImageType.SMALL_PREVIEW: "/Game/UI/T_Sword.T_Sword"}))
        exporter = post_exporter()
        exporter.run(exported, CancellationToken())

        assert (tmp_path / "ExportedImages" / "T_Sword.png").read_bytes() == PNG
        assert exported.named_items["Weapon:wid_sword"].image_paths == {
            ImageType.SMALL_PREVIEW: "ExportedImages/T_Sword.png"
        }

    def test_write_failure_recorded_and_others_written(self, source, post_exporter, tmp_path):
        source.add_image("/Game/UI/T_Blocked", PNG)
        source.add_image("/Game/UI/T_Fine", PNG)
        # a directory in the way makes the file write fail
        (tmp_path / "ExportedImages" / "T_Blocked.png").mkdir(parents=True)
        exported = exported_with(
            ("Weapon:a", {ImageType.SMALL_PREVIEW: "/Game/UI/T_Blocked"}),
            ("Weapon:b", {ImageType.SMALL_PREVIEW: "/Game/UI/T_Fine"}),
        )
        exporter = post_exporter()
        exporter.run(exported, CancellationToken())

        assert exporter.failed_assets == {"/Game/UI/T_Blocked"}
        assert exported.named_items["Weapon:a"].image_paths is None
        assert (tmp_path / "ExportedImages" / "T_Fine.png").read_bytes() == PNG

    def test_shared_image_written_once(self, source, post_exporter, tmp_path):
        load_calls = []
        original = source.load_image

        def counting(path):
            load_calls.append(path)
            return original(path)

        source.load_image = counting
        source.add_image("/Game/UI/T_Shared", PNG)
        exported = exported_with(
            ("Weapon:a", {ImageType.SMALL_PREVIEW: "/Game/UI/T_Shared"}),
            ("Weapon:b", {ImageType.SMALL_PREVIEW: "/game/ui/t_shared"}),
            ("Weapon:c", {ImageType.LARGE_PREVIEW: "/Game/UI/T_Shared"}),
        )
        exporter = post_exporter()
        exporter.run(exported, CancellationToken())

        assert len(load_calls) == 1
        assert exporter.assets_loaded == 1
        paths = {exported.named_items[t].image_paths[k] for t, k in
                 [("Weapon:a", ImageType.SMALL_PREVIEW), ("Weapon:b", ImageType.SMALL_PREVIEW),
                  ("Weapon:c", ImageType.LARGE_PREVIEW)]}
        assert paths == {"ExportedImages/T_Shared.png"}

    def test_same_stem_different_assets_get_distinct_names(self, source, post_exporter, tmp_path):
        source.add_image("/Game/A/T_Icon", b"a")
        source.add_image("/Game/B/T_Icon", b"b")
        exported = exported_with(
            ("Weapon:a", {ImageType.SMALL_PREVIEW: "/Game/A/T_Icon"}),
            ("Weapon:b", {ImageType.SMALL_PREVIEW: "/Game/B/T_Icon"}),
        )
        post_exporter().run(exported, CancellationToken())

        files = sorted(p.name for p in (tmp_path / "ExportedImages").iterdir())
        assert files == ["T_Icon-2.png", "T_Icon.png"]
        a = exported.named_items["Weapon:a"].image_paths[ImageType.SMALL_PREVIEW]
        b = exported.named_items["Weapon:b"].image_paths[ImageType.SMALL_PREVIEW]
        assert {a, b} == {"ExportedImages/T_Icon.png", "ExportedImages/T_Icon-2.png"}
        written = {p.name: p.read_bytes() for p in (tmp_path / "ExportedImages").iterdir()}
        assert written[a.rsplit("/", 1)[-1]] == b"a"

    def test_unwanted_type_skipped(self, source, post_exporter, tmp_path):
        source.add_image("/Game/T_Pack", PNG)
        exported = exported_with(("CardPack:a", {ImageType.PACK_IMAGE: "/Game/T_Pack"}))
        post_exporter().run(exported, CancellationToken())
        assert exported.named_items["CardPack:a"].image_paths is None
        assert not (tmp_path / "ExportedImages").exists()

    def test_failed_image_recorded_and_not_attached(self, source, post_exporter, tmp_path):
        source.add_image("/Game/T_Good", PNG)
        exported = exported_with(
            ("Weapon:good", {ImageType.SMALL_PREVIEW: "/Game/T_Good"}),
            ("Weapon:bad", {ImageType.SMALL_PREVIEW: "/Game/T_Missing.T_Missing"}),
        )
        exporter = post_exporter()
        exporter.run(exported, CancellationToken())
        assert exporter.failed_assets == {"/Game/T_Missing"}
        assert exported.named_items["Weapon:bad"].image_paths is None
        assert exported.named_items["Weapon:good"].image_paths is not None

    def test_disabled(self, source, post_exporter, tmp_path):
        source.add_image("/Game/T_A", PNG)
        exported = exported_with(("Weapon:a", {ImageType.SMALL_PREVIEW: "/Game/T_A"}))
        exporter = post_exporter(ImageExportOptions(enabled=False))
        exporter.run(exported, CancellationToken())
        assert exporter.assets_loaded == 0
        assert not (tmp_path / "ExportedImages").exists()

    def test_custom_directory(self, source, post_exporter, tmp_path):
        source.add_image("/Game/T_A", PNG)
        exported = exported_with(("Weapon:a", {ImageType.ICON: "/Game/T_A"}))
        post_exporter(ImageExportOptions(output_directory="img")).run(exported, CancellationToken())
        assert (tmp_path / "img" / "T_A.png").exists()
        assert exported.named_items["Weapon:a"].image_paths == {ImageType.ICON: "img/T_A.png"}

    def test_cancelled(self, source, post_exporter):
        source.add_image("/Game/T_A", PNG)
        exported = exported_with(("Weapon:a", {ImageType.ICON: "/Game/T_A"}))
        token = CancellationToken()
        token.cancel()
        with pytest.raises(RunCancelledError):
            post_exporter().run(exported, token)
        assert exported.named_items["Weapon:a"].image_paths is None
