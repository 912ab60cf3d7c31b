"""Tests for ConcurrentUniqueTransformer.

Covers:
- First sighting derives a key, repeat sighting returns it unchanged
- Collisions are resolved through mutate
- Case-insensitive normalizers
- Thread safety under contention
- Property: distinct inputs always get distinct outputs
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from hypothesis import given, settings
from hypothesis import strategies as st

from treasury.export.post_exporters.images import bump_suffix, image_file_name
from treasury.export.unique import ConcurrentUniqueTransformer


def stem_transformer(**kwargs):
    return ConcurrentUniqueTransformer(
        transform=lambda path: path.rsplit("/", 1)[-1],
        mutate=lambda name: name + "+",
        **kwargs,
    )


class TestTransform:
    """Basic key derivation."""

    def test_first_sighting_is_new(self):
        transformer = stem_transformer()
        assert transformer.try_transform_if_novel("a/x") == (True, "x")

    def test_repeat_sighting_returns_cached_key(self):
        transformer = stem_transformer()
        transformer.try_transform_if_novel("a/x")
        assert transformer.try_transform_if_novel("a/x") == (False, "x")

    def test_collision_is_mutated(self):
        transformer = stem_transformer()
        transformer.try_transform_if_novel("a/x")
        assert transformer.try_transform_if_novel("b/x") == (True, "x+")
        assert transformer.try_transform_if_novel("c/x") == (True, "x++")

    def test_repeat_does_not_call_mutate(self):
        calls = []

        def mutate(name):
            calls.append(name)
            return name + "+"

        transformer = ConcurrentUniqueTransformer(transform=lambda p: "same", mutate=mutate)
        transformer.try_transform_if_novel("one")
        transformer.try_transform_if_novel("two")
        assert calls == ["same"]

        transformer.try_transform_if_novel("two")
        assert calls == ["same"]

    def test_len_counts_distinct_inputs(self):
        transformer = stem_transformer()
        for path in ["a/x", "b/x", "a/x"]:
            transformer.try_transform_if_novel(path)
        assert len(transformer) == 2


class TestNormalizers:
    """Case-insensitive comparison through key functions."""

    def test_input_key_folds_case(self):
        transformer = stem_transformer(input_key=str.casefold, output_key=str.casefold)
        assert transformer.try_transform_if_novel("A/X") == (True, "X")
        assert transformer.try_transform_if_novel("a/x") == (False, "X")

    def test_output_key_folds_case(self):
        transformer = stem_transformer(output_key=str.casefold)
        transformer.try_transform_if_novel("a/Icon")
        assert transformer.try_transform_if_novel("b/icon") == (True, "icon+")

    def test_without_normalizers_case_matters(self):
        transformer = stem_transformer()
        transformer.try_transform_if_novel("a/Icon")
        assert transformer.try_transform_if_novel("b/icon") == (True, "icon")


class TestConcurrency:
    """Many threads racing on overlapping inputs."""

    def test_each_input_gets_one_key(self):
        transformer = ConcurrentUniqueTransformer(transform=image_file_name, mutate=bump_suffix)
        inputs = [f"dir{i % 7}/T_Icon" for i in range(200)]
        barrier = threading.Barrier(8)

        def worker(chunk):
            barrier.wait()
            return [(path, transformer.try_transform_if_novel(path)) for path in chunk]

        chunks = [inputs[i::8] for i in range(8)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = [r for batch in pool.map(worker, chunks) for r in batch]

        keys = {}
        new_count = 0
        for path, (is_new, key) in results:
            keys.setdefault(path, set()).add(key)
            new_count += is_new
        assert new_count == 7
        assert all(len(k) == 1 for k in keys.values())
        assert len({next(iter(k)) for k in keys.values()}) == 7


class TestBumpSuffix:
    def test_first_bump(self):
        assert bump_suffix("T_Icon.png") == "T_Icon-2.png"

    def test_second_bump(self):
        assert bump_suffix("T_Icon-2.png") == "T_Icon-3.png"

    def test_no_extension(self):
        assert bump_suffix("noext") == "noext-2"


@settings(max_examples=50)
@given(st.lists(st.text(alphabet="abcAB/", min_size=1, max_size=6), max_size=40))
def test_distinct_inputs_get_distinct_outputs(paths):
    """Property: output keys never collide and repeat calls are stable."""
    transformer = stem_transformer(input_key=str.casefold, output_key=str.casefold)
    first = {}
    for path in paths:
        is_new, key = transformer.try_transform_if_novel(path)
        folded = path.casefold()
        if folded in first:
            assert not is_new
            assert key == first[folded]
        else:
            assert is_new
            first[folded] = key
    outputs = [k.casefold() for k in first.values()]
    assert len(outputs) == len(set(outputs))
