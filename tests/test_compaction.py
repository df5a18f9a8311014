# tests/test_compaction.py
"""Prefix-sum compaction of the active path set."""
import numpy as np
import pytest
from numba import cuda
from renderer.buffers import PathBufferPair
from renderer import cuda_compact
from renderer.cuda_compact import Compactor, allocate_scan_scratch, exclusive_scan

@pytest.mark.parametrize("n", [1, 5, 128, 300])
def test_exclusive_scan_matches_numpy(n):
    values = np.random.default_rng(n).integers(0, 2, size=n).astype(np.int32)
    d_out = cuda.device_array(n, dtype=np.int32)
    exclusive_scan(cuda.to_device(values), d_out, n)
    expected = np.cumsum(values) - values
    np.testing.assert_array_equal(d_out.copy_to_host(), expected)

def make_paths(n, material_types=None):
    paths = PathBufferPair(n)
    current = paths.current
    current.pixel_index.copy_to_device(np.arange(n, dtype=np.int32))
    current.throughput.copy_to_device(np.tile(np.arange(n, dtype=np.float32)[:, None], (1, 3)))
    types = material_types if material_types is not None else np.zeros(n, dtype=np.int32)
    current.isect_material_type.copy_to_device(types.astype(np.int32))
    return paths

class TestCompactor:
    def test_keeps_flagged_paths_in_order(self):
        n = 300
        flags = np.random.default_rng(1).integers(0, 2, size=n).astype(np.int32)
        paths = make_paths(n)
        active = Compactor(n, 4, threads_per_block=32).compact(paths, cuda.to_device(flags), n)

        assert active == flags.sum()
        kept = paths.current.to_host(active)
        np.testing.assert_array_equal(kept["pixel_index"], np.nonzero(flags)[0])
        # Every field travels with its path
        np.testing.assert_array_equal(kept["throughput"][:, 0], np.nonzero(flags)[0])

    def test_count_never_grows(self):
        n = 64
        compactor = Compactor(n, 4, threads_per_block=32)
        paths = make_paths(n)
        active = n
        for seed in range(4):
            flags = np.random.default_rng(seed).integers(0, 2, size=n).astype(np.int32)
            flags[active:] = 0
            new_active = compactor.compact(paths, cuda.to_device(flags), active)
            assert new_active <= active
            active = new_active

    def test_all_valid_is_identity(self):
        n = 200
        paths = make_paths(n)
        compactor = Compactor(n, 4, threads_per_block=32)
        ones = cuda.to_device(np.ones(n, dtype=np.int32))
        assert compactor.compact(paths, ones, n) == n
        first = paths.current.to_host(n)["pixel_index"]
        assert compactor.compact(paths, ones, n) == n
        np.testing.assert_array_equal(paths.current.to_host(n)["pixel_index"], first)
        np.testing.assert_array_equal(first, np.arange(n))

    def test_all_invalid_leaves_nothing(self):
        n = 40
        paths = make_paths(n)
        zeros = cuda.to_device(np.zeros(n, dtype=np.int32))
        assert Compactor(n, 4, threads_per_block=32).compact(paths, zeros, n) == 0

    def test_material_sort_groups_types_stably(self):
        n = 150
        rng = np.random.default_rng(5)
        types = rng.integers(0, 4, size=n).astype(np.int32)
        flags = rng.integers(0, 2, size=n).astype(np.int32)
        paths = make_paths(n, types)
        active = Compactor(n, 4, threads_per_block=32).compact(
            paths, cuda.to_device(flags), n, sort_by_material=True)

        survivors = np.nonzero(flags)[0]
        assert active == len(survivors)
        kept = paths.current.to_host(active)
        assert np.all(np.diff(kept["isect_material_type"]) >= 0)
        # Stable: within a type, the original order survives
        expected = survivors[np.argsort(types[survivors], kind="stable")]
        np.testing.assert_array_equal(kept["pixel_index"], expected)

def test_scan_scratch_covers_every_level():
    assert len(allocate_scan_scratch(128)) == 1
    assert len(allocate_scan_scratch(300)) == 2
    assert len(allocate_scan_scratch(128 * 128 + 1)) == 3

def test_scan_with_oversized_scratch():
    n = 300
    values = np.random.default_rng(1).integers(0, 2, size=n).astype(np.int32)
    d_out = cuda.device_array(n, dtype=np.int32)
    exclusive_scan(cuda.to_device(values), d_out, n, allocate_scan_scratch(20000))
    np.testing.assert_array_equal(d_out.copy_to_host(), np.cumsum(values) - values)

def test_compaction_reuses_its_scratch(monkeypatch):
    n = 300
    compactor = Compactor(n, 4, threads_per_block=32)
    scratch = compactor.scan_scratch

    def no_allocation(*args, **kwargs):
        raise AssertionError("scan scratch allocated during compaction")
    monkeypatch.setattr(cuda_compact, "allocate_scan_scratch", no_allocation)
    for seed in (0, 1):
        flags = np.random.default_rng(seed).integers(0, 2, size=n).astype(np.int32)
        paths = make_paths(n, material_types=np.arange(n, dtype=np.int32) % 4)
        active = compactor.compact(paths, cuda.to_device(flags), n, sort_by_material=True)
        assert active == int(flags.sum())
    assert compactor.scan_scratch is scratch
