"""Tests for CacheManager (memory + disk orchestration)."""

import pytest
from PIL import Image

from imgcache.cache.manager import CacheManager
from imgcache.config.schema import CacheConfig

DAY = 24 * 3600


@pytest.fixture
def manager(tmp_path, clock):
    mgr = CacheManager(disk_path=tmp_path / "cache.db", clock=clock)
    yield mgr
    mgr.close()


class TestCacheManager:
    async def test_store_and_lookup(self, manager, make_png):
        image = Image.new("RGB", (8, 8))
        await manager.store("k1", "https://x.io/a.png", image, make_png(8, 8))
        entry = await manager.lookup("k1")
        assert entry is not None
        assert entry.image is image
        assert manager.stats().memory_hits == 1

    async def test_lookup_miss(self, manager):
        assert await manager.lookup("nonexistent") is None
        assert manager.stats().misses == 1

    async def test_disk_promotion_to_memory(self, manager, make_png):
        await manager.store("k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), make_png(8, 8))
        manager.clear_memory()
        assert manager.lookup_memory("k1") is None

        entry = await manager.lookup("k1")
        assert entry is not None
        assert entry.image.size == (8, 8)
        assert "k1" in manager.memory
        assert manager.stats().disk_hits == 1

    async def test_corrupt_disk_entry_is_dropped(self, manager):
        await manager.store("k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), b"not an image")
        manager.clear_memory()
        assert await manager.lookup("k1") is None
        assert manager.disk.entry_count == 0

    async def test_expired_disk_entry_is_a_miss(self, manager, clock, make_png):
        await manager.store("k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), make_png(8, 8))
        manager.clear_memory()
        clock.advance(8 * DAY)
        assert await manager.lookup("k1") is None

    async def test_clear_empties_both_tiers(self, manager, make_png):
        await manager.store("k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), make_png(8, 8))
        future = manager.clear()
        # Memory is empty before the disk clear completes
        assert len(manager.memory) == 0
        future.result(timeout=5)
        assert manager.disk.entry_count == 0
        assert await manager.lookup("k1") is None

    async def test_clear_memory_keeps_disk(self, manager, make_png):
        await manager.store("k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), make_png(8, 8))
        manager.clear_memory()
        assert len(manager.memory) == 0
        assert manager.disk.entry_count == 1

    async def test_clear_bumps_generation(self, manager):
        start = manager.generation
        manager.clear().result(timeout=5)
        assert manager.generation == start + 1

    async def test_store_tagged_before_clear_is_dropped(self, manager, make_png):
        generation = manager.generation
        manager.clear().result(timeout=5)
        await manager.store(
            "k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), make_png(8, 8), generation
        )
        assert len(manager.memory) == 0
        assert manager.disk.entry_count == 0

    async def test_store_with_current_generation_is_kept(self, manager, make_png):
        await manager.store(
            "k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), make_png(8, 8), manager.generation
        )
        assert "k1" in manager.memory
        assert manager.disk.entry_count == 1

    async def test_disk_read_tagged_before_clear_is_a_miss(self, manager, make_png):
        await manager.store("k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), make_png(8, 8))
        manager.clear_memory()
        stale = manager.generation - 1
        assert await manager.lookup_disk("k1", stale) is None
        assert "k1" not in manager.memory
        assert manager.stats().misses == 1
        assert manager.stats().disk_hits == 0

    async def test_configure_updates_bounds_lazily(self, manager, make_png):
        for i in range(3):
            await manager.store(f"k{i}", f"https://x.io/{i}.png", Image.new("RGB", (4, 4)), make_png(4, 4))
        manager.configure(CacheConfig(memory_count_limit=1)).result(timeout=5)
        assert manager.memory.max_count == 1
        assert len(manager.memory) == 3
        await manager.store("k3", "https://x.io/3.png", Image.new("RGB", (4, 4)), make_png(4, 4))
        assert manager.memory.keys() == ["k3"]

    async def test_configure_sweeps_expired(self, manager, clock, make_png):
        await manager.store("k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), make_png(8, 8))
        clock.advance(2 * DAY)
        removed = manager.configure(CacheConfig(expiration_seconds=DAY)).result(timeout=5)
        assert removed == 1
        assert manager.disk.entry_count == 0

    async def test_stats_entries_and_size(self, manager, make_png):
        await manager.store("k1", "https://x.io/a.png", Image.new("RGB", (8, 8)), make_png(8, 8))
        stats = manager.stats()
        assert stats.memory_entries == 1
        assert stats.memory_bytes == 8 * 8 * 3
        assert stats.disk_entries == 1
        assert stats.disk_bytes > 0

    def test_from_config(self, tmp_path):
        config = CacheConfig(
            memory_byte_limit=1000,
            memory_count_limit=3,
            disk_byte_limit=5000,
            expiration_seconds=60,
            disk_path=tmp_path / "c.db",
        )
        mgr = CacheManager.from_config(config)
        try:
            assert mgr.memory.max_bytes == 1000
            assert mgr.memory.max_count == 3
            assert mgr.disk.max_bytes == 5000
            assert mgr.disk.expiration_seconds == 60
            assert (tmp_path / "c.db").exists()
        finally:
            mgr.close()
