import pytest

from brkheap.arena import Arena, FenceReport, OutOfMemoryError

PAGE = 64
PAGES = 4


@pytest.fixture
def arena():
    return Arena(pages_available=PAGES, page_size=PAGE, seed=1)


def test_layout(arena):
    assert arena.start_brk == PAGE
    assert arena.brk == arena.start_brk
    assert arena.start_mmap - arena.start_brk == PAGES * PAGE
    assert arena.total_size == PAGES * PAGE
    assert arena.reserved == 0


def test_sbrk_zero_returns_current_break(arena):
    assert arena.sbrk(0) == arena.start_brk
    assert arena.brk == arena.start_brk


def test_sbrk_grows_and_returns_previous(arena):
    first = arena.sbrk(10)
    second = arena.sbrk(20)
    assert first == arena.start_brk
    assert second == arena.start_brk + 10
    assert arena.reserved == 30


def test_sbrk_shrinks(arena):
    arena.sbrk(50)
    previous = arena.sbrk(-20)
    assert previous == arena.start_brk + 50
    assert arena.reserved == 30


def test_sbrk_below_start_is_ignored(arena):
    arena.sbrk(5)
    previous = arena.sbrk(-100)
    assert previous == arena.start_brk + 5
    assert arena.reserved == 5


def test_sbrk_out_of_memory(arena):
    with pytest.raises(OutOfMemoryError):
        arena.sbrk(PAGES * PAGE)
    assert arena.reserved == 0


def test_sbrk_just_below_limit(arena):
    arena.sbrk(PAGES * PAGE - 1)
    assert arena.reserved == PAGES * PAGE - 1
    with pytest.raises(OutOfMemoryError):
        arena.sbrk(1)


def test_out_of_memory_is_memory_error(arena):
    with pytest.raises(MemoryError):
        arena.sbrk(10 * PAGES * PAGE)


def test_read_write_round_trip(arena):
    address = arena.sbrk(8)
    arena.write(address, b"abcdefgh")
    assert arena.read(address, 8) == b"abcdefgh"
    assert arena.read(address + 2, 3) == b"cde"


def test_fresh_heap_is_zeroed(arena):
    assert arena.read(arena.start_brk, 16) == bytes(16)


def test_read_outside_raises(arena):
    with pytest.raises(IndexError):
        arena.read(-1, 2)
    with pytest.raises(IndexError):
        arena.read(arena.start_mmap + PAGE, 1)


def test_write_outside_raises(arena):
    with pytest.raises(IndexError):
        arena.write(arena.start_mmap + PAGE - 1, b"xy")


def test_negative_length_raises(arena):
    with pytest.raises(ValueError):
        arena.read(arena.start_brk, -1)


def test_fences_intact_initially(arena):
    report = arena.check_fences()
    assert report == FenceReport(first_intact=True, last_intact=True)
    assert report.intact


def test_writing_inside_heap_keeps_fences(arena):
    address = arena.sbrk(PAGES * PAGE - 1)
    arena.write(address, b"\xff" * (PAGES * PAGE - 1))
    assert arena.check_fences().intact


def test_first_fence_damage_detected(arena):
    original = arena.read(arena.start_brk - 1, 1)
    arena.write(arena.start_brk - 1, bytes([original[0] ^ 0xFF]))
    report = arena.check_fences()
    assert not report.first_intact
    assert report.last_intact
    assert not report.intact


def test_last_fence_damage_detected(arena):
    original = arena.read(arena.start_mmap, 1)
    arena.write(arena.start_mmap, bytes([original[0] ^ 0xFF]))
    report = arena.check_fences()
    assert report.first_intact
    assert not report.last_intact


def test_same_seed_same_fences():
    a = Arena(pages_available=PAGES, page_size=PAGE, seed=7)
    b = Arena(pages_available=PAGES, page_size=PAGE, seed=7)
    assert a.read(0, PAGE) == b.read(0, PAGE)
    assert a.read(a.start_mmap, PAGE) == b.read(b.start_mmap, PAGE)


def test_summary_reports_sizes(arena):
    arena.sbrk(40)
    text = arena.summary()
    assert f"{PAGES * PAGE} bajtow" in text
    assert "40 bajtow" in text
    assert text.count("poprawny") == 2


def test_summary_reports_damage(arena):
    original = arena.read(0, 1)
    arena.write(0, bytes([original[0] ^ 0xFF]))
    text = arena.summary()
    assert "USZKODZONY" in text
    assert text.count("poprawny") == 1


@pytest.mark.parametrize("pages, size", [(0, PAGE), (PAGES, 0), (-1, PAGE)])
def test_invalid_dimensions(pages, size):
    with pytest.raises(ValueError):
        Arena(pages_available=pages, page_size=size)


def test_default_dimensions():
    arena = Arena(seed=0)
    assert arena.page_size == 4096
    assert arena.total_size == 16384 * 4096
    assert arena.check_fences().intact