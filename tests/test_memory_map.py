import struct

import pytest

from fluvio_future.memory_map import MemoryMappedFile, MemoryMappedMutFile


@pytest.mark.asyncio
async def test_mmap_write_slice(tmp_path):
    index_path = tmp_path / "test.index"
    mm_file = await MemoryMappedMutFile.create(index_path, 3)
    mm_file[:] = bytes([0x01, 0x02, 0x03])
    await mm_file.flush()
    assert index_path.read_bytes() == bytes([0x01, 0x02, 0x03])
    mm_file.close()


@pytest.mark.asyncio
async def test_mmap_write_pair_slice(tmp_path):
    index_path = tmp_path / "pairslice.index"
    mm_file = await MemoryMappedMutFile.create(index_path, 24)
    pairs = [(5, 10), (11, 22), (50, 100)]
    data = struct.pack("=6I", *(v for pair in pairs for v in pair))
    assert len(data) == 24
    mm_file[:] = data
    await mm_file.flush()
    mm_file.close()

    mm_file2 = await MemoryMappedMutFile.create(index_path, 24)
    values = struct.unpack("=6I", bytes(mm_file2))
    read_pairs = list(zip(values[::2], values[1::2]))
    assert len(read_pairs) == 3
    assert read_pairs[0][0] == 5
    assert read_pairs[2][1] == 100
    mm_file2.close()


@pytest.mark.asyncio
async def test_mmap_write_with_pos(tmp_path):
    index_path = tmp_path / "testpos.index"
    mm_file = await MemoryMappedMutFile.create(index_path, 10)
    mm_file.write_bytes(5, bytes([0x05, 0x10, 0x44]))
    await mm_file.flush()
    buffer = index_path.read_bytes()
    assert len(buffer) == 10
    assert buffer[5] == 0x05
    assert buffer[6] == 0x10
    assert buffer[7] == 0x44
    mm_file.close()


@pytest.mark.asyncio
async def test_empty_index_read_only(tmp_path):
    index_path = tmp_path / "zerosized.index"
    index_path.write_bytes(b"")
    assert index_path.stat().st_size == 0
    min_size = 10
    mm_file = await MemoryMappedFile.open(index_path, min_size)
    assert len(mm_file) == min_size
    mm_file.close()


@pytest.mark.asyncio
async def test_read_only_map_keeps_existing_content(tmp_path):
    index_path = tmp_path / "existing.index"
    index_path.write_bytes(b"abcdef")
    with await MemoryMappedFile.open(index_path, 100) as mm_file:
        assert len(mm_file) == 6
        assert bytes(mm_file) == b"abcdef"
        assert mm_file[1:3] == b"bc"


@pytest.mark.asyncio
async def test_read_only_open_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        await MemoryMappedFile.open(tmp_path / "missing.index", 10)


@pytest.mark.asyncio
async def test_write_bytes_out_of_range(tmp_path):
    with await MemoryMappedMutFile.create(tmp_path / "small.index", 4) as mm_file:
        with pytest.raises(IndexError):
            mm_file.write_bytes(3, b"xy")
        assert bytes(mm_file) == b"\x00" * 4


@pytest.mark.asyncio
async def test_create_does_not_truncate_existing_content(tmp_path):
    index_path = tmp_path / "keep.index"
    index_path.write_bytes(b"\x07\x08\x09")
    with await MemoryMappedMutFile.create(index_path, 5) as mm_file:
        assert len(mm_file) == 5
        assert bytes(mm_file) == b"\x07\x08\x09\x00\x00"


@pytest.mark.asyncio
async def test_flush_range_and_flush_async(tmp_path):
    index_path = tmp_path / "range.index"
    with await MemoryMappedMutFile.create(index_path, 16) as mm_file:
        mm_file.write_bytes(10, b"\xaa\xbb")
        await mm_file.flush_range(10, 2)
        mm_file.write_bytes(0, b"\x11")
        await mm_file.flush_async()
        data = index_path.read_bytes()
        assert data[10:12] == b"\xaa\xbb"
        assert data[0] == 0x11


@pytest.mark.asyncio
async def test_flush_range_out_of_bounds(tmp_path):
    with await MemoryMappedMutFile.create(tmp_path / "oob.index", 8) as mm_file:
        with pytest.raises(IndexError):
            await mm_file.flush_range(4, 10)