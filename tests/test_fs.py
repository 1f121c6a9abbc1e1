import os

import pytest

from fluvio_future import fs


@pytest.fixture
def api_request(tmp_path):
    path = tmp_path / "apirequest.bin"
    path.write_bytes(bytes(range(30)))
    return path


@pytest.mark.asyncio
async def test_file_multiple_overwrite(tmp_path):
    path = tmp_path / "file_write_test"

    file = await fs.create(path)
    file.seek(0)
    file.write(b"test")
    file.flush()
    os.fsync(file.fileno())
    file.close()

    file = await fs.create(path)
    file.seek(0)
    file.write(b"xyzt")
    file.flush()
    os.fsync(file.fileno())
    file.close()

    file = await fs.open_file(path)
    with file:
        output = file.read()
    assert len(output) == 4
    assert output.decode() == "xyzt"


@pytest.mark.asyncio
async def test_async_file_write_read_same(tmp_path):
    path = tmp_path / "read_write_test"
    file = await fs.open_read_write(path)
    with file:
        file.write(b"test")
        file.seek(0)
        output = file.read()
    assert len(output) == 4
    assert output.decode() == "test"


@pytest.mark.asyncio
async def test_open_read_write_does_not_truncate(tmp_path):
    path = tmp_path / "keep"
    path.write_bytes(b"abcdef")
    file = await fs.open_read_write(path)
    with file:
        file.write(b"XY")
        file.seek(0)
        output = file.read()
    assert output == b"XYcdef"


@pytest.mark.asyncio
async def test_async_file_write_append_same(tmp_path):
    path = tmp_path / "read_append_test"
    file = await fs.open_read_append(path)
    with file:
        file.write(b"test")
        file.seek(0)
        file.write(b"xyz")
        file.seek(0)
        output = file.read()
    assert len(output) == 7
    assert output.decode() == "testxyz"


@pytest.mark.asyncio
async def test_as_slice(api_request):
    file = await fs.open_file(api_request)
    with file:
        piece = await fs.as_slice(file, 0)
        assert piece.position == 0
        assert len(piece) == 30
        assert piece.fileno() == file.fileno()


@pytest.mark.asyncio
async def test_as_slice_with_length_and_offset(api_request):
    file = await fs.open_file(api_request)
    with file:
        piece = await fs.as_slice(file, 5, 10)
        assert (piece.position, len(piece)) == (5, 10)
        rest = await fs.as_slice(file, 5)
        assert len(rest) == 25


@pytest.mark.asyncio
async def test_as_slice_position_past_end(api_request):
    file = await fs.open_file(api_request)
    with file:
        with pytest.raises(EOFError):
            await fs.as_slice(file, 30)


@pytest.mark.asyncio
async def test_as_slice_length_reaching_end(api_request):
    file = await fs.open_file(api_request)
    with file:
        with pytest.raises(EOFError):
            await fs.as_slice(file, 0, 30)


def test_raw_slice_does_not_check(api_request):
    with open(api_request, "rb") as file:
        piece = fs.raw_slice(file, 0, 1000)
        assert len(piece) == 1000
        assert piece.fd == file.fileno()


@pytest.mark.asyncio
async def test_reset_to_beginning(api_request):
    file = await fs.open_file(api_request)
    with file:
        file.read(10)
        await fs.reset_to_beginning(file)
        assert file.tell() == 0
        assert file.read() == bytes(range(30))


class _TrickleWriter:
    def __init__(self, step):
        self.step = step
        self.data = bytearray()

    def write(self, chunk):
        taken = bytes(chunk[: self.step])
        self.data.extend(taken)
        return len(taken)


class _AsyncTrickleWriter(_TrickleWriter):
    async def write(self, chunk):
        return super().write(chunk)


class _ZeroWriter:
    def write(self, chunk):
        return 0


@pytest.mark.asyncio
async def test_write_buf_all_loops_until_done():
    writer = _TrickleWriter(2)
    await fs.write_buf_all(writer, b"hello world")
    assert bytes(writer.data) == b"hello world"


@pytest.mark.asyncio
async def test_write_buf_all_async_writer():
    writer = _AsyncTrickleWriter(3)
    await fs.write_buf_all(writer, bytearray(b"abcdefg"))
    assert bytes(writer.data) == b"abcdefg"


@pytest.mark.asyncio
async def test_write_buf_all_write_zero():
    with pytest.raises(OSError):
        await fs.write_buf_all(_ZeroWriter(), b"data")


@pytest.mark.asyncio
async def test_write_buf_all_to_file(tmp_path):
    path = tmp_path / "out.bin"
    file = await fs.create(path)
    with file:
        await fs.write_buf_all(file, b"\x01\x02\x03")
    assert path.read_bytes() == b"\x01\x02\x03"