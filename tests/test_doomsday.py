import asyncio
from datetime import timedelta

import pytest

from fluvio_future.doomsday import DoomsdayExplosion, DoomsdayTimer
from fluvio_future.timer import sleep


@pytest.mark.asyncio
async def test_explode():
    _, handle = DoomsdayTimer.spawn(0.001, False)
    await sleep(0.002)
    done, _ = await asyncio.wait([handle], timeout=2)
    assert handle in done
    assert isinstance(handle.exception(), DoomsdayExplosion)


@pytest.mark.asyncio
async def test_do_not_explode():
    bomb, handle = DoomsdayTimer.spawn(0.1, False)
    await sleep(0.05)
    await bomb.reset()
    await sleep(0.05)
    await bomb.reset()
    await sleep(0.05)
    bomb.defuse()
    result = await asyncio.wait_for(handle, timeout=2)
    assert result is None
    assert bomb.defused is True


@pytest.mark.asyncio
async def test_manual_explode_raises():
    bomb, handle = DoomsdayTimer.spawn(10, False)
    try:
        with pytest.raises(DoomsdayExplosion):
            bomb.explode()
    finally:
        bomb.defuse()
        handle.cancel()


def test_aggressive_explode_exits_with_status_one():
    bomb = DoomsdayTimer(timedelta(seconds=1), exit_on_explode=True)
    with pytest.raises(SystemExit) as info:
        bomb.explode()
    assert info.value.code == 1


def test_display_names_fail_mode():
    assert "Panics" in str(DoomsdayTimer(1, False))
    assert "Exits" in str(DoomsdayTimer(1, True))
    assert str(DoomsdayTimer(1)).startswith("DoomsdayTimer(Duration: ")


def test_negative_duration_rejected():
    with pytest.raises(ValueError):
        DoomsdayTimer(-1)