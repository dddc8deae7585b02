"""Unit tests for the IdleTimer debounce."""

import asyncio

import pytest

from voicerelay.idle_timer import IdleTimer


class Recorder:
    def __init__(self):
        self.fires = []

    def __call__(self):
        self.fires.append(asyncio.get_running_loop().time())


@pytest.mark.asyncio
async def test_fires_once_after_duration():
    recorder = Recorder()
    timer = IdleTimer(0.05, recorder)

    timer.arm()
    assert timer.armed
    await asyncio.sleep(0.1)

    assert len(recorder.fires) == 1
    assert not timer.armed

    await asyncio.sleep(0.1)
    assert len(recorder.fires) == 1


@pytest.mark.asyncio
async def test_rearm_postpones_fire():
    recorder = Recorder()
    timer = IdleTimer(0.8, recorder)
    loop = asyncio.get_running_loop()

    start = loop.time()
    timer.arm()
    await asyncio.sleep(0.1)
    timer.arm()
    await asyncio.sleep(0.1)
    timer.arm()

    await asyncio.sleep(0.7)
    assert recorder.fires == []

    await asyncio.sleep(0.2)
    assert len(recorder.fires) == 1
    # Roughly 800 ms after the last arm, which was ~200 ms after the first
    assert recorder.fires[0] - start == pytest.approx(1.0, abs=0.1)


@pytest.mark.asyncio
async def test_cancel_prevents_fire_and_is_idempotent():
    recorder = Recorder()
    timer = IdleTimer(0.05, recorder)

    timer.arm()
    timer.cancel()
    timer.cancel()
    assert not timer.armed

    await asyncio.sleep(0.1)
    assert recorder.fires == []


@pytest.mark.asyncio
async def test_cancel_without_arm():
    timer = IdleTimer(0.05, Recorder())
    timer.cancel()
    assert not timer.armed


@pytest.mark.asyncio
async def test_arm_with_explicit_duration():
    recorder = Recorder()
    timer = IdleTimer(10.0, recorder)

    timer.arm(0.02)
    await asyncio.sleep(0.06)

    assert len(recorder.fires) == 1


@pytest.mark.asyncio
async def test_can_rearm_after_fire():
    recorder = Recorder()
    timer = IdleTimer(0.02, recorder)

    timer.arm()
    await asyncio.sleep(0.05)
    timer.arm()
    await asyncio.sleep(0.05)

    assert len(recorder.fires) == 2
