from __future__ import annotations

from typing import Callable, List, Optional, Tuple

import pytest

import core.config as config_module


@pytest.fixture(autouse=True)
def reset_settings_cache(tmp_path, monkeypatch):
    # 把路径指向 tmp，避免污染真实 outputs
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "outputs"))
    monkeypatch.setenv("DEVICE_BASE_URL", "http://device.test")
    monkeypatch.setenv("APP_ENV", "test")

    config_module.get_settings.cache_clear()
    yield
    config_module.get_settings.cache_clear()


class FakeOscillator:
    """Records every call; clock advances only when the test says so."""

    def __init__(self) -> None:
        self.state = "suspended"
        self.connected = False
        self.now = 0.0
        self.resets = 0
        self.calls: List[Tuple] = []
        self.frequencies: List[Tuple[int, float]] = []

    @property
    def current_time(self) -> float:
        return self.now

    def set_frequency(self, hz: int, at: float) -> None:
        self.frequencies.append((hz, at))
        self.calls.append(("set_frequency", hz, at))

    def start(self) -> None:
        assert self.state == "suspended"
        self.state = "running"
        self.calls.append(("start",))

    def connect(self) -> None:
        self.connected = True
        self.calls.append(("connect",))

    def disconnect(self) -> None:
        self.connected = False
        self.calls.append(("disconnect",))

    def reset(self) -> None:
        self.resets += 1


class ManualTimer:
    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        self.interval_s = interval_s
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Tick scheduler driven by the test: tick() fires every live timer once."""

    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []

    def every(self, interval_s: float, callback: Callable[[], None]) -> ManualTimer:
        t = ManualTimer(interval_s, callback)
        self.timers.append(t)
        return t

    @property
    def active(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def tick(self, times: int = 1, osc: Optional[FakeOscillator] = None) -> None:
        for _ in range(times):
            for t in self.active:
                if osc is not None:
                    osc.now += t.interval_s
                t.callback()


@pytest.fixture
def oscillator() -> FakeOscillator:
    return FakeOscillator()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


def make_device_payload(**overrides):
    """A getAddonsOptions body as the device sends it."""
    payload = {
        "turboPin": -1,
        "turboPinLED": -1,
        "sliderLSPin": -1,
        "sliderRSPin": -1,
        "turboShotCount": 20,
        "reversePin": -1,
        "reversePinLED": -1,
        "reverseActionUp": 1,
        "reverseActionDown": 1,
        "reverseActionLeft": 1,
        "reverseActionRight": 1,
        "i2cAnalog1219SDAPin": -1,
        "i2cAnalog1219SCLPin": -1,
        "i2cAnalog1219Block": 0,
        "i2cAnalog1219Speed": 400000,
        "i2cAnalog1219Address": 64,
        "onBoardLedMode": 0,
        "dualDirUpPin": -1,
        "dualDirDownPin": -1,
        "dualDirLeftPin": -1,
        "dualDirRightPin": -1,
        "dualDirDpadMode": 0,
        "dualDirCombineMode": 0,
        "buzzerEnabled": 1,
        "buzzerPin": -1,
        "buzzerVolume": 100,
        "buzzerIntroSong": -1,
        "buzzerCustomIntroSongToneDuration": 150,
        "buzzerCustomIntroSong": "",
        "usedPins": [0, 1, 2, 3],
        "buzzerSongs": [
            {"name": "Mario", "toneDuration": 120, "tones": [659, 659, 0, 659]},
            {"name": "Glitchy", "toneDuration": 100, "tones": [262, 263, 330]},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def device_payload():
    return make_device_payload()
