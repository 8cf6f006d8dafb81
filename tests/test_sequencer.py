import asyncio

from core.notes import Song
from core.sequencer import LoopTickScheduler, PlaybackState, ToneSequencer


def _song(*tokens, duration=100, name="t"):
    return Song(tokens=tuple(tokens), tone_duration_ms=duration, name=name)


# ==========================================
# 1. Ticking
# ==========================================

def test_plays_one_tone_per_tick_then_goes_idle(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    seq.play(_song("C4", "PAUSE", "E4"))

    assert seq.state == PlaybackState.playing
    assert len(scheduler.active) == 1
    assert scheduler.active[0].interval_s == 0.1
    # nothing happens before the first tick
    assert oscillator.frequencies == []

    scheduler.tick(3, osc=oscillator)
    assert [hz for hz, _ in oscillator.frequencies] == [262, 0, 330]
    assert seq.is_playing

    # tick after the last tone ends the session
    scheduler.tick(osc=oscillator)
    assert seq.state == PlaybackState.idle
    assert scheduler.active == []
    assert oscillator.connected is False


def test_frequency_set_at_oscillator_clock(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    seq.play(_song("A4", "B4", duration=250))
    scheduler.tick(2, osc=oscillator)
    assert oscillator.frequencies == [(440, 0.25), (494, 0.5)]


def test_starts_suspended_oscillator_once_and_connects(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    seq.play(_song("C4", "D4"))
    scheduler.tick(2)

    names = [c[0] for c in oscillator.calls]
    assert names.count("start") == 1
    assert names[:3] == ["set_frequency", "start", "connect"]
    assert oscillator.state == "running"


def test_unknown_tokens_and_holes_play_as_silence(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    seq.play(_song("C4", "ZZ9", None, "", "E4"))
    scheduler.tick(5)
    assert [hz for hz, _ in oscillator.frequencies] == [262, 0, 0, 0, 330]


def test_empty_song_finishes_on_first_tick(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    seq.play(_song())
    scheduler.tick()
    assert not seq.is_playing
    assert oscillator.frequencies == []


def test_zero_duration_uses_min_tick(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler, min_tick_ms=4)
    seq.play(_song("C4", duration=0))
    assert scheduler.active[0].interval_s == 0.004


# ==========================================
# 2. Stop / toggle / replace
# ==========================================

def test_stop_is_immediate_and_stale_ticks_do_nothing(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    seq.play(_song("C4", "D4", "E4"))
    scheduler.tick()
    timer = scheduler.timers[0]

    assert seq.stop() is True
    assert seq.state == PlaybackState.idle
    assert timer.cancelled
    assert oscillator.connected is False

    # a tick that was already queued fires anyway
    timer.callback()
    assert [hz for hz, _ in oscillator.frequencies] == [262]


def test_stop_when_idle_is_noop(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    assert seq.stop() is False
    assert oscillator.calls == []


def test_toggle_plays_then_stops(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    assert seq.toggle(_song("C4")) is True
    assert seq.is_playing
    assert seq.toggle(_song("E4")) is False
    assert not seq.is_playing
    assert scheduler.active == []
    assert len(scheduler.timers) == 1


def test_play_while_playing_replaces_without_second_timer(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    first = seq.play(_song("C4", "C4", "C4", name="first"))
    scheduler.tick()
    second = seq.play(_song("E4", name="second"))

    assert len(scheduler.active) == 1
    assert first.timer.cancelled
    assert seq.session is second

    scheduler.tick()
    assert [hz for hz, _ in oscillator.frequencies] == [262, 330]


# ==========================================
# 3. asyncio scheduler
# ==========================================

def test_loop_scheduler_ticks_and_cancels(oscillator):
    async def run():
        seq = ToneSequencer(oscillator, LoopTickScheduler())
        seq.play(_song("C4", "E4", "G4", duration=5))
        await asyncio.sleep(0.2)
        return seq

    seq = asyncio.run(run())
    assert not seq.is_playing
    assert [hz for hz, _ in oscillator.frequencies] == [262, 330, 392]
    assert oscillator.connected is False


def test_loop_scheduler_stop_prevents_further_changes(oscillator):
    async def run():
        seq = ToneSequencer(oscillator, LoopTickScheduler())
        seq.play(_song("C4", "E4", "G4", "C5", duration=20))
        await asyncio.sleep(0.05)
        seq.stop()
        seen = len(oscillator.frequencies)
        await asyncio.sleep(0.1)
        return seen

    seen = asyncio.run(run())
    assert seen >= 1
    assert len(oscillator.frequencies) == seen


def test_each_session_resets_the_oscillator(oscillator, scheduler):
    seq = ToneSequencer(oscillator, scheduler)
    seq.play(_song("C4"))
    seq.play(_song("E4"))
    seq.toggle(_song("G4"))
    assert oscillator.resets == 2
