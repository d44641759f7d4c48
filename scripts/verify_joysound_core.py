#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
verify_joysound_core.py — Verification of the wired core

Tests:
    A. Heartbeat: accumulate / decay / bounds / restart
    B. Motion: delta-magnitude edges, dropped samples, display intensity
    C. Core loop: edge trigger, completion re-decide, no re-entry, silence
    D. Enablement: full shutdown, permission denied, subscribe error, playback refused,
       idempotent re-enable, settings
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import random

from joysound.core_v1_0 import JoysoundCore
from joysound.heartbeat_v1_0 import HeartbeatScheduler
from joysound.motion_signal_v1_0 import MotionSample, MotionSignalProcessor
from joysound.playback_controller import AudioPlaybackController, NullSink
from joysound.playback_engine_v1_0 import DecisionTrigger, PlaybackState, ReasonToken
from joysound.scheme_registry import Clip
from joysound.settings import Settings
from joy_testkit import FakeSink, FakeMotionSource, make_book, tier_of


REST = MotionSample(0.0, 0.0, 0.0)
SHAKE = MotionSample(3.0, 0.0, 0.0)     # delta 3.0 from rest -> edge


def print_separator(title: str):
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}")


def make_core(book=None, sink=None, source=None, seed=11, **settings):
    core = JoysoundCore(
        schemes=book or make_book(),
        settings=Settings(**settings),
        sink=sink or FakeSink(),
        motion_source=source,
        rng=random.Random(seed),
    )
    return core


def shake(core, now_ms):
    """Rest sample followed by a jump: exactly one edge."""
    core.feed_motion(REST, now_ms)
    return core.feed_motion(SHAKE, now_ms)


# =============================================================================
# A. HEARTBEAT
# =============================================================================

def test_heartbeat_accumulates_with_motion():
    hb = HeartbeatScheduler(sensitivity=4)
    hb.start(0)
    hb.mark_motion()
    ticks = hb.poll(2000)
    assert len(ticks) == 1
    assert hb.pleasure == 4
    assert hb.motion_in_window is False


def test_heartbeat_decays_without_motion():
    hb = HeartbeatScheduler(sensitivity=3)
    hb.pleasure = 12
    hb.start(0)
    hb.poll(2000)
    assert hb.pleasure == 7
    hb.poll(4000)
    assert hb.pleasure == 2
    hb.poll(6000)
    assert hb.pleasure == 0
    hb.poll(8000)
    assert hb.pleasure == 0


def test_heartbeat_bounds_and_clamp():
    hb = HeartbeatScheduler(sensitivity=5)
    hb.pleasure = 98
    hb.start(0)
    hb.mark_motion()
    hb.poll(2000)
    assert hb.pleasure == 100
    hb.pleasure = 250
    assert hb.pleasure == 100
    hb.pleasure = -3
    assert hb.pleasure == 0
    hb.sensitivity = 9
    assert hb.sensitivity == 5


def test_heartbeat_not_due_and_catch_up():
    hb = HeartbeatScheduler()
    hb.pleasure = 50
    assert hb.poll(10_000) == []          # not started
    hb.start(0)
    assert hb.poll(1999) == []
    hb.mark_motion()
    ticks = hb.poll(6000)                 # three periods elapsed
    assert [t.motion for t in ticks] == [True, False, False]
    assert hb.pleasure == 50 + 3 - 5 - 5


def test_heartbeat_restart_keeps_window():
    hb = HeartbeatScheduler(sensitivity=1)
    hb.start(0)
    hb.mark_motion()
    hb.restart(1500, sensitivity=5)
    assert hb.poll(2000) == []            # rescheduled to 3500
    hb.poll(3500)
    assert hb.pleasure == 5


# =============================================================================
# B. MOTION
# =============================================================================

def test_motion_edge_threshold():
    mp = MotionSignalProcessor(rng=random.Random(1))
    mp.start()
    snap = mp.feed(MotionSample(0.0, 0.0, 8.0), 100)     # gravity jump from origin
    assert snap.edge and snap.last_edge_ms == 100
    snap = mp.feed(MotionSample(1.0, 1.0, 8.0), 200)     # |d| = 1.41
    assert not snap.edge and snap.last_edge_ms == 100
    snap = mp.feed(MotionSample(1.0, 1.0, 10.0), 300)    # |d| = 2.0, not above
    assert snap.magnitude == 2.0 and not snap.edge
    snap = mp.feed(MotionSample(1.0, 1.0, 12.25), 400)   # |d| = 2.25
    assert snap.edge and snap.last_edge_ms == 400


def test_motion_drops_incomplete_samples():
    mp = MotionSignalProcessor(rng=random.Random(1))
    mp.start()
    mp.feed(MotionSample(5.0, 0.0, 0.0), 0)
    snap = mp.feed(MotionSample(None, 9.0, 9.0), 10)
    assert snap.accepted is False and not snap.edge
    # last sample still (5, 0, 0)
    snap = mp.feed(MotionSample(5.0, 0.0, 0.0), 20)
    assert snap.magnitude == 0.0


def test_motion_inert_until_started():
    mp = MotionSignalProcessor()
    snap = mp.feed(SHAKE, 0)
    assert not snap.accepted and not snap.edge
    mp.start()
    assert mp.feed(SHAKE, 10).edge
    mp.stop()
    assert not mp.feed(REST, 20).accepted


def test_motion_intensity():
    mp = MotionSignalProcessor(rng=random.Random(3))
    mp.start()
    mp.feed(MotionSample(1.0, 0.0, 0.0), 0)
    assert mp.intensity == 5.0
    mp.feed(MotionSample(40.0, 0.0, 0.0), 10)
    assert mp.intensity == 100.0
    for i in range(200):
        mp.feed(MotionSample(40.0, 0.0, 0.0), 20 + i)
    assert mp.intensity == 0.0


# =============================================================================
# C. CORE LOOP
# =============================================================================

def test_edge_triggers_decision_when_idle():
    sink = FakeSink()
    core = make_core(sink=sink)
    core.on_enable(0)
    core.set_pleasure(15)
    out = shake(core, 100)
    assert out is not None and out.trigger == DecisionTrigger.MOTION_EDGE
    assert out.dispatched and tier_of(out.clip) == 1
    assert core.playback_state == PlaybackState.PLAYING
    assert len(sink.plays) == 1


def test_no_reentry_while_playing():
    sink = FakeSink()
    core = make_core(sink=sink)
    core.on_enable(0)
    core.set_pleasure(30)
    shake(core, 100)
    assert core.dirty_talk == 1
    out = shake(core, 150)
    assert out is None
    assert len(sink.plays) == 1 and core.dirty_talk == 1
    assert core.heartbeat.motion_in_window is True


def test_completion_redecides_without_recursion():
    sink = FakeSink()
    core = make_core(sink=sink)
    core.on_enable(0)
    core.set_pleasure(30)
    shake(core, 100)

    sink.finish()
    # completion is queued; nothing happens until poll
    assert core.playback_state == PlaybackState.PLAYING
    decisions = core.poll(500)
    assert len(decisions) == 1
    assert decisions[0].trigger == DecisionTrigger.CLIP_COMPLETE
    assert decisions[0].dispatched
    assert len(sink.plays) == 2
    assert core.dirty_talk == 2


def test_completion_at_score_zero_goes_idle():
    sink = FakeSink()
    core = make_core(sink=sink)
    core.on_enable(0)
    core.set_pleasure(5)
    shake(core, 100)
    assert core.playback_state == PlaybackState.PLAYING

    core.poll(2000)                 # motion in window: 5 + 3
    core.poll(4000)                 # 8 - 5
    core.poll(6000)                 # 3 - 5 -> 0
    assert core.pleasure == 0
    sink.finish()
    decisions = core.poll(6100)
    assert len(decisions) == 1 and not decisions[0].dispatched
    assert decisions[0].reason == ReasonToken.SCORE_ZERO
    assert core.playback_state == PlaybackState.IDLE
    assert len(sink.plays) == 1


def test_completion_after_motion_goes_stale():
    sink = FakeSink()
    core = make_core(sink=sink)
    core.on_enable(0)
    core.set_pleasure(80)
    shake(core, 100)
    core.poll(2000)                 # window cleared by tick
    sink.finish()
    decisions = core.poll(2100)     # last edge 2000 ms ago
    assert decisions[0].reason == ReasonToken.NO_RECENT_MOTION
    assert core.playback_state == PlaybackState.IDLE


def test_long_completion_chain():
    sink = FakeSink()
    core = make_core(sink=sink, sensitivity=5)
    core.on_enable(0)
    core.set_pleasure(95)
    t = 100
    shake(core, t)
    for _ in range(500):
        t += 100
        shake(core, t)              # keeps motion recent; core is busy so no re-entry
        sink.finish()
        core.poll(t)
    assert len(sink.plays) == 501
    assert core.playback_state == PlaybackState.PLAYING


def test_stale_completion_ignored():
    ctrl = AudioPlaybackController(FakeSink())
    a, b = Clip("a", "a.wav"), Clip("b", "b.wav")
    ctrl.play(a, 1.0)
    ctrl.notify_finished(1)
    ctrl.play(b, 1.0)               # replaces a; its completion is discarded
    assert ctrl.drain_completions() == []
    ctrl.notify_finished(1)
    assert ctrl.drain_completions() == []
    assert ctrl.state == PlaybackState.PLAYING
    ctrl.notify_finished(2)
    assert ctrl.drain_completions() == [b]
    assert ctrl.state == PlaybackState.IDLE


def test_null_sink_completes_after_duration():
    sink = NullSink(clip_duration_ms=1000)
    core = make_core(sink=sink)
    core.on_enable(0)
    core.set_pleasure(10)
    sink.set_clock(100)
    shake(core, 100)
    sink.finish_due(900)
    assert core.poll(900) == []
    sink.finish_due(1100)
    decisions = core.poll(1100)
    assert len(decisions) == 1


# =============================================================================
# D. ENABLEMENT / ERRORS / SETTINGS
# =============================================================================

def test_disabled_core_is_inert():
    sink = FakeSink()
    core = make_core(sink=sink)
    core.set_pleasure(50)
    assert shake(core, 100) is None
    assert core.poll(10_000) == []
    assert sink.plays == [] and core.pleasure == 50


def test_disable_is_full_shutdown():
    sink, source = FakeSink(), FakeMotionSource()
    core = make_core(sink=sink, source=source)
    core.on_enable(0)
    assert source.callback is not None and core.motion_subscribed
    core.set_pleasure(50)
    source.callback(REST, 100)
    source.callback(SHAKE, 100)
    assert core.playback_state == PlaybackState.PLAYING

    core.on_disable(200)
    assert core.playback_state == PlaybackState.IDLE
    assert not sink.loaded
    assert source.unsubscribe_calls == 1 and source.callback is None
    assert not core.motion.running
    assert not core.heartbeat.active

    sink.finish()                   # late completion from the stopped clip
    core.on_enable(300)
    assert core.poll(400) == []
    core.on_disable(500)
    core.on_disable(600)
    assert source.unsubscribe_calls == 2


def test_permission_denied_stays_enabled_and_decays():
    sink, source = FakeSink(), FakeMotionSource(grant=False)
    core = make_core(sink=sink, source=source)
    core.set_pleasure(12)
    core.on_enable(0)
    assert core.enabled and not core.motion_subscribed
    for t in range(2000, 12_000, 2000):
        core.poll(t)
    assert core.pleasure == 0
    assert sink.plays == []
    core.on_disable(12_000)
    assert source.unsubscribe_calls == 0


def test_playback_refused_goes_idle_and_retries_next_trigger():
    sink = FakeSink()
    sink.refuse_start = True
    core = make_core(sink=sink)
    core.on_enable(0)
    core.set_pleasure(40)
    out = shake(core, 100)
    assert out.dispatched and not out.started
    assert core.playback_state == PlaybackState.IDLE
    assert core.controller.start_failures == 1
    assert core.controller.starts == 0
    assert core.engine.dispatch_count == 1

    sink.refuse_start = False
    shake(core, 200)
    assert core.playback_state == PlaybackState.PLAYING
    assert len(sink.plays) == 1
    assert core.last_decision.started
    assert core.controller.starts == 1


def test_subscribe_error_leaves_core_disabled():
    source = FakeMotionSource()
    source.error = ValueError("invalid baudrate")
    core = make_core(source=source)
    core.set_pleasure(30)
    try:
        core.on_enable(0)
        raised = False
    except ValueError:
        raised = True
    assert raised
    assert not core.enabled and not core.motion_subscribed
    assert not core.heartbeat.active
    assert not core.motion.running
    assert shake(core, 100) is None
    assert core.poll(10_000) == []
    assert core.pleasure == 30

    source.error = None
    core.on_enable(20_000)
    assert core.enabled and core.motion_subscribed and core.heartbeat.active


def test_reenable_reproduces_next_decision():
    def run(toggle):
        sink = FakeSink()
        core = make_core(sink=sink, seed=5)
        core.on_enable(0)
        core.set_pleasure(70)
        core.set_dirty_talk(9)
        if toggle:
            core.on_disable(50)
            core.on_enable(60)
        out = shake(core, 100)
        return out.clip, out.tier, core.dirty_talk

    assert run(False) == run(True)


def test_volume_live_and_future():
    sink = FakeSink()
    core = make_core(sink=sink, global_volume=0.5)
    core.on_enable(0)
    core.set_pleasure(10)
    shake(core, 100)
    assert sink.plays[0][1] == 0.5
    core.set_volume(0.2)
    assert sink.volume == 0.2 and sink.loaded        # not interrupted
    assert core.set_volume(3.0) == 1.0
    sink.finish()
    shake(core, 200)
    core.poll(200)
    assert sink.plays[-1][1] == 1.0


def test_sensitivity_restarts_heartbeat():
    core = make_core(sensitivity=1)
    core.on_enable(0)
    shake(core, 100)
    core.set_sensitivity(4, 1500)
    core.poll(2000)
    assert core.pleasure == 0                        # tick moved to 3500
    core.poll(3500)
    assert core.pleasure == 4
    assert core.set_sensitivity(0, 4000) == 1


def test_external_overrides_clamped():
    core = make_core()
    assert core.set_pleasure(140) == 100
    assert core.set_pleasure(-1) == 0
    assert core.set_dirty_talk(16) == 15
    assert core.set_dirty_talk(-2) == 0


TESTS = [
    ("A: heartbeat accumulates", test_heartbeat_accumulates_with_motion),
    ("A: heartbeat decays", test_heartbeat_decays_without_motion),
    ("A: heartbeat bounds", test_heartbeat_bounds_and_clamp),
    ("A: heartbeat due / catch-up", test_heartbeat_not_due_and_catch_up),
    ("A: heartbeat restart", test_heartbeat_restart_keeps_window),
    ("B: motion edge threshold", test_motion_edge_threshold),
    ("B: motion incomplete samples", test_motion_drops_incomplete_samples),
    ("B: motion inert until started", test_motion_inert_until_started),
    ("B: motion intensity", test_motion_intensity),
    ("C: edge triggers when idle", test_edge_triggers_decision_when_idle),
    ("C: no re-entry while playing", test_no_reentry_while_playing),
    ("C: completion re-decides", test_completion_redecides_without_recursion),
    ("C: completion at score 0", test_completion_at_score_zero_goes_idle),
    ("C: completion after stale motion", test_completion_after_motion_goes_stale),
    ("C: long completion chain", test_long_completion_chain),
    ("C: stale completion ignored", test_stale_completion_ignored),
    ("C: null sink", test_null_sink_completes_after_duration),
    ("D: disabled core inert", test_disabled_core_is_inert),
    ("D: disable full shutdown", test_disable_is_full_shutdown),
    ("D: permission denied", test_permission_denied_stays_enabled_and_decays),
    ("D: playback refused", test_playback_refused_goes_idle_and_retries_next_trigger),
    ("D: subscribe error", test_subscribe_error_leaves_core_disabled),
    ("D: re-enable idempotent", test_reenable_reproduces_next_decision),
    ("D: volume", test_volume_live_and_future),
    ("D: sensitivity", test_sensitivity_restarts_heartbeat),
    ("D: clamped overrides", test_external_overrides_clamped),
]


def main():
    print_separator("Joysound core v1.0 — Verification")

    results = []
    for name, fn in TESTS:
        try:
            fn()
            results.append((name, True))
        except AssertionError as e:
            results.append((name, False))
            print(f"  !! {name}: {e}")
        print(f"  [{'PASS' if results[-1][1] else 'FAIL'}] {name}")

    failed = [n for n, p in results if not p]
    print_separator("VERIFICATION SUMMARY")
    print(f"\n  Total tests: {len(results)}")
    print(f"  Passed:      {len(results) - len(failed)}")
    print(f"  Failed:      {len(failed)}")
    for name in failed:
        print(f"    - {name}")
    return 0 if not failed else 1


if __name__ == "__main__":
    sys.exit(main())
