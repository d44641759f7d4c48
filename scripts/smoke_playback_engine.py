#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
smoke_playback_engine.py — Smoke Test for the Playback Decision Engine v1.0

Scenarios:
    1. pleasure 15, tier-1 pool of 3        -> one of the 3, counter unchanged
    2. pleasure 40, counter 14              -> tier 2, counter 15
    3. pleasure 40, counter 15, tier 5 empty -> silence, counter 0
    4. pleasure 40, counter 15, tier 5 = 1  -> that clip, counter 0
    5. pleasure 0                           -> silence whatever the motion

Plus band boundaries and counter invariants over the whole score range.

Usage:
    python3 scripts/smoke_playback_engine.py
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import logging
import random

from joysound.playback_engine_v1_0 import (
    PlaybackDecisionEngine,
    DecisionInput,
    DecisionTrigger,
    ReasonToken,
)
from joy_testkit import make_book, tier_of


def setup_logging():
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        stream=sys.stdout,
    )


def print_separator(title: str):
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}")


def print_output(out, step: str):
    print(f"\n[{step}]")
    print(f"  Tier:        {out.tier}")
    print(f"  Clip:        {out.clip.name if out.clip else None}")
    print(f"  Reason:      {out.reason}")
    print(f"  Dirty talk:  {out.dirty_talk_before} -> {out.dirty_talk_after}")


def engine_with(dirty_talk=0, seed=7):
    engine = PlaybackDecisionEngine(rng=random.Random(seed))
    engine.dirty_talk = dirty_talk
    return engine


def moving(pleasure, book, now_ms=10_000):
    """Input with motion in the current window."""
    return DecisionInput(now_ms=now_ms, pleasure=pleasure, motion_in_window=True,
                         last_motion_ms=now_ms, pools=book)


def test_scenario_1_tier_one():
    print_separator("SCENARIO 1: pleasure 15 -> tier 1")
    book = make_book({1: 3})
    engine = engine_with(dirty_talk=4)
    out = engine.decide(moving(15, book))
    print_output(out, "pleasure=15")

    assert out.dispatched
    assert out.clip in book.get_pool(1)
    assert out.tier == 1
    assert engine.dirty_talk == 4
    assert out.reason == ReasonToken.TIER_BAND


def test_scenario_2_gated_increment():
    print_separator("SCENARIO 2: pleasure 40, counter 14 -> tier 2, counter 15")
    book = make_book()
    engine = engine_with(dirty_talk=14)
    out = engine.decide(moving(40, book))
    print_output(out, "pleasure=40 counter=14")

    assert out.tier == 2
    assert tier_of(out.clip) == 2
    assert engine.dirty_talk == 15
    assert out.reason == ReasonToken.GATED_TIER


def test_scenario_3_burst_empty():
    print_separator("SCENARIO 3: counter 15, tier 5 empty -> silence, counter 0")
    book = make_book({1: 3, 2: 3, 3: 3, 4: 3, 5: 0})
    engine = engine_with(dirty_talk=15)
    out = engine.decide(moving(40, book))
    print_output(out, "pleasure=40 counter=15 tier5=[]")

    assert not out.dispatched
    assert out.tier is None
    assert engine.dirty_talk == 0
    assert out.reason == ReasonToken.DIRTY_TALK_BURST_EMPTY


def test_scenario_4_burst_clip():
    print_separator("SCENARIO 4: counter 15, tier 5 has 1 clip -> burst, counter 0")
    book = make_book({2: 3, 5: 1})
    engine = engine_with(dirty_talk=15)
    out = engine.decide(moving(40, book))
    print_output(out, "pleasure=40 counter=15 tier5=[1]")

    assert out.clip == book.get_pool(5)[0]
    assert out.tier == 5
    assert engine.dirty_talk == 0
    assert out.reason == ReasonToken.DIRTY_TALK_BURST


def test_scenario_5_score_zero_silent():
    print_separator("SCENARIO 5: pleasure 0 -> silence")
    book = make_book()
    engine = engine_with(dirty_talk=3)
    out = engine.decide(moving(0, book))
    print_output(out, "pleasure=0")

    assert not out.dispatched
    assert out.reason == ReasonToken.SCORE_ZERO
    assert engine.dirty_talk == 3


def test_band_boundaries():
    print_separator("BAND BOUNDARIES: 20/21, 60/61, 90/91")
    book = make_book()
    expected = {1: 1, 20: 1, 21: 2, 60: 2, 61: 3, 90: 3, 91: 4, 100: 4}
    for pleasure, tier in expected.items():
        out = engine_with().decide(moving(pleasure, book))
        print(f"  pleasure={pleasure:3d} -> tier {out.tier}")
        assert out.tier == tier, f"pleasure {pleasure}: expected tier {tier}, got {out.tier}"


def test_ungated_bands_never_touch_counter():
    print_separator("UNGATED BANDS: counter untouched for 1-20 and 91-100")
    book = make_book()
    for pleasure in list(range(1, 21)) + list(range(91, 101)):
        for counter in (0, 7, 15):
            engine = engine_with(dirty_talk=counter)
            engine.decide(moving(pleasure, book))
            assert engine.dirty_talk == counter, f"pleasure {pleasure} counter {counter}"


def test_gated_bands_count_then_reset():
    print_separator("GATED BANDS: +1 below 15, reset at 15")
    book = make_book({2: 3, 3: 3, 5: 0})
    for pleasure in range(21, 91):
        for counter in range(0, 16):
            engine = engine_with(dirty_talk=counter)
            engine.decide(moving(pleasure, book))
            want = counter + 1 if counter < 15 else 0
            assert engine.dirty_talk == want, f"pleasure {pleasure} counter {counter}"


def test_no_recent_motion_silent():
    print_separator("NO RECENT MOTION: window clear and last edge >= 2000 ms ago")
    book = make_book()
    engine = engine_with(dirty_talk=5)

    stale = DecisionInput(now_ms=10_000, pleasure=50, motion_in_window=False,
                          last_motion_ms=8_000, pools=book)
    out = engine.decide(stale)
    assert not out.dispatched and out.reason == ReasonToken.NO_RECENT_MOTION
    assert engine.dirty_talk == 5

    never = DecisionInput(now_ms=10_000, pleasure=50, motion_in_window=False,
                          last_motion_ms=None, pools=book)
    assert engine.decide(never).reason == ReasonToken.NO_RECENT_MOTION

    fresh = DecisionInput(now_ms=10_000, pleasure=50, motion_in_window=False,
                          last_motion_ms=8_001, pools=book, trigger=DecisionTrigger.CLIP_COMPLETE)
    out = engine.decide(fresh)
    assert out.dispatched and out.tier == 2
    assert engine.dirty_talk == 6


def test_empty_tier_is_silence_not_error():
    print_separator("EMPTY POOL: tier resolves with no clips")
    book = make_book({1: 0, 2: 0})
    engine = engine_with(dirty_talk=2)

    out = engine.decide(moving(10, book))
    assert not out.dispatched and out.reason == ReasonToken.EMPTY_POOL

    # gated tier still counts even when its pool is empty
    out = engine.decide(moving(30, book))
    assert not out.dispatched and out.reason == ReasonToken.EMPTY_POOL
    assert engine.dirty_talk == 3


def test_counter_clamped():
    print_separator("CLAMP: counter setter")
    engine = engine_with()
    engine.dirty_talk = 99
    assert engine.dirty_talk == 15
    engine.dirty_talk = -4
    assert engine.dirty_talk == 0


def test_log_entries():
    print_separator("LOGGING: one entry per decision")
    book = make_book()
    out = engine_with().decide(moving(50, book))
    assert len(out.log_entries) == 1
    assert out.log_entries[0].startswith("ENGINE_DECISION")
    assert "tier=2" in out.log_entries[0]

    out = engine_with().decide(moving(0, book))
    assert out.log_entries[0].startswith("ENGINE_SILENCE")


TESTS = [
    ("SCENARIO 1: tier 1", test_scenario_1_tier_one),
    ("SCENARIO 2: gated increment", test_scenario_2_gated_increment),
    ("SCENARIO 3: burst with empty tier 5", test_scenario_3_burst_empty),
    ("SCENARIO 4: burst clip", test_scenario_4_burst_clip),
    ("SCENARIO 5: score zero", test_scenario_5_score_zero_silent),
    ("Band boundaries", test_band_boundaries),
    ("Ungated bands keep counter", test_ungated_bands_never_touch_counter),
    ("Gated bands count / reset", test_gated_bands_count_then_reset),
    ("No recent motion", test_no_recent_motion_silent),
    ("Empty pool", test_empty_tier_is_silence_not_error),
    ("Counter clamp", test_counter_clamped),
    ("Log entries", test_log_entries),
]


def main():
    setup_logging()
    print_separator("Playback Decision Engine v1.0 Smoke Test Suite")
    print(f"Engine version: {PlaybackDecisionEngine.VERSION}")

    results = []
    for name, fn in TESTS:
        try:
            fn()
            results.append((name, True))
        except AssertionError as e:
            print(f"\n  !! {name}: {e}")
            results.append((name, False))

    print_separator("TEST SUMMARY")
    all_passed = True
    for name, passed in results:
        print(f"  [{'PASS' if passed else 'FAIL'}] {name}")
        all_passed = all_passed and passed

    print()
    print("="*70)
    print("  ALL TESTS PASSED" if all_passed else "  SOME TESTS FAILED")
    print("="*70)
    return 0 if all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
