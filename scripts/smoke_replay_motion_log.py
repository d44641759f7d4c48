#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
smoke_replay_motion_log.py — Smoke Test for capture replay

    1. load_samples(): skips blank, malformed and non-accel lines, sorts by t_ms
    2. steady shaking: silent until the first heartbeat, then tier-1 clips
    3. same seed -> identical decision stream
    4. command line: CSV with a started column, English help text

Usage:
    python3 scripts/smoke_replay_motion_log.py
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import contextlib
import csv
import io
import tempfile
from pathlib import Path
from unittest import mock

from joysound.motion_link import sample_to_json
from joysound.motion_signal_v1_0 import MotionSample
from joysound.playback_engine_v1_0 import DecisionTrigger, ReasonToken
from joysound.settings import Settings
from replay_motion_log import load_samples, placeholder_book, replay
from replay_motion_log import main as replay_main


def print_separator(title: str):
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}")


def shaking(t_start=1000, t_end=11000, step=100):
    """Alternating rest / 5 m/s² spikes: every sample is an edge."""
    out = []
    for i, t in enumerate(range(t_start, t_end + 1, step)):
        out.append((t, MotionSample(0.0, 5.0 if i % 2 else 0.0, 0.0)))
    return out


def test_load_samples():
    print_separator("TEST 1: load_samples")
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "capture.jsonl"
        with open(path, "w") as f:
            f.write(sample_to_json(7, MotionSample(0.0, 1.0, 2.0), 2000) + "\n")
            f.write("\n")
            f.write("{not json\n")
            f.write('{"kind": "decision", "t_ms": 5}\n')
            f.write(sample_to_json(3, MotionSample(1.0, None, 0.0), 1500) + "\n")
        samples = load_samples(path)

    assert [t for t, _ in samples] == [1500, 2000]
    assert samples[0][1].y is None
    assert samples[1][1] == MotionSample(0.0, 1.0, 2.0)


def test_steady_shaking():
    print_separator("TEST 2: steady shaking")
    core, decisions = replay(shaking(), placeholder_book(), Settings(sensitivity=3), seed=1)

    assert decisions, "expected decisions"
    first = decisions[0]
    assert first.reason == ReasonToken.SCORE_ZERO
    assert first.trigger == DecisionTrigger.MOTION_EDGE

    played = [d for d in decisions if d.dispatched]
    assert played, "expected clips once pleasure rose"
    assert all(d.tier == 1 and d.clip.name == "tier1.wav" for d in played)
    assert played[0].timestamp_ms >= 3000
    assert any(d.trigger == DecisionTrigger.CLIP_COMPLETE for d in played)

    times = [d.timestamp_ms for d in decisions]
    assert times == sorted(times)

    assert core.pleasure == 15
    assert core.dirty_talk == 0
    assert not core.enabled


def test_replay_deterministic():
    print_separator("TEST 3: deterministic replay")
    def run():
        _, ds = replay(shaking(), placeholder_book(), Settings(), seed=42)
        return [(d.timestamp_ms, d.reason, d.tier, d.clip.name if d.clip else None) for d in ds]
    assert run() == run()

    _, none = replay([], placeholder_book(), Settings())
    assert none == []


def test_main_writes_csv_and_help():
    print_separator("TEST 4: command line")
    with tempfile.TemporaryDirectory() as tmp:
        src = Path(tmp) / "capture.jsonl"
        dst = Path(tmp) / "decisions.csv"
        with open(src, "w") as f:
            for t, s in shaking():
                f.write(sample_to_json(t, s, t) + "\n")

        with mock.patch.object(sys, "argv", ["replay_motion_log.py", str(src), str(dst)]):
            assert replay_main() == 0
        with open(dst, newline="") as f:
            rows = list(csv.DictReader(f))
        assert rows and rows[0]["reason"] == ReasonToken.SCORE_ZERO
        assert rows[0]["started"] == "0"
        assert any(r["started"] == "1" and r["tier"] == "1" for r in rows)

    help_out = io.StringIO()
    with mock.patch.object(sys, "argv", ["replay_motion_log.py", "--help"]), \
            contextlib.redirect_stdout(help_out):
        try:
            replay_main()
        except SystemExit:
            pass
    assert "input JSONL capture" in help_out.getvalue()
    assert "output CSV (optional)" in help_out.getvalue()


TESTS = [
    ("TEST 1: load_samples", test_load_samples),
    ("TEST 2: steady shaking", test_steady_shaking),
    ("TEST 3: deterministic replay", test_replay_deterministic),
    ("TEST 4: command line", test_main_writes_csv_and_help),
]


def main():
    results = []
    for name, fn in TESTS:
        try:
            fn()
            results.append((name, True))
        except AssertionError as e:
            print(f"\n  !! {name}: {e}")
            results.append((name, False))

    print_separator("TEST SUMMARY")
    for name, passed in results:
        print(f"  [{'PASS' if passed else 'FAIL'}] {name}")
    return 0 if all(p for _, p in results) else 1


if __name__ == "__main__":
    sys.exit(main())
