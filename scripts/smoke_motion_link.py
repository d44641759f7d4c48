#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
smoke_motion_link.py — Smoke Test for the accelerometer serial link

    1. full accel frame decodes to a complete sample
    2. partial frame decodes with None axes (dropped by the processor)
    3. corrupted frame skipped, following frame still decoded
    4. SerialMotionSource over pyserial's loop:// delivers samples into the core
    5. unopenable port -> MotionPermissionDenied, core enabled-but-inert

Usage:
    python3 scripts/smoke_motion_link.py
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import random
import struct

from joysound.core_v1_0 import JoysoundCore, MotionPermissionDenied
from joysound.motion_link import (
    FrameStream,
    SerialMotionSource,
    TYPE_ACCEL,
    TYPE_ACCEL_PARTIAL,
    encode_accel_frame,
    encode_frame,
    parse_accel,
)
from joysound.motion_signal_v1_0 import MotionSample
from joysound.playback_engine_v1_0 import PlaybackState
from joysound.settings import Settings
from joy_testkit import FakeSink, make_book


def print_separator(title: str):
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}")


def decode_all(data: bytes):
    fs = FrameStream(None)
    return [parse_accel(t, p) for t, v, p in fs.feed(data)]


def test_full_frame():
    print_separator("TEST 1: full accel frame")
    out = decode_all(encode_accel_frame(1234, 0.5, -1.25, 9.75))
    assert len(out) == 1
    t_ms, sample = out[0]
    assert t_ms == 1234
    assert sample == MotionSample(0.5, -1.25, 9.75)
    assert sample.complete


def test_partial_frame():
    print_separator("TEST 2: partial frame (missing axis)")
    frame = encode_accel_frame(77, 1.0, None, 2.0)
    assert frame[1] >> 4 == TYPE_ACCEL_PARTIAL
    t_ms, sample = decode_all(frame)[0]
    assert t_ms == 77
    assert sample.x == 1.0 and sample.y is None and sample.z == 2.0
    assert not sample.complete


def test_corrupt_frame_skipped():
    print_separator("TEST 3: corrupted frame skipped")
    bad = bytearray(encode_accel_frame(1, 1.0, 1.0, 1.0))
    bad[5] ^= 0xFF
    good = encode_accel_frame(2, 3.0, 0.0, 0.0)
    out = decode_all(b"\x00\x13" + bytes(bad) + good)
    assert len(out) == 1
    assert out[0][0] == 2

    # split delivery: a frame arriving in two reads
    fs = FrameStream(None)
    assert list(fs.feed(good[:7])) == []
    frames = list(fs.feed(good[7:]))
    assert len(frames) == 1 and frames[0][0] == TYPE_ACCEL

    # unknown type / short payload
    assert parse_accel(0x7, b"\x00" * 16) is None
    assert parse_accel(TYPE_ACCEL, struct.pack('<I', 5)) is None
    assert decode_all(encode_frame(TYPE_ACCEL, b"\x01\x02")) == [None]


def test_serial_source_feeds_core():
    print_separator("TEST 4: loop:// serial source -> core")
    sink = FakeSink()
    source = SerialMotionSource("loop://", baud=115200, timeout=0.05)
    core = JoysoundCore(schemes=make_book(), settings=Settings(), sink=sink,
                        motion_source=source, rng=random.Random(1))
    core.on_enable(0)
    try:
        assert source.subscribed
        core.set_pleasure(25)
        source.ser.write(encode_accel_frame(10, 0.0, 0.0, 0.0) +
                         encode_accel_frame(20, 0.0, 4.0, 0.0))
        n = source.pump(100)
        assert n == 2, f"expected 2 samples, got {n}"
        assert core.playback_state == PlaybackState.PLAYING
        assert core.dirty_talk == 1
        assert len(sink.plays) == 1
    finally:
        core.on_disable(200)
    assert not source.subscribed and source.ser is None
    assert source.pump(300) == 0


def test_unopenable_port_denied():
    print_separator("TEST 5: unopenable port")
    source = SerialMotionSource("/dev/joysound-no-such-port")
    try:
        source.subscribe(lambda s, t: None)
        raised = False
    except MotionPermissionDenied:
        raised = True
    assert raised

    core = JoysoundCore(schemes=make_book(), sink=FakeSink(),
                        motion_source=SerialMotionSource("/dev/joysound-no-such-port"))
    core.on_enable(0)
    assert core.enabled and not core.motion_subscribed
    core.on_disable(10)


TESTS = [
    ("TEST 1: full frame", test_full_frame),
    ("TEST 2: partial frame", test_partial_frame),
    ("TEST 3: corrupt frame", test_corrupt_frame_skipped),
    ("TEST 4: serial source -> core", test_serial_source_feeds_core),
    ("TEST 5: permission denied", test_unopenable_port_denied),
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
