#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
smoke_audio_sink.py — Smoke Test for the sound card sink

The sounddevice OutputStream and soundfile.read are replaced by in-process
stand-ins; the stream callback is driven by hand, block by block.

    1. volume scales every block, set_volume() reaches the next block
    2. clip runs out -> CallbackStop, completion reported exactly once
    3. stream stopped by play() / stop() never reports completion
    4. device rejected (ValueError) / PortAudio failure / unreadable file
       -> PlaybackStartError, half-built stream closed
    5. rejected device through the core -> IDLE, no exception

Usage:
    python3 scripts/smoke_audio_sink.py
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import random
from unittest import mock

import numpy as np
import pytest

try:
    from joysound import audio_sink
    from joysound.audio_sink import SoundDeviceSink
    AUDIO_AVAILABLE = True
except OSError:
    # sounddevice loads the PortAudio shared library at import time
    AUDIO_AVAILABLE = False

from joysound.core_v1_0 import JoysoundCore
from joysound.motion_signal_v1_0 import MotionSample
from joysound.playback_controller import PlaybackStartError
from joysound.playback_engine_v1_0 import PlaybackState
from joysound.scheme_registry import Clip, Scheme, SchemeBook
from joysound.settings import Settings

pytestmark = pytest.mark.skipif(not AUDIO_AVAILABLE, reason="PortAudio library not installed")

CLIP_A = Clip(name="a.wav", path="/clips/a.wav")
CLIP_B = Clip(name="b.wav", path="/clips/b.wav")


class FakeOutputStream:
    """Records construction; abort() reports finished like PortAudio does."""

    instances = []
    init_error = None
    start_error = None

    def __init__(self, **kwargs):
        if FakeOutputStream.init_error is not None:
            raise FakeOutputStream.init_error
        self.kwargs = kwargs
        self.finished_callback = kwargs["finished_callback"]
        self.started = False
        self.aborted = False
        self.closed = False
        FakeOutputStream.instances.append(self)

    def start(self):
        if FakeOutputStream.start_error is not None:
            raise FakeOutputStream.start_error
        self.started = True

    def abort(self):
        self.aborted = True
        self.finished_callback()

    def close(self):
        self.closed = True

    def end(self):
        """Natural end: PortAudio calls finished_callback after CallbackStop."""
        self.finished_callback()


def print_separator(title: str):
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}")


class Patches:
    """Stand-ins for OutputStream and soundfile.read (a clip of ones)."""

    def __init__(self, frames=10, channels=2, read_error=None):
        FakeOutputStream.instances = []
        FakeOutputStream.init_error = None
        FakeOutputStream.start_error = None

        def fake_read(path, dtype=None, always_2d=False):
            if read_error is not None:
                raise read_error
            return np.ones((frames, channels), dtype=np.float32), 44100

        self.patches = [
            mock.patch.object(audio_sink.sd, "OutputStream", FakeOutputStream),
            mock.patch.object(audio_sink.sf, "read", fake_read),
        ]

    def __enter__(self):
        for p in self.patches:
            p.start()
        return self

    def __exit__(self, *exc):
        for p in reversed(self.patches):
            p.stop()


def block(sink, frames, channels=2):
    """Run the stream callback once. Returns (outdata, stopped)."""
    out = np.full((frames, channels), -1.0, dtype=np.float32)
    try:
        sink._callback(out, frames, None, None)
        return out, False
    except audio_sink.sd.CallbackStop:
        return out, True


def test_volume_scales_blocks():
    print_separator("TEST 1: volume per block")
    with Patches():
        sink = SoundDeviceSink(device=None, blocksize=4)
        sink.play(CLIP_A, 0.5, lambda: None)
        stream = FakeOutputStream.instances[-1]
        assert stream.started
        assert stream.kwargs["channels"] == 2 and stream.kwargs["samplerate"] == 44100

        out, stopped = block(sink, 4)
        assert not stopped and np.all(out == 0.5)

        sink.set_volume(0.25)
        out, stopped = block(sink, 4)
        assert not stopped and np.all(out == 0.25)

        sink.set_volume(7.0)
        assert sink._volume == 1.0
        sink.stop()


def test_end_of_clip_reported_once():
    print_separator("TEST 2: end of clip")
    finished = []
    with Patches(frames=10):
        sink = SoundDeviceSink(blocksize=4)
        sink.play(CLIP_A, 1.0, lambda: finished.append("a"))
        stream = FakeOutputStream.instances[-1]

        assert block(sink, 4)[1] is False
        assert block(sink, 4)[1] is False
        out, stopped = block(sink, 4)          # 2 frames left
        assert stopped
        assert np.all(out[:2] == 1.0) and np.all(out[2:] == 0.0)
        assert finished == []                  # reported by PortAudio, not the callback

        stream.end()
        assert finished == ["a"]


def test_stopped_stream_never_completes():
    print_separator("TEST 3: stopped / replaced stream")
    finished = []
    with Patches():
        sink = SoundDeviceSink()
        sink.play(CLIP_A, 1.0, lambda: finished.append("a"))
        first = FakeOutputStream.instances[-1]

        sink.play(CLIP_B, 1.0, lambda: finished.append("b"))
        second = FakeOutputStream.instances[-1]
        assert first.aborted and first.closed
        first.end()                            # late report from the replaced stream
        assert finished == []

        sink.stop()
        assert second.aborted and second.closed
        second.end()
        assert finished == []


def test_start_errors_become_playback_start_error():
    print_separator("TEST 4: start errors")
    cases = [
        ("init", ValueError("No output device matching 'nope'")),
        ("start", audio_sink.sd.PortAudioError("Device unavailable")),
    ]
    for where, err in cases:
        with Patches():
            if where == "init":
                FakeOutputStream.init_error = err
            else:
                FakeOutputStream.start_error = err
            sink = SoundDeviceSink(device="nope")
            try:
                sink.play(CLIP_A, 1.0, lambda: None)
                raised = False
            except PlaybackStartError:
                raised = True
            assert raised, f"{where}: {err!r} escaped"
            assert sink._stream is None
            for stream in FakeOutputStream.instances:
                assert stream.closed

    with Patches(read_error=RuntimeError("Error opening '/clips/a.wav'")):
        sink = SoundDeviceSink()
        try:
            sink.play(CLIP_A, 1.0, lambda: None)
            raised = False
        except PlaybackStartError:
            raised = True
        assert raised
        assert FakeOutputStream.instances == []


def test_rejected_device_leaves_core_idle():
    print_separator("TEST 5: rejected device through the core")
    scheme = Scheme(id="s", name="S")
    scheme.import_clips(1, ["/clips/a.wav"])
    with Patches():
        FakeOutputStream.init_error = ValueError("No output device matching 'nope'")
        core = JoysoundCore(schemes=SchemeBook([scheme]), settings=Settings(),
                            sink=SoundDeviceSink(device="nope"), rng=random.Random(1))
        core.on_enable(0)
        core.set_pleasure(10)
        core.feed_motion(MotionSample(0.0, 0.0, 0.0), 100)
        out = core.feed_motion(MotionSample(3.0, 0.0, 0.0), 100)

        assert out.dispatched and not out.started
        assert core.playback_state == PlaybackState.IDLE
        assert core.controller.start_failures == 1
        core.on_disable(200)


TESTS = [
    ("TEST 1: volume per block", test_volume_scales_blocks),
    ("TEST 2: end of clip", test_end_of_clip_reported_once),
    ("TEST 3: stopped stream", test_stopped_stream_never_completes),
    ("TEST 4: start errors", test_start_errors_become_playback_start_error),
    ("TEST 5: core stays idle", test_rejected_device_leaves_core_idle),
]


def main():
    if not AUDIO_AVAILABLE:
        print("[SKIP] sounddevice could not load PortAudio")
        return 0

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
