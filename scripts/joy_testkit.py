#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
joy_testkit.py — shared fakes for the smoke / verify scripts.

    FakeSink          records plays, can refuse to start, finishes on demand
    FakeMotionSource  grants or denies the motion subscription
    make_book()       scheme book with N clips per tier
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from joysound.core_v1_0 import MotionPermissionDenied
from joysound.playback_controller import PlaybackStartError
from joysound.scheme_registry import Scheme, SchemeBook


class FakeSink:
    def __init__(self):
        self.plays = []            # (clip, volume)
        self.stops = 0
        self.volume = None
        self.refuse_start = False
        self._on_finished = None

    @property
    def loaded(self):
        return self._on_finished is not None

    def play(self, clip, volume, on_finished):
        if self.refuse_start:
            raise PlaybackStartError("autoplay blocked")
        self.plays.append((clip, volume))
        self.volume = volume
        self._on_finished = on_finished

    def stop(self):
        self.stops += 1
        self._on_finished = None

    def set_volume(self, volume):
        self.volume = volume

    def finish(self):
        """Simulate the clip reaching its natural end."""
        cb, self._on_finished = self._on_finished, None
        if cb is not None:
            cb()


class FakeMotionSource:
    def __init__(self, grant=True):
        self.grant = grant
        self.error = None            # raised as-is by subscribe() when set
        self.callback = None
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0

    def subscribe(self, callback):
        self.subscribe_calls += 1
        if self.error is not None:
            raise self.error
        if not self.grant:
            raise MotionPermissionDenied("denied by host")
        self.callback = callback

    def unsubscribe(self):
        self.unsubscribe_calls += 1
        self.callback = None


def make_book(counts=None):
    """counts: {tier: n_clips}; default 3 clips in every tier."""
    counts = counts if counts is not None else {t: 3 for t in (1, 2, 3, 4, 5)}
    scheme = Scheme(id="test-1", name="Test scheme")
    for tier, n in counts.items():
        scheme.import_clips(tier, [f"/clips/t{tier}_{i}.wav" for i in range(n)])
    return SchemeBook([scheme])


def tier_of(clip):
    """Tier encoded in the fake clip name (t<tier>_<i>.wav)."""
    return int(clip.name[1])
