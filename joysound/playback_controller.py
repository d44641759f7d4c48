#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
playback_controller.py — Audio Playback Controller

One playback slot over a sink. State: IDLE / PLAYING.

    play(clip, volume)    replace whatever is loaded, start, -> PLAYING
                          start refused by the sink -> IDLE, no retry
    natural end           sink calls notify_finished(playback_id)
    drain_completions()   -> IDLE per matching completion; caller re-decides
    stop()                -> IDLE immediately, pending completions dropped
    set_volume(v)         applies to the playing clip, never interrupts it

notify_finished() may be called from an audio thread; it only enqueues.
Everything else runs on the single control flow.
"""

from __future__ import annotations
from collections import deque
from typing import List, Optional, Protocol
import logging

from joysound.playback_engine_v1_0 import PlaybackState
from joysound.scheme_registry import Clip
from joysound.settings import clamp_volume


class PlaybackStartError(Exception):
    """The platform refused to start audio."""


class PlaybackSink(Protocol):
    def play(self, clip: Clip, volume: float, on_finished) -> None: ...
    def stop(self) -> None: ...
    def set_volume(self, volume: float) -> None: ...


def _format_log(event_type: str, **kwargs) -> str:
    parts = [event_type]
    for k, v in kwargs.items():
        parts.append(f"{k}={v}")
    return " ".join(parts)


class NullSink:
    """
    Silent sink. Clips "finish" when finish_due(now_ms) passes their duration.
    Used by replay runs.
    """

    def __init__(self, clip_duration_ms: int = 3000):
        self.clip_duration_ms = clip_duration_ms
        self.volume = 1.0
        self._current = None          # (end_ms, on_finished)
        self._now_ms = 0

    def set_clock(self, now_ms: int) -> None:
        self._now_ms = now_ms

    def play(self, clip: Clip, volume: float, on_finished) -> None:
        self.volume = volume
        self._current = (self._now_ms + self.clip_duration_ms, on_finished)

    def stop(self) -> None:
        self._current = None

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def finish_due(self, now_ms: int) -> None:
        self._now_ms = now_ms
        if self._current and now_ms >= self._current[0]:
            _, on_finished = self._current
            self._current = None
            on_finished()


class AudioPlaybackController:

    def __init__(self, sink: PlaybackSink, logger: logging.Logger = None):
        self._sink = sink
        self._logger = logger or logging.getLogger(__name__)
        self._state = PlaybackState.IDLE
        self._clip: Optional[Clip] = None
        self._playback_id = 0
        self._current_id: Optional[int] = None
        self._completions: deque = deque()
        self._volume = 1.0
        self._start_failures = 0
        self._starts = 0

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def idle(self) -> bool:
        return self._state == PlaybackState.IDLE

    @property
    def clip(self) -> Optional[Clip]:
        return self._clip

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def start_failures(self) -> int:
        return self._start_failures

    @property
    def starts(self) -> int:
        return self._starts

    def play(self, clip: Clip, volume: float, now_ms: int = 0) -> bool:
        """Start clip in the slot. Returns False if the sink refused."""
        self._sink.stop()
        self._completions.clear()
        self._volume = clamp_volume(volume)

        self._playback_id += 1
        pid = self._playback_id
        try:
            self._sink.play(clip, self._volume, lambda: self.notify_finished(pid))
        except PlaybackStartError as e:
            self._start_failures += 1
            self._state = PlaybackState.IDLE
            self._clip = None
            self._current_id = None
            self._logger.warning(_format_log(
                "PLAYBACK_START_FAILED", clip=clip.name, error=e, t_ms=now_ms))
            return False

        self._state = PlaybackState.PLAYING
        self._clip = clip
        self._current_id = pid
        self._starts += 1
        self._logger.info(_format_log(
            "PLAYBACK_START", clip=clip.name, id=pid, volume=f"{self._volume:.2f}", t_ms=now_ms))
        return True

    def notify_finished(self, playback_id: int) -> None:
        self._completions.append(playback_id)

    def drain_completions(self, now_ms: int = 0) -> List[Clip]:
        """Settle queued completions. Returns the clips that ended naturally."""
        finished = []
        while self._completions:
            pid = self._completions.popleft()
            if pid != self._current_id:
                continue
            clip = self._clip
            self._state = PlaybackState.IDLE
            self._clip = None
            self._current_id = None
            self._logger.info(_format_log("PLAYBACK_COMPLETE", clip=clip.name, id=pid, t_ms=now_ms))
            finished.append(clip)
        return finished

    def stop(self) -> None:
        self._sink.stop()
        self._completions.clear()
        self._state = PlaybackState.IDLE
        self._clip = None
        self._current_id = None

    def set_volume(self, volume: float) -> float:
        self._volume = clamp_volume(volume)
        self._sink.set_volume(self._volume)
        return self._volume
