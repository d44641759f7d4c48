#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
audio_sink.py — sound card playback sink for the live runner.

Decodes a clip with soundfile and streams it through a sounddevice
OutputStream. The stream callback scales every block by the current volume,
so set_volume() reaches the clip that is already playing.

Completion is reported through the stream's finished_callback, which runs on
the PortAudio thread; the controller only enqueues it.
"""

from __future__ import annotations
import logging
import threading

import numpy as np
import sounddevice as sd
import soundfile as sf

from joysound.playback_controller import PlaybackStartError
from joysound.scheme_registry import Clip


class SoundDeviceSink:

    def __init__(self, device=None, blocksize: int = 1024, logger: logging.Logger = None):
        self.device = device
        self.blocksize = blocksize
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._volume = 1.0
        self._stream = None
        self._data = None
        self._pos = 0

    def _callback(self, outdata, frames, time_info, status):
        with self._lock:
            chunk = self._data[self._pos:self._pos + frames]
            self._pos += len(chunk)
            vol = self._volume
        n = len(chunk)
        outdata[:n] = chunk * vol
        if n < frames:
            outdata[n:] = 0
            raise sd.CallbackStop

    def play(self, clip: Clip, volume: float, on_finished) -> None:
        self.stop()
        try:
            data, fs = sf.read(clip.path, dtype='float32', always_2d=True)
        except (RuntimeError, OSError) as e:
            raise PlaybackStartError(f"{clip.name}: {e}") from e

        with self._lock:
            self._data = data
            self._pos = 0
            self._volume = volume

        stream_holder = {}

        def finished():
            # a stopped stream also lands here; only a stream that is still current ended naturally
            if stream_holder.get("stream") is not None and stream_holder["stream"] is self._stream:
                on_finished()

        stream = None
        try:
            stream = sd.OutputStream(
                samplerate=fs,
                channels=data.shape[1],
                dtype='float32',
                blocksize=self.blocksize,
                device=self.device,
                callback=self._callback,
                finished_callback=finished,
            )
            stream_holder["stream"] = stream
            self._stream = stream
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            # ValueError: device/channel/dtype rejected before PortAudio opens anything
            self._stream = None
            if stream is not None:
                stream.close()
            raise PlaybackStartError(f"{clip.name}: {e}") from e

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.abort()
            stream.close()

    def set_volume(self, volume: float) -> None:
        with self._lock:
            self._volume = float(np.clip(volume, 0.0, 1.0))
