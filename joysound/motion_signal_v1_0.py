#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
motion_signal_v1_0.py — Motion Signal Processor v1.0

Turns raw 3-axis acceleration samples (gravity included) into:
    - intensity     0..100, display only
    - edge          True when the delta-magnitude exceeds the trigger threshold
    - last_edge_ms  timestamp of the most recent edge (recent-motion rule)

Per sample:
    delta     = sample - last_sample   (per axis)
    magnitude = sqrt(dx² + dy² + dz²)
    last_sample = sample

Samples with a missing axis are dropped without touching any state.
The processor is inert until start(); start() re-zeroes last_sample.
Time only via now_ms input.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging
import math
import random


@dataclass(frozen=True)
class MotionSample:
    x: Optional[float]
    y: Optional[float]
    z: Optional[float]

    @property
    def complete(self) -> bool:
        return self.x is not None and self.y is not None and self.z is not None


@dataclass
class MotionConfig:
    """Configuration for the motion signal processor."""
    trigger_threshold: float = 2.0     # edge if magnitude > threshold
    display_floor: float = 0.5         # below this the display decays
    display_gain: float = 5.0
    display_max: float = 100.0
    decay_probability: float = 0.3     # chance per quiet sample that display drops to 0


@dataclass
class MotionSnapshot:
    accepted: bool
    magnitude: float = 0.0
    intensity: float = 0.0
    edge: bool = False
    last_edge_ms: Optional[int] = None


class MotionSignalProcessor:
    """Delta-magnitude edge detector with a display intensity."""

    VERSION = "1.0"

    def __init__(self, config: MotionConfig = None, rng: random.Random = None,
                 logger: logging.Logger = None):
        self.config = config or MotionConfig()
        self._rng = rng or random.Random()
        self._logger = logger or logging.getLogger(__name__)
        self._running = False
        self._last = (0.0, 0.0, 0.0)
        self._intensity = 0.0
        self._last_edge_ms: Optional[int] = None
        self._edges_total = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def intensity(self) -> float:
        return self._intensity

    @property
    def last_edge_ms(self) -> Optional[int]:
        return self._last_edge_ms

    @property
    def edges_total(self) -> int:
        return self._edges_total

    def start(self) -> None:
        self._running = True
        self._last = (0.0, 0.0, 0.0)

    def stop(self) -> None:
        self._running = False

    def _snapshot(self, accepted: bool, magnitude: float = 0.0, edge: bool = False) -> MotionSnapshot:
        return MotionSnapshot(
            accepted=accepted,
            magnitude=magnitude,
            intensity=self._intensity,
            edge=edge,
            last_edge_ms=self._last_edge_ms,
        )

    def feed(self, sample: MotionSample, now_ms: int) -> MotionSnapshot:
        """Process one sample. Returns a snapshot; edge=True marks activity."""
        if not self._running or sample is None or not sample.complete:
            return self._snapshot(accepted=False)

        cfg = self.config
        lx, ly, lz = self._last
        dx, dy, dz = sample.x - lx, sample.y - ly, sample.z - lz
        magnitude = math.sqrt(dx * dx + dy * dy + dz * dz)

        if magnitude > cfg.display_floor:
            self._intensity = min(magnitude * cfg.display_gain, cfg.display_max)
        elif self._rng.random() < cfg.decay_probability:
            self._intensity = 0.0

        edge = magnitude > cfg.trigger_threshold
        if edge:
            self._last_edge_ms = now_ms
            self._edges_total += 1
            self._logger.debug(f"MOTION_EDGE magnitude={magnitude:.3f} t_ms={now_ms}")

        self._last = (sample.x, sample.y, sample.z)
        return self._snapshot(accepted=True, magnitude=magnitude, edge=edge)
