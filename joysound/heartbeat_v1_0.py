#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
heartbeat_v1_0.py — Heartbeat Scheduler v1.0

Fixed 2000 ms period. Each tick:
    window flag set   -> pleasure = min(pleasure + sensitivity, 100)
    window flag clear -> pleasure = max(pleasure - 5, 0)
    then the window flag is cleared.

Owns PleasureScore and MotionWindowFlag. Never triggers a decision:
pleasure changes only matter at the next motion edge or clip completion.

Driven by poll(now_ms); every period that has elapsed fires one tick.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional
import logging

from joysound.settings import clamp_sensitivity


@dataclass
class HeartbeatConfig:
    period_ms: int = 2000
    decay_step: int = 5
    max_score: int = 100


@dataclass
class HeartbeatTick:
    t_ms: int
    motion: bool
    pleasure_before: int
    pleasure_after: int


def _format_log(event_type: str, **kwargs) -> str:
    parts = [event_type]
    for k, v in kwargs.items():
        parts.append(f"{k}={v}")
    return " ".join(parts)


class HeartbeatScheduler:

    VERSION = "1.0"

    def __init__(self, config: HeartbeatConfig = None, sensitivity: int = 3,
                 logger: logging.Logger = None):
        self.config = config or HeartbeatConfig()
        self._logger = logger or logging.getLogger(__name__)
        self._sensitivity = clamp_sensitivity(sensitivity)
        self._pleasure = 0
        self._motion_in_window = False
        self._next_tick_ms: Optional[int] = None
        self._ticks_total = 0

    # --- state ---

    @property
    def active(self) -> bool:
        return self._next_tick_ms is not None

    @property
    def pleasure(self) -> int:
        return self._pleasure

    @pleasure.setter
    def pleasure(self, value: int) -> None:
        v = int(value)
        self._pleasure = 0 if v < 0 else self.config.max_score if v > self.config.max_score else v

    @property
    def sensitivity(self) -> int:
        return self._sensitivity

    @sensitivity.setter
    def sensitivity(self, value: int) -> None:
        self._sensitivity = clamp_sensitivity(value)

    @property
    def motion_in_window(self) -> bool:
        return self._motion_in_window

    @property
    def next_tick_ms(self) -> Optional[int]:
        return self._next_tick_ms

    @property
    def ticks_total(self) -> int:
        return self._ticks_total

    def mark_motion(self) -> None:
        self._motion_in_window = True

    # --- timer ---

    def start(self, now_ms: int) -> None:
        """Begin a fresh window; first tick one period from now."""
        self._motion_in_window = False
        self._next_tick_ms = now_ms + self.config.period_ms

    def stop(self) -> None:
        self._next_tick_ms = None

    def restart(self, now_ms: int, sensitivity: int = None) -> None:
        """Cancel and reschedule with new config. Score and window flag survive."""
        if sensitivity is not None:
            self._sensitivity = clamp_sensitivity(sensitivity)
        self._next_tick_ms = now_ms + self.config.period_ms

    def poll(self, now_ms: int) -> List[HeartbeatTick]:
        ticks = []
        while self._next_tick_ms is not None and now_ms >= self._next_tick_ms:
            ticks.append(self._tick(self._next_tick_ms))
            self._next_tick_ms += self.config.period_ms
        return ticks

    def _tick(self, t_ms: int) -> HeartbeatTick:
        before = self._pleasure
        motion = self._motion_in_window
        if motion:
            self._pleasure = min(before + self._sensitivity, self.config.max_score)
        else:
            self._pleasure = max(before - self.config.decay_step, 0)
        self._motion_in_window = False
        self._ticks_total += 1

        self._logger.debug(_format_log(
            "HEARTBEAT_TICK",
            motion=motion,
            pleasure=f"{before}->{self._pleasure}",
            t_ms=t_ms,
        ))
        return HeartbeatTick(t_ms=t_ms, motion=motion, pleasure_before=before,
                             pleasure_after=self._pleasure)
