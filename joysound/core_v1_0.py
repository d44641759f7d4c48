#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
core_v1_0.py — Joysound core v1.0

Wires the four components behind one control flow:

    motion sample ─► MotionSignalProcessor ─► edge ─► heartbeat window flag
                                                 └──► decision (if idle)
    poll(now_ms)  ─► HeartbeatScheduler ticks (pleasure up/down)
                  └► clip completions ─► decision per completion
    decision      ─► AudioPlaybackController.play()

State machine:
    IDLE --(edge while idle | clip completion)--> [decision]
         --(pool resolves)--> PLAYING --(natural end)--> IDLE (re-decide)
                                      --(disable)--> IDLE (forced stop)

Nothing here locks: all three event sources are funnelled through
feed_motion() and poll() on the caller's thread. The idle check in
feed_motion() is what keeps an edge from re-entering a decision.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol
import logging
import random

from joysound.heartbeat_v1_0 import HeartbeatConfig, HeartbeatScheduler
from joysound.motion_signal_v1_0 import MotionConfig, MotionSample, MotionSignalProcessor
from joysound.playback_controller import AudioPlaybackController, PlaybackSink
from joysound.playback_engine_v1_0 import (
    DecisionInput,
    DecisionOutput,
    DecisionTrigger,
    EngineConfig,
    PlaybackDecisionEngine,
    PlaybackState,
    PoolProvider,
)
from joysound.settings import Settings


class MotionPermissionDenied(Exception):
    """The host refused the motion subscription."""


class MotionSource(Protocol):
    def subscribe(self, callback: Callable[[MotionSample, int], None]) -> None: ...
    def unsubscribe(self) -> None: ...


def _format_log(event_type: str, **kwargs) -> str:
    parts = [event_type]
    for k, v in kwargs.items():
        parts.append(f"{k}={v}")
    return " ".join(parts)


@dataclass
class CoreSnapshot:
    enabled: bool
    motion_subscribed: bool
    pleasure: int
    dirty_talk: int
    intensity: float
    playback_state: PlaybackState
    clip_name: Optional[str]
    last_decision: Optional[DecisionOutput]


class JoysoundCore:

    VERSION = "1.0"

    def __init__(self, schemes: PoolProvider, settings: Settings = None,
                 sink: PlaybackSink = None, motion_source: MotionSource = None,
                 motion_config: MotionConfig = None, heartbeat_config: HeartbeatConfig = None,
                 engine_config: EngineConfig = None, rng: random.Random = None,
                 logger: logging.Logger = None):
        if sink is None:
            raise ValueError("a playback sink is required")
        self._logger = logger or logging.getLogger(__name__)
        self._rng = rng or random.Random()
        self.schemes = schemes
        self.settings = settings or Settings()

        # display decay has its own random stream; clip selection uses self._rng
        self.motion = MotionSignalProcessor(config=motion_config,
                                            rng=random.Random(self._rng.getrandbits(32)))
        self.heartbeat = HeartbeatScheduler(config=heartbeat_config,
                                            sensitivity=self.settings.sensitivity)
        self.engine = PlaybackDecisionEngine(config=engine_config, rng=self._rng)
        self.controller = AudioPlaybackController(sink)
        self._motion_source = motion_source

        self._enabled = False
        self._motion_subscribed = False
        self._last_decision: Optional[DecisionOutput] = None
        self._decisions: deque = deque(maxlen=256)

    # --- state ---

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def motion_subscribed(self) -> bool:
        return self._motion_subscribed

    @property
    def pleasure(self) -> int:
        return self.heartbeat.pleasure

    @property
    def dirty_talk(self) -> int:
        return self.engine.dirty_talk

    @property
    def playback_state(self) -> PlaybackState:
        return self.controller.state

    @property
    def last_decision(self) -> Optional[DecisionOutput]:
        return self._last_decision

    def take_decisions(self) -> List[DecisionOutput]:
        """Decisions made since the previous call (for logging by the runner)."""
        out = list(self._decisions)
        self._decisions.clear()
        return out

    def snapshot(self) -> CoreSnapshot:
        clip = self.controller.clip
        return CoreSnapshot(
            enabled=self._enabled,
            motion_subscribed=self._motion_subscribed,
            pleasure=self.heartbeat.pleasure,
            dirty_talk=self.engine.dirty_talk,
            intensity=self.motion.intensity,
            playback_state=self.controller.state,
            clip_name=clip.name if clip else None,
            last_decision=self._last_decision,
        )

    # --- external overrides (clamped) ---

    def set_pleasure(self, value: int) -> int:
        self.heartbeat.pleasure = value
        return self.heartbeat.pleasure

    def set_dirty_talk(self, value: int) -> int:
        self.engine.dirty_talk = value
        return self.engine.dirty_talk

    def set_volume(self, volume: float) -> float:
        v = self.settings.set_volume(volume)
        self.controller.set_volume(v)
        return v

    def set_sensitivity(self, sensitivity: int, now_ms: int) -> int:
        s = self.settings.set_sensitivity(sensitivity)
        if self._enabled:
            self.heartbeat.restart(now_ms, sensitivity=s)
        else:
            self.heartbeat.sensitivity = s
        return s

    # --- enablement ---

    def on_enable(self, now_ms: int) -> None:
        if self._enabled:
            return
        self._enabled = True
        self.heartbeat.sensitivity = self.settings.sensitivity
        self.heartbeat.start(now_ms)
        self.motion.start()

        if self._motion_source is not None:
            try:
                self._motion_source.subscribe(self.feed_motion)
                self._motion_subscribed = True
            except MotionPermissionDenied as e:
                self._motion_subscribed = False
                self._logger.warning(_format_log("MOTION_PERMISSION_DENIED", error=e, t_ms=now_ms))
            except Exception:
                # anything else is a caller error: leave the core fully disabled
                self.motion.stop()
                self.heartbeat.stop()
                self._enabled = False
                raise

        self._logger.info(_format_log(
            "CORE_ENABLE",
            pleasure=self.heartbeat.pleasure,
            dirty_talk=self.engine.dirty_talk,
            sensitivity=self.settings.sensitivity,
            motion=self._motion_subscribed,
            t_ms=now_ms,
        ))

    def on_disable(self, now_ms: int) -> None:
        """Stop clip, detach motion, stop heartbeat. All or nothing."""
        if not self._enabled:
            return
        self._enabled = False
        self.controller.stop()
        if self._motion_subscribed:
            self._motion_source.unsubscribe()
            self._motion_subscribed = False
        self.motion.stop()
        self.heartbeat.stop()
        self._logger.info(_format_log(
            "CORE_DISABLE",
            pleasure=self.heartbeat.pleasure,
            dirty_talk=self.engine.dirty_talk,
            t_ms=now_ms,
        ))

    # --- event sources ---

    def feed_motion(self, sample: MotionSample, now_ms: int) -> Optional[DecisionOutput]:
        """One raw sample. Returns the decision if the sample triggered one."""
        if not self._enabled:
            return None
        snap = self.motion.feed(sample, now_ms)
        if not snap.edge:
            return None
        self.heartbeat.mark_motion()
        if self.controller.idle:
            return self._decide(now_ms, DecisionTrigger.MOTION_EDGE)
        return None

    def poll(self, now_ms: int) -> List[DecisionOutput]:
        """Advance the heartbeat and settle clip completions."""
        if not self._enabled:
            return []
        self.heartbeat.poll(now_ms)
        decisions = []
        for _ in self.controller.drain_completions(now_ms):
            decisions.append(self._decide(now_ms, DecisionTrigger.CLIP_COMPLETE))
        return decisions

    def _decide(self, now_ms: int, trigger: DecisionTrigger) -> DecisionOutput:
        out = self.engine.decide(DecisionInput(
            now_ms=now_ms,
            pleasure=self.heartbeat.pleasure,
            motion_in_window=self.heartbeat.motion_in_window,
            last_motion_ms=self.motion.last_edge_ms,
            pools=self.schemes,
            trigger=trigger,
        ))
        if out.clip is not None:
            out.started = self.controller.play(out.clip, self.settings.global_volume, now_ms)
        self._last_decision = out
        self._decisions.append(out)
        return out
