#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
playback_engine_v1_0.py — Playback Decision Engine v1.0

Decides, per invocation, whether a clip plays and which pool it comes from.
Invoked from exactly two sites: an activity edge while idle, and a clip
completion. Reads pleasure, the motion window and the pools; owns the
dirty-talk counter.

Decision (atomic, in order):

    1. Silence gate
         pleasure == 0                                  -> silence
         no window motion AND now - last_motion >= 2000 -> silence
       No counter change on silence.

    2. Tier by pleasure (closed, non-overlapping bands)
         1  - 20    tier 1                        counter unchanged
         21 - 60    gated: counter < 15 -> tier 2, counter += 1
                           counter == 15 -> tier 5 (if any clips), counter = 0
         61 - 90    gated, as above with tier 3
         91 - 100   tier 4                        counter unchanged

       At counter == 15 the counter resets even when tier 5 is empty
       (that decision is silent).

    3. Dispatch
         non-empty pool -> one clip, uniform random
         empty pool     -> silence (not an error)

Time only via now_ms input. Randomness only via the injected rng.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Protocol
import logging
import random

from joysound.scheme_registry import Clip


# === Playback State ===

class PlaybackState(Enum):
    IDLE = "IDLE"
    PLAYING = "PLAYING"


class DecisionTrigger(Enum):
    MOTION_EDGE = "motion_edge"
    CLIP_COMPLETE = "clip_complete"


# === Reason Tokens ===

class ReasonToken:
    SCORE_ZERO = "score_zero"
    NO_RECENT_MOTION = "no_recent_motion"
    TIER_BAND = "tier_band"
    GATED_TIER = "gated_tier"
    DIRTY_TALK_BURST = "dirty_talk_burst"
    DIRTY_TALK_BURST_EMPTY = "dirty_talk_burst_empty"
    EMPTY_POOL = "empty_pool"


# (tier, low, high, gated)
TIER_BANDS = (
    (1, 1, 20, False),
    (2, 21, 60, True),
    (3, 61, 90, True),
    (4, 91, 100, False),
)
BURST_TIER = 5


class PoolProvider(Protocol):
    def get_pool(self, tier: int) -> Sequence[Clip]: ...


# === Input/Output ===

@dataclass
class DecisionInput:
    now_ms: int
    pleasure: int
    motion_in_window: bool
    last_motion_ms: Optional[int]         # None = never
    pools: PoolProvider
    trigger: DecisionTrigger = DecisionTrigger.MOTION_EDGE


@dataclass
class DecisionOutput:
    clip: Optional[Clip]
    tier: Optional[int]
    reason: str
    pleasure: int
    dirty_talk_before: int
    dirty_talk_after: int
    timestamp_ms: int
    trigger: DecisionTrigger
    log_entries: List[str] = field(default_factory=list)
    started: bool = False            # set by the core once the controller accepted the clip

    @property
    def dispatched(self) -> bool:
        return self.clip is not None


@dataclass
class EngineConfig:
    recent_motion_ms: int = 2000     # motion younger than this counts as recent
    dirty_talk_max: int = 15


def _format_log(event_type: str, **kwargs) -> str:
    """Format an engine log entry."""
    parts = [event_type]
    for k, v in kwargs.items():
        parts.append(f"{k}={v}")
    return " ".join(parts)


def _clamp_int(v: int, lo: int, hi: int) -> int:
    v = int(v)
    return lo if v < lo else hi if v > hi else v


def band_for(pleasure: int) -> Optional[tuple]:
    for band in TIER_BANDS:
        if band[1] <= pleasure <= band[2]:
            return band
    return None


# === Engine ===

class PlaybackDecisionEngine:
    """
    Tier selection and dirty-talk bookkeeping.

    The only writer of the dirty-talk counter. Holds no playback state;
    the caller guarantees it is only invoked while enabled and idle.
    """

    VERSION = "1.0"

    def __init__(self, config: EngineConfig = None, rng: random.Random = None,
                 logger: logging.Logger = None):
        self._config = config or EngineConfig()
        self._rng = rng or random.Random()
        self._logger = logger or logging.getLogger(__name__)

        self._dirty_talk = 0
        self._decision_count = 0
        self._dispatch_count = 0
        self._log_buffer: List[str] = []

    @property
    def dirty_talk(self) -> int:
        return self._dirty_talk

    @dirty_talk.setter
    def dirty_talk(self, value: int) -> None:
        self._dirty_talk = _clamp_int(value, 0, self._config.dirty_talk_max)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def decision_count(self) -> int:
        return self._decision_count

    @property
    def dispatch_count(self) -> int:
        return self._dispatch_count

    def _log(self, entry: str) -> None:
        self._log_buffer.append(entry)
        self._logger.info(entry)

    def _silence_reason(self, inp: DecisionInput, pleasure: int) -> Optional[str]:
        if pleasure <= 0:
            return ReasonToken.SCORE_ZERO
        recent = (inp.last_motion_ms is not None and
                  inp.now_ms - inp.last_motion_ms < self._config.recent_motion_ms)
        if not (inp.motion_in_window or recent):
            return ReasonToken.NO_RECENT_MOTION
        return None

    def _resolve_pool(self, pleasure: int, pools: PoolProvider) -> tuple:
        """Returns (tier, pool, reason) and updates the counter. tier None = no pool."""
        band = band_for(pleasure)
        if band is None:
            return (None, (), ReasonToken.SCORE_ZERO)

        tier, _, _, gated = band
        if not gated:
            return (tier, tuple(pools.get_pool(tier)), ReasonToken.TIER_BAND)

        if self._dirty_talk < self._config.dirty_talk_max:
            self._dirty_talk += 1
            return (tier, tuple(pools.get_pool(tier)), ReasonToken.GATED_TIER)

        # Counter saturated: reset regardless of whether a burst clip exists
        self._dirty_talk = 0
        burst = tuple(pools.get_pool(BURST_TIER))
        if burst:
            return (BURST_TIER, burst, ReasonToken.DIRTY_TALK_BURST)
        return (None, (), ReasonToken.DIRTY_TALK_BURST_EMPTY)

    def decide(self, inp: DecisionInput) -> DecisionOutput:
        """Run one decision. Deterministic given the rng state."""
        self._log_buffer = []
        self._decision_count += 1
        pleasure = _clamp_int(inp.pleasure, 0, 100)
        before = self._dirty_talk

        silence = self._silence_reason(inp, pleasure)
        if silence is not None:
            self._log(_format_log(
                "ENGINE_SILENCE",
                reason=silence,
                trigger=inp.trigger.value,
                pleasure=pleasure,
                dirty_talk=before,
                t_ms=inp.now_ms,
            ))
            return DecisionOutput(
                clip=None, tier=None, reason=silence, pleasure=pleasure,
                dirty_talk_before=before, dirty_talk_after=before,
                timestamp_ms=inp.now_ms, trigger=inp.trigger,
                log_entries=list(self._log_buffer),
            )

        tier, pool, reason = self._resolve_pool(pleasure, inp.pools)

        clip = None
        if pool:
            clip = pool[self._rng.randrange(len(pool))]
            self._dispatch_count += 1
        elif reason in (ReasonToken.TIER_BAND, ReasonToken.GATED_TIER):
            reason = ReasonToken.EMPTY_POOL

        self._log(_format_log(
            "ENGINE_DECISION",
            trigger=inp.trigger.value,
            pleasure=pleasure,
            tier=tier,
            reason=reason,
            dirty_talk=f"{before}->{self._dirty_talk}",
            clip=clip.name if clip else None,
            t_ms=inp.now_ms,
        ))

        return DecisionOutput(
            clip=clip,
            tier=tier,
            reason=reason,
            pleasure=pleasure,
            dirty_talk_before=before,
            dirty_talk_after=self._dirty_talk,
            timestamp_ms=inp.now_ms,
            trigger=inp.trigger,
            log_entries=list(self._log_buffer),
        )

    def get_debug_state(self) -> Dict[str, Any]:
        return {
            "version": self.VERSION,
            "dirty_talk": self._dirty_talk,
            "decision_count": self._decision_count,
            "dispatch_count": self._dispatch_count,
        }
