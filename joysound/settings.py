#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
settings.py — user settings read on demand by the core.

    global_volume   0.0 - 1.0   applied to the playing clip and every later one
    sensitivity     1 - 5       pleasure gained per heartbeat with motion

Out-of-range values are clamped, never rejected.
"""

from __future__ import annotations
from dataclasses import dataclass
import json


VOLUME_MIN, VOLUME_MAX = 0.0, 1.0
SENSITIVITY_MIN, SENSITIVITY_MAX = 1, 5


def clamp_volume(v: float) -> float:
    v = float(v)
    return VOLUME_MIN if v < VOLUME_MIN else VOLUME_MAX if v > VOLUME_MAX else v


def clamp_sensitivity(s: int) -> int:
    s = int(s)
    return SENSITIVITY_MIN if s < SENSITIVITY_MIN else SENSITIVITY_MAX if s > SENSITIVITY_MAX else s


@dataclass
class Settings:
    global_volume: float = 1.0
    sensitivity: int = 3

    def __post_init__(self):
        self.global_volume = clamp_volume(self.global_volume)
        self.sensitivity = clamp_sensitivity(self.sensitivity)

    def set_volume(self, v: float) -> float:
        self.global_volume = clamp_volume(v)
        return self.global_volume

    def set_sensitivity(self, s: int) -> int:
        self.sensitivity = clamp_sensitivity(s)
        return self.sensitivity


def load_settings(path: str) -> Settings:
    """Read the "settings" object of a session JSON file."""
    with open(path) as f:
        data = json.load(f)
    raw = data.get("settings") or {}
    return Settings(
        global_volume=raw.get("global_volume", 1.0),
        sensitivity=raw.get("sensitivity", 3),
    )
