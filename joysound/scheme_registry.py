#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
scheme_registry.py — Audio Pool Registry

A scheme maps five tiers to ordered clip pools:

    Tier 1   pleasure 1-20
    Tier 2   pleasure 21-60   (gated by dirty-talk counter)
    Tier 3   pleasure 61-90   (gated by dirty-talk counter)
    Tier 4   pleasure 91-100
    Tier 5   dirty-talk burst (replaces tier 2/3 when the counter saturates)

The engine only ever reads pools through get_pool(tier). Scheme editing
works on drafts: edit_scheme() hands out a deep copy, save_scheme() swaps it in.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Iterable
import copy
import json
import logging


TIERS = (1, 2, 3, 4, 5)

TIER_DESCRIPTIONS = {
    1: "Tier 1: light (pleasure 1-20)",
    2: "Tier 2: medium (pleasure 21-60)",
    3: "Tier 3: high (pleasure 61-90)",
    4: "Tier 4: peak (pleasure 91-100)",
    5: "Tier 5: burst (dirty-talk counter full)",
}


class SchemeError(Exception):
    """Invalid scheme management operation."""


def _check_tier(tier: int) -> int:
    if tier not in TIERS:
        raise ValueError(f"tier must be one of {TIERS}, got {tier!r}")
    return tier


@dataclass(frozen=True)
class Clip:
    """Playable audio resource. `path` is opaque to the engine."""
    name: str
    path: str


@dataclass
class Scheme:
    id: str
    name: str
    levels: Dict[int, List[Clip]] = field(default_factory=lambda: {t: [] for t in TIERS})

    def __post_init__(self):
        for t in TIERS:
            self.levels.setdefault(t, [])

    def get_pool(self, tier: int) -> Tuple[Clip, ...]:
        return tuple(self.levels[_check_tier(tier)])

    def import_clips(self, tier: int, paths: Iterable[str]) -> List[Clip]:
        """Append clips to a tier; display name is the file name."""
        added = [Clip(name=Path(p).name, path=str(p)) for p in paths]
        self.levels[_check_tier(tier)].extend(added)
        return added

    def clear_tier(self, tier: int) -> None:
        self.levels[_check_tier(tier)] = []

    def clip_count(self) -> int:
        return sum(len(v) for v in self.levels.values())


class SchemeBook:
    """
    All known schemes plus the active one.

    At least one scheme always exists. get_pool() reads from the active
    scheme and is what the decision engine consumes.
    """

    def __init__(self, schemes: List[Scheme], active_id: Optional[str] = None,
                 logger: logging.Logger = None):
        if not schemes:
            raise SchemeError("a scheme book needs at least one scheme")
        self._logger = logger or logging.getLogger(__name__)
        self._schemes: List[Scheme] = list(schemes)
        self._active_id = active_id if active_id is not None else schemes[0].id
        if self._find(self._active_id) is None:
            raise SchemeError(f"unknown active scheme: {self._active_id}")
        self._next_index = len(self._schemes) + 1

    @classmethod
    def default(cls) -> "SchemeBook":
        return cls([Scheme(id="default-1", name="Default scheme 1")])

    @property
    def schemes(self) -> List[Scheme]:
        return list(self._schemes)

    @property
    def active_id(self) -> str:
        return self._active_id

    @property
    def active(self) -> Scheme:
        return self._find(self._active_id)

    def _find(self, scheme_id: str) -> Optional[Scheme]:
        for s in self._schemes:
            if s.id == scheme_id:
                return s
        return None

    def get_pool(self, tier: int) -> Tuple[Clip, ...]:
        return self.active.get_pool(tier)

    def activate(self, scheme_id: str) -> None:
        if self._find(scheme_id) is None:
            raise SchemeError(f"unknown scheme: {scheme_id}")
        self._active_id = scheme_id
        self._logger.info(f"SCHEME_ACTIVATE id={scheme_id}")

    def create_scheme(self) -> Scheme:
        """Add an empty scheme and return an editable draft of it."""
        scheme_id = f"scheme-{self._next_index}"
        while self._find(scheme_id) is not None:
            self._next_index += 1
            scheme_id = f"scheme-{self._next_index}"
        self._next_index += 1
        scheme = Scheme(id=scheme_id, name=f"Scheme {len(self._schemes) + 1}")
        self._schemes.append(scheme)
        self._logger.info(f"SCHEME_CREATE id={scheme_id}")
        return copy.deepcopy(scheme)

    def edit_scheme(self, scheme_id: str) -> Scheme:
        scheme = self._find(scheme_id)
        if scheme is None:
            raise SchemeError(f"unknown scheme: {scheme_id}")
        return copy.deepcopy(scheme)

    def save_scheme(self, draft: Scheme) -> None:
        for i, s in enumerate(self._schemes):
            if s.id == draft.id:
                self._schemes[i] = copy.deepcopy(draft)
                self._logger.info(f"SCHEME_SAVE id={draft.id} clips={draft.clip_count()}")
                return
        raise SchemeError(f"unknown scheme: {draft.id}")

    def delete_scheme(self, scheme_id: str) -> None:
        if self._find(scheme_id) is None:
            raise SchemeError(f"unknown scheme: {scheme_id}")
        if len(self._schemes) <= 1:
            raise SchemeError("at least one scheme must remain")
        self._schemes = [s for s in self._schemes if s.id != scheme_id]
        if self._active_id == scheme_id:
            self._active_id = self._schemes[0].id
        self._logger.info(f"SCHEME_DELETE id={scheme_id} active={self._active_id}")


def load_scheme_book(path: str) -> SchemeBook:
    """Load schemes from a session JSON file. Clip paths resolve against the file."""
    base = Path(path).resolve().parent
    with open(path) as f:
        data = json.load(f)

    schemes = []
    for entry in data.get("schemes", []):
        scheme = Scheme(id=str(entry["id"]), name=str(entry.get("name", entry["id"])))
        for key, files in (entry.get("levels") or {}).items():
            tier = _check_tier(int(key))
            scheme.import_clips(tier, [str((base / p).resolve()) if not Path(p).is_absolute() else p
                                       for p in files])
        schemes.append(scheme)

    if not schemes:
        return SchemeBook.default()
    return SchemeBook(schemes, active_id=data.get("active_scheme"))
