#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
smoke_scheme_registry.py — Smoke Test for schemes and settings

    1. default book: one empty scheme, every pool empty
    2. drafts: edits invisible until save_scheme()
    3. create / activate / delete, last scheme protected
    4. session JSON: schemes, active scheme, relative clip paths, settings
    5. invalid tier rejected, settings clamped

Usage:
    python3 scripts/smoke_scheme_registry.py
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
import tempfile

from joysound.scheme_registry import (
    TIERS,
    Scheme,
    SchemeBook,
    SchemeError,
    load_scheme_book,
)
from joysound.settings import Settings, load_settings


def print_separator(title: str):
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}")


def expect_raises(exc_type, fn, *args):
    try:
        fn(*args)
    except exc_type:
        return
    raise AssertionError(f"{fn.__name__}{args} did not raise {exc_type.__name__}")


def test_default_book():
    print_separator("TEST 1: default book")
    book = SchemeBook.default()
    assert book.active_id == "default-1"
    assert len(book.schemes) == 1
    for tier in TIERS:
        assert book.get_pool(tier) == ()


def test_drafts_isolated_until_saved():
    print_separator("TEST 2: drafts")
    book = SchemeBook.default()
    draft = book.edit_scheme("default-1")
    added = draft.import_clips(1, ["/audio/soft/a.wav", "/audio/soft/b.wav"])
    assert [c.name for c in added] == ["a.wav", "b.wav"]

    # engine view unchanged until save
    assert book.get_pool(1) == ()
    book.save_scheme(draft)
    assert [c.path for c in book.get_pool(1)] == ["/audio/soft/a.wav", "/audio/soft/b.wav"]

    # the saved draft is no longer linked to the stored scheme
    draft.clear_tier(1)
    assert len(book.get_pool(1)) == 2

    stray = Scheme(id="nope", name="Nope")
    expect_raises(SchemeError, book.save_scheme, stray)
    expect_raises(SchemeError, book.edit_scheme, "nope")


def test_create_activate_delete():
    print_separator("TEST 3: create / activate / delete")
    book = SchemeBook.default()
    draft = book.create_scheme()
    assert draft.id == "scheme-2"
    assert draft.name == "Scheme 2"
    assert draft.clip_count() == 0
    assert len(book.schemes) == 2
    assert book.active_id == "default-1"

    draft.import_clips(4, ["/audio/peak.wav"])
    book.save_scheme(draft)
    book.activate("scheme-2")
    assert [c.name for c in book.get_pool(4)] == ["peak.wav"]

    expect_raises(SchemeError, book.activate, "missing")

    # deleting the active scheme falls back to the first remaining one
    book.delete_scheme("scheme-2")
    assert book.active_id == "default-1"
    assert book.get_pool(4) == ()

    expect_raises(SchemeError, book.delete_scheme, "default-1")
    expect_raises(SchemeError, book.delete_scheme, "scheme-2")

    third = book.create_scheme()
    assert third.id == "scheme-3"


def test_load_session_json():
    print_separator("TEST 4: session JSON")
    with tempfile.TemporaryDirectory() as tmp:
        session = {
            "settings": {"global_volume": 0.8, "sensitivity": 9},
            "active_scheme": "night",
            "schemes": [
                {"id": "day", "name": "Day", "levels": {"1": ["clips/a.wav"]}},
                {"id": "night", "name": "Night",
                 "levels": {"2": ["clips/b.wav", "/abs/c.wav"], "5": []}},
            ],
        }
        path = os.path.join(tmp, "session.json")
        with open(path, "w") as f:
            json.dump(session, f)

        book = load_scheme_book(path)
        assert book.active_id == "night"
        assert [s.id for s in book.schemes] == ["day", "night"]
        pool = book.get_pool(2)
        assert pool[0].path == os.path.join(os.path.realpath(tmp), "clips", "b.wav")
        assert pool[1].path == "/abs/c.wav"
        assert book.get_pool(1) == ()
        assert book.get_pool(5) == ()

        settings = load_settings(path)
        assert settings.global_volume == 0.8
        assert settings.sensitivity == 5

        empty = os.path.join(tmp, "empty.json")
        with open(empty, "w") as f:
            json.dump({}, f)
        assert load_scheme_book(empty).active_id == "default-1"
        assert load_settings(empty) == Settings()


def test_invalid_tier_and_clamps():
    print_separator("TEST 5: invalid tier, clamped settings")
    book = SchemeBook.default()
    expect_raises(ValueError, book.get_pool, 0)
    expect_raises(ValueError, book.get_pool, 6)
    expect_raises(ValueError, book.active.clear_tier, 7)

    s = Settings(global_volume=1.7, sensitivity=0)
    assert s.global_volume == 1.0 and s.sensitivity == 1
    assert s.set_volume(-0.2) == 0.0
    assert s.set_sensitivity(4) == 4
    assert s.set_sensitivity(12) == 5


TESTS = [
    ("TEST 1: default book", test_default_book),
    ("TEST 2: drafts", test_drafts_isolated_until_saved),
    ("TEST 3: create / activate / delete", test_create_activate_delete),
    ("TEST 4: session JSON", test_load_session_json),
    ("TEST 5: invalid tier / clamps", test_invalid_tier_and_clamps),
]


def main():
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
