#!/usr/bin/env python3
"""
replay_motion_log.py — replay a motion capture through the Joysound core

Feeds the samples of a capture_motion.py JSONL file into the core on their
recorded host timestamps, with a silent sink whose clips last
--clip-ms. Writes one CSV row per decision.

    python3 scripts/replay_motion_log.py motion.jsonl [decisions.csv]
        [--session session.json] [--seed 1] [--clip-ms 3000]
"""

import sys
import json
import csv
import random
import argparse
from pathlib import Path

HERE = Path(__file__).resolve()
for p in [HERE.parent, *HERE.parents]:
    if (p / "joysound").exists():
        sys.path.insert(0, str(p)); break

from joysound.core_v1_0 import JoysoundCore
from joysound.motion_signal_v1_0 import MotionSample
from joysound.playback_controller import NullSink
from joysound.scheme_registry import Scheme, SchemeBook, TIERS, load_scheme_book
from joysound.settings import Settings, load_settings


HEADERS = [
    "t_ms", "trigger", "pleasure", "tier", "clip", "reason",
    "dirty_talk_before", "dirty_talk_after", "started",
]

POLL_STEP_MS = 50


def placeholder_book() -> SchemeBook:
    """One named placeholder clip per tier, so decisions show which tier fired."""
    scheme = Scheme(id="replay", name="Replay placeholders")
    for t in TIERS:
        scheme.import_clips(t, [f"tier{t}.wav"])
    return SchemeBook([scheme])


def load_samples(path: Path):
    samples = []
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                rec = json.loads(line)
            except json.JSONDecodeError:
                continue
            if rec.get("kind") != "accel":
                continue
            samples.append((int(rec["t_ms"]), MotionSample(rec.get("x"), rec.get("y"), rec.get("z"))))
    samples.sort(key=lambda s: s[0])
    return samples


def replay(samples, book, settings, seed=1, clip_ms=3000):
    """Run samples through a fresh core. Returns (core, decisions)."""
    sink = NullSink(clip_duration_ms=clip_ms)
    core = JoysoundCore(schemes=book, settings=settings, sink=sink, rng=random.Random(seed))
    decisions = []
    if not samples:
        return core, decisions

    t = samples[0][0]
    core.on_enable(t)
    for t_ms, sample in samples:
        # step the clock so ticks and completions land between samples
        while t + POLL_STEP_MS <= t_ms:
            t += POLL_STEP_MS
            sink.finish_due(t)
            decisions += core.poll(t)
        t = t_ms
        sink.set_clock(t)
        sink.finish_due(t)
        decisions += core.poll(t)
        d = core.feed_motion(sample, t)
        if d is not None:
            decisions.append(d)
    core.on_disable(t)
    return core, decisions


def main():
    parser = argparse.ArgumentParser(description='Replay a motion capture through the Joysound core')
    parser.add_argument('input', help='input JSONL capture')
    parser.add_argument('output', nargs='?', help='output CSV (optional)')
    parser.add_argument('--session', help='session JSON (settings + schemes)')
    parser.add_argument('--seed', type=int, default=1)
    parser.add_argument('--clip-ms', type=int, default=3000)
    args = parser.parse_args()

    input_path = Path(args.input)
    output_path = Path(args.output) if args.output else input_path.with_name(f"{input_path.stem}_decisions.csv")

    if args.session:
        book, settings = load_scheme_book(args.session), load_settings(args.session)
    else:
        book, settings = placeholder_book(), Settings()

    print(f"[i] Input: {input_path}")
    print(f"[i] Output: {output_path}")
    print(f"[i] Scheme: {book.active.name}  sensitivity={settings.sensitivity}  clip={args.clip_ms}ms  seed={args.seed}")

    samples = load_samples(input_path)
    print(f"[i] Loaded {len(samples)} accel records")

    core, decisions = replay(samples, book, settings, seed=args.seed, clip_ms=args.clip_ms)

    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=HEADERS)
        writer.writeheader()
        for d in decisions:
            writer.writerow({
                "t_ms": d.timestamp_ms,
                "trigger": d.trigger.value,
                "pleasure": d.pleasure,
                "tier": d.tier if d.tier is not None else "",
                "clip": d.clip.name if d.clip else "",
                "reason": d.reason,
                "dirty_talk_before": d.dirty_talk_before,
                "dirty_talk_after": d.dirty_talk_after,
                "started": int(d.started),
            })

    print(f"[✓] Wrote {len(decisions)} rows to {output_path}")

    print()
    print("=== REPLAY SUMMARY ===")
    print(f"Motion edges:    {core.motion.edges_total}")
    print(f"Heartbeats:      {core.heartbeat.ticks_total}")
    print(f"Decisions:       {core.engine.decision_count}")
    print(f"Clips chosen:    {core.engine.dispatch_count}")
    print(f"Clips started:   {core.controller.starts}")
    print(f"Final pleasure:  {core.pleasure}")
    print(f"Final dirty talk:{core.dirty_talk:3d}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
