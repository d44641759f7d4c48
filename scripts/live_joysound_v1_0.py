#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
live_joysound_v1_0.py — Live accelerometer -> Joysound core -> sound device

Reads framed accel samples from the serial link, runs them through the core
and plays the chosen clips on the default output device.

    --session FILE   session JSON (settings + schemes); default: empty scheme
    --volume / --sensitivity override the session settings
    --log            write every decision to a JSONL file
    --simple         one status line instead of the full meter panel

Ctrl+C disables the core (clip stopped, port closed) and prints a summary.
"""

import sys, json, math, time, argparse
from pathlib import Path
from datetime import datetime
from collections import Counter

HERE = Path(__file__).resolve()
for p in [HERE.parent, *HERE.parents]:
    if (p / "joysound").exists():
        sys.path.insert(0, str(p)); break

import logging

from joysound.audio_sink import SoundDeviceSink
from joysound.core_v1_0 import JoysoundCore
from joysound.motion_link import SerialMotionSource
from joysound.playback_engine_v1_0 import PlaybackState
from joysound.scheme_registry import SchemeBook, TIERS, load_scheme_book
from joysound.settings import Settings, load_settings


def now_ms() -> int:
    return int(time.time() * 1000)


# === UI ===
class UI:
    CLR, HIDE, SHOW = "\033[K", "\033[?25l", "\033[?25h"
    B, R, G, Y, C, M, D = "\033[1m", "\033[0m", "\033[92m", "\033[93m", "\033[96m", "\033[95m", "\033[2m"
    def __init__(self, n=16): self.n, self.ok = n, False
    def init(self): print(self.HIDE, end=''); [print() for _ in range(self.n)]; self.ok = True
    def update(self, lines):
        if not self.ok: self.init()
        print(f"\033[{self.n}A", end='')
        for l in lines[:self.n]: print(f"{self.CLR}{l}")
        for _ in range(self.n - len(lines)): print(self.CLR)
    def cleanup(self): print(self.SHOW, end='')


def motion_segments(intensity: float, n: int = 10) -> int:
    """Lit segments of the motion monitor: ceil(intensity / 10), at most n."""
    return min(n, max(0, math.ceil(intensity / 10)))


def fmt_display(snap, core, samples, elapsed):
    u = UI
    pb = int(snap.pleasure / 100 * 30)
    pcol = u.G if snap.pleasure > 60 else (u.Y if snap.pleasure > 20 else u.D)
    seg = motion_segments(snap.intensity)
    dt = core.engine.config.dirty_talk_max
    play_col = u.G if snap.playback_state == PlaybackState.PLAYING else u.D

    lines = [f"{u.B}═══════════════════════════════════════════════════════════════════{u.R}",
             f"{u.B}  JOYSOUND v{JoysoundCore.VERSION}{u.R}",
             "═══════════════════════════════════════════════════════════════════"]
    lines.append(f"  {u.B}Pleasure:{u.R}   {pcol}[{'█'*pb}{'░'*(30-pb)}]{u.R} {snap.pleasure:3d}")
    lines.append(f"  {u.B}Dirty talk:{u.R} {snap.dirty_talk:2d}/{dt}")
    lines.append(f"  {u.B}Motion:{u.R}     {u.C}{'▮'*seg}{u.D}{'▯'*(10-seg)}{u.R}  {snap.intensity:5.1f}")
    lines.append("───────────────────────────────────────────────────────────────────")
    lines.append(f"  {u.B}Playback:{u.R}   {play_col}{snap.playback_state.value:<8}{u.R} {snap.clip_name or '-'}")
    d = snap.last_decision
    if d is not None:
        lines.append(f"  {u.D}last:{u.R} tier={d.tier or '-'} reason={d.reason} trigger={d.trigger.value}")
    else:
        lines.append(f"  {u.D}last: -{u.R}")
    lines.append(f"  {u.D}volume={core.settings.global_volume:.2f} sensitivity={core.settings.sensitivity} "
                 f"motion={'on' if snap.motion_subscribed else 'denied'}{u.R}")
    lines += ["───────────────────────────────────────────────────────────────────",
              f"  Samples: {samples:7d}    Time: {elapsed:.1f}s",
              "═══════════════════════════════════════════════════════════════════"]
    return lines


def decision_to_json(d) -> str:
    return json.dumps({
        "kind": "decision",
        "t_ms": d.timestamp_ms,
        "trigger": d.trigger.value,
        "pleasure": d.pleasure,
        "tier": d.tier,
        "clip": d.clip.name if d.clip else None,
        "reason": d.reason,
        "dirty_talk_before": d.dirty_talk_before,
        "dirty_talk_after": d.dirty_talk_after,
    })


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument('--port', '-p', default='/dev/ttyUSB0')
    ap.add_argument('--baud', '-b', type=int, default=115200)
    ap.add_argument('--session', help='session JSON with settings and schemes')
    ap.add_argument('--volume', type=float, default=None)
    ap.add_argument('--sensitivity', type=int, default=None)
    ap.add_argument('--device', default=None, help='sounddevice output device')
    ap.add_argument('--log', '-l', action='store_true')
    ap.add_argument('--simple', '-s', action='store_true')
    ap.add_argument('--verbose', '-v', action='store_true')
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(message)s", stream=sys.stderr)

    if args.session:
        book = load_scheme_book(args.session)
        settings = load_settings(args.session)
        print(f"[i] Session: {args.session}")
    else:
        book, settings = SchemeBook.default(), Settings()
        print("[i] No session: default scheme (all tiers empty)")
    if args.volume is not None:
        settings.set_volume(args.volume)
    if args.sensitivity is not None:
        settings.set_sensitivity(args.sensitivity)

    active = book.active
    print(f"[i] Scheme: {active.name} ({active.id})  " +
          "  ".join(f"T{t}={len(active.get_pool(t))}" for t in TIERS))

    source = SerialMotionSource(args.port, baud=args.baud)
    sink = SoundDeviceSink(device=args.device)
    core = JoysoundCore(schemes=book, settings=settings, sink=sink, motion_source=source)

    log_file = None
    if args.log:
        lp = f"live_joysound_{datetime.now().strftime('%Y%m%d_%H%M%S')}.jsonl"
        log_file = open(lp, 'w'); print(f"[i] Log: {lp}")

    print(f"[i] Opening {args.port}...")
    session_t0 = time.time()
    core.on_enable(now_ms())
    if not core.motion_subscribed:
        print(f"[!] Motion unavailable on {args.port}; running without motion")

    ui = None if args.simple else UI(16)
    print("[i] Running...")
    if ui: ui.init()

    last_disp = 0.0
    reasons = Counter()
    tiers = Counter()
    peak_pleasure = 0

    try:
        while True:
            t = now_ms()
            source.pump(t)
            core.poll(t)

            for d in core.take_decisions():
                reasons[d.reason] += 1
                if d.tier is not None and d.started:
                    tiers[d.tier] += 1
                if log_file:
                    log_file.write(decision_to_json(d) + "\n")

            snap = core.snapshot()
            peak_pleasure = max(peak_pleasure, snap.pleasure)
            now = time.time()
            if ui and now - last_disp > 0.1:
                ui.update(fmt_display(snap, core, source.samples_seen, now - session_t0))
                last_disp = now
            elif args.simple and now - last_disp > 0.1:
                print(f"\r[{now - session_t0:5.1f}s] pleasure={snap.pleasure:3d} "
                      f"dirty={snap.dirty_talk:2d} motion={motion_segments(snap.intensity):2d}/10 "
                      f"{snap.playback_state.value:<7} {snap.clip_name or '-'}",
                      end='', flush=True)
                last_disp = now

            if not core.motion_subscribed:
                time.sleep(0.01)
    except KeyboardInterrupt:
        print("\n[i] Stopped")
    finally:
        core.on_disable(now_ms())
        if ui: ui.cleanup()
        if log_file: log_file.close()

        print(f"\n{'='*70}")
        print(f"SUMMARY: {time.time()-session_t0:.1f}s, {source.samples_seen} samples, "
              f"{core.motion.edges_total} motion edges")
        print(f"Final: pleasure={core.pleasure} dirty_talk={core.dirty_talk} peak_pleasure={peak_pleasure}")
        print("-"*70)
        print("DECISIONS:")
        print(f"  Total:              {core.engine.decision_count}")
        print(f"  Clips chosen:       {core.engine.dispatch_count}")
        print(f"  Clips started:      {core.controller.starts}")
        print(f"  Start failures:     {core.controller.start_failures}")
        for t in TIERS:
            print(f"  Tier {t}:             {tiers.get(t, 0)}")
        for reason, n in sorted(reasons.items()):
            print(f"  {reason:<22} {n}")
        print("="*70)
    return 0


if __name__ == "__main__": sys.exit(main())
