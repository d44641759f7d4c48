# capture_motion.py
"""
Record accelerometer frames from the serial link to JSONL for later replay.

    python3 scripts/capture_motion.py --port /dev/ttyUSB0 --out motion.jsonl
"""

import sys, time, argparse
from pathlib import Path

HERE = Path(__file__).resolve()
for p in [HERE.parent, *HERE.parents]:
    if (p / "joysound").exists():
        sys.path.insert(0, str(p)); break

from joysound.core_v1_0 import MotionPermissionDenied
from joysound.motion_link import BatchWriter, SerialMotionSource, sample_to_json


def main():
    ap = argparse.ArgumentParser(description='Capture accel frames to JSONL')
    ap.add_argument('--port', '-p', default='/dev/ttyUSB0')
    ap.add_argument('--baud', '-b', type=int, default=115200)
    ap.add_argument('--out', '-o', default='motion_capture.jsonl')
    args = ap.parse_args()

    partial_seen = 0

    def on_sample(sample, now_ms):
        nonlocal partial_seen
        if not sample.complete:
            partial_seen += 1

    out = BatchWriter(args.out, batch_size=256, flush_ms=400)
    source = SerialMotionSource(args.port, baud=args.baud, timeout=0.1,
                                on_frame=lambda t_dev, s, host_ms: out.add(sample_to_json(t_dev, s, host_ms)))
    try:
        source.subscribe(on_sample)
    except MotionPermissionDenied as e:
        print(f"[capture] cannot open port: {e}")
        out.close()
        return 1

    print(f"[capture] listening on {args.port} @ {args.baud} … (Ctrl+C to stop)")
    print(f"[capture] writing to: {args.out}")

    t0 = time.time()
    last_status = t0
    try:
        while True:
            now = time.time()
            source.pump(int(now * 1000))

            if now - last_status > 5.0:
                elapsed = now - t0
                sps = source.samples_seen / elapsed if elapsed > 0 else 0
                print(f"[status] samples: {source.samples_seen} ({sps:.1f}/s)  "
                      f"partial: {partial_seen}  buffered: {len(out.buf)}")
                last_status = now
    except KeyboardInterrupt:
        print("\n[capture] interrupted by user")
    finally:
        source.unsubscribe()
        out.close()

        elapsed = time.time() - t0
        print("\n" + "="*70)
        print("[capture] Session summary:")
        print(f"  Duration:      {elapsed:.1f}s")
        print(f"  Samples:       {source.samples_seen} ({source.samples_seen/max(elapsed, 1e-9):.1f}/s)")
        print(f"  Partial:       {partial_seen}")
        print("="*70)
        print("[capture] closed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
