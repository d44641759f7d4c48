# motion_link.py
"""
Serial link for the accelerometer.

Frame layout (little endian):
    SYNC(0xA5) | TYPE<<4 | VER | LEN | PAYLOAD[LEN] | CRC16
CRC16-CCITT-FALSE over TYPE|VER + LEN + PAYLOAD. Bad CRC -> resync at the next SYNC.

    TYPE_ACCEL          <Ifff   t_ms, x, y, z           (m/s², gravity included)
    TYPE_ACCEL_PARTIAL  <IB     t_ms, axis mask, then one float per set bit
                                 (bit0=x, bit1=y, bit2=z); missing axes -> None
"""

import json
import struct
import time
from typing import Callable, Optional, Tuple

import serial

from joysound.core_v1_0 import MotionPermissionDenied
from joysound.motion_signal_v1_0 import MotionSample

SYNC = 0xA5
VERSION = 0x1
TYPE_ACCEL         = 0x1
TYPE_ACCEL_PARTIAL = 0x2

AXIS_X, AXIS_Y, AXIS_Z = 0x1, 0x2, 0x4


def crc16_ccitt_false(data: bytes) -> int:
    crc = 0xFFFF
    for ch in data:
        crc ^= (ch << 8) & 0xFFFF
        for _ in range(8):
            crc = ((crc << 1) ^ 0x1021) & 0xFFFF if (crc & 0x8000) else ((crc << 1) & 0xFFFF)
    return crc


def encode_frame(ftype: int, payload: bytes, ver: int = VERSION) -> bytes:
    body = bytes([((ftype & 0x0F) << 4) | (ver & 0x0F), len(payload)]) + payload
    return bytes([SYNC]) + body + struct.pack('<H', crc16_ccitt_false(body))


def encode_accel_frame(t_ms: int, x: Optional[float], y: Optional[float], z: Optional[float]) -> bytes:
    if x is not None and y is not None and z is not None:
        return encode_frame(TYPE_ACCEL, struct.pack('<Ifff', t_ms & 0xFFFFFFFF, x, y, z))
    mask, axes = 0, b""
    for bit, v in ((AXIS_X, x), (AXIS_Y, y), (AXIS_Z, z)):
        if v is not None:
            mask |= bit
            axes += struct.pack('<f', v)
    return encode_frame(TYPE_ACCEL_PARTIAL, struct.pack('<IB', t_ms & 0xFFFFFFFF, mask) + axes)


class FrameStream:
    def __init__(self, ser):
        self.ser = ser
        self.buf = bytearray()

    def feed(self, chunk: bytes):
        # generator: yields (type, ver, payload:bytes)
        self.buf.extend(chunk)
        while True:
            idx = self.buf.find(bytes([SYNC]))
            if idx < 0:
                self.buf.clear()
                break
            if idx > 0:
                del self.buf[:idx]
            if len(self.buf) < 4:
                break
            typever = self.buf[1]
            plen = self.buf[2]
            need = 1 + 1 + 1 + plen + 2
            if len(self.buf) < need:
                break
            frame = bytes(self.buf[:need])
            crc_rx = struct.unpack('<H', frame[-2:])[0]
            crc_tx = crc16_ccitt_false(frame[1:3+plen])
            if crc_rx != crc_tx:
                # drop only the sync byte; a real frame may start inside this one
                del self.buf[:1]
                continue
            del self.buf[:need]
            t = (typever >> 4) & 0x0F
            v = typever & 0x0F
            yield (t, v, frame[3:-2])

    def read_frames(self):
        chunk = self.ser.read(256)
        if not chunk:
            return
        yield from self.feed(chunk)


def parse_accel(ftype: int, p: bytes) -> Optional[Tuple[int, MotionSample]]:
    """Decode an accel payload to (device t_ms, sample). None if malformed."""
    if ftype == TYPE_ACCEL:
        if len(p) < 16:
            return None
        t_ms, x, y, z = struct.unpack_from('<Ifff', p, 0)
        return t_ms, MotionSample(x, y, z)

    if ftype == TYPE_ACCEL_PARTIAL:
        if len(p) < 5:
            return None
        t_ms, mask = struct.unpack_from('<IB', p, 0)
        vals, off = {}, 5
        for bit in (AXIS_X, AXIS_Y, AXIS_Z):
            if mask & bit:
                if len(p) < off + 4:
                    return None
                vals[bit], = struct.unpack_from('<f', p, off)
                off += 4
        return t_ms, MotionSample(vals.get(AXIS_X), vals.get(AXIS_Y), vals.get(AXIS_Z))

    return None


class SerialMotionSource:
    """
    Motion source over a serial port.

    subscribe() opens the port; a port that cannot be opened is reported as
    MotionPermissionDenied. pump(now_ms) delivers pending samples to the
    subscriber on the caller's thread.
    """

    def __init__(self, port: str, baud: int = 115200, timeout: float = 0.01, on_frame=None):
        self.port = port
        self.baud = baud
        self.timeout = timeout
        self.on_frame = on_frame          # optional raw hook (capture)
        self.ser = None
        self._stream: Optional[FrameStream] = None
        self._callback: Optional[Callable[[MotionSample, int], None]] = None
        self.samples_seen = 0

    @property
    def subscribed(self) -> bool:
        return self._callback is not None

    def subscribe(self, callback: Callable[[MotionSample, int], None]) -> None:
        try:
            self.ser = serial.serial_for_url(self.port, baudrate=self.baud, timeout=self.timeout)
        except (serial.SerialException, OSError) as e:
            raise MotionPermissionDenied(f"{self.port}: {e}") from e
        self._stream = FrameStream(self.ser)
        self._callback = callback

    def unsubscribe(self) -> None:
        self._callback = None
        self._stream = None
        if self.ser is not None:
            self.ser.close()
            self.ser = None

    def pump(self, now_ms: int) -> int:
        if self._callback is None:
            return 0
        n = 0
        for t, v, payload in self._stream.read_frames():
            dec = parse_accel(t, payload)
            if dec is None:
                continue
            t_dev, sample = dec
            if self.on_frame:
                self.on_frame(t_dev, sample, now_ms)
            self.samples_seen += 1
            n += 1
            self._callback(sample, now_ms)
            if self._callback is None:
                break
        return n


def sample_to_json(t_dev_ms: int, sample: MotionSample, host_ms: int) -> str:
    return json.dumps({"kind": "accel", "t_dev_ms": t_dev_ms, "t_ms": host_ms,
                       "x": sample.x, "y": sample.y, "z": sample.z})


# --- Batch writer: one write per batch instead of per line
class BatchWriter:
    def __init__(self, path, batch_size=256, flush_ms=500):
        self.path = path
        self.batch_size = batch_size
        self.flush_ms = flush_ms
        self.buf = []
        self.last_flush = time.time()
        self.f = open(path, "a", buffering=1024*1024)

    def add(self, line: str):
        self.buf.append(line)
        now = time.time()
        if len(self.buf) >= self.batch_size or (now - self.last_flush) * 1000.0 >= self.flush_ms:
            self.flush(now)

    def flush(self, now=None):
        if not self.buf: return
        self.f.write("\n".join(self.buf) + "\n")
        self.buf.clear()
        self.last_flush = now if now else time.time()

    def close(self):
        self.flush()
        self.f.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
