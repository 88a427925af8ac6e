"""Line-oriented subscriber that prints pose updates from a running server."""

import argparse
import socket
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from broadcast.fanout import parse_pose_line  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Print pose lines from a PoseCast server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=61420)
    parser.add_argument("--count", type=int, default=0, help="Stop after N lines (0 = forever)")
    args = parser.parse_args()

    try:
        sock = socket.create_connection((args.host, args.port), timeout=5.0)
    except OSError as exc:
        print(f"[X] Cannot connect to {args.host}:{args.port}: {exc}", file=sys.stderr)
        return 1

    sock.settimeout(None)
    received = 0
    with sock, sock.makefile("r", encoding="ascii", newline="\n") as stream:
        for line in stream:
            try:
                device_index, rotation, translation = parse_pose_line(line)
            except ValueError:
                print(f"[?] {line.rstrip()}", file=sys.stderr)
                continue
            rx, ry, rz = rotation
            tx, ty, tz = translation
            print(
                f"device {device_index}: rot=({rx:+8.2f}, {ry:+8.2f}, {rz:+8.2f}) "
                f"pos=({tx:+.3f}, {ty:+.3f}, {tz:+.3f})"
            )
            received += 1
            if args.count and received >= args.count:
                break

    print(f"\n[OK] Received {received} pose line(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
