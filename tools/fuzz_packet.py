#!/usr/bin/env python3
"""
fuzz_packet.py - Fuzz test the gateway packet parser

Checks that parse() only ever fails with a PacketError, whatever bytes
arrive on the socket.

Usage:
    python tools/fuzz_packet.py                                   # 10 second fuzz
    python tools/fuzz_packet.py --duration 60                     # 1 minute fuzz
    python tools/fuzz_packet.py --seed 12345                      # Reproducible
    python tools/fuzz_packet.py --vectors vectors/gateway_packets.yaml
"""

import argparse
import logging
import random
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

sys.path.insert(0, str(Path(__file__).parent))
from packet_codec import VERSION, Identifier, parse
from packet_errors import PacketError

logger = logging.getLogger('fuzz_packet')

SAMPLE_STAT = (
    b'{"stat":{"time":"2014-01-12 08:59:28 GMT","lati":46.24,"long":3.2523,'
    b'"alti":145,"rxnb":2,"rxok":2,"rxfw":2,"ackr":100.0,"dwnb":2,"txnb":2}}'
)
SAMPLE_RXPK = (
    b'{"rxpk":[{"chan":2,"codr":"4/6","data":"-DS4CGaDCdG+48eJNM3Vai-zDpsR71Pn9CPA9uCON84",'
    b'"datr":"SF7BW125","freq":866.349812,"lsnr":5.1,"modu":"LORA","rfch":0,"rssi":-35,'
    b'"size":32,"stat":1,"time":"2013-03-31T16:21:17.528002Z","tmst":3512348611}]}'
)
SAMPLE_TXPK = (
    b'{"txpk":{"imme":true,"freq":864.123456,"rfch":0,"powe":14,"modu":"LORA",'
    b'"datr":"SF11BW125","codr":"4/6","ipol":false,"size":32,"data":"H3P3N2i9qc4yt7rK7ldqoeCVJGBybzPY5h1Dd7P7p8v"}}'
)


def sample_packets() -> List[bytes]:
    """Built-in seed packets, one per identifier shape."""
    token = b'\x14\x14'
    gateway_id = b'qwerty12'
    return [
        bytes([VERSION]) + token + bytes([Identifier.PUSH_ACK]),
        bytes([VERSION]) + token + bytes([Identifier.PULL_ACK]),
        bytes([VERSION]) + token + bytes([Identifier.PULL_DATA]) + gateway_id,
        bytes([VERSION]) + token + bytes([Identifier.PUSH_DATA]) + gateway_id + SAMPLE_STAT,
        bytes([VERSION]) + token + bytes([Identifier.PUSH_DATA]) + gateway_id + SAMPLE_RXPK,
        bytes([VERSION]) + token + bytes([Identifier.PULL_RESP]) + SAMPLE_TXPK,
    ]


def load_vector_packets(path: str) -> List[bytes]:
    """Seed packets from a decode_packet.py vector file."""
    with open(path) as f:
        document = yaml.safe_load(f) or {}
    vectors = document.get('vectors', []) if isinstance(document, dict) else document
    if vectors is None:
        vectors = []
    if not isinstance(vectors, list):
        raise ValueError(f"{path}: 'vectors' must be a list")
    packets = []
    for vector in vectors:
        packet = vector.get('packet') if isinstance(vector, dict) else None
        if not isinstance(packet, str):
            continue
        try:
            packets.append(bytes.fromhex(''.join(packet.split())))
        except ValueError:
            logger.warning("Skipping vector %s: bad hex", vector.get('name'))
    return packets


@dataclass
class FuzzStats:
    """Statistics from a fuzz run."""
    total_inputs: int = 0
    decoded: int = 0
    rejected: int = 0
    crashes: int = 0
    duration_sec: float = 0.0
    seed: int = 0
    crash_inputs: List[bytes] = field(default_factory=list)

    @property
    def inputs_per_sec(self) -> float:
        if self.duration_sec > 0:
            return self.total_inputs / self.duration_sec
        return 0.0


class PacketFuzzer:
    """Mutation fuzzer for parse()."""

    def __init__(self, seeds: Optional[List[bytes]] = None, seed: Optional[int] = None):
        self.seeds = seeds or sample_packets()
        self.seed = seed if seed is not None else random.randint(0, 2**32)
        self.rng = random.Random(self.seed)
        self.stats = FuzzStats(seed=self.seed)

    def generate_random_bytes(self, min_len: int = 0, max_len: int = 255) -> bytes:
        length = self.rng.randint(min_len, max_len)
        return bytes(self.rng.randint(0, 255) for _ in range(length))

    def generate_random_header(self) -> bytes:
        """Valid version and identifier, random tail."""
        identifier = self.rng.choice(list(Identifier))
        return bytes([VERSION, 0x00, 0x00, identifier]) + self.generate_random_bytes(0, 64)

    def generate_truncated(self, packet: bytes) -> bytes:
        if len(packet) == 0:
            return b''
        return packet[:self.rng.randint(0, len(packet) - 1)]

    def generate_extended(self, packet: bytes) -> bytes:
        return packet + self.generate_random_bytes(1, 50)

    def generate_bitflip(self, packet: bytes) -> bytes:
        """Flip random bits, sparing the version byte most of the time."""
        if len(packet) == 0:
            return b''
        data = bytearray(packet)
        start = 1 if len(data) > 1 and self.rng.random() < 0.9 else 0
        for _ in range(self.rng.randint(1, 4)):
            pos = self.rng.randint(start, len(data) - 1)
            data[pos] ^= 1 << self.rng.randint(0, 7)
        return bytes(data)

    def generate_json_splice(self, packet: bytes) -> bytes:
        """Replace one character of the JSON body with a structural one."""
        if len(packet) <= 12:
            return packet
        data = bytearray(packet)
        pos = self.rng.randint(12, len(data) - 1)
        data[pos] = self.rng.choice(b'{}[]":,0-.etn ')
        return bytes(data)

    def fuzz_one(self, packet: bytes) -> bool:
        """
        Parse one input.
        Returns True if the parser handled it safely, False on crash.
        """
        self.stats.total_inputs += 1
        try:
            parse(packet)
            self.stats.decoded += 1
            return True
        except PacketError:
            self.stats.rejected += 1
            return True
        except Exception as e:
            logger.warning("Crash on %s: %s: %s", packet.hex(), type(e).__name__, e)
            self.stats.crashes += 1
            self.stats.crash_inputs.append(packet)
            return False

    def run(self, duration_sec: float = 10.0, max_inputs: Optional[int] = None) -> FuzzStats:
        generators = [
            lambda: self.generate_random_bytes(0, 255),
            lambda: self.generate_random_bytes(0, 12),
            self.generate_random_header,
            lambda: self.generate_truncated(self.rng.choice(self.seeds)),
            lambda: self.generate_extended(self.rng.choice(self.seeds)),
            lambda: self.generate_bitflip(self.rng.choice(self.seeds)),
            lambda: self.generate_json_splice(self.rng.choice(self.seeds)),
            lambda: bytes(self.rng.randint(1, 50)),
            lambda: bytes([0xFF] * self.rng.randint(1, 50)),
            lambda: b'',
        ]

        start_time = time.time()
        end_time = start_time + duration_sec
        while time.time() < end_time:
            if max_inputs is not None and self.stats.total_inputs >= max_inputs:
                break
            self.fuzz_one(self.rng.choice(generators)())

        self.stats.duration_sec = time.time() - start_time
        return self.stats


def print_stats(stats: FuzzStats):
    print("\nPacket Parser Fuzzing Results")
    print("=" * 50)
    print(f"Seed: {stats.seed}")
    print(f"Duration: {stats.duration_sec:.1f}s")
    print(f"Total inputs: {stats.total_inputs}")
    print(f"Rate: {stats.inputs_per_sec:.0f} inputs/sec")
    print(f"Decoded: {stats.decoded}")
    print(f"Rejected: {stats.rejected} (expected)")
    print(f"Crashes: {stats.crashes}")

    if stats.crashes > 0:
        print("\nCRASH INPUTS (reproducible with --seed):")
        for i, packet in enumerate(stats.crash_inputs[:5]):
            print(f"  {i+1}: {packet.hex()}")
        print("\nFAILED: Parser crashed on malformed input!")
    else:
        print("\nPASSED: No crashes detected")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Fuzz test the gateway packet parser')
    parser.add_argument('--vectors', metavar='FILE',
                        help='Seed packets from a vector YAML file')
    parser.add_argument('-d', '--duration', type=float, default=10.0,
                        help='Fuzz duration in seconds (default: 10)')
    parser.add_argument('-n', '--max-inputs', type=int,
                        help='Stop after this many inputs')
    parser.add_argument('-s', '--seed', type=int,
                        help='Random seed for reproducibility')
    parser.add_argument('-v', '--verbose', action='store_true')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    seeds = None
    if args.vectors:
        try:
            seeds = load_vector_packets(args.vectors)
        except (OSError, ValueError, yaml.YAMLError) as e:
            print(f"Error loading vectors: {e}", file=sys.stderr)
            return 2

    fuzzer = PacketFuzzer(seeds, seed=args.seed)
    stats = fuzzer.run(args.duration, args.max_inputs)
    print_stats(stats)
    return 1 if stats.crashes > 0 else 0


if __name__ == '__main__':
    sys.exit(main())
