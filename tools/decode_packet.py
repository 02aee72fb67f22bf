#!/usr/bin/env python3
"""
decode_packet.py - Decode gateway UDP packets and run packet test vectors

Usage:
    python tools/decode_packet.py 0114140271776572747931327b7d
    python tools/decode_packet.py --base64 ARQUAXF3ZXJ0eTEy
    python tools/decode_packet.py --format yaml 01141401
    python tools/decode_packet.py --vectors vectors/gateway_packets.yaml
    python tools/decode_packet.py --vectors vectors/gateway_packets.yaml --json

Vector files are YAML:

    vectors:
      - name: push_ack
        description: acknowledgement without body
        packet: "01 14 14 01"
        expected:
          identifier: PUSH_ACK
      - name: bad_version
        packet: "00 14 14 01"
        error: UnsupportedVersion

`expected` is compared as a subset of the decoded packet (see
Packet.to_dict); `error` names the expected error class.

Exit codes: 0 all decoded / passed, 1 decode or vector failure,
2 bad arguments or unreadable vector file.
"""

import argparse
import base64
import binascii
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

sys.path.insert(0, str(Path(__file__).parent))
from packet_codec import decode

logger = logging.getLogger('decode_packet')

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class VectorResult:
    """Result of a single packet vector."""
    name: str
    passed: bool
    description: str = ""
    packet_hex: str = ""
    expected: Any = None
    actual: Any = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'passed': self.passed,
            'description': self.description,
            'packet': self.packet_hex,
            'expected': self.expected,
            'actual': self.actual,
            'errors': self.errors,
        }


def parse_hex(text: str) -> bytes:
    """Hex string to bytes; whitespace, ':' and a 0x prefix are tolerated."""
    clean = ''.join(str(text).split()).replace(':', '')
    if clean.lower().startswith('0x'):
        clean = clean[2:]
    return bytes.fromhex(clean)


def parse_input(text: str, use_base64: bool) -> bytes:
    if use_base64:
        return base64.b64decode(text, validate=True)
    return parse_hex(text)


def subset_mismatches(expected: Any, actual: Any, path: str = '') -> List[str]:
    """
    Compare `expected` against `actual`, where dicts in `expected` only
    need to match the keys they list.
    """
    where = path or 'packet'
    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return [f"{where}: expected object, got {actual!r}"]
        errors = []
        for key, value in expected.items():
            sub = f"{path}.{key}" if path else str(key)
            if key not in actual:
                errors.append(f"{sub}: missing")
            else:
                errors.extend(subset_mismatches(value, actual[key], sub))
        return errors
    if isinstance(expected, list):
        if not isinstance(actual, list) or len(actual) != len(expected):
            return [f"{where}: expected {len(expected)} items, got {actual!r}"]
        errors = []
        for i, (exp_item, act_item) in enumerate(zip(expected, actual)):
            errors.extend(subset_mismatches(exp_item, act_item, f"{where}[{i}]"))
        return errors
    if isinstance(expected, float) and isinstance(actual, (int, float)):
        if abs(expected - actual) > 1e-9 * max(1.0, abs(expected)):
            return [f"{where}: expected {expected}, got {actual}"]
        return []
    if expected != actual:
        return [f"{where}: expected {expected!r}, got {actual!r}"]
    return []


def run_vector(vector: Dict[str, Any], index: int) -> VectorResult:
    name = vector.get('name', f"vector_{index}")
    result = VectorResult(
        name=name,
        passed=False,
        description=vector.get('description', ''),
        packet_hex=str(vector.get('packet', '')),
    )

    try:
        raw = parse_hex(vector['packet'])
    except (KeyError, ValueError) as e:
        result.errors.append(f"Invalid packet hex: {e}")
        return result

    decoded = decode(raw)
    expected_error = vector.get('error')

    if expected_error:
        result.expected = expected_error
        if decoded.success:
            result.actual = decoded.packet.to_dict()
            result.errors.append(f"Expected {expected_error}, packet decoded")
        else:
            result.actual = type(decoded.error).__name__
            if result.actual != expected_error:
                result.errors.append(f"Expected {expected_error}, got {result.actual}: {decoded.error}")
        result.passed = not result.errors
        return result

    if not decoded.success:
        result.actual = type(decoded.error).__name__
        result.errors.append(f"Decode failed: {decoded.error}")
        return result

    result.actual = decoded.packet.to_dict()
    result.expected = vector.get('expected') or {}
    result.errors.extend(subset_mismatches(result.expected, result.actual))
    result.passed = not result.errors
    return result


def run_vectors(document: Any) -> List[VectorResult]:
    if isinstance(document, dict):
        vectors = document.get('vectors', [])
    else:
        vectors = document
    if not isinstance(vectors, list):
        raise ValueError("'vectors' must be a list")
    results = []
    for i, vector in enumerate(vectors):
        if not isinstance(vector, dict):
            results.append(VectorResult(name=f"vector_{i}", passed=False,
                                        errors=["Vector is not a mapping"]))
            continue
        results.append(run_vector(vector, i))
    return results


def print_results(results: List[VectorResult], verbose: bool = False):
    passed = sum(1 for r in results if r.passed)
    print(f"Packet Vectors: {passed}/{len(results)} passed")
    print("-" * 50)

    for r in results:
        status = "PASS" if r.passed else "FAIL"
        print(f"{r.name}: {status}")
        if verbose or not r.passed:
            if r.description:
                print(f"    Description: {r.description}")
            if r.packet_hex:
                print(f"    Packet: {r.packet_hex}")
            for error in r.errors:
                print(f"    ERROR: {error}")
            if verbose and r.passed:
                print(f"    Actual: {r.actual}")

    print("-" * 50)
    if passed == len(results):
        print(f"PASSED: All {len(results)} vectors passed")
    else:
        print(f"FAILED: {len(results) - passed} of {len(results)} vectors failed")


def render(data: Any, output_format: str) -> str:
    if output_format == 'yaml':
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip()
    return json.dumps(data, indent=2)


def decode_inputs(inputs: List[str], use_base64: bool, output_format: str) -> int:
    exit_code = 0
    for text in inputs:
        try:
            raw = parse_input(text, use_base64)
        except (ValueError, binascii.Error) as e:
            logger.warning("Cannot read input %r: %s", text, e)
            exit_code = 1
            continue

        result = decode(raw)
        if result.success:
            print(render(result.packet.to_dict(), output_format))
        else:
            logger.warning("Rejected %s: %s", text, result.error)
            print(render({'error': type(result.error).__name__,
                          'message': str(result.error)}, output_format))
            exit_code = 1
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Decode gateway UDP packets (PUSH_DATA, PULL_RESP, ...)'
    )
    parser.add_argument('packets', nargs='*', help='Packets as hex strings')
    parser.add_argument('--base64', action='store_true',
                        help='Inputs are base64 instead of hex')
    parser.add_argument('--format', choices=['json', 'yaml'], default='json',
                        help='Output format for decoded packets (default: json)')
    parser.add_argument('--vectors', metavar='FILE',
                        help='Run packet vectors from a YAML file')
    parser.add_argument('--json', action='store_true',
                        help='Output vector results as JSON')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging and detailed vector output')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    if not args.packets and not args.vectors:
        parser.print_usage(sys.stderr)
        print("error: give packets or --vectors", file=sys.stderr)
        return 2

    exit_code = 0

    if args.vectors:
        try:
            with open(args.vectors) as f:
                document = yaml.safe_load(f)
            results = run_vectors(document)
        except (OSError, yaml.YAMLError, ValueError) as e:
            print(f"Error loading vectors: {e}", file=sys.stderr)
            return 2

        if args.json:
            print(json.dumps([r.to_dict() for r in results], indent=2, default=str))
        else:
            print(f"Running: {args.vectors}")
            print("=" * 50)
            print_results(results, args.verbose)
        if not all(r.passed for r in results):
            exit_code = 1

    if args.packets:
        exit_code = max(exit_code, decode_inputs(args.packets, args.base64, args.format))

    return exit_code


if __name__ == '__main__':
    sys.exit(main())
