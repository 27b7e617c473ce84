#!/usr/bin/env python3
"""
Parser fuzzer for the command-line grammar.

Generates random and mutated command lines to find parser bugs like:
- Crashes (any exception other than CommandParseError)
- Hangs (pathological inputs)
- Results that break the Command invariants

Usage:
    python scripts/fuzz_parser.py [--duration MINUTES] [--iterations N] [--seed SEED]

Findings are saved to scripts/fuzz_findings/
"""

import argparse
import hashlib
import random
import re
import signal
import string
import sys
import time
import traceback
from contextlib import contextmanager
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from marin import Command, CommandParseError, parse
from marin.model import VALUE_TYPES

# Directory for saving findings
FINDINGS_DIR = Path(__file__).parent / "fuzz_findings"


class ParseTimeout(Exception):
    pass


class InvariantViolation(Exception):
    pass


@contextmanager
def time_limit(seconds):
    """Raise ParseTimeout if the block runs longer than seconds (SIGALRM only)."""
    if not hasattr(signal, "SIGALRM"):
        yield
        return

    def expire(signum, frame):
        raise ParseTimeout(f"parse took longer than {seconds}s")

    previous = signal.signal(signal.SIGALRM, expire)
    signal.alarm(seconds)
    try:
        yield
    finally:
        signal.alarm(0)
        signal.signal(signal.SIGALRM, previous)


def check_command(command) -> None:
    """Raise InvariantViolation if a parse result is malformed."""
    if not isinstance(command, Command):
        raise InvariantViolation(f"parse returned {type(command).__name__}")
    for value in command.args:
        if not isinstance(value, VALUE_TYPES):
            raise InvariantViolation(f"positional {value!r} is not a value")
    for key, value in command.kwargs.items():
        if not isinstance(key, str) or not key:
            raise InvariantViolation(f"bad keyword name {key!r}")
        if not isinstance(value, VALUE_TYPES):
            raise InvariantViolation(f"keyword {key} maps to {value!r}")


class Fuzzer:
    """Command-line parser fuzzer."""

    IDENTIFIERS = ["x", "id", "chat", "reason", "offset", "dry-run", "_private", "имя", "True"]
    BAREWORDS = ["@username", "30m", "2w3d3h5s", "https://t.me/c/1/2", "a:b", "..", "-", "*"]
    SEPARATORS = [" ", "  ", "\t", ",", ", ", ":", ": ", "..", "-", "[", "]", '"', "\\"]
    # Text that changes how the lexer splits a line
    DELIMITERS = [":", "..", "-", ",", " ", '"', "[", "]", "//"]
    INT64_EDGES = [
        "0", "-0", "9223372036854775807", "-9223372036854775808",
        "9223372036854775808", "-9223372036854775809", "0009223372036854775807",
        "1" * 25,
    ]

    # Seed corpus - known valid inputs
    SEED_CORPUS = [
        '',
        '1 2 -3 -3.5',
        'arg1 arg2 arg3 4arg',
        'kw: 1 kwargs: True',
        '-flag1 -flag2',
        'kw: "String with spaces"',
        'vals: [1, 2, 3] [1,2,3]',
        'range: 1..10 -5..15 ..10',
        '"t e\\" s t"',
        '-overwrite offset: 30m',
        '777000 -mention -id',
        '@username',
        'https://t.me/joinchat/CkzknkNYuLsKbTc91GfhGw',
        'reason: "spam[gban]"',
        '777000 "ban reason" link: https://t.me/c/1129887931/26708',
        '-1001129887931 -strafanzeige polizei: exclude',
        'chats: [-1001129887931, -1001367463001]',
        'arg: [123, 456] arg2: ["abc", "de f", "xyz"]',
        '1e4 2.5e4 125e-5',
        'nested: [[1, 2], [true, "x"], ..3]',
    ]

    def __init__(self, seed=None, findings_dir=FINDINGS_DIR):
        self.rng = random.Random(seed)
        self.findings_dir = Path(findings_dir)
        self.stats = {
            "iterations": 0,
            "parse_ok": 0,
            "parse_error": 0,
            "crashes": 0,
            "timeouts": 0,
            "unique_crashes": set(),
        }
        self.start_time = None

        # Create findings directory
        self.findings_dir.mkdir(exist_ok=True)

    def random_identifier(self) -> str:
        """Generate a random identifier."""
        if self.rng.random() < 0.7:
            return self.rng.choice(self.IDENTIFIERS)
        length = self.rng.randint(1, 12)
        first = self.rng.choice(string.ascii_letters + "_")
        rest = "".join(self.rng.choices(string.ascii_letters + string.digits + "_-", k=length - 1))
        return first + rest

    def random_number(self) -> str:
        """Generate a random integer or float literal."""
        choice = self.rng.random()
        if choice < 0.4:
            return str(self.rng.randint(-10 ** 13, 10 ** 13))
        elif choice < 0.7:
            return f"{self.rng.uniform(-100, 100):.3f}"
        elif choice < 0.85:
            return f"{self.rng.randint(1, 999)}e{self.rng.choice(['', '-', '+'])}{self.rng.randint(0, 20)}"
        else:
            # Edge cases
            return self.rng.choice([
                "0", "-0", "0.0", "9223372036854775807", "-9223372036854775808",
                "9223372036854775808", "1e999", "-1", "0.001",
            ])

    def random_string(self) -> str:
        """Generate a random quoted string."""
        if self.rng.random() < 0.1:
            return self.rng.choice(['""', '"test"', '" "', '"a \\" b"', '"[1, 2]"'])
        length = self.rng.randint(0, 30)
        chars = "".join(self.rng.choices(string.printable.replace('"', '').replace('\\', ''), k=length))
        return f'"{chars}"'

    def random_value(self, depth=0) -> str:
        """Generate a random value."""
        if depth > 3 or self.rng.random() < 0.7:
            choice = self.rng.randint(0, 5)
            if choice == 0:
                return self.random_number()
            elif choice == 1:
                return self.rng.choice(["true", "false", "TRUE", "False"])
            elif choice == 2:
                return self.random_string()
            elif choice == 3:
                return self.rng.choice(self.BAREWORDS)
            elif choice == 4:
                start = self.rng.randint(-50, 50)
                end = self.rng.randint(-50, 50)
                return self.rng.choice([f"{start}..{end}", f"..{end}"])
            else:
                return self.random_identifier()

        items = ", ".join(self.random_value(depth + 1) for _ in range(self.rng.randint(1, 4)))
        return f"[{items}]"

    def generate_random(self) -> str:
        """Generate a random command line."""
        parts = []
        for _ in range(self.rng.randint(1, 8)):
            kind = self.rng.randint(0, 2)
            if kind == 0:
                parts.append(f"{self.random_identifier()}:{self.rng.choice(['', ' '])}{self.random_value()}")
            elif kind == 1:
                parts.append(f"-{self.random_identifier()}")
            else:
                parts.append(self.random_value())
        return " ".join(parts)

    def mutate(self, line: str) -> str:
        """Apply one randomly chosen mutation to line."""
        mutator = self.rng.choice([
            self._insert_token,
            self._drop_span,
            self._swap_delimiter,
            self._glue_tokens,
            self._wrap_token,
            self._edge_numbers,
        ])
        return mutator(line)

    def _insert_token(self, line: str) -> str:
        pos = self.rng.randint(0, len(line))
        token = self.rng.choice([
            self.rng.choice(self.SEPARATORS),
            f"{self.random_identifier()}:",
            f"-{self.random_identifier()}",
            self.random_value(),
        ])
        return line[:pos] + token + line[pos:]

    def _drop_span(self, line: str) -> str:
        if len(line) < 2:
            return line
        start = self.rng.randrange(len(line))
        end = min(len(line), start + self.rng.randint(1, 8))
        return line[:start] + line[end:]

    def _swap_delimiter(self, line: str) -> str:
        """Replace one delimiter with another, e.g. "kw: 1" -> "kw.. 1"."""
        spots = list(re.finditer(r'\.\.|//|[:\-, "\[\]]', line))
        if not spots:
            return line
        spot = self.rng.choice(spots)
        return line[:spot.start()] + self.rng.choice(self.DELIMITERS) + line[spot.end():]

    def _glue_tokens(self, line: str) -> str:
        """Remove the whitespace between two neighbouring tokens."""
        gaps = list(re.finditer(r"\s+", line))
        if not gaps:
            return line
        gap = self.rng.choice(gaps)
        return line[:gap.start()] + line[gap.end():]

    def _wrap_token(self, line: str) -> str:
        """Put brackets or quotes around one whitespace-separated token."""
        tokens = line.split(" ")
        index = self.rng.randrange(len(tokens))
        left, right = self.rng.choice([("[", "]"), ('"', '"'), ("[" * 50, "]" * 50)])
        tokens[index] = left + tokens[index] + right
        return " ".join(tokens)

    def _edge_numbers(self, line: str) -> str:
        """Replace digit runs with 64-bit boundary literals."""
        def replace(m):
            if self.rng.random() < 0.5:
                return self.rng.choice(self.INT64_EDGES)
            return m.group(0)
        return re.sub(r"[0-9]+", replace, line)

    def save_finding(self, line: str, error: Exception, category: str):
        """Write a finding to the findings directory, once per input."""
        digest = hashlib.md5(line.encode("utf-8", errors="surrogatepass")).hexdigest()[:8]
        if digest in self.stats["unique_crashes"]:
            return
        self.stats["unique_crashes"].add(digest)

        path = self.findings_dir / f"{category}_{digest}.txt"
        path.write_text(
            f"Category: {category}\n"
            f"Error: {type(error).__name__}: {error}\n"
            f"Input: {line!r}\n"
            f"\n{traceback.format_exc()}",
            encoding="utf-8",
            errors="replace",
        )
        print(f"\n[!] {category}: {line!r} -> {path}")

    def test_input(self, line: str) -> bool:
        """Parse one line. Returns True if it produced a finding."""
        try:
            with time_limit(5):
                command = parse(line)
            check_command(command)
        except CommandParseError:
            self.stats["parse_error"] += 1
            return False
        except ParseTimeout as e:
            self.stats["timeouts"] += 1
            self.save_finding(line, e, "timeout")
            return True
        except Exception as e:
            self.stats["crashes"] += 1
            self.save_finding(line, e, "crash")
            return True
        self.stats["parse_ok"] += 1
        return False

    def next_input(self, corpus) -> str:
        roll = self.rng.random()
        if roll < 0.3:
            return self.generate_random()
        if roll < 0.9:
            line = self.rng.choice(corpus)
            for _ in range(self.rng.randint(1, 4)):
                line = self.mutate(line)
            return line
        return self.rng.choice(corpus)

    def run(self, duration_minutes: float = None, iterations: int = None):
        """Fuzz until the duration or iteration limit. Returns the finding count."""
        self.start_time = time.time()
        deadline = self.start_time + duration_minutes * 60 if duration_minutes else None
        corpus = list(self.SEED_CORPUS)

        print(f"Fuzzing with {len(corpus)} seed inputs, findings in {self.findings_dir}")

        try:
            while deadline is None or time.time() < deadline:
                if iterations is not None and self.stats["iterations"] >= iterations:
                    break
                self.stats["iterations"] += 1

                line = self.next_input(corpus)
                # Accepted lines occasionally join the corpus so mutations can build on them
                if self.test_input(line) or (len(line) < 300 and self.rng.random() < 0.02):
                    corpus.append(line)
                    if len(corpus) > 1000:
                        del corpus[self.rng.randrange(len(self.SEED_CORPUS), len(corpus))]

                if self.stats["iterations"] % 1000 == 0:
                    self.print_stats()
        except KeyboardInterrupt:
            print("\nInterrupted")

        print("Final Statistics:")
        self.print_stats()
        return self.stats["crashes"] + self.stats["timeouts"]

    def print_stats(self):
        elapsed = time.time() - self.start_time
        s = self.stats
        print(f"[{elapsed:.1f}s] iterations={s['iterations']} ok={s['parse_ok']} "
              f"rejected={s['parse_error']} crashes={s['crashes']} "
              f"timeouts={s['timeouts']}")


def main():
    parser = argparse.ArgumentParser(description="Fuzz the command-line parser")
    parser.add_argument("--duration", type=float, default=None,
                        help="Duration in minutes (default: run forever)")
    parser.add_argument("--iterations", type=int, default=None,
                        help="Stop after this many inputs")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducibility")
    parser.add_argument("--findings-dir", type=Path, default=FINDINGS_DIR,
                        help="Where to save crashing inputs")
    args = parser.parse_args()

    seed = args.seed if args.seed is not None else int(time.time())
    print(f"Random seed: {seed}")

    fuzzer = Fuzzer(seed=seed, findings_dir=args.findings_dir)
    findings = fuzzer.run(duration_minutes=args.duration, iterations=args.iterations)
    sys.exit(1 if findings else 0)


if __name__ == "__main__":
    main()
