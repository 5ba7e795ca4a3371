import hashlib
import math

import numpy as np

from .errors import ConfigurationError


def _to_bytes(item) -> bytes:
    return item if isinstance(item, bytes) else str(item).encode()


def rolling_hash(item, seed: int, modulus: int) -> int:
    """Polynomial rolling hash of the item's bytes, reduced mod `modulus`."""
    h = 0
    for b in _to_bytes(item):
        h = (h * seed + b) % modulus
    return h


def digest32(item) -> int:
    """First 32 bits (big-endian) of the item's SHA-1 digest."""
    return int.from_bytes(hashlib.sha1(_to_bytes(item)).digest()[:4], "big")


class CountMinSketch:
    """Fixed-size frequency table.

    Estimates never under-count. With probability >= 1 - e^-depth an
    estimate exceeds the true count by at most (e / width) * total_items.
    """

    def __init__(self, width: int = 1000, depth: int = 5):
        if width <= 0:
            raise ConfigurationError(f"width must be positive, got {width}")
        if depth <= 0:
            raise ConfigurationError(f"depth must be positive, got {depth}")
        self.width = width
        self.depth = depth
        self.table = np.zeros((depth, width), dtype=np.int64)
        self.seeds = list(range(1, depth + 1))
        self.total_items = 0

    def _positions(self, item):
        return [rolling_hash(item, s, self.width) for s in self.seeds]

    def add(self, item, count: int = 1) -> None:
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        for row, col in enumerate(self._positions(item)):
            self.table[row, col] += count
        self.total_items += count

    def query(self, item) -> int:
        return int(min(self.table[row, col] for row, col in enumerate(self._positions(item))))

    frequency = query

    @property
    def epsilon(self) -> float:
        return math.e / self.width

    @property
    def delta(self) -> float:
        return math.exp(-self.depth)

    def error_bound(self) -> int:
        """Additive over-count bound that holds with probability 1 - delta."""
        return int(math.ceil(self.epsilon * self.total_items))

    @property
    def memory_bytes(self) -> int:
        return int(self.table.nbytes)

    def __repr__(self) -> str:
        return f"CountMinSketch(width={self.width}, depth={self.depth}, total={self.total_items})"


class HyperLogLog:
    """Distinct-count estimator over 2^b single-byte registers."""

    HASH_BITS = 32
    _ALPHA = {16: 0.673, 32: 0.697, 64: 0.709}

    def __init__(self, b: int = 10):
        if not 4 <= b <= 16:
            raise ConfigurationError(f"b must be in [4, 16], got {b}")
        self.b = b
        self.m = 1 << b
        self.registers = np.zeros(self.m, dtype=np.uint8)

    def alpha_mm(self) -> float:
        m = self.m
        alpha = self._ALPHA.get(m, 0.7213 / (1 + 1.079 / m))
        return alpha * m * m

    def _rank(self, w: int) -> int:
        # w holds the bits left after the index, left-aligned in HASH_BITS
        width = self.HASH_BITS - self.b
        zeros = self.HASH_BITS - w.bit_length()
        return min(zeros, width) + 1

    def add(self, item) -> None:
        x = digest32(item)
        idx = x >> (self.HASH_BITS - self.b)
        w = (x << self.b) & ((1 << self.HASH_BITS) - 1)
        rank = self._rank(w)
        if rank > self.registers[idx]:
            self.registers[idx] = rank

    def count(self) -> int:
        m = self.m
        z = float(np.power(2.0, -self.registers.astype(np.float64)).sum())
        e = self.alpha_mm() / z

        zeros = int(np.count_nonzero(self.registers == 0))
        if e <= 2.5 * m and zeros > 0:
            return int(round(m * math.log(m / zeros)))

        space = float(1 << self.HASH_BITS)
        if e >= space:
            return int(space)
        if e > space / 30:
            return int(round(-space * math.log(1 - e / space)))
        return int(round(e))

    distinct_count = count

    def standard_error(self) -> float:
        return 1.04 / math.sqrt(self.m)

    def reset(self) -> None:
        self.registers.fill(0)

    @property
    def memory_bytes(self) -> int:
        return int(self.registers.nbytes)

    def __repr__(self) -> str:
        return f"HyperLogLog(b={self.b}, registers={self.m})"
