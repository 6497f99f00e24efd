""" Exact signature distribution of Fiat-Shamir with aborts, vanilla vs. z-trick.

    View the hash function as a random oracle that maps a mask (y1, y2) to a
    challenge.  A signing attempt queries it at most twice:

        (y1, y2)   |-> c     first round
        (y1p, y2p) |-> cp    second round, vanilla and z-trick after a z2 abort
        (y1p, y2)  |-> cp    second round, z-trick after a z1 abort

    For every accepted (z, c) we count all oracles that produce it.  With #Y
    masks and #C challenges there are three cases:

        Case 1 [ y != yp ]:            two points programmed, #C^(#Y - 2) oracles
        Case 2 [ y == yp, c == cp ]:   one point programmed,  #C^(#Y - 1) oracles
        Case 3 [ y == yp, c != cp ]:   not a function, never counted
"""

from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from concurrent.futures import ProcessPoolExecutor, as_completed
import itertools
import sys

VANILLA = "vanilla"
ZTRICK = "z_trick"
VARIANTS = (VANILLA, ZTRICK)

CASE_DISTINCT = 1
CASE_COLLISION = 2
CASE_INCONSISTENT = 3

Signature = Tuple[int, ...]


def programming_weight(ord_c: int, ord_y: int, case: int) -> int:
    """ Number of random oracles consistent with one accepted trial
        Input:  ord_c oracle outputs, ord_y oracle inputs, programming case
        Output: ord_c^(ord_y - 2) for case 1, ord_c^(ord_y - 1) for case 2
    """
    if ord_c < 1 or ord_y < 2:
        raise ValueError(f"invalid orders ord_c = {ord_c}, ord_y = {ord_y}")
    if case == CASE_DISTINCT:
        return ord_c ** (ord_y - 2)
    if case == CASE_COLLISION:
        return ord_c ** (ord_y - 1)
    raise ValueError(f"case {case} carries no weight")


def programming_case(y: Tuple[int, int], yp: Tuple[int, int], c: Tuple[int, ...], cp: Tuple[int, ...]) -> int:
    """Classify the oracle programming implied by the two queried masks."""
    if tuple(y) != tuple(yp):
        return CASE_DISTINCT
    if tuple(c) == tuple(cp):
        return CASE_COLLISION
    return CASE_INCONSISTENT


class ParameterSet:
    """ Parameters of one enumeration run:
        beta            bound of a challenge coordinate, c in [-beta, beta]
        gamma1          mask half-range, y in (-gamma1, gamma1]
        challenge_dim   1: one challenge c shared by z1 and z2
                        2: a challenge pair (c1, c2), one per coordinate
    """
    """ Derived:
        ord_b = 2*beta + 1              values of one challenge coordinate
        ord_y = 2*gamma1                values of one mask coordinate
        ord_c = ord_b^challenge_dim     oracle outputs, base of the weights
        bound = gamma1 - beta           z is accepted iff |z| < bound
    """
    def __init__(self, beta: int = 2, gamma1: int = 7, challenge_dim: int = 2):
        for name, value in (("beta", beta), ("gamma1", gamma1)):
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if gamma1 <= beta:
            raise ValueError(f"gamma1 ({gamma1}) must be larger than beta ({beta})")
        if challenge_dim not in (1, 2):
            raise ValueError(f"challenge_dim must be 1 or 2, got {challenge_dim!r}")
        self._beta = beta
        self._gamma1 = gamma1
        self._challenge_dim = challenge_dim

    @property
    def beta(self) -> int:
        return self._beta

    @property
    def gamma1(self) -> int:
        return self._gamma1

    @property
    def challenge_dim(self) -> int:
        return self._challenge_dim

    @property
    def ord_b(self) -> int:
        return 2 * self._beta + 1

    @property
    def ord_y(self) -> int:
        return 2 * self._gamma1

    @property
    def ord_c(self) -> int:
        return self.ord_b ** self._challenge_dim

    @property
    def bound(self) -> int:
        return self._gamma1 - self._beta

    def __repr__(self) -> str:
        return f"ParameterSet(beta={self._beta}, gamma1={self._gamma1}, challenge_dim={self._challenge_dim})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, ParameterSet):
            return NotImplemented
        return (self._beta, self._gamma1, self._challenge_dim) == (other._beta, other._gamma1, other._challenge_dim)

    def __hash__(self) -> int:
        return hash((self._beta, self._gamma1, self._challenge_dim))

    def in_bounds(self, z: int) -> bool:
        return abs(z) < self.bound

    def mask_values(self) -> range:
        """(-gamma1, gamma1] in increasing order"""
        return range(-self._gamma1 + 1, self._gamma1 + 1)

    def challenge_values(self) -> List[Tuple[int, ...]]:
        """All challenges as tuples of challenge_dim coordinates in [-beta, beta]"""
        coords = range(-self._beta, self._beta + 1)
        return list(itertools.product(coords, repeat=self._challenge_dim))

    def check_mask(self, y: Tuple[int, int]):
        if len(y) != 2:
            raise ValueError(f"mask must have two coordinates, got {y!r}")
        for yi in y:
            if not (-self._gamma1 < yi <= self._gamma1):
                raise ValueError(f"mask value {yi} is not in (-{self._gamma1}, {self._gamma1}]")

    def check_challenge(self, c: Tuple[int, ...]):
        if len(c) != self._challenge_dim:
            raise ValueError(f"challenge must have {self._challenge_dim} coordinates, got {c!r}")
        for ci in c:
            if not (-self._beta <= ci <= self._beta):
                raise ValueError(f"challenge value {ci} is not in [-{self._beta}, {self._beta}]")

    def spread(self, c: Tuple[int, ...]) -> Tuple[int, int]:
        """Challenge added to (z1, z2): (c, c) for a shared challenge, (c1, c2) otherwise"""
        if self._challenge_dim == 1:
            return c[0], c[0]
        return c[0], c[1]

    def weight(self, case: int) -> int:
        return programming_weight(self.ord_c, self.ord_y, case)


def _evaluate(params: ParameterSet, variant: str, y, yp, c, cp, only_iteration):
    bound = params.bound
    c1, c2 = params.spread(c)
    cp1, cp2 = params.spread(cp)

    iteration = 1
    c_used = c
    z1 = y[0] + c1
    z2 = y[1] + c2
    if variant == VANILLA:
        if abs(z1) >= bound or abs(z2) >= bound:
            # Both coordinates are resampled, whichever one failed.
            iteration = 2
            c_used = cp
            z1 = yp[0] + cp1
            z2 = yp[1] + cp2
    elif abs(z1) >= bound:
        # z1 is not in bounds; resample y1 only and keep y2.
        iteration = 2
        c_used = cp
        z1 = yp[0] + cp1
        z2 = y[1] + cp2
    elif abs(z2) >= bound:
        # z1 was already seen, so both y1 and y2 are resampled.
        iteration = 2
        c_used = cp
        z1 = yp[0] + cp1
        z2 = yp[1] + cp2

    if abs(z1) >= bound or abs(z2) >= bound:
        # Second abort.
        return None
    if only_iteration is not None and iteration != only_iteration:
        return None

    case = programming_case(y, yp, c, cp)
    if case == CASE_INCONSISTENT:
        return None
    return (z1, z2) + tuple(c_used), iteration, case


def _check_variant(variant: str, only_iteration: Optional[int]):
    if variant not in VARIANTS:
        raise ValueError(f"unknown variant {variant!r}, expected one of {VARIANTS}")
    if only_iteration not in (None, 1, 2):
        raise ValueError(f"only_iteration must be 1, 2 or None, got {only_iteration!r}")


def evaluate_trial(params: ParameterSet, variant: str,
                   y: Tuple[int, int], yp: Tuple[int, int],
                   c: Tuple[int, ...], cp: Tuple[int, ...],
                   only_iteration: Optional[int] = None) -> Optional[Tuple[Signature, int, int]]:
    """
        Simulates one signing attempt with fixed masks and oracle answers
        Input:  parameter set, variant (VANILLA or ZTRICK),
                first masks y = (y1, y2), second masks yp = (y1p, y2p),
                first challenge c, second challenge cp,
                only_iteration: keep only acceptances in round 1 or 2
        Output: None if the attempt aborts twice, is filtered out or implies an
                inconsistent oracle (case 3); otherwise (signature, iteration, case)
                where signature = (z1, z2) + challenge used
    """
    _check_variant(variant, only_iteration)
    params.check_mask(y)
    params.check_mask(yp)
    params.check_challenge(c)
    params.check_challenge(cp)
    return _evaluate(params, variant, tuple(y), tuple(yp), tuple(c), tuple(cp), only_iteration)


class Accumulator:
    """
        Running map from signature tuple to the number of oracles producing it.
        Absent signatures count as zero.  With count_bits set, counts behave as
        fixed-width counters and an overflow raises instead of wrapping.
    """
    def __init__(self, count_bits: Optional[int] = None):
        if count_bits is not None and count_bits <= 0:
            raise ValueError(f"count_bits must be positive, got {count_bits}")
        self.count_bits = count_bits
        self.counts: Dict[Signature, int] = {}

    def add(self, signature: Signature, weight: int):
        if weight < 0:
            raise ValueError(f"negative weight {weight} for {signature}")
        value = self.counts.get(signature, 0) + weight
        if self.count_bits is not None and value >= 1 << self.count_bits:
            raise OverflowError(f"count for {signature} does not fit in {self.count_bits} bits")
        self.counts[signature] = value

    def merge(self, other) -> "Accumulator":
        """Point-wise sum with another Accumulator or mapping, in place"""
        for signature, weight in other.items():
            self.add(signature, weight)
        return self

    def items(self) -> List[Tuple[Signature, int]]:
        return sorted(self.counts.items())

    def keys(self) -> List[Signature]:
        return sorted(self.counts)

    def values(self) -> List[int]:
        return [value for _, value in self.items()]

    def total(self) -> int:
        return sum(self.counts.values())

    def as_dict(self) -> Dict[Signature, int]:
        return dict(self.items())

    def __getitem__(self, signature: Signature) -> int:
        return self.counts.get(signature, 0)

    def __contains__(self, signature) -> bool:
        return signature in self.counts

    def __iter__(self) -> Iterator[Signature]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.counts)

    def __eq__(self, other) -> bool:
        if isinstance(other, Accumulator):
            return self.counts == other.counts
        if isinstance(other, dict):
            return self.counts == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"Accumulator({len(self.counts)} signatures, total={self.total()})"


def accumulate_trial(params: ParameterSet, variant: str,
                     y: Tuple[int, int], yp: Tuple[int, int],
                     only_iteration: Optional[int] = None,
                     accumulator: Optional[Accumulator] = None) -> Accumulator:
    """
        Counts all oracles for one fixed tuple of masks
        Input:  parameter set, variant, masks y and yp, iteration filter,
                accumulator to add into (a fresh one if None)
        Output: the accumulator, with every accepted (c, cp) combination added
                with the weight of its programming case
    """
    _check_variant(variant, only_iteration)
    params.check_mask(y)
    params.check_mask(yp)
    if accumulator is None:
        accumulator = Accumulator()
    y = tuple(y)
    yp = tuple(yp)
    challenges = params.challenge_values()
    weights = {CASE_DISTINCT: params.weight(CASE_DISTINCT), CASE_COLLISION: params.weight(CASE_COLLISION)}
    for c, cp in itertools.product(challenges, challenges):
        result = _evaluate(params, variant, y, yp, c, cp, only_iteration)
        if result is None:
            continue
        signature, _, case = result
        accumulator.add(signature, weights[case])
    return accumulator


def mask_space(params: ParameterSet, y1_values: Optional[Iterable[int]] = None) -> Iterator[Tuple[int, int, int, int]]:
    """All (y1, y2, y1p, y2p), optionally restricted to the given y1 values"""
    values = params.mask_values()
    if y1_values is None:
        y1_values = values
    return itertools.product(y1_values, values, values, values)


def accumulate(params: ParameterSet, variant: str,
               only_iteration: Optional[int] = None,
               masks: Optional[Iterable[Tuple[int, int, int, int]]] = None,
               count_bits: Optional[int] = None) -> Accumulator:
    """
        Result mapping of one variant over a set of masks
        Input:  parameter set, variant, iteration filter,
                masks as (y1, y2, y1p, y2p) tuples (default: the whole space),
                count_bits for a fixed-width count (default: unbounded)
        Output: Accumulator
    """
    if masks is None:
        masks = mask_space(params)
    accumulator = Accumulator(count_bits)
    for y1, y2, y1p, y2p in masks:
        accumulate_trial(params, variant, (y1, y2), (y1p, y2p), only_iteration, accumulator)
    return accumulator


def _accumulate_partition(params: ParameterSet, variant: str,
                          only_iteration: Optional[int], y1: int) -> Tuple[int, Accumulator]:
    return y1, accumulate(params, variant, only_iteration, mask_space(params, [y1]))


def accumulate_parallel(params: ParameterSet, variant: str,
                        only_iteration: Optional[int] = None,
                        max_workers: Optional[int] = None) -> Accumulator:
    """
        Same result as accumulate() over the whole space, with one process job
        per value of y1.  Partial maps are merged as they complete.
    """
    _check_variant(variant, only_iteration)
    result = Accumulator()
    with ProcessPoolExecutor(max_workers=max_workers) as ex:
        futures = [
            ex.submit(_accumulate_partition, params, variant, only_iteration, y1)
            for y1 in params.mask_values()
        ]
        for fut in as_completed(futures):
            _, partial = fut.result()
            result.merge(partial)
    return result


def is_uniform(mapping) -> bool:
    """
        Checks that every signature is produced by the same number of oracles
        Input:  Accumulator or dict of signature -> count
        Output: True if all counts equal the first one, False at the first
                mismatch (reported on stderr).  An empty mapping is uniform.
    """
    items = iter(mapping.items())
    first = next(items, None)
    if first is None:
        return True
    _, baseline = first
    for key, value in items:
        if value != baseline:
            print(f"value at {key} ({value}) is not same as baseline ({baseline})", file=sys.stderr)
            return False
    return True
