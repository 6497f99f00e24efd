from typing import Dict, Optional, Tuple
from Crypto.Hash import SHAKE256
from Crypto.Random import get_random_bytes

from FSA import ParameterSet, VANILLA, ZTRICK, VARIANTS, Signature


def int_to_bytes(x: int, length: int) -> bytes:
    return x.to_bytes(length, 'little')

def H(data: bytes, outlen: int) -> bytes:
    """
        Input: data is a byte string of any length, outlen is the desired output length in bytes
        Output: A byte string of length outlen
    """
    shake = SHAKE256.new()
    shake.update(data)
    return shake.read(outlen)

def sample_below(ctx, n: int) -> int:
    """ Uniform integer in [0, n) squeezed from an open SHAKE context, by rejection """
    limit = (1 << 32) - (1 << 32) % n
    while True:
        r = int.from_bytes(ctx.read(4), 'little')
        if r < limit:
            return r % n


class Signer:
    """ Two-coordinate Fiat-Shamir with aborts signer with a concrete random oracle:
        y       mask (y1, y2) expanded from rho = H(rnd || mu) and a counter kappa
        c       H(mu || y) mapped to challenge_dim coordinates in [-beta, beta]
        z       y + c, released only if |z1|, |z2| < gamma1 - beta
        After an abort the vanilla signer resamples both y1 and y2; the z-trick
        signer resamples only y1 when z1 was out of bounds.
    """
    def __init__(self, params: ParameterSet, variant: str = VANILLA, max_rounds: int = 2):
        if variant not in VARIANTS:
            raise ValueError(f"unknown variant {variant!r}, expected one of {VARIANTS}")
        if max_rounds < 1:
            raise ValueError(f"max_rounds must be at least 1, got {max_rounds}")
        self.params = params
        self.variant = variant
        self.max_rounds = max_rounds

    def ExpandMask(self, rho: bytes, kappa: int) -> int:
        """
            Samples one mask coefficient in (-gamma1, gamma1]
            Input: rho is a 64-byte seed, kappa is a non-negative integer
            Output: gamma1 - r with r uniform in [0, 2*gamma1)
        """
        if not rho or len(rho) != 64:
            raise ValueError("rho is NULL or not 64 bytes")
        ctx = SHAKE256.new()
        ctx.update(rho + int_to_bytes(kappa, 4))
        return self.params.gamma1 - sample_below(ctx, self.params.ord_y)

    def SampleChallenge(self, mu: bytes, y: Tuple[int, int]) -> Tuple[int, ...]:
        """
            The random oracle: maps (mu, y) to challenge_dim coefficients in [-beta, beta]
            Input: mu is the message digest, y = (y1, y2) the queried mask
            Output: challenge tuple
        """
        self.params.check_mask(y)
        ctx = SHAKE256.new()
        ctx.update(mu)
        for yi in y:
            ctx.update(int_to_bytes(yi + self.params.gamma1, 4))
        return tuple(sample_below(ctx, self.params.ord_b) - self.params.beta
                     for _ in range(self.params.challenge_dim))

    def Sign(self, msg: bytes, rnd: Optional[bytes] = None) -> Optional[Signature]:
        """
            Input:  message msg, random seed rnd (32 fresh random bytes if None)
            Output: (z1, z2) + c, or None when all max_rounds attempts abort
        """
        if rnd is None:
            rnd = get_random_bytes(32)
        mu = H(msg, 64)
        rho = H(rnd + mu, 64)

        kappa = 0
        y1 = self.ExpandMask(rho, kappa)
        y2 = self.ExpandMask(rho, kappa + 1)
        kappa += 2
        for _ in range(self.max_rounds):
            c = self.SampleChallenge(mu, (y1, y2))
            c1, c2 = self.params.spread(c)
            z1 = y1 + c1
            z2 = y2 + c2
            ok1 = self.params.in_bounds(z1)
            ok2 = self.params.in_bounds(z2)
            if ok1 and ok2:
                return (z1, z2) + c
            if self.variant == ZTRICK and not ok1:
                y1 = self.ExpandMask(rho, kappa)
            else:
                y1 = self.ExpandMask(rho, kappa)
                y2 = self.ExpandMask(rho, kappa + 1)
            kappa += 2
        return None

    def Verify(self, msg: bytes, sigma: Optional[Signature]) -> bool:
        """
            Input:  message msg, signature sigma = (z1, z2) + c
            Output: True if z is in bounds and c = H(mu || z - c)
        """
        if sigma is None or len(sigma) != 2 + self.params.challenge_dim:
            return False
        z1, z2 = sigma[0], sigma[1]
        c = tuple(sigma[2:])
        if not (self.params.in_bounds(z1) and self.params.in_bounds(z2)):
            return False
        if any(abs(ci) > self.params.beta for ci in c):
            return False
        c1, c2 = self.params.spread(c)
        y = (z1 - c1, z2 - c2)
        if not all(-self.params.gamma1 < yi <= self.params.gamma1 for yi in y):
            return False
        return self.SampleChallenge(H(msg, 64), y) == c

    def Histogram(self, ntests: int, msg: bytes = b"Hello Dilithium!") -> Tuple[Dict[Signature, int], int]:
        """ Empirical signature counts over ntests deterministic seeds, and the number of aborts """
        counts: Dict[Signature, int] = {}
        aborts = 0
        for i in range(ntests):
            sigma = self.Sign(msg, int_to_bytes(i, 32))
            if sigma is None:
                aborts += 1
                continue
            counts[sigma] = counts.get(sigma, 0) + 1
        return counts, aborts
