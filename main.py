from FSA import *
from Sampler import Signer
import sys

BETA = 2
GAMMA1 = 4
CHALLENGE_DIM = 2
ONLY_ITERATION = None       # 1, 2 or None for both rounds
NTESTS = 1000               # concrete signatures drawn per variant
MSG = b"Hello Dilithium!"
OUTPUT_FILE = "output.txt"

params = ParameterSet(BETA, GAMMA1, CHALLENGE_DIM)


def print_comparison(vanilla: Accumulator, ztrick: Accumulator):
    print("(z1, z2, c): [vanilla], [ztrick]")
    for k in sorted(set(vanilla.keys()) | set(ztrick.keys())):
        print(f"{k}: {vanilla[k]}, {ztrick[k]}")


def check_signer(variant: str, exact: Accumulator):
    signer = Signer(params, variant)
    counts, aborts = signer.Histogram(NTESTS, MSG)
    valid = sum(n for sigma, n in counts.items() if signer.Verify(MSG, sigma))
    unknown = sum(n for sigma, n in counts.items() if sigma not in exact)
    print(f"{variant}: {valid} / {NTESTS - aborts} valid signatures, {aborts} aborts, "
          f"{unknown} outside the exact mapping")


if __name__ == "__main__":
    vanilla = accumulate_parallel(params, VANILLA, ONLY_ITERATION)
    ztrick = accumulate_parallel(params, ZTRICK, ONLY_ITERATION)

    with open(OUTPUT_FILE, "w", encoding="utf-8") as f:
        sys.stdout = f
        print(params)
        print(f"vanilla: uniform = {is_uniform(vanilla)}, {len(vanilla)} signatures")
        print(f"ztrick: uniform = {is_uniform(ztrick)}, {len(ztrick)} signatures")
        print(f"same signatures: {set(vanilla.keys()) == set(ztrick.keys())}")
        check_signer(VANILLA, vanilla)
        check_signer(ZTRICK, ztrick)
        print_comparison(vanilla, ztrick)
        sys.stdout = sys.__stdout__
