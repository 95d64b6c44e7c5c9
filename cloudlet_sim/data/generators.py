"""Seeded generation of cloudlet and VM descriptors."""

from typing import List, Optional, Sequence
import numpy as np
from loguru import logger

from ..core.cloudlet import Priority
from ..core.specs import CloudletSpec, VmSpec
from ..scheduling.cloudlet_schedulers import CloudletSchedulingPolicy


class CloudletGenerator:
    """Generates cloudlet descriptors from an injectable random source.

    Pass either a ``seed`` or an existing ``numpy.random.Generator``; two
    generators built from the same seed produce identical descriptors.
    """

    def __init__(self, seed: Optional[int] = None, rng: Optional[np.random.Generator] = None):
        self.seed = seed
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        logger.info(f"CloudletGenerator initialized with seed {seed}")

    def random_priority(self, weights: Optional[Sequence[float]] = None) -> Priority:
        """Draw a priority class, uniformly unless ``weights`` are given."""
        priorities = list(Priority)
        if weights is not None:
            weights = np.asarray(weights, dtype=float)
            weights = weights / weights.sum()
        index = self.rng.choice(len(priorities), p=weights)
        return priorities[int(index)]

    def generate_cloudlets(
        self,
        count: int,
        min_length: int = 40000,
        max_length: int = 60000,
        pe_count: int = 1,
        file_size: int = 300,
        output_size: int = 300,
        priority_weights: Optional[Sequence[float]] = None,
    ) -> List[CloudletSpec]:
        """Generate ``count`` cloudlets with lengths in ``[min_length, max_length)``."""
        if count < 0:
            raise ValueError("count must be non-negative")
        if max_length <= min_length:
            raise ValueError("max_length must be greater than min_length")

        specs = []
        for _ in range(count):
            priority = self.random_priority(priority_weights)
            length = int(self.rng.integers(min_length, max_length))
            specs.append(CloudletSpec(
                length=length,
                pe_count=pe_count,
                priority=int(priority),
                file_size=file_size,
                output_size=output_size,
            ))

        logger.info(f"Generated {len(specs)} cloudlets with lengths {min_length}-{max_length}")
        return specs


def uniform_vms(
    count: int,
    mips: float = 1000.0,
    pe_count: int = 1,
    ram: int = 1024,
    bw: int = 1000,
    size: int = 1000,
    scheduling_policy: CloudletSchedulingPolicy = CloudletSchedulingPolicy.TIME_SHARED,
) -> List[VmSpec]:
    """``count`` identical VM descriptors."""
    return [
        VmSpec(mips=mips, pe_count=pe_count, ram=ram, bw=bw, size=size,
               scheduling_policy=scheduling_policy)
        for _ in range(count)
    ]
