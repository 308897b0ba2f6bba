"""Hybrid (discrete-indexed Gaussian) factors and conditionals.

A hybrid factor holds one Gaussian factor per assignment of its discrete
keys, together with a scalar log-weight for that branch. Eliminating a
continuous variable from hybrid factors repeats Gaussian elimination once per
discrete assignment; the per-branch conditionals form a `HybridConditional`.
When no continuous variable is left in the residual, what remains is the
evidence for each assignment, i.e. a discrete factor.
"""
from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Sequence

import attr
import numpy as np

from .decision_tree import DecisionTree
from .discrete import DiscreteFactor
from .domain import DiscreteValues, Domain, Key
from .gaussian import GaussianConditional, GaussianFactor, eliminate_gaussian

logger = logging.getLogger(__name__)


@attr.dataclass(frozen=True, eq=False)
class HybridGaussianFactor:
    """A Gaussian factor selected by a discrete assignment.

    Attributes:
        discrete (Domain): The discrete keys selecting a branch.
        branches (DecisionTree): Leaves are `(GaussianFactor, log_weight)`
            pairs; every branch touches the same continuous keys.
    """
    discrete: Domain
    branches: DecisionTree

    kind = "hybrid"

    def __attrs_post_init__(self):
        if self.branches.domain != self.discrete:
            raise ValueError("Branches must be indexed by the discrete domain.")
        key_sets = {frozenset(f.keys) for f, _ in self.branches.leaves()}
        if len(key_sets) != 1:
            raise ValueError("All branches must touch the same continuous keys.")

    @classmethod
    def from_factors(
        cls,
        discrete: Domain,
        factors: Sequence[GaussianFactor] | Callable[[DiscreteValues], GaussianFactor],
        log_weights: Sequence[float] | None = None,
    ) -> HybridGaussianFactor:
        """Creates a hybrid factor from one Gaussian factor per assignment.

        Args:
            discrete: The discrete keys.
            factors: Either a list with one factor per assignment, in row-major
                order of `discrete.assignments()`, or a function of the
                assignment.
            log_weights: Optional per-branch log-weights, in the same order.
        """
        if callable(factors):
            factors = [factors(a) for a in discrete.assignments()]
        if len(factors) != discrete.size():
            raise ValueError(f"Expected {discrete.size()} branches, got {len(factors)}.")
        if log_weights is None:
            log_weights = [0.0] * len(factors)
        flat = iter(zip(factors, log_weights))
        return cls(discrete, DecisionTree.from_function(discrete, lambda a: next(flat)))

    @property
    def continuous_keys(self) -> tuple[Key, ...]:
        return self.branches.leaves()[0][0].keys

    @property
    def keys(self) -> tuple[Key, ...]:
        return self.continuous_keys + self.discrete.keys

    def __call__(self, assignment: DiscreteValues) -> tuple[GaussianFactor, float]:
        return self.branches(assignment)

    def equals(self, other, tol: float = 1e-9) -> bool:
        if getattr(other, "kind", None) != self.kind or other.discrete != self.discrete:
            return False
        for assignment, (factor, weight) in self.branches.items():
            other_factor, other_weight = other(assignment)
            if not factor.equals(other_factor, tol) or abs(weight - other_weight) > tol:
                return False
        return True


@attr.dataclass(frozen=True, eq=False)
class HybridConditional:
    """p(x_f | x_s, m): one Gaussian conditional per discrete parent assignment m.

    Attributes:
        discrete (Domain): The discrete parents.
        branches (DecisionTree): Leaves are `GaussianConditional`s sharing the
            same frontal and continuous parent keys.
    """
    discrete: Domain
    branches: DecisionTree

    kind = "hybrid"

    def __attrs_post_init__(self):
        if self.branches.domain != self.discrete:
            raise ValueError("Branches must be indexed by the discrete domain.")
        first = self.branches.leaves()[0]
        for c in self.branches.leaves():
            if c.frontals != first.frontals or set(c.parents) != set(first.parents):
                raise ValueError("All branches must share frontal and parent keys.")

    @classmethod
    def from_conditionals(
        cls, discrete: Domain, conditionals: Sequence[GaussianConditional]
    ) -> HybridConditional:
        """Creates a hybrid conditional from one branch per assignment (row-major)."""
        conditionals = list(conditionals)
        if len(conditionals) != discrete.size():
            raise ValueError(f"Expected {discrete.size()} branches, got {len(conditionals)}.")
        flat = iter(conditionals)
        return cls(discrete, DecisionTree.from_function(discrete, lambda a: next(flat)))

    @property
    def frontals(self) -> tuple[Key, ...]:
        return self.branches.leaves()[0].frontals

    @property
    def continuous_parents(self) -> tuple[Key, ...]:
        return self.branches.leaves()[0].parents

    @property
    def parents(self) -> tuple[Key, ...]:
        return self.continuous_parents + self.discrete.keys

    @property
    def keys(self) -> tuple[Key, ...]:
        return self.frontals + self.parents

    def __call__(self, assignment: DiscreteValues) -> GaussianConditional:
        """The Gaussian branch selected by `assignment`."""
        return self.branches(assignment)

    def to_factor(self) -> HybridGaussianFactor:
        """Each branch as a normalized density, i.e. weighted by its log-normalizer."""
        return HybridGaussianFactor(
            self.discrete, self.branches.map(lambda c: (c.to_factor(), c.log_normalizer()))
        )

    def equals(self, other, tol: float = 1e-9) -> bool:
        if getattr(other, "kind", None) != self.kind or other.discrete != self.discrete:
            return False
        return all(c.equals(other(a), tol) for a, c in self.branches.items())


def eliminate_hybrid(
    factors: Sequence,
    frontals: Sequence[Key],
    rank_tolerance: float = 1e-9,
) -> tuple[HybridConditional, HybridGaussianFactor | DiscreteFactor]:
    """Eliminates continuous `frontals` from a mix of Gaussian and hybrid factors.

    Gaussian elimination is repeated for every assignment of the union of the
    discrete keys of the hybrid factors.
    """
    frontals = tuple(frontals)
    discrete = functools.reduce(
        lambda d, f: d.merge(f.discrete),
        (f for f in factors if f.kind == "hybrid"),
        Domain([], []),
    )

    def branch(assignment):
        gaussians, log_weight = [], 0.0
        for f in factors:
            if f.kind == "gaussian":
                gaussians.append(f)
            else:
                g, w = f(assignment)
                gaussians.append(g)
                log_weight += w
        conditional, residual = eliminate_gaussian(gaussians, frontals, rank_tolerance)
        return conditional, residual, log_weight - conditional.log_normalizer()

    results = DecisionTree.from_function(discrete, branch)
    conditional = HybridConditional(discrete, results.map(lambda r: r[0]))
    logger.debug(f"Eliminated {frontals} over {discrete.size()} discrete assignments")

    if results.leaves()[0][1].keys:
        return conditional, HybridGaussianFactor(discrete, results.map(lambda r: (r[1], r[2])))
    log_values = np.array([w - residual.error({}) for _, residual, w in results.leaves()])
    values = np.exp(log_values - np.max(log_values)).reshape(discrete.shape)
    return conditional, DiscreteFactor(discrete, values)
