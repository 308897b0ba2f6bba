"""Discrete factors, discrete conditionals and discrete elimination.

Tables are stored as JAX arrays in probability space. A discrete factor is an
unnormalized potential over a `Domain`; eliminating a set of frontal keys from
a product of factors yields a conditional normalized per parent assignment
and a residual factor over the parents (summed or maxed out).
"""
from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Sequence
from typing import Literal

import attr
import chex
import jax
import jax.numpy as jnp
import numpy as np

from .domain import DiscreteValues, Domain, Key

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)


@functools.partial(
    jax.tree_util.register_dataclass, meta_fields=["domain"], data_fields=["values"]
)
@attr.dataclass(frozen=True, eq=False)
class DiscreteFactor:
    """Represents a potential defined over a discrete domain.

    Attributes:
        domain (Domain): The discrete domain over which the factor is defined.
        values (jax.Array): The factor's values, with shape `domain.shape`.

    Supported Operations:
        - Creation: `zeros`, `ones`, `random`, `from_string`.
        - Reshaping: `transpose`, `expand`.
        - Aggregation: `sum`, `max`, `project`.
        - Binary Ops: `*`, `/` between factors or with scalars.
        - Evaluation: `factor(assignment)`, `enumerate()`.

    Example Usage:
        >>> f = DiscreteFactor.from_string(Domain(['x', 'y'], [2, 3]), "2 5 3 6 4 7")
        >>> f({'x': 1, 'y': 2})
        7.0
    """
    domain: Domain
    values: jax.Array = attr.field(converter=jnp.asarray)

    kind = "discrete"

    def __attrs_post_init__(self):
        if self.values.shape != self.domain.shape:
            raise ValueError("values must be same shape as domain.")

    # Constructors
    @classmethod
    def zeros(cls, domain: Domain) -> DiscreteFactor:
        return cls(domain, jnp.zeros(domain.shape))

    @classmethod
    def ones(cls, domain: Domain) -> DiscreteFactor:
        return cls(domain, jnp.ones(domain.shape))

    @classmethod
    def random(cls, domain: Domain) -> DiscreteFactor:
        """Creates a factor with random values (uniform 0-1)."""
        return cls(domain, np.random.rand(*domain.shape))

    @classmethod
    def from_string(cls, domain: Domain, table: str) -> DiscreteFactor:
        """Creates a factor from whitespace separated values in row-major order.

        The first key of the domain varies slowest.
        """
        values = np.array([float(v) for v in table.split()])
        if values.size != domain.size():
            raise ValueError(f"Expected {domain.size()} values, got {values.size}.")
        return cls(domain, values.reshape(domain.shape))

    @property
    def keys(self) -> tuple[Key, ...]:
        return self.domain.keys

    # Reshaping operations
    def transpose(self, keys: Sequence[Key]) -> DiscreteFactor:
        """Rearranges the factor's axes according to the new key order."""
        if set(keys) != set(self.domain.keys):
            raise ValueError("keys must be same as domain keys")
        newdom = self.domain.project(tuple(keys))
        ax = newdom.axes(self.domain.keys)
        values = jnp.moveaxis(self.values, range(len(ax)), ax)
        return DiscreteFactor(newdom, values)

    def expand(self, domain: Domain) -> DiscreteFactor:
        """Broadcasts the factor to a larger domain."""
        if not domain.contains(self.domain):
            raise ValueError("Expanded domain must contain domain.")
        dims = len(domain) - len(self.domain)
        values = self.values.reshape(self.domain.shape + tuple([1] * dims))
        ax = domain.axes(self.domain.keys)
        values = jnp.moveaxis(values, range(len(ax)), ax)
        values = jnp.broadcast_to(values, domain.shape)
        return DiscreteFactor(domain, values)

    # Aggregation
    def _aggregate(
        self, fn: Callable, keys: Sequence[Key] | None = None
    ) -> DiscreteFactor:
        keys = self.domain.keys if keys is None else tuple(keys)
        axes = self.domain.axes(keys)
        values = fn(self.values, axis=axes)
        return DiscreteFactor(self.domain.marginalize(keys), values)

    def sum(self, keys: Sequence[Key] | None = None) -> DiscreteFactor:
        """Sums out the given keys (all keys if None)."""
        return self._aggregate(jnp.sum, keys)

    def max(self, keys: Sequence[Key] | None = None) -> DiscreteFactor:
        """Maximizes out the given keys (all keys if None)."""
        return self._aggregate(jnp.max, keys)

    def project(self, keys: Key | Sequence[Key]) -> DiscreteFactor:
        """Computes the marginal over `keys` by summing out the others."""
        if isinstance(keys, str) or not isinstance(keys, Sequence):
            keys = (keys,)
        marginalized = self.domain.marginalize(keys).keys
        return self.sum(marginalized).transpose(keys)

    def normalize(self, total: float = 1.0) -> DiscreteFactor:
        return self * (total / self.values.sum())

    # Binary operations
    def _binaryop(self, fn: Callable, other: DiscreteFactor | chex.Numeric) -> DiscreteFactor:
        if not isinstance(other, DiscreteFactor):
            other = DiscreteFactor(Domain([], []), other)
        newdom = self.domain.merge(other.domain)
        factor1 = self.expand(newdom)
        factor2 = other.expand(newdom)
        return DiscreteFactor(newdom, fn(factor1.values, factor2.values))

    def __mul__(self, other: DiscreteFactor | chex.Numeric) -> DiscreteFactor:
        """Multiply two factors together.

        Example Usage:
            >>> f1 = DiscreteFactor.ones(Domain(['a','b'], [2,3]))
            >>> f2 = DiscreteFactor.ones(Domain(['b','c'], [3,4]))
            >>> print((f1 * f2).domain)
            Domain(a: 2, b: 3, c: 4)
        """
        return self._binaryop(jnp.multiply, other)

    def __rmul__(self, other: chex.Numeric) -> DiscreteFactor:
        return self * other

    def __truediv__(self, other: DiscreteFactor | chex.Numeric) -> DiscreteFactor:
        """Division where 0 / 0 is defined as 0."""
        def safe_divide(x, y):
            return jnp.where(y == 0, 0.0, x / jnp.where(y == 0, 1.0, y))
        return self._binaryop(safe_divide, other)

    # Evaluation
    def __call__(self, assignment: DiscreteValues) -> float:
        return float(self.values[self.domain.index(assignment)])

    def enumerate(self) -> list[tuple[DiscreteValues, float]]:
        """All (assignment, value) pairs in row-major order."""
        return [(a, self(a)) for a in self.domain.assignments()]

    def datavector(self, flatten: bool = True) -> jax.Array:
        return self.values.flatten() if flatten else self.values

    def equals(self, other, tol: float = 1e-9) -> bool:
        if getattr(other, "kind", None) != self.kind:
            return False
        if set(other.domain.keys) != set(self.domain.keys):
            return False
        other = other.transpose(self.domain.keys)
        if other.domain != self.domain:
            return False
        return bool(np.allclose(self.values, other.values, atol=tol, rtol=0))


@attr.dataclass(frozen=True, eq=False)
class DiscreteConditional:
    """P(frontals | parents), stored as a table normalized per parent assignment.

    Attributes:
        frontals (tuple[Key, ...]): The eliminated keys.
        table (DiscreteFactor): Values over `frontals + parents`, in that axis
            order, summing to one over the frontal axes for every parent
            assignment (or to zero where the parent assignment is impossible).
            Tables produced by max-product elimination peak at one instead.
    """
    frontals: tuple[Key, ...] = attr.field(converter=tuple)
    table: DiscreteFactor

    kind = "discrete"

    def __attrs_post_init__(self):
        if self.table.domain.keys[: len(self.frontals)] != self.frontals:
            raise ValueError("Table axes must start with the frontal keys.")

    @property
    def domain(self) -> Domain:
        return self.table.domain

    @property
    def parents(self) -> tuple[Key, ...]:
        return self.table.domain.keys[len(self.frontals):]

    @property
    def keys(self) -> tuple[Key, ...]:
        return self.table.domain.keys

    def __call__(self, assignment: DiscreteValues) -> float:
        return self.table(assignment)

    def to_factor(self) -> DiscreteFactor:
        return self.table

    def argmax(self, parent_assignment: DiscreteValues) -> DiscreteValues:
        """The most probable frontal assignment given the parents."""
        index = tuple(int(parent_assignment[k]) for k in self.parents)
        values = np.asarray(self.table.values)
        block = values[(slice(None),) * len(self.frontals) + index]
        best = np.unravel_index(int(np.argmax(block)), block.shape)
        return {k: int(v) for k, v in zip(self.frontals, best)}

    def equals(self, other, tol: float = 1e-9) -> bool:
        if getattr(other, "kind", None) != self.kind:
            return False
        if self.frontals != other.frontals or set(self.parents) != set(other.parents):
            return False
        return self.table.equals(other.table, tol)


def eliminate_discrete(
    factors: Sequence[DiscreteFactor],
    frontals: Sequence[Key],
    mode: Literal["sum", "max"] = "sum",
) -> tuple[DiscreteConditional, DiscreteFactor]:
    """Eliminates `frontals` from the product of `factors`.

    Args:
        factors: The discrete factors touching the frontal keys.
        frontals: The keys to eliminate.
        mode: Whether the residual sums ("sum") or maximizes ("max") over the
            frontal states.

    Returns:
        The conditional P(frontals | parents) and the residual factor over
        the parents. The conditional is the joint divided by the residual,
        so in "max" mode its largest entry per parent assignment is one.
    """
    if mode not in ("sum", "max"):
        raise ValueError(f"Unknown elimination mode: {mode}")
    frontals = tuple(frontals)
    joint = functools.reduce(lambda f, g: f * g, factors)
    parents = joint.domain.marginalize(frontals).keys
    joint = joint.transpose(frontals + parents)
    residual = joint.sum(frontals) if mode == "sum" else joint.max(frontals)
    # conditional * residual == joint in both modes
    conditional = DiscreteConditional(frontals, (joint / residual).transpose(frontals + parents))
    logger.debug(f"Eliminated discrete {frontals} with parents {parents}")
    return conditional, residual
