"""Defines the Domain class for representing sets of discrete variables.

This module provides the `Domain` class, which encapsulates an ordered set of
discrete variable keys and their cardinalities (number of states). Discrete
factors, discrete conditionals and the decision trees indexing hybrid
conditionals are all defined over a `Domain`.
"""
import functools
import itertools
from collections.abc import Hashable, Iterator, Sequence

import attr

Key = Hashable
DiscreteValues = dict[Key, int]


@attr.dataclass(frozen=True)
class Domain:
    """Represents a set of discrete variables and their cardinalities.

    Attributes:
        keys (tuple[Key, ...]): The variable keys, in axis order.
        cardinalities (tuple[int, ...]): The number of states of each
            corresponding key.

    Supported Operations:
        - Projection (`project`): Creates a new domain with a subset of keys.
        - Marginalization (`marginalize`): Creates a new domain excluding keys.
        - Merging (`merge`): Combines two domains into a larger one.
        - Enumeration (`assignments`): Iterates over every joint assignment.

    Example Usage (using fromdict):
        >>> domain = Domain.fromdict({'m': 2, 'n': 3})
        >>> print(domain)
        Domain(m: 2, n: 3)
    """
    keys: tuple[Key, ...] = attr.field(converter=tuple)
    cardinalities: tuple[int, ...] = attr.field(
        converter=lambda sh: tuple(int(n) for n in sh)
    )

    def __attrs_post_init__(self):
        if len(self.keys) != len(self.cardinalities):
            raise ValueError("Dimensions must be equal.")
        if len(self.keys) != len(set(self.keys)):
            raise ValueError("Keys must be unique.")
        if any(n < 1 for n in self.cardinalities):
            raise ValueError("Cardinalities must be positive.")

    @functools.cached_property
    def config(self) -> dict[Key, int]:
        """Returns a dictionary of { key : cardinality } values."""
        return dict(zip(self.keys, self.cardinalities))

    @staticmethod
    def fromdict(config: dict[Key, int]) -> "Domain":
        """Construct a Domain object from a dictionary of { key : cardinality } values.

        Example Usage:
            >>> print(Domain.fromdict({'a': 10, 'b': 20}))
            Domain(a: 10, b: 20)
        """
        return Domain(config.keys(), config.values())

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of a table defined over this domain."""
        return self.cardinalities

    def project(self, keys: Key | Sequence[Key]) -> "Domain":
        """Project the domain onto a subset of keys.

        Args:
          keys: the keys to project onto, in the desired order.
        Returns:
          the projected Domain object
        """
        if isinstance(keys, str) or not isinstance(keys, Sequence):
            keys = [keys]
        if not set(keys) <= set(self.keys):
            raise ValueError(f"Cannot project {self} onto {list(keys)}.")
        return Domain(keys, tuple(self.config[k] for k in keys))

    def marginalize(self, keys: Sequence[Key]) -> "Domain":
        """Remove some keys from the domain (opposite of project).

        Example Usage:
            >>> print(Domain(['m', 'n'], [2, 4]).marginalize(['m']))
            Domain(n: 4)
        """
        return self.project([k for k in self.keys if k not in keys])

    def contains(self, other: "Domain") -> bool:
        """Checks if this domain contains all keys present in another domain."""
        return set(other.keys) <= set(self.keys)

    def intersect(self, other: "Domain") -> "Domain":
        """The keys shared with `other`, in this domain's order."""
        return self.project([k for k in self.keys if k in other.keys])

    def axes(self, keys: Sequence[Key]) -> tuple[int, ...]:
        """Return the axes tuple for the given keys."""
        return tuple(self.keys.index(k) for k in keys)

    def merge(self, other: "Domain") -> "Domain":
        """Merge this Domain object with another.

        Shared keys must have equal cardinalities.

        Example:
            >>> modes = Domain(['m1', 'm2'], [2, 3])
            >>> print(modes.merge(Domain(['m2', 'm3'], [3, 2])))
            Domain(m1: 2, m2: 3, m3: 2)
        """
        for k in set(self.keys) & set(other.keys):
            if self.config[k] != other.config[k]:
                raise ValueError(f"Cardinality mismatch for {k!r}.")
        extra = other.marginalize(self.keys)
        return Domain(self.keys + extra.keys, self.cardinalities + extra.cardinalities)

    def size(self, keys: Sequence[Key] | None = None) -> int:
        """Number of joint assignments (of the whole domain or of `keys`)."""
        if keys is None:
            return functools.reduce(lambda x, y: x * y, self.cardinalities, 1)
        return self.project(keys).size()

    def assignments(self) -> Iterator[DiscreteValues]:
        """Iterate over all joint assignments in row-major order.

        Example:
            >>> list(Domain(['a', 'b'], [2, 2]).assignments())[1]
            {'a': 0, 'b': 1}
        """
        for values in itertools.product(*[range(n) for n in self.cardinalities]):
            yield dict(zip(self.keys, values))

    def index(self, assignment: DiscreteValues) -> tuple[int, ...]:
        """The table index of an assignment (extra keys are ignored)."""
        return tuple(int(assignment[k]) for k in self.keys)

    def supports(self, keys: Key | Sequence[Key]) -> bool:
        """True if every key in `keys` belongs to the domain."""
        if isinstance(keys, str) or not isinstance(keys, Sequence):
            keys = [keys]
        return set(keys) <= set(self.keys)

    def __contains__(self, key: Key) -> bool:
        return key in self.keys

    def __getitem__(self, key: Key) -> int:
        return self.config[key]

    def __iter__(self) -> Iterator[Key]:
        return self.keys.__iter__()

    def __len__(self) -> int:
        return len(self.keys)

    def __str__(self) -> str:
        inner = ", ".join(["%s: %d" % x for x in zip(self.keys, self.cardinalities)])
        return "Domain(%s)" % inner
