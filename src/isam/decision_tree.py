"""An assignment-indexed mapping used by hybrid factors and conditionals.

A `DecisionTree` stores one leaf per joint assignment of a discrete `Domain`.
Leaves are kept in nested lists, one level per discrete key, so that a lookup
descends exactly `len(domain)` levels regardless of how many leaves exist.
"""
from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import attr

from .domain import DiscreteValues, Domain
from .errors import UnknownKeyError


def _build(domain: Domain, fn: Callable[[DiscreteValues], Any], prefix: DiscreteValues):
    """Recursively materialize the nested leaf lists."""
    depth = len(prefix)
    if depth == len(domain):
        return fn(dict(prefix))
    key = domain.keys[depth]
    return [
        _build(domain, fn, {**prefix, key: value})
        for value in range(domain.cardinalities[depth])
    ]


@attr.dataclass(frozen=True)
class DecisionTree:
    """Maps each assignment of `domain` to a leaf value.

    Attributes:
        domain (Domain): The discrete keys the tree branches on, root first.
        root (Any): Nested lists of depth `len(domain)`; a bare leaf when the
            domain is empty.

    Example Usage:
        >>> tree = DecisionTree.from_function(
        ...     Domain(['m'], [2]), lambda a: 'left' if a['m'] == 0 else 'right')
        >>> tree({'m': 1})
        'right'
    """
    domain: Domain
    root: Any

    @classmethod
    def from_function(
        cls, domain: Domain, fn: Callable[[DiscreteValues], Any]
    ) -> DecisionTree:
        """Creates a tree whose leaf at each assignment is `fn(assignment)`."""
        return cls(domain, _build(domain, fn, {}))

    def __call__(self, assignment: DiscreteValues) -> Any:
        node = self.root
        for key, card in zip(self.domain.keys, self.domain.cardinalities):
            if key not in assignment:
                raise UnknownKeyError(key)
            value = int(assignment[key])
            if not 0 <= value < card:
                raise ValueError(f"Value {value} out of range for {key!r}.")
            node = node[value]
        return node

    def items(self) -> Iterator[tuple[DiscreteValues, Any]]:
        """Yields (assignment, leaf) pairs in row-major order."""
        for assignment in self.domain.assignments():
            yield assignment, self(assignment)

    def leaves(self) -> list[Any]:
        return [leaf for _, leaf in self.items()]

    def map(self, fn: Callable[[Any], Any]) -> DecisionTree:
        """Returns a tree over the same domain with `fn` applied to every leaf."""
        return DecisionTree.from_function(self.domain, lambda a: fn(self(a)))

    def __len__(self) -> int:
        return self.domain.size()
