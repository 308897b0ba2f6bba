"""A minimal factor graph container.

The graph is a flat list of factors of any kind ("gaussian", "discrete" or
"hybrid"). It knows which keys its factors touch and whether each key is
continuous or discrete, which is all the elimination engine and the
ordering heuristics need.
"""
from __future__ import annotations

import itertools
from collections.abc import Iterator

import attr
import networkx as nx

from .domain import Domain, Key


def continuous_keys(factor) -> tuple[Key, ...]:
    """Keys of continuous variables touched by a factor or conditional."""
    if factor.kind == "gaussian":
        return tuple(factor.keys)
    if factor.kind == "hybrid":
        return tuple(k for k in factor.keys if k not in factor.discrete)
    return ()


def discrete_domain(factor) -> Domain:
    """Domain of the discrete variables touched by a factor or conditional."""
    if factor.kind == "discrete":
        return factor.domain
    if factor.kind == "hybrid":
        return factor.discrete
    return Domain([], [])


@attr.dataclass
class FactorGraph:
    """An ordered collection of factors.

    Example Usage:
        >>> from isam import Domain, DiscreteFactor
        >>> graph = FactorGraph([DiscreteFactor.ones(Domain(['a', 'b'], [2, 2]))])
        >>> graph.keys()
        ['a', 'b']
    """
    factors: list = attr.field(factory=list, converter=list)

    def append(self, factor) -> None:
        self.factors.append(factor)

    def push_back(self, factors) -> None:
        """Appends every factor of another graph (or iterable of factors)."""
        self.factors.extend(factors)

    extend = push_back

    def keys(self) -> list[Key]:
        """Union of the keys touched, in order of first appearance."""
        return list(dict.fromkeys(k for f in self.factors for k in f.keys))

    def discrete_domain(self) -> Domain:
        domain = Domain([], [])
        for f in self.factors:
            domain = domain.merge(discrete_domain(f))
        return domain

    def continuous_keys(self) -> list[Key]:
        return list(dict.fromkeys(k for f in self.factors for k in continuous_keys(f)))

    def interaction_graph(self) -> nx.Graph:
        """Undirected graph with an edge between every pair of co-occurring keys."""
        graph = nx.Graph()
        graph.add_nodes_from(self.keys())
        for f in self.factors:
            graph.add_edges_from(itertools.combinations(f.keys, 2))
        return graph

    def __add__(self, other) -> FactorGraph:
        return FactorGraph(self.factors + list(other))

    def __iter__(self) -> Iterator:
        return iter(self.factors)

    def __len__(self) -> int:
        return len(self.factors)

    def __getitem__(self, i: int):
        return self.factors[i]
