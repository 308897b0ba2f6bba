"""Elimination orderings.

An ordering is a sequence of elimination steps; each step is a single key or
a cluster of keys eliminated jointly. The ordering only affects the cost of
elimination (the fill-in), never the distribution represented by the result.
Discrete keys have to come after every continuous key, since continuous
variables may depend on discrete ones but not vice versa.
"""
from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator, Sequence
from typing import Literal

import attr
import networkx as nx
import numpy as np

from .domain import Key
from .factor_graph import FactorGraph

Step = tuple[Key, ...]


def _as_steps(steps) -> tuple[Step, ...]:
    return tuple(tuple(s) if isinstance(s, (tuple, list)) else (s,) for s in steps)


@attr.dataclass(frozen=True)
class Ordering:
    """A sequence of elimination steps.

    Example Usage:
        >>> Ordering(['x1', ('x2', 'x3')]).keys()
        ['x1', 'x2', 'x3']
    """
    steps: tuple[Step, ...] = attr.field(converter=_as_steps)

    def __attrs_post_init__(self):
        keys = self.keys()
        if len(keys) != len(set(keys)):
            raise ValueError("Each key may appear in the ordering only once.")
        if any(len(s) == 0 for s in self.steps):
            raise ValueError("Empty elimination step.")

    def keys(self) -> list[Key]:
        return [k for step in self.steps for k in step]

    def validate(self, keys: Sequence[Key]) -> None:
        """Checks that the ordering covers exactly the given keys."""
        ordered = set(self.keys())
        missing = [k for k in keys if k not in ordered]
        extra = ordered - set(keys)
        if missing or extra:
            raise ValueError(f"Ordering mismatch: missing {missing}, unexpected {sorted(map(str, extra))}")

    @classmethod
    def natural(cls, graph: FactorGraph) -> Ordering:
        """Keys in order of first appearance, continuous before discrete."""
        return cls(_continuous_first(graph, graph.keys()))

    @classmethod
    def sorted(cls, graph: FactorGraph) -> Ordering:
        """Keys in sorted order, continuous before discrete."""
        return cls(_continuous_first(graph, sorted(graph.keys())))

    @classmethod
    def greedy(cls, graph: FactorGraph, stochastic: bool = False) -> Ordering:
        return cls(greedy_order(graph, stochastic=stochastic)[0])

    @classmethod
    def create(
        cls,
        graph: FactorGraph,
        method: Literal["greedy", "natural", "sorted"] | Callable[[FactorGraph], Ordering] = "greedy",
    ) -> Ordering:
        """Creates an ordering for `graph` using a named policy or a callable."""
        if callable(method):
            ordering = method(graph)
            return ordering if isinstance(ordering, Ordering) else cls(ordering)
        if method == "greedy":
            return cls.greedy(graph)
        if method == "natural":
            return cls.natural(graph)
        if method == "sorted":
            return cls.sorted(graph)
        raise ValueError(f"Unknown ordering method: {method}")

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)


def _continuous_first(graph: FactorGraph, keys: list[Key]) -> list[Key]:
    discrete = set(graph.discrete_domain().keys)
    return [k for k in keys if k not in discrete] + [k for k in keys if k in discrete]


def greedy_order(
    graph: FactorGraph,
    stochastic: bool = False,
    elim: list[Key] | None = None,
) -> tuple[list[Key], int]:
    """Compute a greedy (minimum degree) elimination order.

    Continuous keys are always eliminated before discrete keys. Ties are
    broken by order of first appearance.

    Returns:
        The order and its total cost, the sum of the neighborhood sizes at
        elimination time.
    """
    interaction = graph.interaction_graph()
    discrete = set(graph.discrete_domain().keys)
    unmarked = list(elim) if elim is not None else graph.keys()
    order = []
    total_cost = 0
    for _ in range(len(unmarked)):
        allowed = [a for a in unmarked if a not in discrete] or list(unmarked)
        cost = {a: interaction.degree(a) for a in allowed}

        if stochastic:
            costs = np.array([cost[a] for a in allowed], dtype=float)
            probas = np.max(costs) - costs + 1
            probas /= probas.sum()
            a = allowed[np.random.choice(probas.size, p=probas)]
        else:
            a = min(allowed, key=lambda a: cost[a])

        order.append(a)
        unmarked.remove(a)
        neighbors = list(interaction.neighbors(a))
        interaction.add_edges_from(itertools.combinations(neighbors, 2))
        interaction.remove_node(a)
        total_cost += cost[a]

    return order, total_cost


def fill_in(graph: FactorGraph, ordering: Ordering) -> int:
    """Number of edges the ordering adds to the interaction graph."""
    interaction = graph.interaction_graph()
    original = nx.Graph(interaction)
    edges = set()
    for step in ordering:
        neighbors = set().union(*(interaction.neighbors(k) for k in step)) - set(step)
        tmp = {tuple(sorted(e, key=str)) for e in itertools.combinations(neighbors, 2)}
        edges |= tmp
        interaction.add_edges_from(tmp)
        interaction.remove_nodes_from(step)
    return sum(1 for u, v in edges if not original.has_edge(u, v))
