"""The Bayes tree: a tree of cliques, each holding one conditional.

A clique owns its children; the link back to the parent is a weak
reference, so the tree has a single owner per clique (the tree's root list
for roots, the parent's child list otherwise). Every key is frontal in
exactly one clique, and the tree keeps an index from keys to those cliques.

Invariants maintained by `insert`, `remove_top` and `reattach`:

1. every key is frontal in exactly one clique,
2. every separator key of a clique is frontal in one of its strict ancestors,
3. parent and child links are mutually consistent and acyclic.
"""
from __future__ import annotations

import logging
import weakref
from collections.abc import Iterable, Iterator, Sequence

import attr
import networkx as nx
import numpy as np

from .bayes_net import BayesNet
from .domain import Key
from .errors import StructuralError, UnknownKeyError
from .factor_graph import FactorGraph

logger = logging.getLogger(__name__)


@attr.dataclass(eq=False, repr=False)
class Clique:
    """A node of the Bayes tree.

    Attributes:
        conditional: The clique's conditional (Gaussian, discrete or hybrid).
        children (list[Clique]): Owned child cliques.
    """
    conditional: object
    children: list = attr.field(factory=list)
    _parent: weakref.ref | None = None

    @property
    def parent(self) -> Clique | None:
        return self._parent() if self._parent is not None else None

    def set_parent(self, parent: Clique | None) -> None:
        self._parent = weakref.ref(parent) if parent is not None else None

    @property
    def frontals(self) -> tuple[Key, ...]:
        return tuple(self.conditional.frontals)

    @property
    def separator(self) -> tuple[Key, ...]:
        return tuple(self.conditional.parents)

    def add_child(self, child: Clique) -> None:
        self.children.append(child)
        child.set_parent(self)

    def ancestors(self) -> Iterator[Clique]:
        """Strict ancestors, from the parent up to the root."""
        clique = self.parent
        while clique is not None:
            yield clique
            clique = clique.parent

    def depth(self) -> int:
        return sum(1 for _ in self.ancestors())

    def subtree(self) -> list[Clique]:
        """The clique and all its descendants, in pre-order."""
        result, stack = [], [self]
        while stack:
            clique = stack.pop()
            result.append(clique)
            stack.extend(reversed(clique.children))
        return result

    def __repr__(self) -> str:
        return f"Clique({', '.join(map(str, self.frontals))} | {', '.join(map(str, self.separator))})"


class BayesTree:
    """A forest of cliques with a key -> clique index.

    Example Usage:
        >>> from isam import GaussianFactor, NoiseModel, eliminate
        >>> graph = [GaussianFactor(['x1'], [[1.0]], [0.0]),
        ...          GaussianFactor(['x1', 'x2'], [[-1.0], [1.0]], [1.0])]
        >>> tree = BayesTree.from_bayes_net(eliminate(graph, ['x1', 'x2']))
        >>> tree['x1']
        Clique(x1 | x2)
    """

    def __init__(self):
        self.roots: list[Clique] = []
        self.nodes: dict[Key, Clique] = {}
        self.valid = True

    @classmethod
    def from_bayes_net(cls, bayes_net: BayesNet, **kwargs) -> BayesTree:
        """Builds a tree by inserting conditionals in reverse elimination order."""
        tree = cls(**kwargs)
        for conditional in reversed(bayes_net):
            tree.insert(conditional)
        return tree

    def _check_valid(self) -> None:
        if not self.valid:
            raise StructuralError("Bayes tree was invalidated by a failed update.")

    def find_parent(self, separator: Sequence[Key]) -> Clique | None:
        """The clique under which a clique with this separator belongs.

        The cliques owning the separator keys must all lie on one path to the
        root; the result is the deepest of them. Returns None for an empty
        separator.

        Raises:
            StructuralError: if a separator key has no clique, or the owning
                cliques are not on a single root path.
        """
        if not separator:
            return None
        owners = []
        for key in separator:
            if key not in self.nodes:
                raise StructuralError(f"Separator key {key!r} is not in the tree.")
            owners.append(self.nodes[key])
        parent = max(owners, key=lambda c: c.depth())
        lineage = {parent, *parent.ancestors()}
        for owner in owners:
            if owner not in lineage:
                raise StructuralError(
                    f"Separator {list(separator)} spans disjoint subtrees {parent} and {owner}."
                )
        return parent

    def insert(self, conditional) -> Clique:
        """Adds a clique for `conditional` below the unique parent of its separator.

        Conditionals have to be inserted in reverse elimination order, so
        that every separator key is already present.
        """
        self._check_valid()
        duplicates = [k for k in conditional.frontals if k in self.nodes]
        if duplicates:
            raise StructuralError(f"Keys {duplicates} are already frontal in the tree.")
        clique = Clique(conditional)
        parent = self.find_parent(tuple(conditional.parents))
        if parent is None:
            self.roots.append(clique)
        else:
            parent.add_child(clique)
        for key in clique.frontals:
            self.nodes[key] = clique
        return clique

    def find(self, key: Key) -> Clique | None:
        """The clique in which `key` is frontal, or None."""
        return self.nodes.get(key)

    def __getitem__(self, key: Key) -> Clique:
        if key not in self.nodes:
            raise UnknownKeyError(key)
        return self.nodes[key]

    def __contains__(self, key: Key) -> bool:
        return key in self.nodes

    def remove_top(self, keys: Iterable[Key]) -> tuple[FactorGraph, list[Clique]]:
        """Removes the top of the tree affected by `keys`.

        Every clique on the path from a key's clique to its root is removed,
        and its conditional is returned as a plain factor. Children of removed
        cliques that are not removed themselves are detached and returned as
        orphans. Keys that are not in the tree are ignored.

        Returns:
            The freed factors and the orphaned subtrees.
        """
        self._check_valid()
        removed: list[Clique] = []
        seen: set[Clique] = set()
        for key in keys:
            clique = self.nodes.get(key)
            while clique is not None and clique not in seen:
                seen.add(clique)
                removed.append(clique)
                clique = clique.parent

        freed, orphans = FactorGraph(), []
        for clique in removed:
            for child in clique.children:
                if child not in seen:
                    child.set_parent(None)
                    orphans.append(child)
            freed.append(clique.conditional.to_factor())
            for key in clique.frontals:
                del self.nodes[key]
        self.roots = [r for r in self.roots if r not in seen]
        for clique in removed:
            clique.children = []
            clique.set_parent(None)
        logger.debug(f"Removed {len(removed)} cliques, {len(orphans)} orphans")
        return freed, orphans

    def reattach(self, orphans: Iterable[Clique]) -> None:
        """Hangs orphaned subtrees below the unique parent of their separators."""
        for orphan in orphans:
            parent = self.find_parent(orphan.separator)
            if parent is None:
                self.roots.append(orphan)
            else:
                parent.add_child(orphan)

    def cliques(self) -> list[Clique]:
        """All cliques, in pre-order from each root."""
        return [c for root in self.roots for c in root.subtree()]

    def keys(self) -> list[Key]:
        return list(self.nodes)

    def __len__(self) -> int:
        return len(self.cliques())

    def to_bayes_net(self) -> BayesNet:
        """The tree's conditionals with every clique after its descendants."""
        return BayesNet.create([c.conditional for c in reversed(self.cliques())])

    def optimize(self) -> dict[Key, np.ndarray]:
        """Back-substitution from the roots down, for a tree of Gaussian conditionals."""
        values = {}
        for clique in self.cliques():
            if clique.conditional.kind != "gaussian":
                raise ValueError(f"{clique} is not Gaussian; use HybridBayesTree.optimize.")
            values.update(clique.conditional.solve(values))
        return values

    def equals(self, other: BayesTree, tol: float = 1e-9) -> bool:
        """Same keys, same clique structure and conditionals equal within `tol`."""
        if set(self.nodes) != set(other.nodes):
            return False
        for key, clique in self.nodes.items():
            twin = other.nodes[key]
            if clique.frontals != twin.frontals:
                return False
            parent, twin_parent = clique.parent, twin.parent
            if (parent is None) != (twin_parent is None):
                return False
            if parent is not None and parent.frontals != twin_parent.frontals:
                return False
            if not clique.conditional.equals(twin.conditional, tol):
                return False
        return True

    def check_invariants(self) -> None:
        """Raises StructuralError if any tree invariant is violated."""
        graph = nx.Graph()
        owners: dict[Key, Clique] = {}
        stack = [(root, None) for root in self.roots]
        while stack:
            clique, parent = stack.pop()
            if clique in graph:
                raise StructuralError(f"{clique} is reachable twice.")
            graph.add_node(clique)
            if clique.parent is not parent:
                raise StructuralError(f"{clique} has an inconsistent parent link.")
            if parent is not None:
                graph.add_edge(parent, clique)
            for key in clique.frontals:
                if key in owners:
                    raise StructuralError(f"{key!r} is frontal in {owners[key]} and {clique}.")
                owners[key] = clique
            above = {k for a in clique.ancestors() for k in a.frontals}
            missing = set(clique.separator) - above
            if missing:
                raise StructuralError(f"Running intersection violated at {clique}: {missing}.")
            stack.extend((child, clique) for child in clique.children)
        if graph.number_of_nodes() and not nx.is_forest(graph):
            raise StructuralError("Clique graph is not a forest.")
        if owners.keys() != self.nodes.keys() or any(self.nodes[k] is not c for k, c in owners.items()):
            raise StructuralError("Key index is inconsistent with the cliques.")
