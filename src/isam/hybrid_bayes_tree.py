"""Bayes trees whose cliques may hold hybrid conditionals.

Fixing an assignment of the discrete variables turns such a tree into a plain
Gaussian Bayes net, which is then solved by back-substitution.
"""
from __future__ import annotations

import numpy as np

from .bayes_net import DiscreteBayesNet, GaussianBayesNet
from .bayes_tree import BayesTree
from .domain import DiscreteValues, Key
from .isam import ISAM


class HybridBayesTree(BayesTree):
    """A Bayes tree over continuous and discrete variables."""

    def _collect(self, kinds: set[str]) -> list[tuple[int, object]]:
        """(depth, conditional) for each clique of the given kinds, each key once.

        The traversal follows the key index, so cliques are not visited in
        any particular order; the depth is what orders them afterwards.
        """
        added: set[Key] = set()
        collected = []
        for key, clique in self.nodes.items():
            if key in added:
                continue
            conditional = clique.conditional
            added.update(conditional.frontals)
            if conditional.kind in kinds:
                collected.append((clique.depth(), conditional))
        # Deepest first, so that reversed iteration visits ancestors first.
        collected.sort(key=lambda item: -item[0])
        return collected

    def gaussian_bayes_net(self, assignment: DiscreteValues) -> GaussianBayesNet:
        """The Gaussian Bayes net obtained by fixing the discrete variables.

        Hybrid cliques contribute the branch selected by `assignment`, Gaussian
        cliques their conditional, and discrete cliques nothing.
        """
        self._check_valid()
        conditionals = []
        for _, conditional in self._collect({"gaussian", "hybrid"}):
            if conditional.kind == "hybrid":
                conditional = conditional(assignment)
            conditionals.append(conditional)
        return GaussianBayesNet(conditionals)

    def optimize(self, assignment: DiscreteValues) -> dict[Key, np.ndarray]:
        """The most likely continuous values given the discrete `assignment`."""
        return self.gaussian_bayes_net(assignment).optimize()

    def discrete_bayes_net(self) -> DiscreteBayesNet:
        self._check_valid()
        return DiscreteBayesNet([c for _, c in self._collect({"discrete"})])

    def mpe(self) -> DiscreteValues:
        """Most probable discrete assignment (exact for trees built with `mode="max"`)."""
        net = self.discrete_bayes_net()
        return net.argmax() if len(net) else {}


class HybridISAM(ISAM, HybridBayesTree):
    """Incrementally updated hybrid Bayes tree."""
