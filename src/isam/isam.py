"""Incremental updates of a Bayes tree (iSAM).

An update with new factors only re-eliminates the part of the tree that the
new factors affect:

1. the top of the tree above every clique containing a touched key is
   removed and its conditionals are turned back into factors,
2. those factors are eliminated together with the new factors,
3. the resulting conditionals are inserted in reverse elimination order,
4. the subtrees that hung below the removed cliques (the orphans) are
   reattached below their new parents.

The result is the same distribution a batch elimination of all factors seen
so far would produce.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Literal

from .bayes_tree import BayesTree
from .elimination import eliminate
from .factor_graph import FactorGraph
from .ordering import Ordering

logger = logging.getLogger(__name__)

OrderingMethod = Literal["greedy", "natural", "sorted"] | Callable[[FactorGraph], Ordering]


class ISAM(BayesTree):
    """A Bayes tree supporting incremental updates.

    Args:
        ordering: Policy used to order the variables re-eliminated by an
            update: "greedy" (minimum degree), "natural" (order of first
            appearance), "sorted", or a callable mapping a factor graph to an
            `Ordering`.
        mode: "sum" or "max" elimination of discrete variables.
        rank_tolerance: Minimum precision of a soft Gaussian pivot.

    Example Usage:
        >>> from isam import GaussianFactor
        >>> isam = ISAM()
        >>> isam.update([GaussianFactor(['x1'], [[1.0]], [0.0])])
        >>> isam.update([GaussianFactor(['x1', 'x2'], [[-1.0], [1.0]], [1.0])])
        >>> sorted(isam.keys())
        ['x1', 'x2']
    """

    def __init__(
        self,
        ordering: OrderingMethod = "greedy",
        mode: Literal["sum", "max"] = "sum",
        rank_tolerance: float = 1e-9,
    ):
        super().__init__()
        self.ordering = ordering
        self.mode = mode
        self.rank_tolerance = rank_tolerance

    @classmethod
    def from_factors(
        cls,
        factors: FactorGraph | Sequence,
        ordering: Ordering | Sequence | None = None,
        **kwargs,
    ) -> ISAM:
        """Batch elimination of `factors` into a new tree.

        Args:
            factors: The initial factors.
            ordering: The elimination ordering; the tree's ordering policy is
                used if None.
            **kwargs: Passed to the constructor.
        """
        tree = cls(**kwargs)
        graph = FactorGraph(factors)
        if ordering is None:
            ordering = Ordering.create(graph, tree.ordering)
        bayes_net = eliminate(graph, ordering, tree.mode, tree.rank_tolerance)
        for conditional in reversed(bayes_net):
            tree.insert(conditional)
        return tree

    def update(self, new_factors: FactorGraph | Sequence) -> None:
        """Adds `new_factors` and re-eliminates the affected top of the tree.

        Raises:
            StructuralError: if an orphan cannot be reattached below a unique
                parent, or the tree was invalidated earlier.
            NumericDegeneracy: if re-elimination is rank deficient.

        Any failure leaves the tree marked invalid.
        """
        self._check_valid()
        new_factors = FactorGraph(new_factors)
        if len(new_factors) == 0:
            return
        try:
            self._update(new_factors)
        except Exception:
            self.valid = False
            logger.warning("Incremental update failed; the Bayes tree is no longer valid")
            raise

    def _update(self, new_factors: FactorGraph) -> None:
        contaminated = new_factors.keys()
        freed, orphans = self.remove_top(contaminated)

        factors = freed + new_factors
        ordering = Ordering.create(factors, self.ordering)
        bayes_net = eliminate(factors, ordering, self.mode, self.rank_tolerance)

        for conditional in reversed(bayes_net):
            self.insert(conditional)
        self.reattach(orphans)
        logger.info(
            f"Updated with {len(new_factors)} factors: {len(contaminated)} contaminated keys, "
            f"{len(freed)} cliques re-eliminated into {len(bayes_net)}, {len(orphans)} orphans"
        )
