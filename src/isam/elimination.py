"""Variable elimination: factor graph + ordering -> Bayes net.

For each step of the ordering, every remaining factor touching the step's
keys is removed from the pool, the gathered factors are eliminated into a
conditional on the step's keys and a residual factor on the remaining keys,
and the residual is returned to the pool. The kind of the gathered factors
decides how the step is carried out:

- discrete keys: product of tables, then sum (or max) over the keys,
- continuous keys touched by a hybrid factor: Gaussian elimination once per
  discrete assignment,
- otherwise: Gaussian elimination.
"""
import logging
from collections.abc import Sequence
from typing import Literal

from .bayes_net import BayesNet
from .discrete import eliminate_discrete
from .factor_graph import FactorGraph
from .gaussian import eliminate_gaussian
from .hybrid import eliminate_hybrid
from .ordering import Ordering

logger = logging.getLogger(__name__)


def eliminate_step(
    factors: Sequence,
    frontals: Sequence,
    discrete_keys: set,
    mode: Literal["sum", "max"] = "sum",
    rank_tolerance: float = 1e-9,
):
    """Eliminates `frontals` from the gathered `factors`.

    Returns:
        The conditional on `frontals` and the residual factor (None when the
        residual touches no variable).
    """
    frontals = tuple(frontals)
    kinds = {f.kind for f in factors}
    step_discrete = [k for k in frontals if k in discrete_keys]
    if step_discrete:
        if len(step_discrete) != len(frontals):
            raise ValueError(f"Cannot jointly eliminate discrete and continuous keys {frontals}.")
        if kinds != {"discrete"}:
            raise ValueError(
                f"Discrete keys {frontals} must be eliminated after the continuous keys that depend on them."
            )
        conditional, residual = eliminate_discrete(factors, frontals, mode)
    elif "hybrid" in kinds:
        conditional, residual = eliminate_hybrid(factors, frontals, rank_tolerance)
    else:
        conditional, residual = eliminate_gaussian(factors, frontals, rank_tolerance)
    if not residual.keys:
        residual = None
    return conditional, residual


def eliminate(
    factors: FactorGraph | Sequence,
    ordering: Ordering | Sequence | None = None,
    mode: Literal["sum", "max"] = "sum",
    rank_tolerance: float = 1e-9,
) -> BayesNet:
    """Eliminates a factor graph into a Bayes net.

    Args:
        factors: The factors to eliminate.
        ordering: The elimination ordering; it must contain every key of the
            graph exactly once. A greedy ordering is used if None.
        mode: "sum" for sum-product or "max" for max-product elimination of
            discrete keys.
        rank_tolerance: Minimum precision of a soft Gaussian pivot.

    Returns:
        One conditional per ordering step, in elimination order.

    Raises:
        ValueError: if the ordering does not match the graph's keys.
        NumericDegeneracy: if a Gaussian elimination step is rank deficient
            or a hard constraint is infeasible.
    """
    graph = FactorGraph(factors)
    if len(graph) == 0:
        logger.warning("Eliminating an empty factor graph")
    if ordering is None:
        ordering = Ordering.greedy(graph)
    elif not isinstance(ordering, Ordering):
        ordering = Ordering(ordering)
    ordering.validate(graph.keys())
    discrete_keys = set(graph.discrete_domain().keys)

    pool = dict(enumerate(graph))
    next_id = len(pool)
    conditionals = []
    for step in ordering:
        involved = [i for i, f in pool.items() if set(f.keys) & set(step)]
        if not involved:
            raise ValueError(f"No remaining factor involves {step}.")
        gathered = [pool.pop(i) for i in involved]
        conditional, residual = eliminate_step(
            gathered, step, discrete_keys, mode, rank_tolerance
        )
        logger.debug(f"Step {step}: {len(gathered)} factors -> separator {conditional.parents}")
        conditionals.append(conditional)
        if residual is not None:
            pool[next_id] = residual
            next_id += 1
    return BayesNet.create(conditionals)
