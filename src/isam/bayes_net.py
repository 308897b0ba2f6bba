"""Bayes nets: the ordered conditionals produced by elimination."""
from __future__ import annotations

import functools
from collections.abc import Iterator, Sequence

import attr
import numpy as np

from .discrete import DiscreteFactor
from .domain import DiscreteValues, Key


@attr.dataclass
class BayesNet:
    """Conditionals in elimination order (first eliminated first).

    Use `BayesNet.create` to get the specialised subclass when all
    conditionals are of one kind.
    """
    conditionals: list = attr.field(factory=list, converter=list)

    @staticmethod
    def create(conditionals: Sequence) -> BayesNet:
        kinds = {c.kind for c in conditionals}
        if kinds == {"gaussian"}:
            return GaussianBayesNet(conditionals)
        if kinds == {"discrete"}:
            return DiscreteBayesNet(conditionals)
        return BayesNet(conditionals)

    def append(self, conditional) -> None:
        self.conditionals.append(conditional)

    def keys(self) -> list[Key]:
        """Frontal keys in elimination order."""
        return [k for c in self.conditionals for k in c.frontals]

    def equals(self, other: BayesNet, tol: float = 1e-9) -> bool:
        return len(self) == len(other) and all(
            a.equals(b, tol) for a, b in zip(self, other)
        )

    def __iter__(self) -> Iterator:
        return iter(self.conditionals)

    def __reversed__(self) -> Iterator:
        return reversed(self.conditionals)

    def __len__(self) -> int:
        return len(self.conditionals)

    def __getitem__(self, i: int):
        return self.conditionals[i]


@attr.dataclass
class GaussianBayesNet(BayesNet):
    """A Bayes net of Gaussian conditionals."""

    def optimize(self) -> dict[Key, np.ndarray]:
        """Back-substitution from the last eliminated conditional to the first."""
        values = {}
        for conditional in reversed(self.conditionals):
            values.update(conditional.solve(values))
        return values

    def layout(self, order: Sequence[Key] | None = None) -> dict[Key, tuple[int, int]]:
        """Column (offset, dim) of every variable, in `order` or elimination order."""
        dims = {}
        for c in self.conditionals:
            dims.update(zip(c.frontals, c.dims))
        order = self.keys() if order is None else list(order)
        if set(order) != set(dims):
            raise ValueError("Order must contain every variable exactly once.")
        layout, offset = {}, 0
        for key in order:
            layout[key] = (offset, dims[key])
            offset += dims[key]
        return layout

    def information(
        self, order: Sequence[Key] | None = None
    ) -> tuple[np.ndarray, np.ndarray]:
        """The joint information matrix and vector in the given variable order.

        Hard constraint rows have no finite information form; a ValueError is
        raised if the net contains any.
        """
        layout = self.layout(order)
        width = sum(n for _, n in layout.values())
        blocks = []
        for c in self.conditionals:
            R, S, d = c.whitened()
            rows = np.zeros((d.size, width + 1))
            col = 0
            for key, n in zip(c.frontals, c.dims):
                offset = layout[key][0]
                rows[:, offset:offset + n] = R[:, col:col + n]
                col += n
            for key, s in zip(c.parents, S):
                offset, n = layout[key]
                rows[:, offset:offset + n] = s
            rows[:, -1] = d
            blocks.append(rows)
        Ab = np.vstack(blocks)
        A, b = Ab[:, :-1], Ab[:, -1]
        return A.T @ A, A.T @ b

    def marginal_covariance(self, keys: Sequence[Key]) -> np.ndarray:
        """Joint covariance of the variables in `keys`."""
        layout = self.layout()
        information, _ = self.information()
        covariance = np.linalg.inv(information)
        index = np.concatenate(
            [np.arange(layout[k][0], layout[k][0] + layout[k][1]) for k in keys]
        )
        return covariance[np.ix_(index, index)]


@attr.dataclass
class DiscreteBayesNet(BayesNet):
    """A Bayes net of discrete conditionals."""

    def joint(self) -> DiscreteFactor:
        """The product of all conditionals."""
        return functools.reduce(lambda f, c: f * c.to_factor(), self.conditionals[1:],
                                self.conditionals[0].to_factor())

    def argmax(self) -> DiscreteValues:
        """Greedy back-substitution of the most probable frontal states.

        This is the most probable joint assignment when the net was produced
        by max-product elimination (`mode="max"`).
        """
        values = {}
        for conditional in reversed(self.conditionals):
            values.update(conditional.argmax(values))
        return values
