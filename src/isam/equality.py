"""Hard equality constraints on a single variable.

`NonlinearEquality` pins a variable to a feasible value. In exact mode the
constraint can only be linearized at the feasible value itself; anywhere else
the derivative is undefined and linearization fails. With an error gain the
constraint is softened into a quadratic penalty and can be linearized
anywhere.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import attr
import numpy as np

from .domain import Key
from .errors import NumericDegeneracy
from .gaussian import GaussianFactor, NoiseModel


def vector_logmap(x, feasible) -> np.ndarray:
    """Local coordinates of `feasible` around `x` for plain vectors."""
    return np.asarray(feasible, dtype=float).reshape(-1) - np.asarray(x, dtype=float).reshape(-1)


def vector_compare(a, b, tol: float = 1e-9) -> bool:
    return bool(np.allclose(np.asarray(a, dtype=float), np.asarray(b, dtype=float), atol=tol))


@attr.dataclass(frozen=True, eq=False)
class NonlinearEquality:
    """Constrains `key` to equal `feasible`.

    Attributes:
        key: The constrained variable.
        feasible: The feasible value (any type understood by `logmap`).
        error_gain (float | None): If given, violations are allowed and cost
            `error_gain * |logmap|^2`; if None the constraint is exact.
        logmap: `logmap(x, feasible)`, the tangent vector taking `x` to
            `feasible`.
        compare: Equality test between values.
    """
    key: Key
    feasible: Any
    error_gain: float | None = None
    logmap: Callable[[Any, Any], np.ndarray] = vector_logmap
    compare: Callable[[Any, Any], bool] = vector_compare

    @property
    def allow_error(self) -> bool:
        return self.error_gain is not None

    @property
    def dim(self) -> int:
        return np.asarray(self.logmap(self.feasible, self.feasible)).size

    def evaluate_error(self, x, jacobian: bool = False) -> tuple[np.ndarray, np.ndarray | None]:
        """The constraint error at `x` and, if requested, its Jacobian.

        Raises:
            NumericDegeneracy: if the Jacobian is requested in exact mode at an
                infeasible point.
        """
        n = self.dim
        H = np.eye(n) if jacobian else None
        if self.allow_error:
            return np.asarray(self.logmap(x, self.feasible), dtype=float), H
        if self.compare(self.feasible, x):
            return np.zeros(n), H
        if jacobian:
            raise NumericDegeneracy(f"Linearization point not feasible for {self.key!r}!")
        return np.full(n, np.inf), None

    def error(self, values: Mapping[Key, Any]) -> float:
        x = values[self.key]
        if not self.allow_error:
            return 0.0 if self.compare(self.feasible, x) else float("inf")
        e = np.asarray(self.logmap(x, self.feasible), dtype=float)
        return float(self.error_gain * (e @ e))

    def linearize(self, values: Mapping[Key, Any]) -> GaussianFactor:
        """A constrained Gaussian factor on the update of `key`."""
        b, H = self.evaluate_error(values[self.key], jacobian=True)
        return GaussianFactor([self.key], [H], b, NoiseModel.constrained(b.size))
