"""Linear Gaussian factors, conditionals and their elimination.

A `GaussianFactor` is the Jacobian form `|| A x - b ||^2_Sigma` of a
linearized measurement, where `Sigma` is a diagonal `NoiseModel`. Rows with a
zero standard deviation are hard equality constraints.

Elimination uses weighted Gram-Schmidt, one scalar column at a time. Each
step produces one row of a unit upper-triangular conditional
`R x_f + S x_s = d` with its own standard deviation, and updates the
remaining rows by the Schur complement. Hard rows are preferred as pivots so
that equality constraints are enforced exactly instead of being approximated
by a large weight.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

import attr
import numpy as np
import scipy.linalg

from .domain import Key
from .errors import NumericDegeneracy

logger = logging.getLogger(__name__)


def _as_vector(values) -> np.ndarray:
    return np.asarray(values, dtype=float).reshape(-1)


def _as_blocks(blocks) -> tuple[np.ndarray, ...]:
    return tuple(np.atleast_2d(np.asarray(a, dtype=float)) for a in blocks)


@attr.dataclass(frozen=True, eq=False)
class NoiseModel:
    """Diagonal noise model given by per-row standard deviations.

    A standard deviation of zero declares the row a hard constraint.
    """
    sigmas: np.ndarray = attr.field(converter=_as_vector)

    def __attrs_post_init__(self):
        if np.any(self.sigmas < 0):
            raise ValueError("Standard deviations must be non-negative.")

    @classmethod
    def unit(cls, dim: int) -> NoiseModel:
        return cls(np.ones(dim))

    @classmethod
    def isotropic(cls, dim: int, sigma: float) -> NoiseModel:
        return cls(np.full(dim, float(sigma)))

    @classmethod
    def constrained(cls, dim: int) -> NoiseModel:
        """All rows are equality constraints."""
        return cls(np.zeros(dim))

    @property
    def dim(self) -> int:
        return self.sigmas.size

    @property
    def hard(self) -> np.ndarray:
        """Boolean mask of the constrained rows."""
        return self.sigmas == 0

    def is_constrained(self) -> bool:
        return bool(self.hard.any())

    @property
    def precisions(self) -> np.ndarray:
        """Inverse variances, with zero for hard rows."""
        soft = ~self.hard
        out = np.zeros_like(self.sigmas)
        out[soft] = 1.0 / self.sigmas[soft] ** 2
        return out

    def whiten(self, v: np.ndarray) -> np.ndarray:
        """Divides soft rows by their sigma; hard rows are left untouched."""
        v = np.array(v, dtype=float)
        scale = np.where(self.hard, 1.0, self.sigmas)
        return v / scale.reshape((-1,) + (1,) * (v.ndim - 1))

    def equals(self, other: NoiseModel, tol: float = 1e-9) -> bool:
        return self.dim == other.dim and np.allclose(self.sigmas, other.sigmas, atol=tol)


@attr.dataclass(frozen=True, eq=False)
class GaussianFactor:
    """A linear factor `|| sum_j A_j x_j - b ||^2` with a diagonal noise model.

    Attributes:
        keys (tuple[Key, ...]): The continuous variables the factor touches.
        blocks (tuple[np.ndarray, ...]): One Jacobian block per key.
        b (np.ndarray): The right-hand side.
        noise (NoiseModel | None): Per-row standard deviations; unit if None.
    """
    keys: tuple[Key, ...] = attr.field(converter=tuple)
    blocks: tuple[np.ndarray, ...] = attr.field(converter=_as_blocks)
    b: np.ndarray = attr.field(converter=_as_vector)
    noise: NoiseModel | None = None

    kind = "gaussian"

    def __attrs_post_init__(self):
        if len(self.keys) != len(self.blocks):
            raise ValueError("Need exactly one Jacobian block per key.")
        if len(set(self.keys)) != len(self.keys):
            raise ValueError("Keys must be unique.")
        for key, block in zip(self.keys, self.blocks):
            if block.shape[0] != self.b.size:
                raise ValueError(f"Block for {key!r} has {block.shape[0]} rows, expected {self.b.size}.")
        if self.noise is not None and self.noise.dim != self.b.size:
            raise ValueError("Noise model dimension must equal the number of rows.")

    @property
    def model(self) -> NoiseModel:
        return self.noise if self.noise is not None else NoiseModel.unit(self.rows)

    @property
    def rows(self) -> int:
        return self.b.size

    def dim(self, key: Key) -> int:
        return self.blocks[self.keys.index(key)].shape[1]

    def block(self, key: Key) -> np.ndarray:
        return self.blocks[self.keys.index(key)]

    def residual(self, values: Mapping[Key, np.ndarray]) -> np.ndarray:
        """Unwhitened residual `A x - b`."""
        r = -self.b.copy()
        for key, block in zip(self.keys, self.blocks):
            r += block @ _as_vector(values[key])
        return r

    def error(self, values: Mapping[Key, np.ndarray], tol: float = 1e-9) -> float:
        """Half the squared whitened residual; infinite if a hard row is violated."""
        r = self.residual(values)
        hard = self.model.hard
        if np.any(np.abs(r[hard]) > tol):
            return float("inf")
        return 0.5 * float(np.sum(self.model.whiten(r)[~hard] ** 2))

    def augmented(self, layout: Mapping[Key, tuple[int, int]], width: int) -> np.ndarray:
        """Dense `[A | b]` with columns placed according to `layout` (key -> (offset, dim))."""
        Ab = np.zeros((self.rows, width + 1))
        for key, block in zip(self.keys, self.blocks):
            offset, dim = layout[key]
            Ab[:, offset:offset + dim] = block
        Ab[:, -1] = self.b
        return Ab

    def equals(self, other, tol: float = 1e-9) -> bool:
        if getattr(other, "kind", None) != self.kind or set(self.keys) != set(other.keys):
            return False
        if self.rows != other.rows or not self.model.equals(other.model, tol):
            return False
        if not np.allclose(self.b, other.b, atol=tol):
            return False
        return all(
            other.block(k).shape == a.shape and np.allclose(a, other.block(k), atol=tol)
            for k, a in zip(self.keys, self.blocks)
        )


def _default_dims(self) -> tuple[int, ...]:
    n = self.R.shape[0]
    return (n // len(self.frontals),) * len(self.frontals)


@attr.dataclass(frozen=True, eq=False)
class GaussianConditional:
    """p(x_f | x_s) given by `R x_f + sum_k S_k x_k = d` with per-row sigmas.

    `R` is unit upper triangular. A zero sigma marks a row obtained from a
    hard constraint, which holds exactly.
    """
    frontals: tuple[Key, ...] = attr.field(converter=tuple)
    parents: tuple[Key, ...] = attr.field(converter=tuple)
    R: np.ndarray = attr.field(converter=lambda a: np.atleast_2d(np.asarray(a, dtype=float)))
    S: tuple[np.ndarray, ...] = attr.field(converter=_as_blocks)
    d: np.ndarray = attr.field(converter=_as_vector)
    sigmas: np.ndarray = attr.field(converter=_as_vector)
    dims: tuple[int, ...] = attr.field(
        converter=tuple, default=attr.Factory(_default_dims, takes_self=True)
    )

    kind = "gaussian"

    def __attrs_post_init__(self):
        n = self.R.shape[0]
        if self.R.shape != (n, n) or self.d.size != n or self.sigmas.size != n:
            raise ValueError("R must be square and match d and sigmas.")
        if sum(self.dims) != n or len(self.dims) != len(self.frontals):
            raise ValueError("Frontal dimensions do not add up to R.")
        if len(self.S) != len(self.parents) or any(s.shape[0] != n for s in self.S):
            raise ValueError("Need one S block with matching rows per parent.")

    @property
    def keys(self) -> tuple[Key, ...]:
        return self.frontals + self.parents

    def block(self, key: Key) -> np.ndarray:
        return self.S[self.parents.index(key)]

    def solve(self, parent_values: Mapping[Key, np.ndarray]) -> dict[Key, np.ndarray]:
        """Back-substitutes the frontal values given the parent values."""
        rhs = self.d.copy()
        for key, s in zip(self.parents, self.S):
            rhs -= s @ _as_vector(parent_values[key])
        x = scipy.linalg.solve_triangular(self.R, rhs, lower=False, unit_diagonal=True)
        splits = np.cumsum(self.dims)[:-1]
        return dict(zip(self.frontals, np.split(x, splits)))

    def to_factor(self) -> GaussianFactor:
        """The conditional's rows as a plain Jacobian factor."""
        splits = np.cumsum(self.dims)[:-1]
        frontal_blocks = np.split(self.R, splits, axis=1)
        return GaussianFactor(
            self.keys, list(frontal_blocks) + list(self.S), self.d, NoiseModel(self.sigmas)
        )

    def log_normalizer(self) -> float:
        """log |det R_w| where R_w is R whitened by the soft rows' sigmas."""
        soft = self.sigmas > 0
        return float(-np.sum(np.log(self.sigmas[soft])))

    def whitened(self) -> tuple[np.ndarray, tuple[np.ndarray, ...], np.ndarray]:
        """(R, S, d) with every row divided by its sigma."""
        if np.any(self.sigmas == 0):
            raise ValueError(f"Conditional on {self.frontals} contains hard constraint rows.")
        w = 1.0 / self.sigmas
        return self.R * w[:, None], tuple(s * w[:, None] for s in self.S), self.d * w

    def equals(self, other, tol: float = 1e-9) -> bool:
        if getattr(other, "kind", None) != self.kind:
            return False
        if self.frontals != other.frontals or set(self.parents) != set(other.parents):
            return False
        if self.dims != other.dims:
            return False
        if not (
            np.allclose(self.R, other.R, atol=tol)
            and np.allclose(self.d, other.d, atol=tol)
            and np.allclose(self.sigmas, other.sigmas, atol=tol)
        ):
            return False
        return all(
            s.shape == other.block(k).shape and np.allclose(s, other.block(k), atol=tol)
            for k, s in zip(self.parents, self.S)
        )


def _layout(factors: Sequence[GaussianFactor], frontals: Sequence[Key]):
    """Column layout with the frontal keys first, then separator keys by first appearance."""
    dims = {}
    for f in factors:
        for key, block in zip(f.keys, f.blocks):
            if dims.setdefault(key, block.shape[1]) != block.shape[1]:
                raise ValueError(f"Inconsistent dimension for {key!r}.")
    missing = [k for k in frontals if k not in dims]
    if missing:
        raise ValueError(f"No factor involves {missing}.")
    order = list(frontals) + [k for k in dims if k not in frontals]
    layout, offset = {}, 0
    for key in order:
        layout[key] = (offset, dims[key])
        offset += dims[key]
    return order, layout, offset


def eliminate_gaussian(
    factors: Sequence[GaussianFactor],
    frontals: Sequence[Key],
    rank_tolerance: float = 1e-9,
) -> tuple[GaussianConditional, GaussianFactor]:
    """Eliminates `frontals` from the joint of `factors`.

    Args:
        factors: The Gaussian factors touching the frontal keys.
        frontals: The continuous keys to eliminate.
        rank_tolerance: Minimum weighted squared column norm of a soft pivot.

    Returns:
        The conditional p(frontals | separator) and the residual factor on the
        separator. The residual keeps every separator key even if its rows are
        numerically zero, and may have no keys at all when the separator is
        empty (it then only carries the constant error).

    Raises:
        NumericDegeneracy: if a frontal column has no hard pivot and its soft
            weighted norm is below `rank_tolerance`, or if a hard constraint
            reduces to `0 = b` with `b != 0`.
    """
    frontals = tuple(frontals)
    order, layout, width = _layout(factors, frontals)
    Ab = np.vstack([f.augmented(layout, width) for f in factors])
    sigmas = np.concatenate([f.model.sigmas for f in factors])
    hard = sigmas == 0
    weights = np.concatenate([f.model.precisions for f in factors])
    A, b = Ab[:, :-1], Ab[:, -1]
    active = np.ones(b.size, dtype=bool)

    nf = sum(layout[k][1] for k in frontals)
    R_rows, d, cond_sigmas = [], [], []
    for j in range(nf):
        column = A[:, j]
        candidates = active & hard & (np.abs(column) > rank_tolerance)
        if candidates.any():
            i = int(np.argmax(np.where(candidates, np.abs(column), -1.0)))
            r, dj = A[i] / A[i, j], b[i] / A[i, j]
            active[i] = False
            sigma = 0.0
        else:
            soft = active & ~hard
            wa = weights[soft] * column[soft]
            precision = float(wa @ column[soft])
            if precision <= rank_tolerance:
                key = next(k for k in frontals if layout[k][0] <= j < sum(layout[k]))
                raise NumericDegeneracy(
                    f"Rank deficient elimination of {key!r} (precision {precision:.3g})."
                )
            r, dj = (wa @ A[soft]) / precision, (wa @ b[soft]) / precision
            sigma = 1.0 / np.sqrt(precision)
        coeff = A[active, j].copy()
        A[active] -= np.outer(coeff, r)
        b[active] -= coeff * dj
        R_rows.append(r)
        d.append(dj)
        cond_sigmas.append(sigma)

    R_full = np.array(R_rows).reshape(nf, width)
    separator = order[len(frontals):]
    conditional = GaussianConditional(
        frontals,
        separator,
        R_full[:, :nf],
        [R_full[:, o:o + n] for o, n in (layout[k] for k in separator)],
        d,
        cond_sigmas,
        dims=[layout[k][1] for k in frontals],
    )

    # Residual on the separator: compress soft rows with QR, keep informative hard rows.
    soft = active & ~hard
    whitened = np.sqrt(weights[soft])[:, None] * np.column_stack([A[soft, nf:], b[soft]])
    if whitened.shape[0] > 0:
        whitened = np.linalg.qr(whitened, mode="r")
    hard_rows = np.column_stack([A[active & hard, nf:], b[active & hard]])
    informative = np.any(np.abs(hard_rows[:, :-1]) > rank_tolerance, axis=1)
    if np.any(np.abs(hard_rows[~informative, -1]) > rank_tolerance):
        raise NumericDegeneracy(f"Infeasible hard constraint after eliminating {frontals}.")
    hard_rows = hard_rows[informative]
    rows = np.vstack([whitened.reshape(-1, width - nf + 1), hard_rows])
    residual_sigmas = np.concatenate([np.ones(whitened.shape[0]), np.zeros(hard_rows.shape[0])])
    residual = GaussianFactor(
        separator,
        [rows[:, o - nf:o - nf + n] for o, n in (layout[k] for k in separator)],
        rows[:, -1],
        NoiseModel(residual_sigmas),
    )
    logger.debug(
        f"Eliminated {frontals}: separator {separator}, {residual.rows} residual rows"
    )
    return conditional, residual
