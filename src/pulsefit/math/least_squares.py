"""
pulsefit convenience functions for linear least squares
"""

from __future__ import annotations

import numpy as np

# condition number above which the normal equations are treated as singular
MAX_CONDITION = 1e12


def fit_linear_basis(
    basis: np.ndarray, y: np.ndarray, var: float | np.ndarray = 1
) -> tuple[np.ndarray, float, bool]:
    """
    Weighted linear least squares fit of a sum of fixed basis vectors plus a
    constant offset, solved through the normal equations.

    I.e. ``y = sum_k c_k * basis[k] + c_offset``.

    Parameters
    ----------
    basis
        array of shape ``(k, n)``: the `k` basis vectors sampled at the `n`
        points of `y`
    y
        the values to fit
    var
        the variances of the y-values

    Returns
    -------
    coeffs
        the `k` basis coefficients followed by the offset
    chi2
        the weighted residual sum of squares at the solution
    ok
        ``False`` if the normal equations are singular, in which case
        `coeffs` is filled with NaN and `chi2` is infinite
    """
    y = np.asarray(y, dtype=np.float64)
    design = np.vstack([np.atleast_2d(basis), np.ones_like(y)]).T
    weights = np.broadcast_to(1.0 / np.asarray(var, dtype=np.float64), y.shape)

    ata = design.T @ (design * weights[:, None])
    atb = design.T @ (y * weights)

    if not np.all(np.isfinite(ata)) or np.linalg.cond(ata) > MAX_CONDITION:
        return np.full(design.shape[1], np.nan), np.inf, False
    try:
        coeffs = np.linalg.solve(ata, atb)
    except np.linalg.LinAlgError:
        return np.full(design.shape[1], np.nan), np.inf, False

    resid = y - design @ coeffs
    return coeffs, float(np.sum(resid * resid * weights)), True
