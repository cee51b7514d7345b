"""
Utility functions for pyVARSV package
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Tuple, Union
from scipy.linalg import cholesky

from .errors import InvalidDimension, InvalidParameter, NonPositiveDefinite


def vectorize(M: np.ndarray) -> np.ndarray:
    """
    Stack the columns of a matrix into one vector (column-major order).

    Parameters
    ----------
    M : array
        Matrix of size rows x cols.

    Returns
    -------
    array
        Vector of length rows*cols.
    """
    return np.asarray(M).flatten('F')


def unvectorize(v: np.ndarray, rows: int, cols: int) -> np.ndarray:
    """
    Inverse of `vectorize`.

    Parameters
    ----------
    v : array
        Vector of length rows*cols.
    rows, cols : int
        Shape of the output matrix.

    Returns
    -------
    array
        Matrix of size rows x cols, filled column by column.
    """
    v = np.asarray(v)
    if v.size != rows * cols:
        raise InvalidDimension(f"Vector of size {v.size} cannot be reshaped to ({rows}, {cols}).")
    return v.reshape((rows, cols), order='F')


def kronecker(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    """Kronecker product A ⊗ B."""
    return np.kron(np.atleast_2d(A), np.atleast_2d(B))


def build_lower_from_vector(dim: int, lower_vec: np.ndarray) -> np.ndarray:
    """
    Build the unit lower-triangular factor L with Sigma_t^{-1} = L^T D_t^{-1} L.

    The strictly lower part is filled row by row:
    lower_vec = (a21, a31, a32, a41, a42, a43, ...).

    Parameters
    ----------
    dim : int
        Number of series k.
    lower_vec : array
        Packed vector of length k(k-1)/2.

    Returns
    -------
    array
        k x k lower-triangular matrix with unit diagonal.
    """
    lower_vec = np.asarray(lower_vec, dtype=float).ravel()
    if lower_vec.size != dim * (dim - 1) // 2:
        raise InvalidDimension(f"Expected {dim * (dim - 1) // 2} lower-triangular elements, got {lower_vec.size}.")
    res = np.eye(dim)
    rows, cols = lower_packing_index(dim)
    res[rows, cols] = lower_vec
    return res


def time_major_order(num_design: int, dim: int) -> np.ndarray:
    """
    Row permutation from series-major to time-major stacking.

    Row t*dim + j of the time-major stack is row j*num_design + t of
    `kron(I_dim, x)` (or of `vectorize(y)`), so that a residual precision
    which is block diagonal over time can be applied directly.
    """
    t_idx, j_idx = np.meshgrid(np.arange(num_design), np.arange(dim), indexing='ij')
    return (j_idx * num_design + t_idx).ravel()


def lower_packing_offsets(dim: int) -> List[int]:
    """Offset of row j's segment inside the packed lower-triangular vector."""
    return [j * (j - 1) // 2 for j in range(dim)]


def lower_packing_index(dim: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    (row, column) of every packed lower-triangular element, in packing order.

    Row j holds its j elements at positions offsets[j] .. offsets[j] + j - 1.
    """
    rows = np.zeros(dim * (dim - 1) // 2, dtype=int)
    cols = np.zeros(dim * (dim - 1) // 2, dtype=int)
    for j, offset in enumerate(lower_packing_offsets(dim)):
        rows[offset:offset + j] = j
        cols[offset:offset + j] = np.arange(j)
    return rows, cols


def broadcast_vector(value: Union[float, np.ndarray], size: int, name: str) -> np.ndarray:
    """Broadcast a scalar or vector hyperparameter to a float vector of length `size`."""
    value = np.asarray(value, dtype=float)
    if value.ndim > 1 or (value.ndim == 1 and value.size not in (1, size)):
        raise InvalidDimension(f"Invalid '{name}' size: expected 1 or {size}, got {value.size}.")
    return np.broadcast_to(value.ravel() if value.ndim else value, (size,)).copy()


def check_square(mat: np.ndarray, name: str) -> np.ndarray:
    """Return `mat` as a float array, raising if it is not square."""
    mat = np.atleast_2d(np.asarray(mat, dtype=float))
    if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
        raise InvalidDimension(f"Invalid '{name}' dimension: {mat.shape} is not square.")
    return mat


def check_symmetric(mat: np.ndarray, name: str) -> np.ndarray:
    """Return `mat` as a float array, raising if it is not square and symmetric."""
    mat = check_square(mat, name)
    if not np.allclose(mat, mat.T):
        raise InvalidDimension(f"'{name}' must be a symmetric matrix.")
    return mat


def cholesky_lower(mat: np.ndarray, name: str = "matrix") -> np.ndarray:
    """Lower Cholesky factor, raising NonPositiveDefinite on failure."""
    try:
        return cholesky(mat, lower=True)
    except np.linalg.LinAlgError as err:
        raise NonPositiveDefinite(f"'{name}' is not positive definite: {err}") from err


def mlag(X: Union[np.ndarray, pd.DataFrame], lag: int) -> pd.DataFrame:
    """
    Create lagged variables.

    Parameters
    ----------
    X : array-like or DataFrame
        Input data of size T x N (time x variables).
    lag : int
        Number of lags.

    Returns
    -------
    DataFrame
        Lagged data of size T x (N*lag); the first `lag` rows are zero.

    Examples
    --------
    >>> data = pd.DataFrame({'y': [1, 2, 3, 4, 5], 'x': [0.5, 0.6, 0.7, 0.8, 0.9]})
    >>> lagged = mlag(data, lag=2)
    >>> print(lagged.shape)
    (5, 4)
    """
    if isinstance(X, pd.DataFrame):
        X_array = X.values
        colnames = X.columns
    else:
        X_array = np.asarray(X)
        colnames = [f'var{i}' for i in range(X_array.shape[1])]

    Traw, N = X_array.shape
    p = lag

    Xlag = np.zeros((Traw, p * N))

    lag_colnames = []
    for ii in range(1, p + 1):
        start_idx = N * (ii - 1)
        end_idx = N * ii
        Xlag[ii:, start_idx:end_idx] = X_array[:(Traw - ii), :]
        lag_colnames.extend([f"{col}.lag{ii}" for col in colnames])

    Xlag_df = pd.DataFrame(Xlag, columns=lag_colnames)

    return Xlag_df


def build_design(data: Union[np.ndarray, pd.DataFrame],
                 p: int,
                 include_mean: bool = True) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """
    Construct response and design matrices of a VAR(p).

    Parameters
    ----------
    data : array or DataFrame
        Raw data of size Traw x k.
    p : int
        Lag order.
    include_mean : bool
        Whether to append a constant column.

    Returns
    -------
    tuple
        (x, y, design_names) with y of size (Traw - p) x k and x of size
        (Traw - p) x (kp [+1]).
    """
    if isinstance(data, pd.DataFrame):
        df = data
    else:
        df = pd.DataFrame(np.asarray(data, dtype=float))
        df.columns = [f'var{i}' for i in range(df.shape[1])]

    if p < 1:
        raise InvalidParameter("Lag order 'p' must be a positive integer.")
    if df.shape[0] <= p:
        raise InvalidDimension(f"Need more than {p} observations, got {df.shape[0]}.")

    Xlag = mlag(df, p)
    y = df.values[p:, :].astype(float)
    x = Xlag.values[p:, :]
    names = list(Xlag.columns)

    if include_mean:
        x = np.hstack([x, np.ones((x.shape[0], 1))])
        names.append("const")

    return x, y, names


def build_group_matrix(dim: int,
                       p: int,
                       include_mean: bool = True,
                       by: str = "none") -> np.ndarray:
    """
    Build the group assignment matrix of the VAR coefficients.

    Parameters
    ----------
    dim : int
        Number of series k.
    p : int
        Lag order.
    include_mean : bool
        Whether the design has a constant row.
    by : str
        - 'none': one group for all coefficients
        - 'lag': one group per lag, the constant in its own group
        - 'equation': one group per equation (column)
        - 'own_cross': own first lag, cross first lag and higher lags,
          the constant in its own group

    Returns
    -------
    array
        Integer matrix of size (kp [+1]) x k.
    """
    dim_design = dim * p + (1 if include_mean else 0)
    grp_mat = np.ones((dim_design, dim), dtype=int)

    if by == "none":
        return grp_mat
    elif by == "lag":
        for lag in range(p):
            grp_mat[lag * dim:(lag + 1) * dim, :] = lag + 1
        if include_mean:
            grp_mat[-1, :] = p + 1
    elif by == "equation":
        grp_mat[:, :] = np.arange(1, dim + 1)
    elif by == "own_cross":
        grp_mat[:, :] = 3
        grp_mat[:dim, :] = 2
        np.fill_diagonal(grp_mat[:dim, :], 1)
        if include_mean:
            grp_mat[-1, :] = 4
    else:
        raise InvalidParameter(f"Unknown grouping '{by}'. Use 'none', 'lag', 'equation' or 'own_cross'.")

    return grp_mat


def check_group(grp_id: Optional[np.ndarray],
                grp_mat: np.ndarray,
                shape: Tuple[int, int]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Validate a group assignment and map it onto positions 0..G-1.

    Parameters
    ----------
    grp_id : array, optional
        Unique group ids. Defaults to the sorted distinct values of `grp_mat`.
    grp_mat : array
        Group assignment matrix.
    shape : tuple
        Expected shape of `grp_mat`.

    Returns
    -------
    tuple
        (grp_id, grp_index) where grp_index is `vectorize(grp_mat)` mapped to
        positions in `grp_id`.
    """
    grp_mat = np.asarray(grp_mat)
    if grp_mat.shape != tuple(shape):
        raise InvalidDimension(f"Invalid 'grp_mat' dimension: expected {tuple(shape)}, got {grp_mat.shape}.")

    distinct = np.unique(grp_mat)
    if grp_id is None:
        grp_id = distinct
    grp_id = np.asarray(grp_id).ravel()

    if (grp_id < 0).any():
        raise InvalidParameter("Group ids must be non-negative.")
    if len(np.unique(grp_id)) != len(grp_id):
        raise InvalidParameter("'grp_id' must not contain duplicates.")
    if set(distinct.tolist()) != set(grp_id.tolist()):
        raise InvalidParameter("'grp_id' must list exactly the ids appearing in 'grp_mat'.")

    lookup = {gid: pos for pos, gid in enumerate(grp_id.tolist())}
    grp_index = np.array([lookup[gid] for gid in vectorize(grp_mat).tolist()], dtype=int)

    return grp_id, grp_index
