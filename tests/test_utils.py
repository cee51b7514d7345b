"""
Unit tests for pyVARSV.utils.

Tests cover:
1. Vectorization and Kronecker products
2. Packing of the contemporaneous coefficients
3. Design matrices and lags
4. Group assignment
"""

import pytest
import numpy as np
import pandas as pd

from pyVARSV import utils
from pyVARSV.errors import InvalidDimension, InvalidParameter, NonPositiveDefinite


# ============================================================================
# Test Class 1: Vectorization
# ============================================================================

class TestVectorize:
    """Column stacking and its inverse"""

    def test_vectorize_column_major(self):
        M = np.array([[1, 2], [3, 4], [5, 6]])
        np.testing.assert_array_equal(utils.vectorize(M), [1, 3, 5, 2, 4, 6])

    def test_unvectorize_inverts(self):
        M = np.arange(12.0).reshape(3, 4)
        np.testing.assert_array_equal(utils.unvectorize(utils.vectorize(M), 3, 4), M)

    def test_unvectorize_wrong_size(self):
        with pytest.raises(InvalidDimension):
            utils.unvectorize(np.zeros(5), 2, 3)

    def test_kronecker_identity(self):
        """vec(X B) = (I ⊗ X) vec(B)"""
        rng = np.random.default_rng(0)
        X = rng.standard_normal((5, 3))
        B = rng.standard_normal((3, 2))
        lhs = utils.vectorize(X @ B)
        rhs = utils.kronecker(np.eye(2), X) @ utils.vectorize(B)
        np.testing.assert_allclose(lhs, rhs)


# ============================================================================
# Test Class 2: Lower-triangular packing
# ============================================================================

class TestLowerPacking:
    """Row-by-row packing of the unit lower-triangular factor"""

    def test_build_lower_row_major(self):
        L = utils.build_lower_from_vector(3, np.array([1.0, 2.0, 3.0]))
        expected = np.array([
            [1.0, 0.0, 0.0],
            [1.0, 1.0, 0.0],
            [2.0, 3.0, 1.0]
        ])
        np.testing.assert_array_equal(L, expected)

    def test_build_lower_single_series(self):
        np.testing.assert_array_equal(utils.build_lower_from_vector(1, np.zeros(0)), np.eye(1))

    def test_build_lower_wrong_length(self):
        with pytest.raises(InvalidDimension):
            utils.build_lower_from_vector(3, np.zeros(2))

    def test_packing_offsets(self):
        assert utils.lower_packing_offsets(4) == [0, 0, 1, 3]

    def test_offsets_match_packing(self):
        """Row j occupies offsets[j] .. offsets[j] + j - 1"""
        dim = 4
        vec = np.arange(1.0, dim * (dim - 1) // 2 + 1)
        L = utils.build_lower_from_vector(dim, vec)
        offsets = utils.lower_packing_offsets(dim)
        for j in range(1, dim):
            np.testing.assert_array_equal(L[j, :j], vec[offsets[j]:offsets[j] + j])

    def test_packing_index_row_major(self):
        rows, cols = utils.lower_packing_index(4)
        np.testing.assert_array_equal(rows, [1, 2, 2, 3, 3, 3])
        np.testing.assert_array_equal(cols, [0, 0, 1, 0, 1, 2])

    def test_packing_index_places_vector(self):
        dim = 5
        vec = np.random.default_rng(6).standard_normal(dim * (dim - 1) // 2)
        L = utils.build_lower_from_vector(dim, vec)
        rows, cols = utils.lower_packing_index(dim)
        np.testing.assert_array_equal(L[rows, cols], vec)
        for j, offset in enumerate(utils.lower_packing_offsets(dim)):
            np.testing.assert_array_equal(rows[offset:offset + j], j)


class TestTimeMajorOrder:
    """Permutation of the SUR stack"""

    def test_order_values(self):
        np.testing.assert_array_equal(utils.time_major_order(3, 2), [0, 3, 1, 4, 2, 5])

    def test_order_on_response(self):
        y = np.arange(6.0).reshape(3, 2)
        np.testing.assert_array_equal(utils.vectorize(y)[utils.time_major_order(3, 2)], y.ravel())


# ============================================================================
# Test Class 3: Checks and factorizations
# ============================================================================

class TestChecks:
    """Shape, symmetry and definiteness checks"""

    def test_broadcast_scalar(self):
        np.testing.assert_array_equal(utils.broadcast_vector(0.5, 3, "w"), [0.5, 0.5, 0.5])

    def test_broadcast_vector_wrong_size(self):
        with pytest.raises(InvalidDimension):
            utils.broadcast_vector(np.ones(2), 3, "w")

    def test_check_square(self):
        with pytest.raises(InvalidDimension):
            utils.check_square(np.zeros((2, 3)), "m")

    def test_check_symmetric(self):
        with pytest.raises(InvalidDimension):
            utils.check_symmetric(np.array([[1.0, 2.0], [0.0, 1.0]]), "m")

    def test_cholesky_not_positive_definite(self):
        with pytest.raises(NonPositiveDefinite):
            utils.cholesky_lower(np.array([[1.0, 2.0], [2.0, 1.0]]))

    def test_non_positive_definite_is_linalg_error(self):
        assert issubclass(NonPositiveDefinite, np.linalg.LinAlgError)


# ============================================================================
# Test Class 4: Design matrices
# ============================================================================

class TestDesign:
    """Lagged design and response matrices"""

    def test_mlag(self):
        X = np.array([[1.0, 10.0], [2.0, 20.0], [3.0, 30.0], [4.0, 40.0]])
        lagged = utils.mlag(X, 2)
        assert lagged.shape == (4, 4)
        np.testing.assert_array_equal(lagged.values[2], [2.0, 20.0, 1.0, 10.0])
        np.testing.assert_array_equal(lagged.values[0], np.zeros(4))

    def test_mlag_names(self):
        data = pd.DataFrame({'y': [1.0, 2.0, 3.0], 'x': [0.5, 0.6, 0.7]})
        assert list(utils.mlag(data, 1).columns) == ['y.lag1', 'x.lag1']

    def test_build_design(self):
        data = np.arange(20.0).reshape(10, 2)
        x, y, names = utils.build_design(data, 2, include_mean=True)
        assert x.shape == (8, 5)
        assert y.shape == (8, 2)
        np.testing.assert_array_equal(y[0], data[2])
        np.testing.assert_array_equal(x[0], [2.0, 3.0, 0.0, 1.0, 1.0])
        assert names[-1] == "const"

    def test_build_design_no_mean(self):
        x, _, names = utils.build_design(np.ones((6, 3)), 1, include_mean=False)
        assert x.shape == (5, 3)
        assert "const" not in names

    def test_build_design_invalid_lag(self):
        with pytest.raises(InvalidParameter):
            utils.build_design(np.ones((6, 2)), 0)

    def test_build_design_too_short(self):
        with pytest.raises(InvalidDimension):
            utils.build_design(np.ones((2, 2)), 2)


# ============================================================================
# Test Class 5: Groups
# ============================================================================

class TestGroups:
    """Group matrices and their validation"""

    def test_group_none(self):
        grp = utils.build_group_matrix(2, 2, include_mean=True, by="none")
        assert grp.shape == (5, 2)
        assert (grp == 1).all()

    def test_group_lag(self):
        grp = utils.build_group_matrix(2, 2, include_mean=True, by="lag")
        np.testing.assert_array_equal(grp[:, 0], [1, 1, 2, 2, 3])

    def test_group_own_cross(self):
        grp = utils.build_group_matrix(2, 2, include_mean=True, by="own_cross")
        np.testing.assert_array_equal(grp, [[1, 2], [2, 1], [3, 3], [3, 3], [4, 4]])

    def test_group_unknown(self):
        with pytest.raises(InvalidParameter):
            utils.build_group_matrix(2, 1, by="country")

    def test_check_group_index(self):
        grp_mat = np.array([[5, 7], [7, 5]])
        grp_id, grp_index = utils.check_group(None, grp_mat, (2, 2))
        np.testing.assert_array_equal(grp_id, [5, 7])
        np.testing.assert_array_equal(grp_index, [0, 1, 1, 0])

    def test_check_group_shape(self):
        with pytest.raises(InvalidDimension):
            utils.check_group(None, np.ones((3, 2), dtype=int), (2, 2))

    def test_check_group_missing_id(self):
        with pytest.raises(InvalidParameter):
            utils.check_group(np.array([1]), np.array([[1, 2], [2, 1]]), (2, 2))

    def test_check_group_duplicate_id(self):
        with pytest.raises(InvalidParameter):
            utils.check_group(np.array([1, 1]), np.ones((2, 2), dtype=int), (2, 2))

    def test_check_group_negative_id(self):
        with pytest.raises(InvalidParameter):
            utils.check_group(None, -np.ones((2, 2), dtype=int), (2, 2))
