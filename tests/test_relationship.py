import numpy as np
import pytest

from breedlab.data import Pedigree, PedigreeRecord
from breedlab.errors import NumericalError, PedigreeOrderError
from breedlab.relationship import RelationshipMatrix, RelationshipMatrixBuilder


@pytest.fixture
def family_pedigree() -> Pedigree:
    return Pedigree.from_rows(
        [
            ("S1", None, None),
            ("D1", None, None),
            ("D2", None, None),
            ("FS1", "S1", "D1"),
            ("FS2", "S1", "D1"),
            ("HS1", "S1", "D2"),
            ("X", "FS1", "FS2"),
        ]
    )


def test_three_animal_example():
    pedigree = Pedigree.from_rows([("A1", None, None), ("A2", None, None), ("A3", "A1", "A2")])
    result = RelationshipMatrixBuilder().build(pedigree)
    assert result.inbreeding_of("A3") == 0.0
    assert result.get("A1", "A2") == 0.0
    assert result.get("A3", "A3") == 1.0
    assert result.get("A1", "A3") == 0.5
    assert result.get("A2", "A3") == 0.5


def test_founders_only_gives_identity():
    records = [PedigreeRecord(f"F{i}") for i in range(6)]
    result = RelationshipMatrixBuilder().build(records)
    np.testing.assert_array_equal(result.matrix, np.eye(6))
    np.testing.assert_array_equal(result.inbreeding, np.zeros(6))


def test_matrix_is_symmetric_with_inbred_diagonal(family_pedigree):
    result = RelationshipMatrixBuilder().build(family_pedigree)
    A = result.matrix
    np.testing.assert_array_equal(A, A.T)
    np.testing.assert_array_equal(np.diag(A), 1 + result.inbreeding)
    assert np.all(np.diag(A) >= 1)
    assert np.all(np.linalg.eigvalsh(A) > -1e-12)


def test_sibling_relationships(family_pedigree):
    result = RelationshipMatrixBuilder().build(family_pedigree)
    assert result.get("FS1", "FS2") == 0.5
    assert result.get("FS1", "HS1") == 0.25
    # offspring of a full-sib mating
    assert result.inbreeding_of("X") == 0.25
    assert result.get("X", "X") == 1.25


def test_unknown_parent_is_treated_as_founder():
    pedigree = Pedigree.from_rows([("A", None, None), ("B", "A", "GHOST")])
    result = RelationshipMatrixBuilder().build(pedigree)
    assert result.get("A", "B") == 0.5
    assert result.inbreeding_of("B") == 0.0


def test_parent_listed_after_offspring_falls_back_to_founder():
    pedigree = Pedigree.from_rows([("C", "A", "B"), ("A", None, None), ("B", None, None)])
    result = RelationshipMatrixBuilder().build(pedigree)
    assert result.get("C", "A") == 0.0
    assert result.get("C", "C") == 1.0


def test_strict_mode_rejects_unordered_pedigree():
    pedigree = Pedigree.from_rows([("C", "A", "B"), ("A", None, None), ("B", None, None)])
    with pytest.raises(PedigreeOrderError):
        RelationshipMatrixBuilder(strict=True).build(pedigree)


def test_trace_records_diagonal_and_nonzero_offdiagonal_steps():
    pedigree = Pedigree.from_rows([("A1", None, None), ("A2", None, None), ("A3", "A1", "A2")])
    result = RelationshipMatrixBuilder().build(pedigree)
    kinds = [step.kind for step in result.trace]
    assert kinds.count("diagonal") == 3
    assert kinds.count("offdiagonal") == 2
    assert all(step.value != 0 for step in result.trace)
    untraced = RelationshipMatrixBuilder(record_trace=False).build(pedigree)
    assert untraced.trace == ()
    np.testing.assert_array_equal(untraced.matrix, result.matrix)


def test_result_matrix_is_read_only(family_pedigree):
    result = RelationshipMatrixBuilder().build(family_pedigree)
    with pytest.raises(ValueError):
        result.matrix[0, 0] = 5.0


def test_inverse_and_frame(family_pedigree):
    result = RelationshipMatrixBuilder().build(family_pedigree)
    np.testing.assert_allclose(result.inverse() @ result.matrix, np.eye(len(result)), atol=1e-10)
    frame = result.to_frame()
    assert frame.loc["FS1", "FS2"] == 0.5
    assert list(frame.index) == family_pedigree.ids


def test_inverse_of_singular_matrix_raises_numerical_error():
    singular = RelationshipMatrix(ids=("a", "b"), matrix=np.ones((2, 2)), inbreeding=np.zeros(2))
    with pytest.raises(NumericalError):
        singular.inverse()


def test_integer_identifiers_including_zero():
    result = RelationshipMatrixBuilder().build(Pedigree.from_rows([(0, None, None), (1, None, None), (2, 0, 1)]))
    assert result.get("0", "2") == 0.5
    assert result.get(1, 2) == 0.5
