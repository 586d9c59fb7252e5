import pytest

from breedlab.data import NO_INDEX, ObservationTable, Pedigree, PedigreeRecord
from breedlab.errors import PedigreeOrderError, StructuralInputError


def test_pedigree_from_csv_reads_missing_parent_markers(tmp_path):
    path = tmp_path / "pedigree.csv"
    path.write_text("id,sire,dam,gen\nA,0,,0\nB,NA,.,0\nC,A,B,1\n", encoding="utf-8")
    pedigree = Pedigree.from_csv(path, generation_col="gen")
    assert pedigree.ids == ["A", "B", "C"]
    assert pedigree.records[0] == PedigreeRecord("A", None, None, 0)
    assert pedigree.records[1].sire is None and pedigree.records[1].dam is None
    assert pedigree.records[2].generation == 1


def test_pedigree_from_csv_missing_column(tmp_path):
    path = tmp_path / "pedigree.csv"
    path.write_text("animal,sire,dam\nA,,\n", encoding="utf-8")
    with pytest.raises(StructuralInputError, match="Column 'id'"):
        Pedigree.from_csv(path)


def test_index_of_returns_sentinel_for_unknown_or_absent():
    pedigree = Pedigree.from_rows([{"id": "A"}, {"id": "B", "sire": "A", "dam": None}])
    assert pedigree.index_of("B") == 1
    assert pedigree.index_of("GHOST") == NO_INDEX
    assert pedigree.index_of(None) == NO_INDEX


def test_validate_order_accepts_ordered_pedigree():
    Pedigree.from_rows([("A",), ("B",), ("C", "A", "B"), ("D", "C", "GHOST")]).validate_order()


@pytest.mark.parametrize(
    "rows",
    [
        [("C", "A", None), ("A",)],
        [("A",), ("A",)],
        [("A", "A", None)],
    ],
)
def test_validate_order_rejects_malformed_pedigrees(rows):
    with pytest.raises(PedigreeOrderError):
        Pedigree.from_rows(rows).validate_order()


def test_record_requires_identifier():
    with pytest.raises(StructuralInputError):
        PedigreeRecord("  ")


def test_observations_from_csv_skip_missing_values(tmp_path):
    path = tmp_path / "obs.csv"
    path.write_text("animal,value,herd\nA,10.5,H1\nB,,H1\nC,12,H2\n", encoding="utf-8")
    table = ObservationTable.from_csv(path, group_col="herd")
    assert len(table) == 2
    assert [obs.animal for obs in table] == ["A", "C"]
    assert table.groups == ["H1", "H2"]


def test_integer_ids_keep_animal_zero_as_parent():
    pedigree = Pedigree.from_rows([(0, None, None), (1, None, None), (2, 0, 1)])
    assert pedigree.records[2] == PedigreeRecord("2", "0", "1")
    assert pedigree.index_of(0) == 0


def test_only_none_or_blank_parent_is_unknown_outside_csv():
    record = PedigreeRecord("X", "NA", "  ")
    assert record.sire == "NA"
    assert record.dam is None
