"""Core data structures for pedigree, observation and genotype information."""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import PedigreeOrderError, StructuralInputError

# parent codes read as "unknown" in pedigree files only
MISSING_PARENT = {"", "0", "na", "nan", ".", "none", "null"}
NO_INDEX = -1


def _parse_parent(value: Optional[object]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _csv_parent(value: str) -> Optional[str]:
    text = value.strip()
    if text.lower() in MISSING_PARENT:
        return None
    return text


def _parse_value(value: str) -> Optional[float]:
    value = value.strip()
    if value == "" or value.lower() == "nan":
        return None
    return float(value)


def _column_index(header: List[str], name: str, kind: str) -> int:
    if name not in header:
        raise StructuralInputError(f"Column '{name}' not found in {kind} file")
    return header.index(name)


@dataclass(frozen=True)
class PedigreeRecord:
    id: str
    sire: Optional[str] = None
    dam: Optional[str] = None
    generation: Optional[int] = None

    def __post_init__(self) -> None:
        if self.id is None or str(self.id).strip() == "":
            raise StructuralInputError("Pedigree record requires a non-empty identifier")
        object.__setattr__(self, "id", str(self.id).strip())
        object.__setattr__(self, "sire", _parse_parent(self.sire))
        object.__setattr__(self, "dam", _parse_parent(self.dam))


RecordLike = Union[PedigreeRecord, Mapping[str, object], Sequence[object]]


def _to_record(row: RecordLike) -> PedigreeRecord:
    if isinstance(row, PedigreeRecord):
        return row
    if isinstance(row, Mapping):
        return PedigreeRecord(
            row["id"],
            row.get("sire"),
            row.get("dam"),
            row.get("generation"),
        )
    values = list(row)
    if not 1 <= len(values) <= 4:
        raise StructuralInputError(f"Pedigree row must have 1 to 4 fields, got {len(values)}")
    return PedigreeRecord(*values)


@dataclass
class Pedigree:
    """Pedigree records in the order parents-before-offspring."""

    records: List[PedigreeRecord]
    _index: Dict[str, int] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        self.records = [_to_record(row) for row in self.records]
        # the first occurrence wins, like a forward lookup over the list
        for position, record in enumerate(self.records):
            self._index.setdefault(record.id, position)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    @property
    def ids(self) -> List[str]:
        return [record.id for record in self.records]

    def index_of(self, identifier: Optional[str]) -> int:
        """Position of ``identifier`` or ``NO_INDEX`` when absent or unknown."""
        if identifier is None:
            return NO_INDEX
        return self._index.get(str(identifier), NO_INDEX)

    def validate_order(self) -> None:
        seen = set()
        for position, record in enumerate(self.records):
            if record.id in seen:
                raise PedigreeOrderError(f"Identifier '{record.id}' appears more than once (row {position})")
            for role, parent in (("sire", record.sire), ("dam", record.dam)):
                if parent is None:
                    continue
                if parent == record.id:
                    raise PedigreeOrderError(f"Individual '{record.id}' is listed as its own {role}")
                parent_position = self._index.get(parent, NO_INDEX)
                if parent_position > position:
                    raise PedigreeOrderError(
                        f"{role.capitalize()} '{parent}' of '{record.id}' appears after its offspring "
                        f"(row {parent_position} > row {position})"
                    )
            seen.add(record.id)

    @classmethod
    def from_rows(cls, rows: Iterable[RecordLike]) -> "Pedigree":
        return cls(list(rows))

    @classmethod
    def from_csv(
        cls,
        path: str | Path,
        *,
        id_col: str = "id",
        sire_col: str = "sire",
        dam_col: str = "dam",
        generation_col: Optional[str] = None,
        delimiter: str = ",",
    ) -> "Pedigree":
        with open(path, "r", newline="") as handle:
            reader = csv.reader(handle, delimiter=delimiter)
            header = next(reader)
            id_idx = _column_index(header, id_col, "pedigree")
            sire_idx = _column_index(header, sire_col, "pedigree")
            dam_idx = _column_index(header, dam_col, "pedigree")
            gen_idx = _column_index(header, generation_col, "pedigree") if generation_col else None
            records: List[PedigreeRecord] = []
            for row in reader:
                if not row:
                    continue
                generation = int(row[gen_idx]) if gen_idx is not None and row[gen_idx].strip() else None
                records.append(
                    PedigreeRecord(row[id_idx], _csv_parent(row[sire_idx]), _csv_parent(row[dam_idx]), generation)
                )
        return cls(records)


@dataclass(frozen=True)
class Observation:
    animal: str
    value: float
    group: str


@dataclass
class ObservationTable:
    observations: List[Observation]

    def __len__(self) -> int:
        return len(self.observations)

    def __iter__(self):
        return iter(self.observations)

    @property
    def groups(self) -> List[str]:
        return sorted({obs.group for obs in self.observations})

    @classmethod
    def from_rows(cls, rows: Iterable[Tuple[str, Optional[float], str]]) -> "ObservationTable":
        observations = [Observation(str(animal), float(value), str(group)) for animal, value, group in rows if value is not None]
        return cls(observations)

    @classmethod
    def from_csv(
        cls,
        path: str | Path,
        *,
        animal_col: str = "animal",
        value_col: str = "value",
        group_col: str = "group",
        delimiter: str = ",",
    ) -> "ObservationTable":
        with open(path, "r", newline="") as handle:
            reader = csv.reader(handle, delimiter=delimiter)
            header = next(reader)
            animal_idx = _column_index(header, animal_col, "observation")
            value_idx = _column_index(header, value_col, "observation")
            group_idx = _column_index(header, group_col, "observation")
            observations: List[Observation] = []
            for row in reader:
                if not row:
                    continue
                value = _parse_value(row[value_idx])
                if value is None:
                    continue
                observations.append(Observation(row[animal_idx].strip(), value, row[group_idx].strip()))
        return cls(observations)


@dataclass
class GenotypeTable:
    individuals: List[str]
    markers: List[str]
    matrix: List[List[float]]

    @classmethod
    def from_csv(
        cls,
        path: str | Path,
        *,
        index_col: Optional[str] = None,
        delimiter: str = ",",
    ) -> "GenotypeTable":
        with open(path, "r", newline="") as handle:
            reader = csv.reader(handle, delimiter=delimiter)
            header = next(reader)
            index_idx = 0 if index_col is None else _column_index(header, index_col, "genotype")
            markers = [value for i, value in enumerate(header) if i != index_idx]
            individuals: List[str] = []
            matrix: List[List[float]] = []
            for line, row in enumerate(reader, start=2):
                if not row:
                    continue
                values = [_parse_value(value) for i, value in enumerate(row) if i != index_idx]
                if any(value is None for value in values):
                    raise StructuralInputError(f"Missing genotype call on line {line}; impute or drop it first")
                individuals.append(row[index_idx])
                matrix.append(values)
        return cls(individuals, markers, matrix)
