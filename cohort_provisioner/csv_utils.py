"""CSV utility functions for group exports and classlist dumps."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from pathlib import Path

from cohort_provisioner.models import Student

STUDENT_CSV_HEADER = ["netid", "student_number", "email"]


def _validate_csv_file(csv_file: Path) -> None:
    """Validate that CSV file exists.

    Args:
        csv_file: Path to the CSV file.

    Raises:
        FileNotFoundError: If CSV file doesn't exist.
    """
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_file}")


def _validate_columns(fieldnames: Sequence[str], columns: list[str]) -> None:
    """Validate that required columns exist in CSV headers.

    Args:
        fieldnames: Sequence of field names from CSV.
        columns: Column names that must be present.

    Raises:
        KeyError: If required columns are not found.
    """
    missing_columns = [col for col in columns if col not in fieldnames]
    if missing_columns:
        raise KeyError(f"Columns {missing_columns} not found in CSV headers: {fieldnames}")


def _read_pairs(
    reader: csv.DictReader[str],
    key_column: str,
    value_column: str,
    skip_empty: bool,
) -> list[tuple[str, str]]:
    if reader.fieldnames is None:
        raise KeyError("CSV has no headers")
    _validate_columns(reader.fieldnames, [key_column, value_column])

    pairs: list[tuple[str, str]] = []
    for row in reader:
        key = row[key_column] or ""
        value = row[value_column] or ""
        if skip_empty and (not key.strip() or not value.strip()):
            continue
        pairs.append((key, value))
    return pairs


def text_to_pairs(
    text: str,
    key_column: str,
    value_column: str,
    delimiter: str = ",",
    skip_empty: bool = True,
) -> list[tuple[str, str]]:
    """Read CSV text into ``(key, value)`` pairs, one per row.

    Args:
        text: CSV content including a header row.
        key_column: Column name for the first element of each pair.
        value_column: Column name for the second element of each pair.
        delimiter: CSV delimiter (default: ',').
        skip_empty: Whether to skip rows with an empty key or value (default: True).

    Returns:
        Pairs in row order; repeated keys are kept.

    Raises:
        KeyError: If column names are not found in CSV headers.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")), delimiter=delimiter)
    return _read_pairs(reader, key_column, value_column, skip_empty)


def csv_to_pairs(
    csv_file: str | Path,
    key_column: str,
    value_column: str,
    encoding: str = "utf-8-sig",
    delimiter: str = ",",
    skip_empty: bool = True,
) -> list[tuple[str, str]]:
    """Read a CSV file into ``(key, value)`` pairs, one per row.

    Args:
        csv_file: Path to the CSV file.
        key_column: Column name for the first element of each pair.
        value_column: Column name for the second element of each pair.
        encoding: File encoding (default: 'utf-8-sig', tolerates a BOM).
        delimiter: CSV delimiter (default: ',').
        skip_empty: Whether to skip rows with an empty key or value (default: True).

    Returns:
        Pairs in row order; repeated keys are kept.

    Raises:
        FileNotFoundError: If CSV file doesn't exist.
        KeyError: If column names are not found in CSV headers.
    """
    csv_file_path = Path(csv_file)
    _validate_csv_file(csv_file_path)

    with open(csv_file_path, encoding=encoding, newline="") as file:
        reader = csv.DictReader(file, delimiter=delimiter)
        return _read_pairs(reader, key_column, value_column, skip_empty)


def write_students_csv(output_file: Path, students: Iterable[Student], gitbull: bool = False) -> int:
    """Write a roster to CSV.

    Args:
        output_file: Destination path.
        students: Students to write.
        gitbull: Write headerless ``netid,email,netid`` rows instead of the full record.

    Returns:
        Number of students written.

    Raises:
        OSError: If the file cannot be written.
    """
    count = 0
    with open(output_file, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        if not gitbull:
            writer.writerow(STUDENT_CSV_HEADER)
        for student in students:
            if gitbull:
                writer.writerow([student.netid, student.email, student.netid])
            else:
                number = "" if student.student_number is None else student.student_number
                writer.writerow([student.netid, number, student.email])
            count += 1
    return count
