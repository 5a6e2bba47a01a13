import pytest

from prontrack.errors import ExtractionEmpty
from prontrack.extractor import extract_schedule, find_time_column, is_header_row
from prontrack.grid import normalize_row


def test_single_patient_with_header_metadata():
    grid = [
        ["PROFISSIONAL: Dr. Souza", "ESPECIALIDADE: Cardiologia"],
        ["07:00", "Maria Silva", "PRONTUARIO: 1001"],
    ]
    result = extract_schedule(grid)
    assert result.ok
    assert len(result.entries) == 1
    e = result.entries[0]
    assert e.time == "07:00"
    assert e.patient_name == "Maria Silva"
    assert e.record_number == "1001"
    assert e.doctor == "Dr. Souza"
    assert e.specialty == "Cardiologia"
    assert e.selected is True
    assert e.status == "Pending"


def test_record_number_two_rows_below():
    grid = [
        ["08:30", "João Pereira", "", ""],
        ["", "Convênio: SUS", "", ""],
        ["", "", "Prontuário: 2002", ""],
    ]
    result = extract_schedule(grid)
    assert [e.record_number for e in result.entries] == ["2002"]
    assert result.entries[0].patient_name == "João Pereira"


def test_record_number_on_next_row():
    grid = [
        ["09:15", "Paula Mendes"],
        ["Matrícula 7788"],
    ]
    result = extract_schedule(grid)
    assert [e.record_number for e in result.entries] == ["7788"]


@pytest.mark.parametrize("gap", [2, 3])
def test_record_number_beyond_lookahead_is_ignored(gap):
    grid = [["08:30", "João Pereira"]] + [[""]] * gap + [["Prontuário: 3003"]]
    result = extract_schedule(grid)
    assert result.entries == []


def test_name_skips_numbers_and_status_words():
    grid = [["09:00", "12345678", "Agendamento confirmado", "RETORNO", "Carlos Souza", "Prontuário: 4004"]]
    result = extract_schedule(grid)
    assert result.entries[0].patient_name == "Carlos Souza"


def test_row_without_name_is_dropped():
    grid = [["09:00", "123", "Prontuário: 4004"]]
    assert extract_schedule(grid).entries == []


def test_age_units():
    grid = [
        ["10:00", "Ana Costa", "34 anos", "Pront. 5005"],
        ["10:20", "Bebê Lima", "8 meses", "Pront. 5006"],
        ["10:40", "Rui Barros", "Pront. 5007"],
    ]
    ages = [e.age for e in extract_schedule(grid).entries]
    assert ages == [34, 0, None]


def test_time_must_be_within_first_six_columns():
    grid = [["", "", "", "", "", "", "07:00", "Maria Silva", "Prontuário: 1001"]]
    assert extract_schedule(grid).entries == []

    row = normalize_row(0, ["", "", "", "", "", " 7:05:00 ", "Maria Silva"])
    assert find_time_column(row) == 5


def test_header_row_is_skipped():
    assert is_header_row(normalize_row(0, ["Horário", "Paciente", "Prontuário"]))
    assert not is_header_row(normalize_row(0, ["07:00", "Maria Silva"]))


def test_entries_keep_metadata_seen_so_far():
    grid = [
        ["07:00", "Maria Silva", "Prontuário: 1001"],
        ["Profissional: Dra. Lima"],
        ["07:30", "Pedro Alves", "Prontuário: 1009"],
    ]
    result = extract_schedule(grid)
    assert [e.doctor for e in result.entries] == ["", "Dra. Lima"]
    assert result.metadata.doctor == "Dra. Lima"


def test_record_cell_is_not_taken_as_name():
    grid = [["08:00", "PRONTUARIO: 1001", "Maria Silva"]]
    assert extract_schedule(grid).entries[0].patient_name == "Maria Silva"


def test_empty_result_carries_guidance():
    result = extract_schedule([["Relatório de agendamentos"], ["sem dados"]])
    assert not result.ok
    assert result.rows_read == 2
    assert "07:00" in result.guidance
    with pytest.raises(ExtractionEmpty) as exc:
        result.raise_for_empty()
    assert exc.value.rows_read == 2


def test_jagged_and_non_string_cells():
    grid = [["07:00", None, "Maria Silva", 1001], ["Prontuario 1001"], []]
    result = extract_schedule(grid)
    assert result.entries[0].record_number == "1001"
