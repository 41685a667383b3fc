"""
ERP Sessions — Session Row Parser Tests
Tests: parse_datetime, parse_state, parse_row, parse_rows, group_rows_by_deal, count_rows_without_deal.
Run: cd /app/backend && pytest tests/test_session_row_parser.py -v
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from models import SessionState
from services.session_row_parser import (
    count_rows_without_deal,
    group_rows_by_deal,
    normalize_header,
    parse_datetime,
    parse_row,
    parse_rows,
    parse_state,
)
from tests.fakes import utc


# ═══════════════════════════════════════════════════════════════
# 1. DATES
# ═══════════════════════════════════════════════════════════════

class TestParseDateTime:

    def test_spreadsheet_serial(self):
        """45000 days after 1899-12-30 → 2023-03-15."""
        assert parse_datetime(45000) == utc(2023, 3, 15)

    def test_spreadsheet_serial_with_time_fraction(self):
        assert parse_datetime(45000.375) == utc(2023, 3, 15, 9, 0)

    def test_numeric_string_tried_as_serial(self):
        assert parse_datetime("45000") == utc(2023, 3, 15)
        assert parse_datetime("45000,5") == utc(2023, 3, 15, 12, 0)

    def test_iso_with_offset(self):
        assert parse_datetime("2024-05-10T09:00:00Z") == utc(2024, 5, 10, 9, 0)
        assert parse_datetime("2024-05-10T09:00:00+02:00") == utc(2024, 5, 10, 7, 0)

    def test_naive_iso_uses_import_timezone(self):
        """Madrid is UTC+2 in May."""
        assert parse_datetime("2024-05-10T09:00:00", tz_name="Europe/Madrid") == utc(2024, 5, 10, 7, 0)
        assert parse_datetime("2024-01-10 09:00", tz_name="Europe/Madrid") == utc(2024, 1, 10, 8, 0)

    def test_free_text_day_first(self):
        assert parse_datetime("10/05/2024 09:00", tz_name="UTC") == utc(2024, 5, 10, 9, 0)
        assert parse_datetime("10-05-2024", tz_name="UTC") == utc(2024, 5, 10)

    def test_datetime_passthrough(self):
        value = datetime(2024, 5, 10, 9, 0, tzinfo=timezone.utc)
        assert parse_datetime(value) == value

    def test_invalid_values(self):
        assert parse_datetime(None) is None
        assert parse_datetime("") is None
        assert parse_datetime("   ") is None
        assert parse_datetime("mañana por la tarde") is None
        assert parse_datetime(True) is None
        assert parse_datetime(-3) is None

    def test_non_finite_and_oversized_numbers(self):
        """Cellules vides d'un export pandas (NaN) ou entiers JSON énormes → None, jamais d'exception."""
        assert parse_datetime(float("nan")) is None
        assert parse_datetime(float("inf")) is None
        assert parse_datetime(float("-inf")) is None
        assert parse_datetime(10 ** 400) is None
        assert parse_datetime("9" * 400) is None
        assert parse_datetime("NaN") is None


# ═══════════════════════════════════════════════════════════════
# 2. STATUT
# ═══════════════════════════════════════════════════════════════

class TestParseState:

    def test_canonical_labels(self):
        assert parse_state("PLANIFICADA") == SessionState.PLANIFICADA
        assert parse_state("Finalizada") == SessionState.FINALIZADA

    def test_case_and_diacritics(self):
        assert parse_state("  suspendída ") == SessionState.SUSPENDIDA
        assert parse_state("CANCELADO") == SessionState.CANCELADA

    def test_unknown_defaults_to_draft(self):
        assert parse_state("pendiente de revisar") == SessionState.BORRADOR
        assert parse_state("") == SessionState.BORRADOR
        assert parse_state(None) == SessionState.BORRADOR


# ═══════════════════════════════════════════════════════════════
# 3. LIGNES
# ═══════════════════════════════════════════════════════════════

class TestParseRow:

    def test_api_payload_keys(self):
        parsed = parse_row({
            "sessionNumber": "1",
            "start": "2024-05-10T09:00:00Z",
            "end": "2024-05-10T13:00:00Z",
            "trainer": "Ana Pérez",
            "trainerSup": "José García",
            "estado": "Planificada",
        }, "D-100")
        assert parsed.session_number == "1"
        assert parsed.start == utc(2024, 5, 10, 9)
        assert parsed.end == utc(2024, 5, 10, 13)
        assert parsed.main_trainer_name == "Ana Pérez"
        assert parsed.support_trainer_name == "José García"
        assert parsed.state == SessionState.PLANIFICADA

    def test_spreadsheet_headers(self):
        parsed = parse_row({
            "Deal ID Pipedrive": "D-100",
            "Num sesión": 2.0,
            "Inicio": 45000.375,
            "Fin": 45000.5,
            "Formador": "  Marta   Sánchez ",
            "Estado de la sesión": "cancelada",
        }, "D-100")
        assert parsed.session_number == "2"
        assert parsed.start == utc(2023, 3, 15, 9)
        assert parsed.main_trainer_name == "Marta Sánchez"
        assert parsed.support_trainer_name == ""
        assert parsed.state == SessionState.CANCELADA

    def test_end_before_or_equal_start_dropped(self):
        base = {"sessionNumber": "1", "start": "2024-05-10T09:00:00Z"}
        assert parse_row({**base, "end": "2024-05-10T08:00:00Z"}, "D-100") is None
        assert parse_row({**base, "end": "2024-05-10T09:00:00Z"}, "D-100") is None

    def test_missing_mandatory_fields_dropped(self):
        assert parse_row({"start": "2024-05-10T09:00:00Z", "end": "2024-05-10T10:00:00Z"}, "D-100") is None
        assert parse_row({"sessionNumber": "1", "end": "2024-05-10T10:00:00Z"}, "D-100") is None
        assert parse_row({"sessionNumber": "1", "start": "nope", "end": "2024-05-10T10:00:00Z"}, "D-100") is None

    def test_row_of_other_deal_dropped(self):
        raw = {"deal": "D-999", "sesion": "1", "inicio": 45000.4, "fin": 45000.5}
        assert parse_row(raw, "D-100") is None
        assert parse_row(raw, "D-999") is not None

    def test_nan_cells_are_empty(self):
        nan = float("nan")
        assert parse_row({"sessionNumber": nan, "start": 45000.4, "end": 45000.5}, "D-100") is None
        assert parse_row({"sessionNumber": "1", "start": nan, "end": 45000.5}, "D-100") is None
        parsed = parse_row({"sessionNumber": "1", "start": 45000.4, "end": 45000.5, "trainer": nan}, "D-100")
        assert parsed.main_trainer_name == ""

    def test_parse_rows_counts_dropped(self):
        rows = [
            {"sessionNumber": "1", "start": 45000.4, "end": 45000.5},
            {"sessionNumber": "2", "start": 45001.5, "end": 45001.4},
            "not a row",
        ]
        accepted, dropped = parse_rows(rows, "D-100")
        assert [r.session_number for r in accepted] == ["1"]
        assert dropped == 2


class TestHeadersAndGrouping:

    def test_normalize_header(self):
        assert normalize_header("Estado de la sesión") == "estado_de_la_sesion"
        assert normalize_header(" Formador  sup. ") == "formador_sup"
        assert normalize_header(None) == ""

    def test_group_rows_by_deal_keeps_order(self):
        rows = [
            {"deal_id_pipedrive": "A", "num_sesion": "1"},
            {"deal_id_pipedrive": "B", "num_sesion": "1"},
            {"deal_id_pipedrive": "A", "num_sesion": "2"},
            {"num_sesion": "3"},
        ]
        groups = group_rows_by_deal(rows)
        assert list(groups) == ["A", "B"]
        assert [r["num_sesion"] for r in groups["A"]] == ["1", "2"]

    def test_rows_without_deal_counted(self):
        rows = [
            {"deal_id_pipedrive": "A", "num_sesion": "1"},
            {"deal_id_pipedrive": "  ", "num_sesion": "2"},
            {"num_sesion": "3"},
            "ligne cassée",
        ]
        assert sum(len(g) for g in group_rows_by_deal(rows).values()) == 1
        assert count_rows_without_deal(rows) == 3
