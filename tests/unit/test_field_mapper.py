"""Tests for display <-> storage field mapping."""
import pytest

from fieldops.mapping.field_mapper import (
    br_to_iso_date,
    iso_to_br_date,
    minutes_to_time_format,
    time_format_to_display,
    time_format_to_minutes,
    to_display,
    to_stored,
)
from fieldops.models.activity import STORED_COLUMNS


# ─── Dates ────────────────────────────────────────────────────────────────────

class TestDates:
    def test_iso_to_br(self):
        assert iso_to_br_date("2026-01-26") == "26/01/2026"

    def test_iso_to_br_drops_timestamp(self):
        assert iso_to_br_date("2026-01-26T00:00:00.000Z") == "26/01/2026"
        assert iso_to_br_date("2026-01-26 08:15:00") == "26/01/2026"

    def test_iso_to_br_passes_br_through(self):
        assert iso_to_br_date("26/01/2026") == "26/01/2026"

    def test_br_to_iso(self):
        assert br_to_iso_date("26/01/2026") == "2026-01-26"

    def test_br_to_iso_pads_fields(self):
        assert br_to_iso_date("1/2/2026") == "2026-02-01"

    def test_br_to_iso_two_digit_year(self):
        assert br_to_iso_date("05/03/26") == "2026-03-05"

    def test_br_to_iso_ignores_time(self):
        assert br_to_iso_date("26/01/2026 08:15") == "2026-01-26"

    def test_br_to_iso_passes_iso_through(self):
        assert br_to_iso_date("2026-01-26") == "2026-01-26"

    def test_empty_values(self):
        assert iso_to_br_date(None) == ""
        assert br_to_iso_date(None) == ""
        assert br_to_iso_date("  ") == ""

    def test_malformed_left_alone(self):
        assert br_to_iso_date("26/jan/2026") == "26/jan/2026"
        assert iso_to_br_date("ontem") == "ontem"

    @pytest.mark.parametrize("br", ["26/01/2026", "01/12/1999", "29/02/2024"])
    def test_br_round_trip(self, br):
        assert iso_to_br_date(br_to_iso_date(br)) == br

    @pytest.mark.parametrize("iso", ["2026-01-26", "1999-12-01", "2024-02-29"])
    def test_iso_round_trip(self, iso):
        assert br_to_iso_date(iso_to_br_date(iso)) == iso


# ─── Durations ────────────────────────────────────────────────────────────────

class TestDurations:
    def test_minutes_to_time_format(self):
        assert minutes_to_time_format("90") == "01:30:00"

    def test_minutes_to_time_format_int(self):
        assert minutes_to_time_format(5) == "00:05:00"

    def test_minutes_to_time_format_from_hh_mm(self):
        assert minutes_to_time_format("01:17") == "01:17:00"

    def test_minutes_to_time_format_invalid(self):
        assert minutes_to_time_format("abc") == ""
        assert minutes_to_time_format(None) == ""

    def test_time_format_to_display(self):
        assert time_format_to_display("01:30:00") == "01:30"

    def test_time_format_to_display_truncates_seconds(self):
        assert time_format_to_display("01:30:59") == "01:30"

    def test_time_format_to_display_bare_minutes(self):
        assert time_format_to_display("90") == "01:30"

    def test_time_format_to_minutes(self):
        assert time_format_to_minutes("01:17") == 77
        assert time_format_to_minutes("01:17:45") == 77
        assert time_format_to_minutes("77") == 77
        assert time_format_to_minutes("77.0") == 77

    def test_time_format_to_minutes_unparseable(self):
        assert time_format_to_minutes("1:xx") is None
        assert time_format_to_minutes("n/a") is None
        assert time_format_to_minutes("") is None

    def test_negative_minutes_are_absent(self):
        assert time_format_to_minutes("-5") is None
        assert time_format_to_minutes(-5) is None
        assert time_format_to_minutes("-1.5") is None
        assert minutes_to_time_format("-5") == ""
        assert to_stored({"Duração": "-5"})["duracao_minutos"] is None
        assert to_stored({"Tempo de Deslocamento": "-5"})["tempo_de_deslocamento"] is None


# ─── Record conversion ────────────────────────────────────────────────────────

FULL_RECORD = {
    "Recurso": "JOAO DA SILVA",
    "Número da OS1": "OS1-55",
    "Número da WO": "WO-9",
    "Contrato": "C-100",
    "Data": "26/01/2026",
    "Status da Atividade": "Concluído",
    "Tipo de Atividade": "Instalação",
    "Cód de Baixa 1": "B01",
    "Intervalo de Tempo": "08-12",
    "Duração": "01:17",
    "Latitude": "-23.5505",
    "Longitude": "-46.6333",
    "Cidade": "São Paulo",
    "Bairro": "Sé",
    "Tempo de Deslocamento": "25",
    "Contador Log": "3",
    "Técnico Referência": "MARIA",
}


class TestToStored:
    def test_all_columns_present(self):
        stored = to_stored({})
        assert set(stored) == set(STORED_COLUMNS)
        assert all(v is None for v in stored.values())

    def test_full_record(self):
        stored = to_stored(FULL_RECORD)
        assert stored["recurso"] == "JOAO DA SILVA"
        assert stored["numero_os1"] == "OS1-55"
        assert stored["data_atividade"] == "2026-01-26"
        assert stored["duracao_minutos"] == 77
        assert stored["tempo_de_deslocamento"] == "00:25:00"
        assert stored["latitude"] == pytest.approx(-23.5505)
        assert stored["longitude"] == pytest.approx(-46.6333)
        assert stored["cidade"] == "São Paulo"
        assert stored["contador_log"] == "3"
        assert stored["tecnico_referencia"] == "MARIA"

    def test_bare_minutes_duration(self):
        assert to_stored({"Duração": "77"})["duracao_minutos"] == 77

    def test_coordinate_aliases(self):
        stored = to_stored({"Coordenada Y": "-23.1", "Coordenada X": "-46.2"})
        assert stored["latitude"] == pytest.approx(-23.1)
        assert stored["longitude"] == pytest.approx(-46.2)

    def test_latitude_header_wins_over_alias(self):
        stored = to_stored({"Latitude": "-10.0", "Coordenada Y": "-20.0"})
        assert stored["latitude"] == pytest.approx(-10.0)

    def test_decimal_comma(self):
        assert to_stored({"Latitude": "-23,55"})["latitude"] == pytest.approx(-23.55)

    def test_lowercase_city(self):
        assert to_stored({"cidade": "Campinas"})["cidade"] == "Campinas"

    def test_unparseable_numbers_are_absent(self):
        stored = to_stored({"Latitude": "N/D", "Duração": "--", "Tempo de Deslocamento": "?"})
        assert stored["latitude"] is None
        assert stored["duracao_minutos"] is None
        assert stored["tempo_de_deslocamento"] is None

    def test_zero_is_kept(self):
        assert to_stored({"Duração": "0"})["duracao_minutos"] == 0

    def test_blank_text_is_absent(self):
        assert to_stored({"Bairro": "   "})["bairro"] is None


class TestToDisplay:
    def test_missing_fields_render_empty(self):
        record = to_display({})
        assert record["Recurso"] == ""
        assert record["Data"] == ""
        assert record["Duração"] == ""
        assert record["Latitude"] == ""

    def test_converts_types(self):
        record = to_display(
            {
                "data_atividade": "2026-01-26",
                "duracao_minutos": 90,
                "tempo_de_deslocamento": "00:25:00",
                "latitude": -23.5,
                "cidade": "Campinas",
            }
        )
        assert record["Data"] == "26/01/2026"
        assert record["Duração"] == "01:30"
        assert record["Tempo de Deslocamento"] == "00:25"
        assert record["Latitude"] == "-23.5"
        assert record["Cidade"] == "Campinas"
        assert record["cidade"] == "Campinas"

    def test_missing_date_sentinel_renders_empty(self):
        assert to_display({"data_atividade": "1900-01-01"})["Data"] == ""

    def test_already_display_date_passes_through(self):
        assert to_display({"data_atividade": "26/01/2026"})["Data"] == "26/01/2026"

    def test_ignores_store_columns(self):
        record = to_display({"id": 7, "recurso": "ANA"})
        assert "id" not in record
        assert record["Recurso"] == "ANA"


class TestRoundTrip:
    def test_display_is_fixed_point(self):
        once = to_display(to_stored(FULL_RECORD))
        twice = to_display(to_stored(once))
        assert twice == once

    def test_seconds_settle_after_first_pass(self):
        stored = {"tempo_de_deslocamento": "01:30:45", "data_atividade": "2026-01-26"}
        first = to_display(stored)
        second = to_display(to_stored(first))
        assert first == second
        assert second["Tempo de Deslocamento"] == "01:30"
