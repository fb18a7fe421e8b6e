from datetime import datetime

import pytest

from facturation import config
from facturation.errors import SerieError, SerieNotFoundError
from facturation.models.numbering import Serie
from facturation.services import format_engine as fe
from facturation.services.serie_service import SerieService, should_reset


@pytest.fixture
def series(data_dir):
    return SerieService(data_dir)


def _serie(**kw):
    data = {"code": "FACT", "nom": "Factures", "pour_factures": True, "est_defaut_factures": True}
    data.update(kw)
    return Serie(**data)


def test_should_reset_rules():
    now = datetime(2026, 3, 15)
    assert not should_reset(_serie(reset_compteur="AUCUN"), now)
    assert should_reset(_serie(reset_compteur="ANNUEL"), now)
    assert not should_reset(_serie(reset_compteur="ANNUEL", derniere_reset=datetime(2026, 1, 2)), now)
    assert should_reset(_serie(reset_compteur="ANNUEL", derniere_reset=datetime(2025, 12, 31)), now)
    assert should_reset(_serie(reset_compteur="MENSUEL", derniere_reset=datetime(2026, 2, 28)), now)
    assert not should_reset(_serie(reset_compteur="MENSUEL", derniere_reset=datetime(2026, 3, 1)), now)


def test_code_is_upper_cased_and_unique(series):
    series.add_serie(_serie(code="fact"))
    assert series.list_series()[0].code == "FACT"
    with pytest.raises(SerieError):
        series.add_serie(_serie(code="FACT", nom="Doublon"))


def test_default_flag_is_exclusive(series):
    first = series.add_serie(_serie(code="A"))
    second = series.add_serie(_serie(code="B"))
    assert series.find_default("FACTURE").id == second.id
    assert not series.get_by_id(first.id).est_defaut_factures


def test_failed_add_keeps_existing_default(series):
    current = series.add_serie(_serie(code="A"))
    other = series.add_serie(_serie(code="B", est_defaut_factures=False))
    with pytest.raises(ValueError):
        series.add_serie(_serie(code="C", id=other.id))
    assert series.find_default("FACTURE").id == current.id
    assert [s.code for s in series.list_series()] == ["A", "B"]


def test_next_number_uses_default_serie(series):
    series.add_serie(_serie(format_numero="{CODE}-{YEAR}-{NUM5}"))
    now = datetime(2025, 6, 1)
    assert series.next_number("FACTURE", now=now)[0] == "FACT-2025-00001"
    numero, serie_id = series.next_number("FACTURE", now=now)
    assert numero == "FACT-2025-00002"
    assert series.get_by_id(serie_id).prochain_numero == 3


def test_yearly_reset(series):
    s = series.add_serie(_serie(format_numero="{CODE}{YEAR2}-{NUM4}", reset_compteur="ANNUEL"))
    assert series.next_number("FACTURE", now=datetime(2025, 12, 30))[0] == "FACT25-0001"
    assert series.next_number("FACTURE", now=datetime(2025, 12, 31))[0] == "FACT25-0002"
    assert series.next_number("FACTURE", now=datetime(2026, 1, 1))[0] == "FACT26-0001"
    stored = series.get_by_id(s.id)
    assert stored.derniere_reset.year == 2026
    assert stored.prochain_numero == 2


def test_explicit_serie_checks(series):
    devis = series.add_serie(Serie(code="DEV", nom="Devis", pour_devis=True, pour_factures=False))
    with pytest.raises(SerieError):
        series.next_number("FACTURE", serie_id=devis.id)
    with pytest.raises(SerieNotFoundError):
        series.next_number("DEVIS", serie_id="absent")
    devis.active = False
    series.update_serie(devis)
    with pytest.raises(SerieError):
        series.next_number("DEVIS", serie_id=devis.id)


def test_fallback_to_company_settings(series, data_dir):
    assert series.next_number("DEVIS") == ("DEV00001", None)
    assert series.next_number("DEVIS") == ("DEV00002", None)
    assert config.load_settings(data_dir).prochain_numero_devis == 3
    assert series.next_number("AVOIR")[0] == "AV00001"


def test_preview_does_not_consume(series):
    s = series.add_serie(_serie(format_numero="{TYPE}{NUM3}"))
    assert series.preview_number(s, "FACTURE") == "FACT001"
    assert series.get_by_id(s.id).prochain_numero == 1


def test_update_format_applies_default_when_empty(series):
    s = series.add_serie(_serie(format_numero="{CODE}"))
    emptied = fe.remove_token(fe.parse(s.format_numero), 0)
    updated = series.update_format(s.id, emptied)
    assert updated.format_numero == "{CODE}{NUM5}"
    assert series.get_by_id(s.id).format_numero == "{CODE}{NUM5}"


def test_list_filters_and_template(series):
    series.add_from_template(1)
    series.add_from_template(2, code="TOUS")
    assert [s.code for s in series.list_series(document_type="AVOIR")] == ["TOUS"]
    assert len(series.list_series(active_only=True)) == 2
    assert series.delete_serie(series.list_series()[0].id)
    assert len(series.list_series()) == 1


def test_templates_have_distinct_codes(series):
    for i in range(4):
        series.add_from_template(i)
    assert [s.code for s in series.list_series()] == ["DEV", "DOC", "FACT", "FAN"]
