from decimal import Decimal

from facturation.models.catalog import Article
from facturation.services import line_totals as lt


def test_compute_line_with_discount():
    line = lt.compute_line({"quantite": 3, "prix_unitaire_ht": 10, "tva_taux": 20, "remise_pourcent": 10})
    assert line.montant_ht == Decimal("27.00")
    assert line.montant_tva == Decimal("5.40")
    assert line.montant_ttc == Decimal("32.40")


def test_defaults():
    line = lt.compute_line({"prix_unitaire_ht": 10})
    assert line.quantite == 0
    assert line.tva_taux == 20
    assert line.remise_pourcent == 0
    assert line.montant_ht == 0


def test_zero_vat_is_kept():
    line = lt.compute_line({"quantite": 1, "prix_unitaire_ht": 50, "tva_taux": 0})
    assert line.tva_taux == 0
    assert line.montant_ttc == Decimal("50.00")


def test_nan_and_garbage_coerced_to_zero():
    line = lt.compute_line({"quantite": float("nan"), "prix_unitaire_ht": 10})
    assert line.montant_ht == 0
    line = lt.compute_line({"quantite": "abc", "prix_unitaire_ht": "", "remise_pourcent": float("inf")})
    assert line.montant_ht == 0
    assert line.remise_pourcent == 0


def test_scientific_notation_and_partial_numbers():
    line = lt.compute_line({"quantite": "1e3", "prix_unitaire_ht": 1, "tva_taux": 0})
    assert line.quantite == 1000
    assert line.montant_ht == Decimal("1000.00")
    line = lt.compute_line({"quantite": "12abc", "prix_unitaire_ht": 1})
    assert line.quantite == 0
    assert line.montant_ht == 0
    line = lt.compute_line({"quantite": 1, "prix_unitaire_ht": "1 200 €", "tva_taux": 0})
    assert line.montant_ht == Decimal("1200.00")


def test_huge_quantities_never_raise():
    line = lt.compute_line({"quantite": 1e30, "prix_unitaire_ht": 1})
    assert line.montant_ht == Decimal("1e30")
    assert line.montant_ttc == Decimal("1.2e30")
    line = lt.compute_line({"quantite": "1e200", "prix_unitaire_ht": 1})
    assert line.montant_ht == 0
    assert line.montant_ttc == 0
    assert lt.aggregate([line]).total_ttc == 0


def test_french_decimal_comma():
    line = lt.compute_line({"quantite": "2", "prix_unitaire_ht": "18,50", "tva_taux": "5,5"})
    assert line.montant_ht == Decimal("37.00")
    assert line.montant_tva == Decimal("2.04")
    assert line.montant_ttc == Decimal("39.04")


def test_rounding_half_away_from_zero_at_final_step():
    # 0.125 HT -> 0.13 ; TVA 20% sur 0.13 -> 0.026 -> 0.03
    line = lt.compute_line({"quantite": 1, "prix_unitaire_ht": "0.125", "tva_taux": 20})
    assert line.montant_ht == Decimal("0.13")
    assert line.montant_tva == Decimal("0.03")
    assert line.montant_ttc == Decimal("0.16")


def test_ttc_is_sum_of_rounded_parts():
    line = lt.compute_line({"quantite": 3, "prix_unitaire_ht": "0.335", "tva_taux": "5.5"})
    assert line.montant_ttc == line.montant_ht + line.montant_tva


def test_percentages_clamped():
    line = lt.compute_line({"quantite": 1, "prix_unitaire_ht": 10, "remise_pourcent": 150, "tva_taux": -3})
    assert line.remise_pourcent == 100
    assert line.tva_taux == 0
    assert line.montant_ht == 0


def test_aggregate_is_order_independent():
    a = lt.compute_line({"quantite": 3, "prix_unitaire_ht": 10, "tva_taux": 20, "remise_pourcent": 10})
    b = lt.compute_line({"quantite": 1, "prix_unitaire_ht": "9.99", "tva_taux": "5.5"})
    t1 = lt.aggregate([a, b])
    t2 = lt.aggregate([b, a])
    assert t1 == t2
    assert t1.total_ht == a.montant_ht + b.montant_ht
    assert t1.total_tva == a.montant_tva + b.montant_tva
    assert t1.total_ttc == a.montant_ttc + b.montant_ttc


def test_aggregate_empty():
    totals = lt.aggregate([])
    assert totals.total_ht == 0 and totals.total_ttc == 0


def test_vat_breakdown_groups_by_rate():
    lines = [
        lt.compute_line({"quantite": 1, "prix_unitaire_ht": 100, "tva_taux": 20}),
        lt.compute_line({"quantite": 2, "prix_unitaire_ht": 10, "tva_taux": "20.0"}),
        lt.compute_line({"quantite": 1, "prix_unitaire_ht": 10, "tva_taux": "5.5"}),
    ]
    buckets = lt.vat_breakdown(lines)
    assert [b.taux for b in buckets] == [Decimal("5.50"), Decimal("20.00")]
    assert buckets[1].base_ht == Decimal("120.00")
    assert buckets[1].montant_tva == Decimal("24.00")


def test_select_article_locks_price_and_vat():
    article = Article(id="a1", nom="Câble XLR", prix="12.50", tva="20")
    line = lt.select_article(lt.new_line(), article)
    assert line.article_id == "a1"
    assert line.designation == "Câble XLR"
    assert line.montant_ht == Decimal("12.50")

    same = lt.edit_line(line, "prix_unitaire_ht", 1)
    assert same.prix_unitaire_ht == Decimal("12.50")
    same = lt.edit_line(line, "tva_taux", 0)
    assert same.tva_taux == 20

    more = lt.edit_line(line, "quantite", 4)
    assert more.montant_ht == Decimal("50.00")
    discounted = lt.edit_line(more, "remise_pourcent", 50)
    assert discounted.montant_ht == Decimal("25.00")


def test_unbinding_article_restores_editability():
    line = lt.select_article(lt.new_line(), {"id": "a2", "nom": "Forfait", "prix": 100, "tva": 20})
    free = lt.select_article(line, None)
    assert free.article_id is None
    assert free.prix_unitaire_ht == 100
    edited = lt.edit_line(free, "prix_unitaire_ht", 80)
    assert edited.montant_ht == Decimal("80.00")


def test_edit_line_ignores_unknown_and_derived_fields():
    line = lt.new_line(prix_unitaire_ht=10)
    assert lt.edit_line(line, "montant_ht", 999).montant_ht == Decimal("10.00")
    assert lt.edit_line(line, "couleur", "rouge") == line


def test_new_and_remove_line():
    lines = [lt.new_line(designation="a"), lt.new_line(designation="b")]
    assert lines[0].quantite == 1 and lines[0].tva_taux == 20
    rest = lt.remove_line(lines, 0)
    assert [ln.designation for ln in rest] == ["b"]
    assert len(lines) == 2
