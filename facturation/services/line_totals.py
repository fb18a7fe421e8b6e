"""
Calcul des montants HT / TVA / TTC des lignes de document.

    montant_ht  = round(prix_unitaire_ht * quantite * (1 - remise/100), 2)
    montant_tva = round(montant_ht * tva_taux / 100, 2)
    montant_ttc = montant_ht + montant_tva

Arrondi au centime, demi à l'écart de zéro, uniquement en fin de calcul.
Les champs numériques illisibles (vide, NaN, texte) valent 0.
"""
from __future__ import annotations

import logging
from decimal import Decimal, DecimalException, ROUND_HALF_UP, getcontext, localcontext
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from facturation.models.document import DocumentTotals, LineItem, VatBucket, HUNDRED, ZERO

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# précision de travail, au-delà des 28 chiffres du contexte par défaut
PRECISION = 100
LOCKED_FIELDS = ("prix_unitaire_ht", "tva_taux")

LineLike = Union[LineItem, Mapping[str, Any]]


def _wide():
    ctx = getcontext().copy()
    ctx.prec = PRECISION
    return localcontext(ctx)


def round2(d: Decimal) -> Decimal:
    try:
        with _wide():
            return d.quantize(CENT, rounding=ROUND_HALF_UP)
    except DecimalException:
        logger.warning("Montant hors limites ramené à 0: %s", d)
        return ZERO


def _as_dict(line: LineLike) -> Dict[str, Any]:
    if isinstance(line, LineItem):
        return line.model_dump()
    # None = champ absent -> valeur par défaut du modèle
    return {k: v for k, v in dict(line or {}).items() if v is not None}


def compute_line(line: LineLike) -> LineItem:
    item = LineItem(**_as_dict(line))
    try:
        with _wide():
            ht = round2(item.prix_unitaire_ht * item.quantite * (1 - item.remise_pourcent / HUNDRED))
            tva = round2(ht * item.tva_taux / HUNDRED)
            ttc = ht + tva
    except DecimalException:
        logger.warning("Ligne %r hors limites, montants ramenés à 0", item.designation)
        ht = tva = ttc = ZERO
    return item.model_copy(update={
        "montant_ht": ht,
        "montant_tva": tva,
        "montant_ttc": ttc,
    })


def aggregate(lines: Iterable[LineItem]) -> DocumentTotals:
    total_ht = total_tva = total_ttc = ZERO
    with _wide():
        for ln in lines:
            total_ht += ln.montant_ht
            total_tva += ln.montant_tva
            total_ttc += ln.montant_ttc
    return DocumentTotals(
        total_ht=round2(total_ht),
        total_tva=round2(total_tva),
        total_ttc=round2(total_ttc),
    )


def vat_breakdown(lines: Iterable[LineItem]) -> List[VatBucket]:
    """Base HT et TVA regroupées par taux, triées par taux croissant."""
    buckets: Dict[Decimal, VatBucket] = {}
    for ln in lines:
        # 20 et 20.0 doivent tomber dans le même groupe
        key = round2(ln.tva_taux)
        b = buckets.setdefault(key, VatBucket(taux=key))
        b.base_ht += ln.montant_ht
        b.montant_tva += ln.montant_tva
    return [
        VatBucket(taux=b.taux, base_ht=round2(b.base_ht), montant_tva=round2(b.montant_tva))
        for _, b in sorted(buckets.items())
    ]


# ---------- Édition de lignes ---------- #

def new_line(**fields: Any) -> LineItem:
    data = {"quantite": 1, "prix_unitaire_ht": 0, "tva_taux": 20, "remise_pourcent": 0}
    data.update(fields)
    return compute_line(data)


def remove_line(lines: Sequence[LineItem], index: int) -> List[LineItem]:
    return [ln for i, ln in enumerate(lines) if i != index]


def select_article(line: LineLike, article: Optional[Any]) -> LineItem:
    """
    Lie la ligne à un article du catalogue (prix et TVA repris de l'article,
    puis verrouillés), ou la délie si `article` est None.
    """
    data = _as_dict(line)
    if article is None:
        data["article_id"] = None
        return compute_line(data)

    src = article.model_dump() if hasattr(article, "model_dump") else dict(article)
    data.update({
        "article_id": src.get("id"),
        "designation": src.get("nom") or data.get("designation") or "",
        "prix_unitaire_ht": src.get("prix"),
        "tva_taux": src.get("tva"),
    })
    return compute_line(data)


def edit_line(line: LineLike, field: str, value: Any) -> LineItem:
    current = compute_line(line)
    if field not in LineItem.model_fields or field.startswith("montant_"):
        logger.debug("Champ de ligne ignoré: %s", field)
        return current
    if current.is_article_bound and field in LOCKED_FIELDS:
        logger.debug("Ligne liée à l'article %s: %s non modifiable", current.article_id, field)
        return current
    if field == "article_id":
        # la liaison passe par select_article
        return current
    data = current.model_dump()
    data[field] = value
    return compute_line(data)
