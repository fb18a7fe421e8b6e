from __future__ import annotations
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime
from .common import TimeStamped, clean_decimal, gen_id, utcnow
from .numbering import DocumentType

DocumentStatut = Literal["BROUILLON", "ENVOYE", "ACCEPTE", "REFUSE", "PAYE", "ANNULE"]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_TVA = Decimal("20")


class LineItem(BaseModel):
    id: Optional[str] = None
    article_id: Optional[str] = None
    designation: str = ""
    description: Optional[str] = None

    quantite: Decimal = ZERO
    prix_unitaire_ht: Decimal = ZERO
    tva_taux: Decimal = DEFAULT_TVA
    remise_pourcent: Decimal = ZERO

    # dérivés, recalculés par line_totals.compute_line
    montant_ht: Decimal = ZERO
    montant_tva: Decimal = ZERO
    montant_ttc: Decimal = ZERO

    class Config:
        extra = "ignore"

    @field_validator("quantite", "prix_unitaire_ht", "montant_ht", "montant_tva", "montant_ttc", mode="before")
    @classmethod
    def _non_negative(cls, v):
        d = clean_decimal(v)
        return max(ZERO, d) if d is not None else ZERO

    @field_validator("remise_pourcent", mode="before")
    @classmethod
    def _discount(cls, v):
        d = clean_decimal(v)
        return min(HUNDRED, max(ZERO, d)) if d is not None else ZERO

    @field_validator("tva_taux", mode="before")
    @classmethod
    def _vat(cls, v):
        if v is None:
            return DEFAULT_TVA
        d = clean_decimal(v)
        return min(HUNDRED, max(ZERO, d)) if d is not None else ZERO

    @property
    def is_article_bound(self) -> bool:
        return bool(self.article_id)


class DocumentTotals(BaseModel):
    total_ht: Decimal = ZERO
    total_tva: Decimal = ZERO
    total_ttc: Decimal = ZERO


class VatBucket(BaseModel):
    taux: Decimal
    base_ht: Decimal = ZERO
    montant_tva: Decimal = ZERO


class Document(TimeStamped):
    id: str = Field(default_factory=gen_id)
    numero: Optional[str] = None
    type: DocumentType = "FACTURE"
    statut: DocumentStatut = "BROUILLON"

    client_id: str
    serie_id: Optional[str] = None
    # facture issue d'un devis
    devis_id: Optional[str] = None

    date_emission: datetime = Field(default_factory=utcnow)
    date_echeance: Optional[datetime] = None
    validite_jours: int = 30
    notes: Optional[str] = None
    conditions_paiement: Optional[str] = None

    lignes: List[LineItem] = Field(default_factory=list)
    total_ht: Decimal = ZERO
    total_tva: Decimal = ZERO
    total_ttc: Decimal = ZERO

    class Config:
        extra = "ignore"
