from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional, Tuple
from datetime import datetime
from .common import TimeStamped, gen_id

DocumentType = Literal["DEVIS", "FACTURE", "AVOIR"]
ResetCompteur = Literal["AUCUN", "ANNUEL", "MENSUEL"]
TokenKind = Literal["literal", "variable"]

DEFAULT_FORMAT = "{CODE}{NUM5}"


class FormatToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: TokenKind
    value: str

    @classmethod
    def variable(cls, name: str) -> "FormatToken":
        return cls(kind="variable", value=name)

    @classmethod
    def literal(cls, text: str) -> "FormatToken":
        return cls(kind="literal", value=text)


# Un format = séquence ordonnée de tokens ; l'identité d'un token est son index.
Format = Tuple[FormatToken, ...]


class NumberingContext(BaseModel):
    """Valeurs substituées dans un format de numérotation."""
    code: str = ""
    counter: int = 1
    year: int = Field(default_factory=lambda: datetime.now().year)
    month: int = Field(default_factory=lambda: datetime.now().month)
    type: str = ""  # code court: DEV, FACT, AV


class Serie(TimeStamped):
    id: str = Field(default_factory=gen_id)
    code: str = Field(min_length=1, max_length=10)
    nom: str = Field(min_length=1)
    description: Optional[str] = None
    couleur: Optional[str] = None

    pour_devis: bool = True
    pour_factures: bool = True
    pour_avoirs: bool = False

    prochain_numero: int = Field(default=1, ge=1)
    format_numero: str = DEFAULT_FORMAT
    reset_compteur: ResetCompteur = "AUCUN"
    derniere_reset: Optional[datetime] = None

    est_defaut_devis: bool = False
    est_defaut_factures: bool = False
    est_defaut_avoirs: bool = False
    active: bool = True

    class Config:
        extra = "ignore"

    @field_validator("code")
    @classmethod
    def _upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("format_numero")
    @classmethod
    def _non_empty_format(cls, v: str) -> str:
        return v or DEFAULT_FORMAT

    def supports(self, document_type: DocumentType) -> bool:
        return {
            "DEVIS": self.pour_devis,
            "FACTURE": self.pour_factures,
            "AVOIR": self.pour_avoirs,
        }.get(document_type, False)

    def is_default_for(self, document_type: DocumentType) -> bool:
        return {
            "DEVIS": self.est_defaut_devis,
            "FACTURE": self.est_defaut_factures,
            "AVOIR": self.est_defaut_avoirs,
        }.get(document_type, False)
