from __future__ import annotations
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Literal, Optional
from .common import TimeStamped, clean_decimal, gen_id

ArticleType = Literal["PRODUIT", "SERVICE"]
FieldType = Literal[
    "TEXT", "TEXTAREA", "NUMBER", "DECIMAL", "SELECT", "MULTISELECT",
    "CHECKBOX", "DATE", "COLOR", "URL", "EMAIL",
]


class Category(TimeStamped):
    id: str = Field(default_factory=gen_id)
    nom: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    parent_id: Optional[str] = None
    ordre: int = 0

    @field_validator("parent_id", mode="before")
    @classmethod
    def _empty_parent(cls, v):
        return v or None


class CategoryNode(BaseModel):
    categorie: Category
    enfants: List["CategoryNode"] = Field(default_factory=list)


class CustomField(BaseModel):
    """Champ du modèle de fiche article d'une catégorie."""
    id: str = Field(default_factory=gen_id)
    categorie_id: str
    nom: str = Field(min_length=1, max_length=100)
    code: str = Field(min_length=1, max_length=50, pattern=r"^[a-z][a-z0-9_]*$")
    type: FieldType = "TEXT"
    ordre: int = 0
    obligatoire: bool = False
    placeholder: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    options: Optional[List[str]] = None

    @model_validator(mode="after")
    def _options_required(self):
        if self.type in ("SELECT", "MULTISELECT") and not self.options:
            raise ValueError("Les options sont requises pour les champs SELECT et MULTISELECT")
        return self


class Article(TimeStamped):
    id: str = Field(default_factory=gen_id)
    reference: Optional[str] = None
    nom: str = Field(min_length=1)
    description: Optional[str] = None
    type: ArticleType = "PRODUIT"
    prix: Decimal = Decimal("0")  # HT
    tva: Decimal = Decimal("20")
    categorie_id: Optional[str] = None
    actif: bool = True

    class Config:
        extra = "ignore"

    @field_validator("prix", "tva", mode="before")
    @classmethod
    def _money(cls, v):
        d = clean_decimal(v)
        return max(Decimal("0"), d) if d is not None else Decimal("0")


CategoryNode.model_rebuild()
