from __future__ import annotations
from decimal import Decimal
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Literal, Optional
from datetime import datetime
from .common import TimeStamped, gen_id, utcnow

MovementType = Literal["GAIN", "DEPENSE"]


class Client(TimeStamped):
    id: str = Field(default_factory=gen_id)
    nom: str = Field(min_length=1, max_length=100)
    prenom: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    telephone: Optional[str] = Field(default=None, max_length=20)
    adresse: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = None

    points_solde: int = Field(default=0, ge=0)
    niveau_fidelite_id: Optional[str] = None

    class Config:
        extra = "ignore"

    @field_validator("email", mode="before")
    @classmethod
    def _empty_email(cls, v):
        # les formulaires envoient "" pour un champ vide
        return v or None

    @property
    def display_name(self) -> str:
        return f"{self.prenom} {self.nom}" if self.prenom else self.nom


class LoyaltyLevel(BaseModel):
    id: str = Field(default_factory=gen_id)
    nom: str
    seuil_points: int = Field(ge=0)
    remise: Decimal = Decimal("0")  # pourcentage
    actif: bool = True


class PointsMovement(BaseModel):
    id: str = Field(default_factory=gen_id)
    type: MovementType = "GAIN"
    points: int = Field(gt=0)
    description: Optional[str] = None
    reference: Optional[str] = None
    date_expiration: Optional[datetime] = None
    client_id: str
    created_at: datetime = Field(default_factory=utcnow)
