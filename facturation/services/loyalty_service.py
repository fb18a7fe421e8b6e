"""
Programme de fidélité : 1 € dépensé = 1 point, niveaux par seuil de points.
client_discount expose la remise du niveau ; les documents ne l'appliquent pas
d'eux-mêmes.
"""
from __future__ import annotations
import logging
import math
import os
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from facturation import config
from facturation.errors import LoyaltyError
from facturation.models.client import Client, LoyaltyLevel, PointsMovement
from facturation.services.client_service import ClientService
from facturation.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

POINTS_PER_EURO = 1
DEFAULT_EXPIRATION_DAYS = 365


def calculate_points(montant: Decimal | float | int) -> int:
    return math.floor(Decimal(str(montant)) * POINTS_PER_EURO)


class LoyaltyService:
    def __init__(self, data_dir: Optional[os.PathLike | str] = None, clients: Optional[ClientService] = None):
        base = config.data_dir(data_dir)
        self.clients = clients or ClientService(base)
        self.levels_repo = JsonRepository(base / "niveaux_fidelite.json", entity_name="niveau", key="id")
        self.movements_repo = JsonRepository(base / "mouvements_points.json", entity_name="mouvement", key="id")

    # ---------- Niveaux ---------- #

    def list_levels(self, active_only: bool = True) -> List[LoyaltyLevel]:
        out: List[LoyaltyLevel] = []
        for d in self.levels_repo.list_all():
            try:
                lvl = LoyaltyLevel(**d)
            except ValidationError:
                continue
            if lvl.actif or not active_only:
                out.append(lvl)
        return sorted(out, key=lambda n: n.seuil_points)

    def add_level(self, level: LoyaltyLevel) -> LoyaltyLevel:
        self.levels_repo.add(level)
        return level

    def assign_level(self, client: Client) -> Client:
        """Niveau le plus haut atteint par le solde, ou aucun."""
        reached = [n for n in self.list_levels() if client.points_solde >= n.seuil_points]
        target = reached[-1].id if reached else None
        if client.niveau_fidelite_id != target:
            client.niveau_fidelite_id = target
            self.clients.update_client(client)
        return client

    # ---------- Mouvements ---------- #

    def add_points(
        self,
        client_id: str,
        montant: Decimal | float | int,
        reference: Optional[str] = None,
        description: Optional[str] = None,
        expiration: Optional[datetime] = None,
    ) -> PointsMovement:
        points = calculate_points(montant)
        if points <= 0:
            raise LoyaltyError("Le montant doit être supérieur à 0 pour gagner des points")
        client = self.clients.require(client_id)

        mvt = PointsMovement(
            type="GAIN",
            points=points,
            description=description or f"Gain de {points} points pour {montant}€",
            reference=reference,
            date_expiration=expiration or datetime.utcnow() + timedelta(days=DEFAULT_EXPIRATION_DAYS),
            client_id=client.id,
        )
        self.movements_repo.add(mvt)
        client.points_solde += points
        self.clients.update_client(client)
        self.assign_level(client)
        logger.info("Client %s: +%d points", client.id, points)
        return mvt

    def spend_points(self, client_id: str, points: int, description: str, reference: Optional[str] = None) -> PointsMovement:
        if points <= 0:
            raise LoyaltyError("Le nombre de points doit être supérieur à 0")
        client = self.clients.require(client_id)
        if client.points_solde < points:
            raise LoyaltyError("Solde de points insuffisant")

        mvt = PointsMovement(type="DEPENSE", points=points, description=description,
                             reference=reference, client_id=client.id)
        self.movements_repo.add(mvt)
        client.points_solde -= points
        self.clients.update_client(client)
        self.assign_level(client)
        logger.info("Client %s: -%d points", client.id, points)
        return mvt

    def list_movements(self, client_id: str) -> List[PointsMovement]:
        rows = self.movements_repo.find(lambda d: d.get("client_id") == client_id)
        return sorted((PointsMovement(**d) for d in rows), key=lambda m: m.created_at)

    # ---------- Lecture ---------- #

    def client_discount(self, client_id: str) -> Decimal:
        client = self.clients.get_by_id(client_id)
        if client is None or not client.niveau_fidelite_id:
            return Decimal("0")
        for lvl in self.list_levels():
            if lvl.id == client.niveau_fidelite_id:
                return lvl.remise
        return Decimal("0")

    def next_level(self, client_id: str) -> Optional[Dict[str, Any]]:
        client = self.clients.require(client_id)
        for lvl in self.list_levels():
            if lvl.seuil_points > client.points_solde:
                return {
                    "niveau": lvl,
                    "points_manquants": lvl.seuil_points - client.points_solde,
                    "points_actuels": client.points_solde,
                    "progression": client.points_solde / lvl.seuil_points * 100,
                }
        return None
