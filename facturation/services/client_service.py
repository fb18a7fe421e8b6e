from __future__ import annotations
import logging
import os
from typing import List, Optional

from pydantic import ValidationError

from facturation import config
from facturation.errors import NotFoundError
from facturation.models.client import Client
from facturation.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, data_dir: Optional[os.PathLike | str] = None):
        self.repo = JsonRepository(config.data_dir(data_dir) / "clients.json", entity_name="client", key="id")

    def list_clients(self, search: Optional[str] = None) -> List[Client]:
        out: List[Client] = []
        for d in self.repo.list_all():
            try:
                out.append(Client(**d))
            except ValidationError:
                # On ignore les entrées invalides pour ne pas casser les listes
                logger.warning("Client invalide ignoré: %s", d.get("id"))
                continue
        if search:
            needle = search.strip().casefold()
            out = [
                c for c in out
                if needle in c.display_name.casefold() or needle in (c.email or "").casefold()
            ]
        return sorted(out, key=lambda c: c.display_name.casefold())

    def add_client(self, client: Client) -> Client:
        self.repo.add(client)
        return client

    def update_client(self, client: Client) -> Client:
        client.touch()
        self.repo.update(client)
        return client

    def delete_client(self, client_id: str) -> bool:
        return self.repo.delete(client_id)

    def get_by_id(self, client_id: str) -> Optional[Client]:
        d = self.repo.get_by_id(client_id)
        if not d:
            return None
        try:
            return Client(**d)
        except ValidationError:
            return None

    def require(self, client_id: str) -> Client:
        client = self.get_by_id(client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        return client
