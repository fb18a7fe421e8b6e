from __future__ import annotations
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from facturation import config
from facturation.errors import DocumentError, NotFoundError
from facturation.models.document import Document, DocumentStatut
from facturation.models.numbering import DocumentType
from facturation.services import line_totals
from facturation.services.client_service import ClientService
from facturation.services.serie_service import SerieService
from facturation.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

# numéro, montants et lien devis calculés ici, jamais repris du payload
_DERIVED_KEYS = ("numero", "devis_id", "total_ht", "total_tva", "total_ttc")


class DocumentService:
    def __init__(
        self,
        data_dir: Optional[os.PathLike | str] = None,
        clients: Optional[ClientService] = None,
        series: Optional[SerieService] = None,
    ):
        base = config.data_dir(data_dir)
        self.repo = JsonRepository(base / "documents.json", entity_name="document", key="id")
        self.clients = clients or ClientService(base)
        self.series = series or SerieService(base)

    # ----------- lecture -----------
    def list_documents(
        self,
        type: Optional[DocumentType] = None,
        client_id: Optional[str] = None,
        statut: Optional[DocumentStatut] = None,
    ) -> List[Document]:
        out: List[Document] = []
        for d in self.repo.list_all():
            try:
                doc = Document(**d)
            except ValidationError:
                logger.warning("Document invalide ignoré: %s", d.get("id"))
                continue
            if type and doc.type != type:
                continue
            if client_id and doc.client_id != client_id:
                continue
            if statut and doc.statut != statut:
                continue
            out.append(doc)
        return sorted(out, key=lambda x: x.date_emission, reverse=True)

    def get_by_id(self, document_id: str) -> Optional[Document]:
        d = self.repo.get_by_id(document_id)
        if not d:
            return None
        try:
            return Document(**d)
        except ValidationError:
            return None

    # ----------- écriture -----------
    def recalc_totals(self, doc: Document) -> Document:
        doc.lignes = [line_totals.compute_line(ln) for ln in doc.lignes]
        totals = line_totals.aggregate(doc.lignes)
        doc.total_ht = totals.total_ht
        doc.total_tva = totals.total_tva
        doc.total_ttc = totals.total_ttc
        return doc

    def create_document(self, payload: Dict[str, Any]) -> Document:
        data = {k: v for k, v in dict(payload).items() if k not in _DERIVED_KEYS}
        if not data.get("lignes"):
            raise DocumentError("Au moins une ligne requise")
        try:
            doc = Document(**data)
        except ValidationError as e:
            raise DocumentError(f"Données invalides: {e}") from e

        if self.clients.get_by_id(doc.client_id) is None:
            raise NotFoundError("Client", doc.client_id)

        self.recalc_totals(doc)
        doc.numero, doc.serie_id = self.series.next_number(doc.type, doc.serie_id)
        self.repo.add(doc)
        logger.info("Document %s %s créé (TTC %s)", doc.type, doc.numero, doc.total_ttc)
        return doc

    def convert_quote_to_invoice(self, quote_id: str) -> Document:
        """
        Crée la facture d'un devis accepté : lignes recopiées, numéro
        attribué par la série des factures, lien devis_id conservé.
        """
        devis = self.get_by_id(quote_id)
        if devis is None:
            raise NotFoundError("Devis", quote_id)
        if devis.type != "DEVIS":
            raise DocumentError("Ce document n'est pas un devis")
        if devis.statut != "ACCEPTE":
            raise DocumentError("Seuls les devis acceptés peuvent être convertis en facture")
        if self.repo.find(lambda d: d.get("devis_id") == devis.id):
            raise DocumentError("Ce devis a déjà été converti en facture")

        facture = Document(
            type="FACTURE",
            statut="ENVOYE",
            client_id=devis.client_id,
            devis_id=devis.id,
            date_echeance=devis.date_echeance,
            validite_jours=devis.validite_jours,
            notes=devis.notes,
            conditions_paiement=devis.conditions_paiement,
            lignes=[ln.model_copy() for ln in devis.lignes],
        )
        self.recalc_totals(facture)
        facture.numero, facture.serie_id = self.series.next_number("FACTURE")
        self.repo.add(facture)
        logger.info("Devis %s converti en facture %s", devis.numero, facture.numero)
        return facture

    def update_statut(self, document_id: str, statut: DocumentStatut) -> Document:
        doc = self.get_by_id(document_id)
        if doc is None:
            raise NotFoundError("Document", document_id)
        doc.statut = statut
        doc.touch()
        self.repo.update(doc)
        return doc

    def delete_document(self, document_id: str) -> bool:
        return self.repo.delete(document_id)
