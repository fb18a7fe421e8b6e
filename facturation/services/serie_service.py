from __future__ import annotations
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from facturation import config
from facturation.errors import SerieError, SerieNotFoundError
from facturation.models.numbering import DEFAULT_FORMAT, DocumentType, Format, Serie
from facturation.services import format_engine
from facturation.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

# Séries prêtes à l'emploi proposées à la création
SERIE_TEMPLATES: List[Dict[str, Any]] = [
    {"code": "FACT", "nom": "Factures classiques", "format_numero": "{CODE}{NUM5}",
     "pour_devis": False, "pour_factures": True, "pour_avoirs": False},
    {"code": "DEV", "nom": "Devis simples", "format_numero": "{CODE}{NUM5}",
     "pour_devis": True, "pour_factures": False, "pour_avoirs": False},
    {"code": "DOC", "nom": "Tout-en-un", "format_numero": "{CODE}-{YEAR}-{NUM5}",
     "pour_devis": True, "pour_factures": True, "pour_avoirs": True},
    {"code": "FAN", "nom": "Factures par année", "format_numero": "{CODE}-{YEAR}-{NUM5}",
     "pour_devis": False, "pour_factures": True, "pour_avoirs": False,
     "reset_compteur": "ANNUEL"},
]

_DEFAULT_FLAG = {
    "DEVIS": "est_defaut_devis",
    "FACTURE": "est_defaut_factures",
    "AVOIR": "est_defaut_avoirs",
}

# numérotation sans série : (préfixe, compteur) dans settings.json
_FALLBACK_FIELDS = {
    "DEVIS": ("prefixe_devis", "prochain_numero_devis"),
    "FACTURE": ("prefixe_facture", "prochain_numero_facture"),
    "AVOIR": ("prefixe_avoir", "prochain_numero_avoir"),
}


def should_reset(serie: Serie, now: datetime) -> bool:
    if serie.reset_compteur == "AUCUN":
        return False
    if serie.derniere_reset is None:
        return True
    last = serie.derniere_reset
    if serie.reset_compteur == "ANNUEL":
        return last.year != now.year
    return (last.year, last.month) != (now.year, now.month)


class SerieService:
    def __init__(self, data_dir: Optional[os.PathLike | str] = None):
        self.base = config.data_dir(data_dir)
        self.repo = JsonRepository(self.base / "series.json", entity_name="serie", key="id")

    # ----------- lecture -----------
    def _hydrate_all(self) -> List[Serie]:
        out: List[Serie] = []
        for d in self.repo.list_all():
            try:
                out.append(Serie(**d))
            except ValidationError:
                logger.warning("Série invalide ignorée: %s", d.get("id"))
        return out

    def list_series(self, active_only: bool = False, document_type: Optional[DocumentType] = None) -> List[Serie]:
        out = self._hydrate_all()
        if active_only:
            out = [s for s in out if s.active]
        if document_type:
            out = [s for s in out if s.supports(document_type)]
        return sorted(out, key=lambda s: s.code)

    def get_by_id(self, serie_id: str) -> Optional[Serie]:
        d = self.repo.get_by_id(serie_id)
        if not d:
            return None
        try:
            return Serie(**d)
        except ValidationError:
            return None

    def find_default(self, document_type: DocumentType) -> Optional[Serie]:
        for s in self.list_series(active_only=True, document_type=document_type):
            if s.is_default_for(document_type):
                return s
        return None

    # ----------- écriture -----------
    def _check_code(self, serie: Serie) -> None:
        for other in self._hydrate_all():
            if other.id != serie.id and other.code == serie.code:
                raise SerieError(f"Une série avec le code {serie.code} existe déjà")

    def _clear_other_defaults(self, serie: Serie) -> None:
        # une seule série par défaut par type de document
        flags = [f for f in _DEFAULT_FLAG.values() if getattr(serie, f)]
        if not flags:
            return
        for other in self._hydrate_all():
            if other.id == serie.id:
                continue
            changed = {f: False for f in flags if getattr(other, f)}
            if changed:
                other = other.model_copy(update=changed)
                other.touch()
                self.repo.update(other)

    def add_serie(self, serie: Serie) -> Serie:
        self._check_code(serie)
        self.repo.add(serie)
        self._clear_other_defaults(serie)
        logger.info("Série %s créée (%s)", serie.code, serie.format_numero)
        return serie

    def add_from_template(self, index: int, **overrides: Any) -> Serie:
        data = {**SERIE_TEMPLATES[index], **overrides}
        return self.add_serie(Serie(**data))

    def update_serie(self, serie: Serie) -> Serie:
        if self.repo.get_by_id(serie.id) is None:
            raise SerieNotFoundError(serie.id)
        self._check_code(serie)
        self._clear_other_defaults(serie)
        serie.touch()
        self.repo.update(serie)
        return serie

    def update_format(self, serie_id: str, tokens: Format) -> Serie:
        serie = self.get_by_id(serie_id)
        if serie is None:
            raise SerieNotFoundError(serie_id)
        serie.format_numero = format_engine.build(format_engine.or_default(tokens))
        return self.update_serie(serie)

    def delete_serie(self, serie_id: str) -> bool:
        return self.repo.delete(serie_id)

    # ----------- numérotation -----------
    def preview_number(self, serie: Serie, document_type: DocumentType, when: Optional[datetime] = None) -> str:
        """Prochain numéro de la série, sans consommer le compteur."""
        when = when or datetime.now()
        counter = 1 if should_reset(serie, when) else serie.prochain_numero
        return format_engine.render_number(serie.format_numero, counter, serie.code, document_type, when)

    def next_number(
        self,
        document_type: DocumentType,
        serie_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[str, Optional[str]]:
        """
        Attribue le numéro du prochain document et incrémente le compteur.
        Série explicite, sinon série par défaut du type, sinon numérotation
        des paramètres entreprise. Retourne (numero, serie_id).
        """
        now = now or datetime.now()
        if serie_id:
            serie = self.get_by_id(serie_id)
            if serie is None:
                raise SerieNotFoundError(serie_id)
        else:
            serie = self.find_default(document_type)
            if serie is None:
                return self._next_fallback_number(document_type), None

        if not serie.active:
            raise SerieError(f"La série {serie.code} est désactivée")
        if not serie.supports(document_type):
            raise SerieError(f"La série {serie.code} ne supporte pas le type {document_type}")

        counter = serie.prochain_numero
        reset = should_reset(serie, now)
        if reset:
            counter = 1
            serie.derniere_reset = now
            logger.info("Compteur de la série %s réinitialisé (%s)", serie.code, serie.reset_compteur)

        numero = format_engine.render_number(serie.format_numero or DEFAULT_FORMAT, counter, serie.code, document_type, now)
        serie.prochain_numero = counter + 1
        serie.touch()
        self.repo.update(serie)
        logger.info("Numéro attribué %s (série %s)", numero, serie.code)
        return numero, serie.id

    def _next_fallback_number(self, document_type: DocumentType) -> str:
        settings = config.load_settings(self.base)
        prefix_field, counter_field = _FALLBACK_FIELDS[document_type]
        prefix = getattr(settings, prefix_field) or "DOC"
        seq = getattr(settings, counter_field) or 1
        numero = f"{prefix}{seq:05d}"
        setattr(settings, counter_field, seq + 1)
        config.save_settings(settings, self.base)
        logger.info("Numéro attribué %s (paramètres entreprise)", numero)
        return numero
