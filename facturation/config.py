# facturation/config.py
from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

# --- Chemins de base ---
ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_DIR = ROOT_DIR / "data"
SETTINGS_FILENAME = "settings.json"


def data_dir(override: Optional[os.PathLike | str] = None) -> Path:
    """
    Répertoire des fichiers JSON :
    - argument explicite
    - variable d'env FACTURATION_DATA_DIR
    - <projet>/data
    """
    if override:
        base = Path(override)
    else:
        env = os.environ.get("FACTURATION_DATA_DIR")
        base = Path(env) if env else DEFAULT_DATA_DIR
    base.mkdir(parents=True, exist_ok=True)
    return base


class CompanySettings(BaseModel):
    """Paramètres de l'entreprise utilisés pour la numérotation sans série."""
    nom_entreprise: str = "Mon Entreprise"
    prefixe_devis: str = "DEV"
    prefixe_facture: str = "FACT"
    prefixe_avoir: str = "AV"
    prochain_numero_devis: int = 1
    prochain_numero_facture: int = 1
    prochain_numero_avoir: int = 1

    class Config:
        extra = "ignore"  # tolère d'anciennes clés dans le JSON


def settings_path(base: Optional[os.PathLike | str] = None) -> Path:
    return data_dir(base) / SETTINGS_FILENAME


def load_settings(base: Optional[os.PathLike | str] = None) -> CompanySettings:
    p = settings_path(base)
    if not p.exists():
        return CompanySettings()
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
        return CompanySettings(**(raw if isinstance(raw, dict) else {}))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("settings.json illisible (%s), valeurs par défaut utilisées", e)
        return CompanySettings()


def save_settings(settings: CompanySettings, base: Optional[os.PathLike | str] = None) -> None:
    p = settings_path(base)
    p.write_text(
        json.dumps(settings.model_dump(mode="json"), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
