"""
Persistance des entités de facturation : un tableau JSON par fichier
(series.json, documents.json, clients.json...), relu à chaque accès.
"""
from __future__ import annotations

import glob
import json
import logging
import shutil
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel

from facturation.models.common import gen_id

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Union[BaseModel, Mapping[str, Any]])
Row = Dict[str, Any]


def _json_default(o: Any) -> Any:
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    return str(o)


class JsonRepository(Generic[T]):
    """
    Un fichier JSON par entité, clé primaire configurable (`id` par défaut).
    - copie horodatée .bak.json avant chaque écriture, `backup_keep` conservées
    - écriture sautée quand le contenu sérialisé est identique
    - fichier illisible : copié en .corrupt.json, lu comme une liste vide
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        entity_name: str = "entity",
        key: str = "id",
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.filepath = Path(filepath)
        self.entity_name = entity_name
        self.key = key
        self._lock = threading.Lock()
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))

        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        if not self.filepath.exists():
            self._write_raw([])

    # ---------------- Fichier ---------------- #

    def _read_raw(self) -> List[Row]:
        try:
            with self.filepath.open("r", encoding="utf-8") as f:
                rows = json.load(f)
        except FileNotFoundError:
            return []
        except json.JSONDecodeError:
            quarantine = self.filepath.with_suffix(".corrupt.json")
            logger.warning("%s: JSON illisible, copie vers %s", self.filepath, quarantine)
            try:
                shutil.copy2(self.filepath, quarantine)
            except OSError:
                logger.exception("Copie de %s impossible", self.filepath)
            return []
        return rows if isinstance(rows, list) else []

    def _rotate_backups(self) -> None:
        if not self.backup_enabled or self.backup_keep <= 0:
            return
        # noms horodatés : l'ordre alphabétique suit l'ordre chronologique
        backups = sorted(glob.glob(str(self.filepath.with_suffix(".*.bak.json"))))
        excess = len(backups) - self.backup_keep
        for old in backups[: max(0, excess)]:
            Path(old).unlink(missing_ok=True)

    def _write_raw(self, rows: Iterable[Mapping[str, Any]]) -> None:
        payload = json.dumps(list(rows), ensure_ascii=False, indent=2, default=_json_default)
        with self._lock:
            exists = self.filepath.exists()
            if exists and self.filepath.read_text(encoding="utf-8") == payload:
                return
            if exists and self.backup_enabled:
                stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
                shutil.copy2(self.filepath, self.filepath.with_suffix(f".{stamp}.bak.json"))
                self._rotate_backups()
            self.filepath.write_text(payload, encoding="utf-8")

    # ---------------- Conversion ---------------- #

    @staticmethod
    def _to_dict(item: T) -> Row:
        if isinstance(item, BaseModel):
            return item.model_dump(mode="json")
        return dict(item)

    def _matches(self, row: Mapping[str, Any], value: Any) -> bool:
        return str(row.get(self.key)) == str(value)

    # ---------------- Lecture ---------------- #

    def list_all(self) -> List[Row]:
        return self._read_raw()

    def get_by_id(self, obj_id: Any) -> Optional[Row]:
        return next((r for r in self._read_raw() if self._matches(r, obj_id)), None)

    def find(self, predicate: Callable[[Row], bool]) -> List[Row]:
        return [r for r in self._read_raw() if predicate(r)]

    # ---------------- Écriture ---------------- #

    def add(self, item: T) -> Row:
        record = self._to_dict(item)
        record[self.key] = record.get(self.key) or gen_id()
        rows = self._read_raw()
        if any(self._matches(r, record[self.key]) for r in rows):
            raise ValueError(f"{self.entity_name} {self.key}={record[self.key]} existe déjà")
        rows.append(record)
        self._write_raw(rows)
        return record

    def update(self, item: T) -> Row:
        """Fusionne `item` dans la ligne existante de même clé."""
        record = self._to_dict(item)
        obj_id = record.get(self.key)
        if not obj_id:
            raise ValueError(f"{self.entity_name}: mise à jour sans '{self.key}'")
        rows = self._read_raw()
        for idx, row in enumerate(rows):
            if self._matches(row, obj_id):
                rows[idx] = {**row, **record}
                self._write_raw(rows)
                return rows[idx]
        raise ValueError(f"{self.entity_name} {self.key}={obj_id} introuvable")

    def delete(self, obj_id: Any) -> bool:
        rows = self._read_raw()
        kept = [r for r in rows if not self._matches(r, obj_id)]
        if len(kept) == len(rows):
            return False
        self._write_raw(kept)
        return True
