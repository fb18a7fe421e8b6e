from __future__ import annotations

import logging
import os
import re
from typing import Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from facturation import config
from facturation.errors import CategoryError, NotFoundError
from facturation.models.catalog import Article, Category, CategoryNode, CustomField
from facturation.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_REF_PREFIX = {"PRODUIT": "ART", "SERVICE": "SER"}
_REF_RE = re.compile(r"^(?:ART|SER)-(\d+)$")


# ----------------- Service Catalogue ----------------- #

class CatalogService:
    """
    Catégories (2 niveaux), modèles de champs par catégorie, articles.
    - Repos auto (data/categories.json, data/champs.json, data/articles.json)
    - Hydrate JSON -> modèles, ignore les lignes invalides
    """

    def __init__(self, data_dir: Optional[os.PathLike | str] = None) -> None:
        base = config.data_dir(data_dir)
        self.categories_repo = JsonRepository(base / "categories.json", entity_name="categorie", key="id")
        self.fields_repo = JsonRepository(base / "champs.json", entity_name="champ", key="id")
        self.articles_repo = JsonRepository(base / "articles.json", entity_name="article", key="id")

    # ---------- Helpers (hydratation objets) ---------- #

    @staticmethod
    def _hydrate_list(rows: List[Dict], model: Type[T]) -> List[T]:
        out: List[T] = []
        for d in rows:
            try:
                out.append(model(**d))
            except ValidationError:
                logger.warning("%s invalide ignoré: %s", model.__name__, d.get("id"))
        return out

    @staticmethod
    def _sort_key(c: Category) -> Tuple[int, str]:
        return c.ordre, c.nom.casefold()

    # ---------- Catégories ---------- #

    def list_categories(self) -> List[Category]:
        return self._hydrate_list(self.categories_repo.list_all(), Category)

    def get_category(self, category_id: str) -> Category:
        row = self.categories_repo.get_by_id(category_id)
        if row is None:
            raise NotFoundError("Catégorie", category_id)
        return Category(**row)

    def _check_parent(self, category: Category) -> None:
        if not category.parent_id:
            return
        if category.parent_id == category.id:
            raise CategoryError("Une catégorie ne peut pas être son propre parent")
        parent = self.get_category(category.parent_id)
        if parent.parent_id:
            raise CategoryError(
                "Impossible de créer une sous-sous-catégorie. "
                "La hiérarchie est limitée à 2 niveaux (catégorie et sous-catégorie)."
            )
        if self.children_of(category.id):
            raise CategoryError("Une catégorie ayant des sous-catégories ne peut pas devenir sous-catégorie")

    def children_of(self, category_id: str) -> List[Category]:
        return [c for c in self.list_categories() if c.parent_id == category_id]

    def add_category(self, category: Category) -> Category:
        self._check_parent(category)
        self.categories_repo.add(category)
        return category

    def update_category(self, category: Category) -> Category:
        self.get_category(category.id)
        self._check_parent(category)
        category.touch()
        self.categories_repo.update(category)
        return category

    def delete_category(self, category_id: str) -> bool:
        children = self.children_of(category_id)
        if children:
            raise CategoryError(
                f"Impossible de supprimer cette catégorie car elle contient {len(children)} sous-catégorie(s)"
            )
        articles = self.list_articles(category_id=category_id)
        if articles:
            raise CategoryError(
                f"Impossible de supprimer cette catégorie car elle contient {len(articles)} article(s)"
            )
        for f in self.list_fields(category_id):
            self.fields_repo.delete(f.id)
        return self.categories_repo.delete(category_id)

    def build_tree(self) -> List[CategoryNode]:
        cats = self.list_categories()
        ids = {c.id for c in cats}
        by_parent: Dict[str, List[Category]] = {}
        roots: List[Category] = []
        for c in cats:
            # parent disparu -> remonte à la racine
            if c.parent_id and c.parent_id in ids:
                by_parent.setdefault(c.parent_id, []).append(c)
            else:
                roots.append(c)
        return [
            CategoryNode(
                categorie=r,
                enfants=[CategoryNode(categorie=e) for e in sorted(by_parent.get(r.id, []), key=self._sort_key)],
            )
            for r in sorted(roots, key=self._sort_key)
        ]

    def flatten_tree(self) -> List[Tuple[int, Category]]:
        out: List[Tuple[int, Category]] = []
        for node in self.build_tree():
            out.append((0, node.categorie))
            out.extend((1, child.categorie) for child in node.enfants)
        return out

    # ---------- Champs personnalisés ---------- #

    def list_fields(self, category_id: str) -> List[CustomField]:
        rows = self.fields_repo.find(lambda d: d.get("categorie_id") == category_id)
        return sorted(self._hydrate_list(rows, CustomField), key=lambda f: f.ordre)

    def add_field(self, field: CustomField) -> CustomField:
        self.get_category(field.categorie_id)
        if any(f.code == field.code for f in self.list_fields(field.categorie_id)):
            raise CategoryError("Un champ avec ce code existe déjà pour cette catégorie")
        self.fields_repo.add(field)
        return field

    def update_field(self, field: CustomField) -> CustomField:
        if any(f.code == field.code and f.id != field.id for f in self.list_fields(field.categorie_id)):
            raise CategoryError("Un champ avec ce code existe déjà pour cette catégorie")
        self.fields_repo.update(field)
        return field

    def delete_field(self, field_id: str) -> bool:
        return self.fields_repo.delete(field_id)

    # ---------- Articles ---------- #

    def list_articles(self, active_only: bool = False, category_id: Optional[str] = None) -> List[Article]:
        out = self._hydrate_list(self.articles_repo.list_all(), Article)
        if active_only:
            out = [a for a in out if a.actif]
        if category_id:
            out = [a for a in out if a.categorie_id == category_id]
        return out

    def get_article(self, article_id: str) -> Article:
        row = self.articles_repo.get_by_id(article_id)
        if row is None:
            raise NotFoundError("Article", article_id)
        return Article(**row)

    def _next_reference(self, article: Article) -> str:
        prefix = _REF_PREFIX[article.type]
        max_n = 0
        for a in self.list_articles():
            m = _REF_RE.match(a.reference or "")
            if m and (a.reference or "").startswith(prefix):
                max_n = max(max_n, int(m.group(1)))
        return f"{prefix}-{max_n + 1:05d}"

    def add_article(self, article: Article) -> Article:
        if article.categorie_id:
            self.get_category(article.categorie_id)
        if not article.reference:
            article.reference = self._next_reference(article)
        self.articles_repo.add(article)
        return article

    def update_article(self, article: Article) -> Article:
        self.get_article(article.id)
        article.touch()
        self.articles_repo.update(article)
        return article

    def delete_article(self, article_id: str) -> bool:
        return self.articles_repo.delete(article_id)
