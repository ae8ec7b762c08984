"""
Category repository maintaining the materialized path invariant.

A node's path is the slash-joined slugs from the root down to it. Saving a
node recomputes its path and, when the slug or parent changed, the paths of
its whole subtree.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_sync.models.database import CategoryProviderRefTable, CategoryTable
from catalog_sync.models.domain import CategoryProviderRef, CategoryRecord
from catalog_sync.repositories.base import BaseRepository, RepositoryError


class CategoryRepository(BaseRepository[CategoryRecord]):
    """Repository for the canonical category tree"""

    def __init__(self, session: Session) -> None:
        super().__init__(session, CategoryTable, CategoryRecord)

    def save(self, category: CategoryRecord) -> CategoryRecord:
        """
        Insert or update a category and keep paths consistent.

        Args:
            category: Category value; ``id`` None means insert

        Returns:
            The stored category with id and recomputed path

        Raises:
            RepositoryError: If the parent does not exist or the write fails
        """
        parent_row = None
        if category.parent_id is not None:
            parent_row = self.session.get(CategoryTable, category.parent_id)
            if parent_row is None:
                raise RepositoryError(f"Parent category {category.parent_id} not found")

        if category.id is None:
            row = CategoryTable()
            self.session.add(row)
            structure_changed = False
        else:
            row = self.session.get(CategoryTable, category.id)
            if row is None:
                raise RepositoryError(f"Category {category.id} not found")
            structure_changed = (
                row.slug != category.slug or row.parent_id != category.parent_id
            )
            if category.parent_id is not None and self._is_descendant(
                category.parent_id, row.id
            ):
                raise RepositoryError(
                    f"Category {row.id} cannot be moved under its own descendant"
                )

        row.provider = category.provider
        row.external_id = category.external_id
        row.provider_slug = category.provider_slug
        row.name = category.name
        row.name_en = category.name_en
        row.slug = category.slug
        row.parent = parent_row
        row.sort_order = category.sort_order
        row.visible = category.visible
        row.path = self._compose_path(parent_row, row.slug)

        self._flush("save category", slug=category.slug)

        if structure_changed:
            updated = self._refresh_descendant_paths(row)
            self.logger.info(
                "Category subtree paths recomputed",
                category_id=row.id,
                path=row.path,
                descendants_updated=updated,
            )
            self._flush("recompute category paths", category_id=row.id)

        return self._to_domain_model(row)

    def find_by_external_id(
        self, external_id: str, parent_id: Optional[int]
    ) -> Optional[CategoryRecord]:
        """Find a category by provider id under the given parent"""
        return self._find_first(CategoryTable.external_id == external_id, parent_id)

    def find_by_provider_slug(
        self, provider_slug: str, parent_id: Optional[int]
    ) -> Optional[CategoryRecord]:
        """Find a category by provider slug under the given parent"""
        return self._find_first(CategoryTable.provider_slug == provider_slug, parent_id)

    # ------------------------------------------------------------------
    # Provider references
    # ------------------------------------------------------------------

    def find_by_provider_ref(
        self, provider: str, external_id: str, parent_id: Optional[int]
    ) -> Optional[CategoryRecord]:
        """Find the category a provider knows by this id, under the given parent"""
        return self._find_by_ref(
            CategoryProviderRefTable.provider == provider,
            CategoryProviderRefTable.external_id == external_id,
            parent_id=parent_id,
        )

    def find_by_provider_ref_slug(
        self, provider: str, provider_slug: str, parent_id: Optional[int]
    ) -> Optional[CategoryRecord]:
        """Find the category a provider knows by this slug, under the given parent"""
        return self._find_by_ref(
            CategoryProviderRefTable.provider == provider,
            CategoryProviderRefTable.provider_slug == provider_slug,
            parent_id=parent_id,
        )

    def save_provider_ref(self, ref: CategoryProviderRef) -> CategoryProviderRef:
        """
        Point a provider id at a canonical category.

        A provider id maps to one category; saving it again moves the
        reference and refreshes the provider slug.
        """
        try:
            row = self.session.execute(
                select(CategoryProviderRefTable).where(
                    CategoryProviderRefTable.provider == ref.provider,
                    CategoryProviderRefTable.external_id == ref.external_id,
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to look up category reference: {e}", e) from e

        if row is None:
            row = CategoryProviderRefTable(provider=ref.provider, external_id=ref.external_id)
            self.session.add(row)
        row.category_id = ref.category_id
        row.provider_slug = ref.provider_slug

        self._flush(
            "save category reference",
            provider=ref.provider,
            external_id=ref.external_id,
            category_id=ref.category_id,
        )
        return self._ref_to_domain(row)

    def list_provider_refs(self, provider: str) -> list[CategoryProviderRef]:
        """A provider's references in insertion order"""
        try:
            query = (
                select(CategoryProviderRefTable)
                .where(CategoryProviderRefTable.provider == provider)
                .order_by(CategoryProviderRefTable.id)
            )
            rows = self.session.execute(query).scalars().all()
            return [self._ref_to_domain(row) for row in rows]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list category references: {e}", e) from e

    def list_for_provider(self, provider: str) -> list[CategoryRecord]:
        """
        The whole tree as one provider sees it.

        ``external_id`` and ``provider_slug`` carry the provider's first
        reference to each category. Categories only other providers refer to
        carry neither; categories nobody refers to keep their stored values.
        The result is a read-only view and must not be saved back.
        """
        own: dict[int, CategoryProviderRef] = {}
        for ref in self.list_provider_refs(provider):
            own.setdefault(ref.category_id, ref)

        try:
            referenced = set(
                self.session.execute(select(CategoryProviderRefTable.category_id).distinct())
                .scalars()
                .all()
            )
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list category references: {e}", e) from e

        view = []
        for category in self.list_all():
            ref = own.get(category.id)
            if ref is not None:
                category = category.model_copy(
                    update={"external_id": ref.external_id, "provider_slug": ref.provider_slug}
                )
            elif category.id in referenced:
                category = category.model_copy(update={"external_id": None, "provider_slug": None})
            view.append(category)
        return view

    def _find_by_ref(self, *clauses, parent_id: Optional[int]) -> Optional[CategoryRecord]:
        try:
            query = (
                select(CategoryTable)
                .join(CategoryProviderRefTable, CategoryProviderRefTable.category_id == CategoryTable.id)
                .where(*clauses, self._parent_clause(parent_id))
                .order_by(CategoryProviderRefTable.id)
                .limit(1)
            )
            row = self.session.execute(query).scalar_one_or_none()
            return self._to_domain_model(row) if row is not None else None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to look up category by reference: {e}", e) from e

    @staticmethod
    def _ref_to_domain(row: CategoryProviderRefTable) -> CategoryProviderRef:
        return CategoryProviderRef(
            id=row.id,
            category_id=row.category_id,
            provider=row.provider,
            external_id=row.external_id,
            provider_slug=row.provider_slug,
        )

    # ------------------------------------------------------------------
    # Tree queries
    # ------------------------------------------------------------------

    def list_children(self, parent_id: Optional[int]) -> list[CategoryRecord]:
        """List categories directly under the parent (roots when None)"""
        try:
            query = select(CategoryTable).where(self._parent_clause(parent_id))
            rows = self.session.execute(query.order_by(CategoryTable.id)).scalars().all()
            return [self._to_domain_model(row) for row in rows]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list child categories: {e}", e) from e

    def slug_exists(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        """Check whether a slug is already taken by another category"""
        try:
            query = select(CategoryTable.id).where(CategoryTable.slug == slug)
            if exclude_id is not None:
                query = query.where(CategoryTable.id != exclude_id)
            return self.session.execute(query.limit(1)).first() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to check category slug: {e}", e) from e

    def _find_first(self, clause, parent_id: Optional[int]) -> Optional[CategoryRecord]:
        try:
            query = (
                select(CategoryTable)
                .where(clause, self._parent_clause(parent_id))
                .order_by(CategoryTable.id)
                .limit(1)
            )
            row = self.session.execute(query).scalar_one_or_none()
            return self._to_domain_model(row) if row is not None else None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to look up category: {e}", e) from e

    @staticmethod
    def _parent_clause(parent_id: Optional[int]):
        if parent_id is None:
            return CategoryTable.parent_id.is_(None)
        return CategoryTable.parent_id == parent_id

    @staticmethod
    def _compose_path(parent_row: Optional[CategoryTable], slug: str) -> str:
        if parent_row is None or not parent_row.path:
            return slug
        return f"{parent_row.path}/{slug}"

    def _refresh_descendant_paths(self, row: CategoryTable) -> int:
        updated = 0
        pending = list(row.children)
        while pending:
            child = pending.pop()
            child.path = self._compose_path(child.parent, child.slug)
            updated += 1
            pending.extend(child.children)
        return updated

    def _is_descendant(self, candidate_id: int, ancestor_id: int) -> bool:
        node = self.session.get(CategoryTable, candidate_id)
        while node is not None:
            if node.id == ancestor_id:
                return True
            node = node.parent
        return False

    def _to_domain_model(self, db_entity: CategoryTable) -> CategoryRecord:
        return CategoryRecord(
            id=db_entity.id,
            provider=db_entity.provider,
            external_id=db_entity.external_id,
            provider_slug=db_entity.provider_slug,
            name=db_entity.name,
            name_en=db_entity.name_en,
            slug=db_entity.slug,
            path=db_entity.path,
            parent_id=db_entity.parent_id,
            sort_order=db_entity.sort_order or 0,
            visible=bool(db_entity.visible),
        )


__all__ = ["CategoryRepository"]
