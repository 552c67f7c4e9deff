"""
Resource binding store

Maps a project to the remote resource it syncs from: a Search Console site
url for gsc, a numeric property id for ga4.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seo_sync.errors import StorageError, UnsupportedProvider
from seo_sync.models.base import SessionLocal
from seo_sync.models.bindings import GscSite, Ga4Property
from seo_sync.providers import Provider
from seo_sync.utils.logger import log


@dataclass(frozen=True)
class ResourceBinding:
    project_id: int
    provider: Provider
    resource_id: str
    display_name: Optional[str] = None


BINDING_MODELS = {
    Provider.GSC: (GscSite, GscSite.site_url),
    Provider.GA4: (Ga4Property, Ga4Property.property_id),
}


def _binding_model(provider: Provider):
    try:
        return BINDING_MODELS[provider]
    except KeyError:
        raise UnsupportedProvider(f"{provider.value} has no resource bindings")


def _to_binding(provider: Provider, row) -> ResourceBinding:
    if provider == Provider.GSC:
        display_name = row.site_url
    else:
        display_name = row.property_name
    return ResourceBinding(
        project_id=row.project_id,
        provider=provider,
        resource_id=row.resource_id,
        display_name=display_name,
    )


class ResourceBindingStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def get(self, project_id: int, provider, resource_id: Optional[str] = None) -> Optional[ResourceBinding]:
        """
        Resolve the binding a sync should use.

        With ``resource_id`` the binding must match it exactly. Without it the
        project's earliest binding for the provider is used.
        """
        provider = Provider.parse(provider)
        model, key_column = _binding_model(provider)

        db = self.session_factory()
        try:
            query = db.query(model).filter(model.project_id == project_id)
            if resource_id is not None:
                query = query.filter(key_column == resource_id)
            row = query.order_by(model.id).first()
            return _to_binding(provider, row) if row else None
        finally:
            db.close()

    def list(self, project_id: int, provider) -> List[ResourceBinding]:
        provider = Provider.parse(provider)
        model, _ = _binding_model(provider)

        db = self.session_factory()
        try:
            rows = db.query(model).filter(model.project_id == project_id).order_by(model.id).all()
            return [_to_binding(provider, row) for row in rows]
        finally:
            db.close()

    def add(
        self,
        project_id: int,
        provider,
        resource_id: str,
        display_name: Optional[str] = None,
        permission_level: Optional[str] = None,
    ) -> ResourceBinding:
        """Bind a resource to a project; an existing binding is updated in place"""
        provider = Provider.parse(provider)
        model, key_column = _binding_model(provider)

        db = self.session_factory()
        try:
            row = (
                db.query(model)
                .filter(model.project_id == project_id, key_column == resource_id)
                .first()
            )
            if row is None:
                if provider == Provider.GSC:
                    row = GscSite(project_id=project_id, site_url=resource_id)
                else:
                    row = Ga4Property(project_id=project_id, property_id=resource_id)
                db.add(row)

            if provider == Provider.GSC:
                if permission_level:
                    row.permission_level = permission_level
            elif display_name:
                row.property_name = display_name

            db.commit()
            db.refresh(row)
            log.info(f"Bound {provider.value} resource {resource_id} to project {project_id}")
            return _to_binding(provider, row)
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Failed to bind {provider.value} resource for project {project_id}: {e}")
            raise StorageError("Could not store resource binding")
        finally:
            db.close()
