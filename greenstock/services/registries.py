from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Literal, Optional, TypeVar

from greenstock.errors import DuplicateCodeError, ValidationError
from greenstock.models import ProductEntity, RegistryEntity, ServiceEntity
from greenstock.utils import is_valid_code, new_id

Entity = TypeVar("Entity", RegistryEntity, ProductEntity, ServiceEntity)

OnDuplicate = Literal["ask", "overwrite"]


def _normalize(entity: Entity) -> Entity:
    return replace(entity, id=entity.id or new_id(), code=str(entity.code).strip(), name=str(entity.name).strip())


def save_entity(
    entities: Iterable[Entity],
    entity: Entity,
    *,
    on_duplicate: OnDuplicate = "ask",
) -> list[Entity]:
    """
    Create or overwrite (by id) one registry record.

    Codes are exactly 3 digits and unique within the list. When another
    record already holds the code:
      - on_duplicate="ask": raise DuplicateCodeError carrying that record
      - on_duplicate="overwrite": replace that record in place, keeping its id
    """
    entity = _normalize(entity)
    if not is_valid_code(entity.code):
        raise ValidationError("Code must have exactly 3 digits.", field="code")
    if not entity.name:
        raise ValidationError("Name is required.", field="name")

    entities = list(entities)
    clash = next((e for e in entities if e.code == entity.code and e.id != entity.id), None)
    if clash is not None:
        if on_duplicate != "overwrite":
            raise DuplicateCodeError(clash)
        # The clashing record takes the new data; a stale copy under the old id goes away
        entities = [e for e in entities if e.id != entity.id]
        entity = replace(entity, id=clash.id)

    for i, e in enumerate(entities):
        if e.id == entity.id:
            entities[i] = entity
            return entities
    return entities + [entity]


def delete_entity(entities: Iterable[Entity], entity_id: str) -> Optional[list[Entity]]:
    entities = list(entities)
    kept = [e for e in entities if e.id != entity_id]
    return kept if len(kept) != len(entities) else None


def find_by_code(entities: Iterable[Entity], code: str) -> Optional[Entity]:
    return next((e for e in entities if e.code == code), None)


def copy_as_client(supplier: RegistryEntity) -> RegistryEntity:
    """A client record with the supplier's data under a new id."""
    return replace(supplier, id=new_id(), address=replace(supplier.address))
