import pytest

from tenantcore.core.exceptions import InvalidQueryError
from tenantcore.core.registry import ENTITY_SPECS, get_entity_spec


def test_unknown_entity_type():
    with pytest.raises(InvalidQueryError):
        get_entity_spec("spaceships")


def test_references_point_at_registered_types():
    for spec in ENTITY_SPECS.values():
        for field_name, target in spec.references.items():
            assert target in ENTITY_SPECS, f"{spec.name}.{field_name} -> {target}"


def test_every_tenant_foreign_key_is_a_checked_reference():
    """Each FK between tenant tables must be validated on write."""
    tables = {spec.model.__tablename__: spec.name for spec in ENTITY_SPECS.values()}

    for spec in ENTITY_SPECS.values():
        for column in spec.model.__table__.columns:
            for foreign_key in column.foreign_keys:
                target_table = foreign_key.column.table.name
                if target_table not in tables:
                    continue
                assert spec.references.get(column.name) == tables[target_table], f"{spec.name}.{column.name}"


def test_dependency_edges_match_references():
    for parent in ENTITY_SPECS.values():
        for edge in parent.dependencies:
            child = next(spec for spec in ENTITY_SPECS.values() if spec.model is edge.model)
            assert child.references.get(edge.foreign_key) == parent.name, f"{parent.name} -> {edge.name}"
