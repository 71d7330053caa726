import json

import pytest

from injection_rotation.models.enums import BodyView, InjectionType
from injection_rotation.models.injection import Site
from injection_rotation.services.catalog import SiteCatalog, default_catalog, load_catalog


def test_default_catalog_has_both_types():
    catalog = default_catalog()
    assert len(catalog) == 8
    assert [s.id for s in catalog.by_type(InjectionType.SUBQ)] == ["abd-left", "abd-right", "arm-left", "arm-right"]
    assert [s.id for s in catalog.by_type("im")] == ["thigh-left", "thigh-right", "glute-left", "glute-right"]


def test_lookup_and_labels():
    catalog = default_catalog()
    assert "glute-left" in catalog
    assert "elbow" not in catalog
    assert catalog.get("abd-left").view == BodyView.FRONT
    assert catalog.label_for("abd-left") == "Abdomen (Left)"
    assert catalog.label_for("elbow") == "elbow"


def test_duplicate_ids_rejected():
    site = Site(id="A", type=InjectionType.SUBQ, view=BodyView.FRONT, label="A")
    with pytest.raises(ValueError):
        SiteCatalog([site, site])


def test_load_catalog_from_file(tmp_path):
    path = tmp_path / "sites.json"
    path.write_text(
        json.dumps(
            [
                {"id": "delt-left", "type": "im", "view": "front", "label": "Deltoid (Left)", "muscle": "Deltoid"},
                {"id": "abd-left", "type": "subq", "view": "front", "label": "Abdomen (Left)"},
            ]
        ),
        encoding="utf-8",
    )
    catalog = load_catalog(path)
    assert [s.id for s in catalog] == ["delt-left", "abd-left"]
    assert catalog.get("delt-left").muscle == "Deltoid"


def test_load_catalog_without_path_uses_defaults():
    assert len(load_catalog(None)) == 8


def test_invalid_catalog_file(tmp_path):
    path = tmp_path / "sites.json"
    path.write_text(json.dumps([{"id": "x", "type": "intravenous", "view": "front", "label": "X"}]), encoding="utf-8")
    with pytest.raises(RuntimeError, match="Invalid site catalog"):
        load_catalog(path)
