"""Tests for the profession catalog."""

from pathlib import Path

import pytest

from bitsettler.services.professions import (
    get_catalog,
    load_professions,
    profession_names,
    resolve_profession,
)


class TestBundledCatalog:
    def test_catalog_loads(self):
        catalog = get_catalog()

        assert len(catalog) == 18
        assert len({p.id for p in catalog}) == len(catalog)
        assert all(p.description for p in catalog)

    def test_names(self):
        names = profession_names()

        assert "Fishing" in names
        assert "Carpentry" in names

    @pytest.mark.parametrize("label", ["Fishing", "fishing", "  FISHING "])
    def test_resolve_any_case(self, label):
        assert resolve_profession(label) == "Fishing"

    @pytest.mark.parametrize("label", [None, "", "Juggling"])
    def test_resolve_unknown(self, label):
        assert resolve_profession(label) is None


class TestLoadProfessions:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_professions(tmp_path / "missing.yaml")

    def test_missing_list(self, tmp_path: Path):
        path = tmp_path / "professions.yaml"
        path.write_text("version: 1\n")

        with pytest.raises(ValueError, match="missing required list 'professions'"):
            load_professions(path)

    def test_entry_without_name(self, tmp_path: Path):
        path = tmp_path / "professions.yaml"
        path.write_text("professions:\n  - id: fishing\n")

        with pytest.raises(ValueError, match="needs an 'id' and a 'name'"):
            load_professions(path)

    def test_duplicate_name(self, tmp_path: Path):
        path = tmp_path / "professions.yaml"
        path.write_text(
            "professions:\n"
            "  - id: fishing\n    name: Fishing\n"
            "  - id: angling\n    name: fishing\n"
        )

        with pytest.raises(ValueError, match="duplicate profession 'angling'"):
            load_professions(path)

    def test_custom_catalog(self, tmp_path: Path):
        path = tmp_path / "professions.yaml"
        path.write_text("professions:\n  - id: weaving\n    name: Weaving\n")

        (profession,) = load_professions(path)

        assert profession.name == "Weaving"
        assert profession.description == ""
