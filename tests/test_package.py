import importlib

import pytest

import polydoc


def test_exported_names_resolve_to_their_modules():
    from polydoc.repository import DocumentRepository
    from polydoc.type_map import TypeMap

    assert polydoc.DocumentRepository is DocumentRepository
    assert polydoc.TypeMap is TypeMap
    assert "DocumentRepository" in vars(polydoc)


def test_submodules_load_on_access():
    assert polydoc.search_options is importlib.import_module("polydoc.search_options")


def test_unknown_names():
    with pytest.raises(AttributeError):
        polydoc.Collection


def test_dir_lists_exports_and_submodules():
    names = dir(polydoc)

    assert {"TransactionalRepository", "run_in_transaction", "schema", "repository"} <= set(names)
