import pytest
import importlib

def test_imports():
    """Verify that critical modules can be imported without error."""
    modules_to_test = [
        "core",
        "core.engine",
        "loaders",
        "tools",
    ]
    
    for module_name in modules_to_test:
        try:
            importlib.import_module(module_name)
        except Exception as e:
            pytest.fail(f"Failed to import {module_name}: {e}")

def test_loaders_import_before_core():
    """Importing loaders first must not trip over the core <-> loaders dependency."""
    loaders = importlib.import_module("loaders")
    engine = importlib.import_module("core.engine")
    assert loaders.SpectralReadingSynthesizer is engine.SpectralReadingSynthesizer
