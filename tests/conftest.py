import pytest


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    # aucun service ne doit écrire dans <projet>/data pendant les tests
    monkeypatch.setenv("FACTURATION_DATA_DIR", str(tmp_path))
    return tmp_path
