import pytest

from facturation.models.numbering import Serie
from facturation.storage.json_repo import JsonRepository


def test_crud(tmp_path):
    repo = JsonRepository(tmp_path / "series.json", entity_name="serie")
    rec = repo.add(Serie(code="A", nom="A"))
    assert repo.get_by_id(rec["id"])["code"] == "A"
    with pytest.raises(ValueError):
        repo.add(rec)

    repo.update({"id": rec["id"], "nom": "Renommée"})
    assert repo.get_by_id(rec["id"])["code"] == "A"
    assert repo.get_by_id(rec["id"])["nom"] == "Renommée"

    assert repo.delete(rec["id"])
    assert not repo.delete(rec["id"])
    with pytest.raises(ValueError):
        repo.update({"id": rec["id"]})


def test_backups_are_rotated(tmp_path):
    repo = JsonRepository(tmp_path / "items.json", backup_keep=2)
    for i in range(5):
        repo.add({"id": str(i)})
    assert len(list(tmp_path.glob("items.*.bak.json"))) == 2
    assert len(repo.list_all()) == 5


def test_corrupt_file_is_quarantined(tmp_path):
    path = tmp_path / "items.json"
    path.write_text("{pas du json", encoding="utf-8")
    repo = JsonRepository(path)
    assert repo.list_all() == []
    assert (tmp_path / "items.corrupt.json").exists()
