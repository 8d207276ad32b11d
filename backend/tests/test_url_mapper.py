from pathlib import Path

from xrpic.infra.storage.url_mapper import UrlPathMapper


def _mapper(tmp_path: Path) -> UrlPathMapper:
    return UrlPathMapper(upload_dir=tmp_path, base_url="https://img.example.com")


def test_to_url(tmp_path: Path):
    assert _mapper(tmp_path).to_url("2024/01", "abc.png") == "https://img.example.com/2024/01/abc.png"


def test_round_trip(tmp_path: Path):
    mapper = _mapper(tmp_path)
    url = mapper.to_url("2024/01", "abc.png")

    assert mapper.to_path(url) == tmp_path / "2024" / "01" / "abc.png"


def test_foreign_url_maps_to_unmatchable_path(tmp_path: Path):
    mapper = _mapper(tmp_path)
    path = mapper.to_path("https://elsewhere.example.com/2024/01/abc.png")

    assert not path.exists()
    assert str(path).startswith(str(tmp_path))


def test_contains_rejects_traversal_and_root(tmp_path: Path):
    mapper = _mapper(tmp_path / "uploads")

    assert mapper.contains(mapper.to_path("https://img.example.com/2024/01/a.png"))
    assert not mapper.contains(mapper.to_path("https://img.example.com/../secret.txt"))
    assert not mapper.contains(mapper.to_path("https://img.example.com/2024/../../x"))
    assert not mapper.contains(mapper.to_path("https://img.example.com/"))
