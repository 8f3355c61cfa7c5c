"""Tests for the command-line interface."""

import json
from dataclasses import asdict

import pytest

from conftest import BRANDS, CITIES, MODELS, example_listings
from marketsearch.main import build_request, create_argument_parser, main
from marketsearch.models import SortKey


@pytest.fixture
def fixture_file(tmp_path):
    path = tmp_path / "catalogue.json"
    path.write_text(json.dumps({
        "brands": [asdict(b) for b in BRANDS],
        "models": [asdict(m) for m in MODELS],
        "cities": [asdict(c) for c in CITIES],
        "listings": [l.to_dict() for l in example_listings()],
    }))
    return str(path)


def test_search_prints_results(fixture_file, capsys):
    exit_code = main(["airpods", "--fixture", fixture_file, "--brand", "apple", "--verified", "--sort", "price_asc"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Found 3 listing(s), page 1 of 1" in out
    assert out.index("ID: l3") < out.index("ID: l1") < out.index("ID: l2")
    assert "Brands: Apple (3), Samsung (1)" in out


def test_geo_search_prints_distance(fixture_file, capsys):
    exit_code = main(["--fixture", fixture_file, "--lat", "30.2672", "--lng", "-97.7431",
                      "--radius", "50", "--sort", "distance"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Round Rock, TX, USA (" in out
    assert "Dallas" not in out


def test_autocomplete(fixture_file, capsys):
    exit_code = main(["galaxy", "--fixture", fixture_file, "--autocomplete"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Samsung Galaxy Buds2" in out


def test_invalid_price_exits_with_error(fixture_file, capsys):
    exit_code = main(["--fixture", fixture_file, "--min-price", "cheap"])

    assert exit_code == 1
    assert "--min-price must be a number" in capsys.readouterr().err


def test_missing_store_exits_with_error(monkeypatch, capsys):
    monkeypatch.setattr("marketsearch.main.load_dotenv", lambda: None)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    assert main(["airpods"]) == 1
    assert "DATABASE_URL" in capsys.readouterr().err


def test_build_request():
    parser = create_argument_parser()

    request = build_request(parser.parse_args(["buds", "--city", "austin", "--city", "dallas", "--sort", "bogus"]))
    assert request.city_ids == ("austin", "dallas")
    assert request.sort is None

    request = build_request(parser.parse_args(["--near-city", "austin", "--radius", "25", "--sort", "price_desc"]))
    assert request.near_city_id == "austin"
    assert request.radius_km == 25
    assert request.sort == SortKey.PRICE_DESC

    request = build_request(parser.parse_args(["--lat", "30", "--lng", "-97", "--city", "austin"]))
    assert request.coordinates.radius_km == 10.0
    assert request.city_ids == ()
