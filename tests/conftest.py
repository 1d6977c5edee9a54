from pathlib import Path
from typing import Callable, Tuple

import pytest
from PIL import Image


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    """Write a solid-colour PNG and return its path."""

    def _make(name: str, size: Tuple[int, int] = (20, 28), color=(200, 0, 0), folder: str = "cards") -> Path:
        d = tmp_path / folder
        d.mkdir(parents=True, exist_ok=True)
        p = d / name
        Image.new("RGB", size, color).save(p)
        return p

    return _make


@pytest.fixture
def assets_dir(make_image: Callable[..., Path]) -> Path:
    """Card images for a small ant deck, plus the shared back."""
    make_image("AntQueen.png", color=(255, 0, 0))
    make_image("LMR.png", color=(0, 255, 0))
    make_image("DerangedResearcher.jpg", color=(0, 0, 255))
    return make_image("back.png", color=(10, 10, 10)).parent


@pytest.fixture
def sample_deck_list() -> str:
    return """# ants
2 Ant Queen
5x LMR

5 Deranged Researcher
"""
