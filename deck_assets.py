"""
deck_assets.py

Everything around the packer that touches text files or pixels:
- deck list parsing ("2 Ant Queen", "2x Ant Queen", "Ant Queen")
- resolving card names to image files in an assets directory
- loading images (local paths or http(s) URLs)
- rendering packed sheets as PNG sprite sheets
"""

from __future__ import annotations

import io
import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import requests
from PIL import Image

from deck_packing import CardRequest, DeckObject

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")
DEFAULT_CARD_SIZE = (744, 1039)
DEFAULT_COLUMNS = 10


# ----------------------------
# Deck list parsing
# ----------------------------

class DeckListError(ValueError):
    def __init__(self, problems: List[Tuple[int, str]]):
        self.problems = problems
        lines = [f"line {ln}: {msg}" for ln, msg in problems]
        super().__init__("Invalid deck list:\n" + "\n".join(lines))


# "2 Name" or "2x Name"; the x must touch the count so a card called "X" still parses.
_COUNT_RE = re.compile(r"^(-?\d+)[xX]?\s+(.+)$")
_BARE_COUNT_RE = re.compile(r"^-?\d+[xX]?$")


def parse_deck_list(text: str) -> List[CardRequest]:
    out: List[CardRequest] = []
    problems: List[Tuple[int, str]] = []

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#") or line.startswith("//"):
            continue

        m = _COUNT_RE.match(line)
        if m is not None:
            count, name = int(m.group(1)), m.group(2).strip()
        elif _BARE_COUNT_RE.match(line):
            count, name = int(line.rstrip("xX")), ""
        else:
            count, name = 1, line

        if count < 0:
            problems.append((line_no, f"negative card count {count}"))
            continue
        if not name:
            problems.append((line_no, f"missing card name after count in '{line}'"))
            continue

        out.append(CardRequest(asset_id=name, count=count, position=len(out)))

    if problems:
        raise DeckListError(problems)
    return out


def parse_deck_file(path: Path) -> List[CardRequest]:
    return parse_deck_list(path.read_text(encoding="utf-8-sig"))


# ----------------------------
# Asset registry
# ----------------------------

def normalize_asset_id(name: str) -> str:
    """Image files are named after the card with spaces dropped ('Ant Queen' -> 'AntQueen.png')."""
    return name.replace(" ", "").replace("ä", "a")


@dataclass(frozen=True)
class AssetInfo:
    asset_id: str
    path: Path
    width: int
    height: int
    order: int


class AssetRegistry(Mapping):
    """Read-only asset_id -> AssetInfo, iterated in discovery order."""

    def __init__(self, assets: Iterable[AssetInfo] = ()):
        self._assets: Dict[str, AssetInfo] = {}
        for info in assets:
            self._assets.setdefault(info.asset_id, info)

    def __getitem__(self, asset_id: str) -> AssetInfo:
        return self._assets[asset_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._assets)

    def __len__(self) -> int:
        return len(self._assets)

    def __repr__(self) -> str:
        return f"AssetRegistry({list(self._assets)!r})"


def find_asset_file(asset_id: str, assets_dir: Path, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> Optional[Path]:
    stems = [asset_id]
    normalized = normalize_asset_id(asset_id)
    if normalized != asset_id:
        stems.append(normalized)

    for stem in stems:
        for ext in extensions:
            p = assets_dir / f"{stem}{ext}"
            if p.is_file():
                return p
    return None


def resolve_assets(
    asset_ids: Iterable[str],
    assets_dir: Path,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> AssetRegistry:
    found: List[AssetInfo] = []
    seen = set()
    for asset_id in asset_ids:
        if asset_id in seen:
            continue
        seen.add(asset_id)

        p = find_asset_file(asset_id, assets_dir, extensions)
        if p is None:
            logger.info("No image for '%s' in %s", asset_id, assets_dir)
            continue

        with Image.open(p) as im:
            w, h = im.size
        found.append(AssetInfo(asset_id=asset_id, path=p, width=w, height=h, order=len(found)))

    return AssetRegistry(found)


def default_card_size(registry: AssetRegistry) -> Tuple[int, int]:
    """Size of the first image found, so sheets keep the source resolution."""
    if not len(registry):
        return DEFAULT_CARD_SIZE
    first = min(registry.values(), key=lambda info: info.order)
    return first.width, first.height


# ----------------------------
# Image loading
# ----------------------------

def is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def download_bytes(url: str, timeout: int = 25) -> Tuple[bytes, str]:
    r = requests.get(url, timeout=timeout, headers={"User-Agent": "tts-deck-builder/1.0"})
    r.raise_for_status()
    ctype = r.headers.get("Content-Type", "").split(";")[0].strip().lower()
    return r.content, ctype


def pil_from_bytes(data: bytes) -> Image.Image:
    im = Image.open(io.BytesIO(data))
    if im.mode in ("RGBA", "LA", "P"):
        im = im.convert("RGBA")
        bg = Image.new("RGBA", im.size, (255, 255, 255, 255))
        bg.alpha_composite(im)
        im = bg.convert("RGB")
    else:
        im = im.convert("RGB")
    return im


def load_image(source: str) -> Image.Image:
    if is_url(source):
        data, _ = download_bytes(source)
    else:
        data = Path(source).read_bytes()
    return pil_from_bytes(data)


# ----------------------------
# Sprite sheet rendering
# ----------------------------

def sheet_grid(count: int, columns: int) -> Tuple[int, int]:
    if columns < 1:
        raise ValueError(f"Sheet needs at least one column, got {columns}.")
    rows = max(1, math.ceil(count / columns))
    return columns, rows


def render_sheets(
    deck: DeckObject,
    registry: AssetRegistry,
    out_dir: Path,
    card_size: Tuple[int, int] = DEFAULT_CARD_SIZE,
    columns: int = DEFAULT_COLUMNS,
) -> List[Tuple[Path, int, int, int]]:
    """
    Paste every sheet's images in slot order, left-to-right then top-to-bottom.

    Returns (sheet_path, num_width, num_height, count_on_sheet) per sheet.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    card_w, card_h = card_size

    sheets: List[Tuple[Path, int, int, int]] = []
    for sheet in deck.sheets:
        cols, rows = sheet_grid(len(sheet.assets_in_order), columns)
        img = Image.new("RGB", (cols * card_w, rows * card_h), (255, 255, 255))

        for slot, asset_id in enumerate(sheet.assets_in_order):
            with Image.open(registry[asset_id].path) as src:
                face = src.convert("RGB")
            if face.size != (card_w, card_h):
                face = face.resize((card_w, card_h), resample=Image.LANCZOS)
            img.paste(face, ((slot % cols) * card_w, (slot // cols) * card_h))

        sheet_path = out_dir / f"deck_{sheet.sheet_index + 1:02d}.png"
        img.save(sheet_path, format="PNG")
        logger.info("Rendered %s (%d images, %dx%d grid)", sheet_path, len(sheet.assets_in_order), cols, rows)
        sheets.append((sheet_path, cols, rows, len(sheet.assets_in_order)))

    return sheets
