"""
tts_save.py

DeckObject -> Tabletop Simulator saved object.

A saved object is a save-file envelope whose ObjectStates holds one "Deck":
  CustomDeck        one entry per sprite sheet ("1", "2", ...), FaceURL/BackURL + grid size
  DeckIDs           CardID per card, in deck order
  ContainedObjects  one "Card" per copy, same order

TTS locates a face as CardID = <CustomDeck key> * 100 + <index on sheet>.
With --tabletop the JSON goes into TTS' "Saved Objects" folder together with a
PNG thumbnail of the same name.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import Image

from deck_assets import is_url, load_image
from deck_packing import ConfigurationError, DeckObject

logger = logging.getLogger(__name__)

CARD_SHAPES: Dict[str, int] = {
    "rounded_rectangle": 0,
    "rectangle": 1,
    "hex_rounded": 2,
    "hex": 3,
    "circle": 4,
}

MAX_CARDS_PER_SHEET_ID = 100
THUMBNAIL_SIZE = (256, 256)


class TabletopDirNotFound(FileNotFoundError):
    pass


# ----------------------------
# URL helpers
# ----------------------------

def _with_version(url: str, v: str) -> str:
    if not v:
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}v={v}"


def build_face_urls(sheet_paths: Sequence[Path], face_url_base: str = "", url_version: str = "") -> List[str]:
    base = face_url_base.rstrip("/")
    urls: List[str] = []
    for p in sheet_paths:
        u = f"{base}/{p.name}" if base else p.resolve().as_uri()
        urls.append(_with_version(u, url_version))
    return urls


def back_url_for(back_face: str, url_version: str = "") -> str:
    if is_url(back_face):
        return _with_version(back_face, url_version)
    return _with_version(Path(back_face).resolve().as_uri(), url_version)


# ----------------------------
# TTS JSON generation
# ----------------------------

def host_card_id(sheet_index: int, slot_index: int) -> int:
    return (sheet_index + 1) * MAX_CARDS_PER_SHEET_ID + slot_index


def _transform(pos: Tuple[float, float, float] = (0.0, 0.0, 0.0)) -> dict:
    return {
        "posX": pos[0],
        "posY": pos[1],
        "posZ": pos[2],
        "rotX": 0,
        "rotY": 180,
        "rotZ": 180,
        "scaleX": 1,
        "scaleY": 1,
        "scaleZ": 1,
    }


def check_host_capacity(capacity: int) -> None:
    if capacity > MAX_CARDS_PER_SHEET_ID:
        raise ConfigurationError(
            f"Tabletop Simulator addresses at most {MAX_CARDS_PER_SHEET_ID} cards per sheet, "
            f"capacity is {capacity}.",
            capacity=capacity,
        )


def tts_deck_object(
    deck: DeckObject,
    sheet_specs: Sequence[Tuple[Path, int, int, int]],
    face_urls: Sequence[str],
    back_url: str,
    nickname: str = "",
    card_shape: str = "rounded_rectangle",
    pos: Tuple[float, float, float] = (0.0, 1.0, 0.0),
) -> dict:
    check_host_capacity(deck.capacity)
    if len(sheet_specs) != len(deck.sheets) or len(face_urls) != len(deck.sheets):
        raise ValueError("Need exactly one rendered sheet and one FaceURL per packed sheet.")
    if card_shape not in CARD_SHAPES:
        raise ValueError(f"Unknown card shape '{card_shape}', expected one of {sorted(CARD_SHAPES)}.")

    custom_deck: Dict[str, dict] = {}
    for sheet, (_, num_w, num_h, _), face_url in zip(deck.sheets, sheet_specs, face_urls):
        custom_deck[str(sheet.sheet_index + 1)] = {
            "FaceURL": face_url,
            "BackURL": back_url,
            "NumWidth": num_w,
            "NumHeight": num_h,
            "BackIsHidden": True,
            "UniqueBack": False,
            "Type": CARD_SHAPES[card_shape],
        }

    deck_ids: List[int] = []
    contained: List[dict] = []
    for card in deck.cards:
        slot = card.sheet_slot
        card_id = host_card_id(slot.sheet_index, slot.slot_index)
        key = str(slot.sheet_index + 1)
        deck_ids.append(card_id)
        contained.append(
            {
                "Name": "Card",
                "Transform": _transform(),
                "Nickname": card.asset_id,
                "Description": "",
                "CardID": card_id,
                "CustomDeck": {key: custom_deck[key]},
            }
        )

    return {
        "Name": "Deck",
        "Transform": _transform(pos),
        "Nickname": nickname,
        "Description": "",
        "DeckIDs": deck_ids,
        "CustomDeck": custom_deck,
        "ContainedObjects": contained,
    }


def save_state(objects: List[dict], save_name: str = "") -> dict:
    return {
        "SaveName": save_name,
        "GameMode": "",
        "Gravity": 0.5,
        "PlayArea": 0.5,
        "Date": "",
        "Table": "",
        "Sky": "",
        "Note": "",
        "Rules": "",
        "XmlUI": "",
        "LuaScript": "",
        "LuaScriptState": "",
        "ObjectStates": objects,
        "TabStates": {},
        "VersionNumber": "",
    }


# ----------------------------
# Saved Objects directory
# ----------------------------

def get_tts_dir(home: Optional[Path] = None, platform: Optional[str] = None) -> Optional[Path]:
    home = home or Path.home()
    platform = platform or sys.platform

    if platform.startswith("win"):
        docs = Path(os.environ.get("USERPROFILE", str(home))) / "Documents"
        base = docs / "My Games" / "Tabletop Simulator"
    elif platform == "darwin":
        base = home / "Library" / "Tabletop Simulator"
    else:
        base = home / ".local" / "share" / "Tabletop Simulator"

    path = base / "Saves" / "Saved Objects"
    return path if path.is_dir() else None


def write_thumbnail(source: str, path: Path, size: Tuple[int, int] = THUMBNAIL_SIZE) -> None:
    im = load_image(source)
    im.thumbnail(size, resample=Image.LANCZOS)
    path.parent.mkdir(parents=True, exist_ok=True)
    im.save(path, format="PNG")


def write_saved_object(
    save: dict,
    output: Path,
    tabletop: bool = False,
    thumbnail: Optional[str] = None,
    tts_dir: Optional[Path] = None,
) -> List[Path]:
    """
    Write the save JSON (overwrites). With tabletop=True, output is taken relative
    to the Saved Objects directory and <output>.png is written as its thumbnail.
    """
    if tabletop:
        tts_dir = tts_dir or get_tts_dir()
        if tts_dir is None:
            raise TabletopDirNotFound("Tabletop Simulator directory could not be found!")
        output = tts_dir / output
        if output.suffix.lower() != ".json":
            output = output.with_name(output.name + ".json")

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(save, indent=2), encoding="utf-8")
    written = [output]

    if tabletop and thumbnail:
        thumb_path = output.with_suffix(".png")
        write_thumbnail(thumbnail, thumb_path)
        written.append(thumb_path)

    logger.info("Saved object written to %s", output)
    return written
