#!/usr/bin/env python3
"""
make_tts_deck.py

Deck list -> Tabletop Simulator saved object:
1) Parse the deck list (one "<count> <card name>" per line)
2) Resolve every card name to an image in --assets-dir
3) Pack the distinct images onto sheets of --capacity cards and give every copy its id
4) Render the sheets as PNG sprite sheets
5) Write the saved-object JSON (and a thumbnail when saving into TTS directly)

Example:
  python make_tts_deck.py decks/ants.txt -o ants.json --assets-dir cards --back cards/back.png
  python make_tts_deck.py decks/ants.txt -o "My Decks/Ants" --tabletop --assets-dir cards ^
    --back "https://example.org/cards/back.png" ^
    --face-url-base "https://example.org/sheets" --url-version 3

Dependencies:
  pip install pillow requests
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from deck_assets import (
    DEFAULT_COLUMNS,
    DeckListError,
    default_card_size,
    find_asset_file,
    is_url,
    parse_deck_file,
    render_sheets,
    resolve_assets,
)
from deck_packing import DEFAULT_CAPACITY, DeckBuildError, PackingConfig, build_deck
from tts_save import (
    CARD_SHAPES,
    TabletopDirNotFound,
    back_url_for,
    build_face_urls,
    check_host_capacity,
    get_tts_dir,
    save_state,
    tts_deck_object,
    write_saved_object,
)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def positive_int(value: str) -> int:
    n = int(value)
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Build a Tabletop Simulator deck from a deck list.")
    ap.add_argument("input", type=str, help="Deck list file")
    ap.add_argument("-o", "--output", type=str, required=True, help="Output path (will overwrite!)")
    ap.add_argument(
        "-t",
        "--tabletop",
        action="store_true",
        help="Output path is relative to Tabletop Simulator's Saved Objects directory. Overwrites existing objects.",
    )

    ap.add_argument("--assets-dir", type=str, default="cards", help="Directory holding one image per card")
    ap.add_argument(
        "--back",
        type=str,
        default="",
        help="Card back image (path or URL). Defaults to 'back' in --assets-dir.",
    )
    ap.add_argument(
        "--thumbnail",
        type=str,
        default="",
        help="Thumbnail image for --tabletop (path or URL). Defaults to the card back.",
    )
    ap.add_argument("--sheets-dir", type=str, default="", help="Where to render sprite sheets")

    ap.add_argument("--capacity", type=int, default=DEFAULT_CAPACITY, help="Cards per sprite sheet")
    ap.add_argument("--columns", type=positive_int, default=DEFAULT_COLUMNS, help="Columns per sprite sheet")
    ap.add_argument("--card-w", type=positive_int, default=None, help="Card face width in px (default: first card image)")
    ap.add_argument("--card-h", type=positive_int, default=None, help="Card face height in px (default: first card image)")
    ap.add_argument("--card-shape", choices=sorted(CARD_SHAPES), default="rounded_rectangle")

    ap.add_argument("--face-url-base", type=str, default="", help="Base URL where deck_XX.png sheets will be hosted")
    ap.add_argument(
        "--url-version",
        type=str,
        default="",
        help="Optional cache-buster appended as ?v=<value> to FaceURL/BackURL.",
    )
    ap.add_argument("--nickname", type=str, default="", help="Deck name shown in TTS (defaults to the input stem)")

    ap.add_argument("--fail-on-empty", action="store_true", help="Refuse to write a deck with no cards")
    ap.add_argument(
        "--drop-zero-count",
        action="store_true",
        help="Do not reserve a sheet slot for cards listed with count 0",
    )
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def default_back(assets_dir: Path) -> str:
    p = find_asset_file("back", assets_dir)
    if p is None:
        raise FileNotFoundError(f"No --back given and no back image found in {assets_dir}")
    return str(p)


def run(args: argparse.Namespace) -> List[Path]:
    in_path = Path(args.input)
    assets_dir = Path(args.assets_dir)
    output = Path(args.output)

    card_requests = parse_deck_file(in_path)
    registry = resolve_assets((r.asset_id for r in card_requests), assets_dir)

    back = args.back or default_back(assets_dir)
    if not is_url(back) and not Path(back).is_file():
        raise FileNotFoundError(f"Card back image not found: {back}")

    config = PackingConfig(
        back_face_asset_id=back,
        capacity=args.capacity,
        fail_on_empty=args.fail_on_empty,
        reserve_zero_count=not args.drop_zero_count,
    )
    deck = build_deck(card_requests, registry, config)
    check_host_capacity(deck.capacity)

    tts_dir = None
    if args.tabletop:
        tts_dir = get_tts_dir()
        if tts_dir is None:
            raise TabletopDirNotFound("Tabletop Simulator directory could not be found!")

    if args.sheets_dir:
        sheets_dir = Path(args.sheets_dir)
    elif tts_dir is not None:
        sheets_dir = (tts_dir / output).parent / f"{output.stem}_sheets"
    else:
        sheets_dir = output.parent / f"{output.stem}_sheets"

    src_w, src_h = default_card_size(registry)
    card_size = (args.card_w or src_w, args.card_h or src_h)

    sheet_specs = render_sheets(
        deck,
        registry,
        sheets_dir,
        card_size=card_size,
        columns=args.columns,
    )
    face_urls = build_face_urls([s[0] for s in sheet_specs], args.face_url_base, args.url_version)

    tts_obj = tts_deck_object(
        deck,
        sheet_specs=sheet_specs,
        face_urls=face_urls,
        back_url=back_url_for(deck.back_face, args.url_version),
        nickname=args.nickname or in_path.stem,
        card_shape=args.card_shape,
    )
    written = write_saved_object(
        save_state([tts_obj]),
        output,
        tabletop=args.tabletop,
        thumbnail=args.thumbnail or deck.back_face,
        tts_dir=tts_dir,
    )

    for p in written:
        print(f"Wrote: {p}")
    print(f"Cards: {len(deck.cards)}")
    print(f"Sprite sheets: {len(sheet_specs)} in {sheets_dir}")
    return written


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        run(args)
    except DeckListError as e:
        for line_no, msg in e.problems:
            print(f"{args.input}:{line_no}: {msg}", file=sys.stderr)
        return 1
    except DeckBuildError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
