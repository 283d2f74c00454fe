"""Generate a complete comic from a story file.

Usage: python scripts/generate_comic.py story.txt --out out/ [--keywords "a,b"] [--language zh]

Writes one image per panel, story.json and an HTML export into the output
directory. The API key is read from --api-key or GEMINI_API_KEY.
"""
import argparse
import asyncio
import base64
import json
import mimetypes
import sys
from pathlib import Path

from comicbook.core.exceptions import AppError, remediation_for
from comicbook.core.gemini_factory import build_gemini_client
from comicbook.core.logging import configure_logging
from comicbook.core.settings import settings
from comicbook.export.html import export_filename, render_story_html
from comicbook.pipeline.models import LanguageMode, LanguageTag, StoryInput
from comicbook.pipeline.panel_rendering import render_panels
from comicbook.pipeline.story_generation import generate_story


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Turn a story into an illustrated comic.")
    parser.add_argument("story_file", type=Path, help="UTF-8 text file containing the story")
    parser.add_argument("--out", type=Path, default=Path("comic_output"), help="output directory")
    parser.add_argument("--keywords", default="", help="comma-separated keywords")
    parser.add_argument(
        "--language",
        choices=[tag.value for tag in LanguageTag],
        help="force the output language instead of auto-detecting it",
    )
    parser.add_argument("--title", default=None, help="title used for the HTML export")
    parser.add_argument("--api-key", default=None, help="Gemini API key (defaults to GEMINI_API_KEY)")
    parser.add_argument("--concurrency", type=int, default=settings.panel_render_concurrency)
    return parser.parse_args(argv)


def _write_image(out_dir: Path, panel_id: int, data_uri: str) -> Path:
    header, payload = data_uri.split(",", 1)
    mime = header[len("data:"):].split(";", 1)[0]
    extension = mimetypes.guess_extension(mime) or ".png"
    path = out_dir / f"panel_{panel_id:02d}{extension}"
    path.write_bytes(base64.b64decode(payload))
    return path


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(settings.log_level, settings.log_file)

    try:
        story_input = StoryInput(
            raw_text=args.story_file.read_text(encoding="utf-8"),
            keywords=args.keywords,
            language_mode=LanguageMode.EXPLICIT if args.language else LanguageMode.AUTO,
            language=args.language,
        )
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        gemini = build_gemini_client(args.api_key or settings.gemini_api_key)
        story = generate_story(story_input, gemini=gemini)
    except AppError as exc:
        print(f"error: {exc.detail}\n{remediation_for(exc)}", file=sys.stderr)
        return 1

    args.out.mkdir(parents=True, exist_ok=True)
    (args.out / "story.json").write_text(
        json.dumps(story.to_payload(), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )

    results = asyncio.run(render_panels(story, gemini=gemini, concurrency=args.concurrency))

    images: dict[int, str] = {}
    failures = 0
    for panel_id, outcome in results.items():
        if isinstance(outcome, Exception):
            failures += 1
            print(f"panel {panel_id} failed: {outcome}", file=sys.stderr)
            continue
        images[panel_id] = outcome.image_data_uri
        print(f"Wrote {_write_image(args.out, panel_id, outcome.image_data_uri)} ({outcome.prompt_tier.value})")

    html_path = args.out / export_filename(args.title)
    html_path.write_text(render_story_html(story, images, title=args.title), encoding="utf-8")
    print(f"Wrote {html_path}")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
