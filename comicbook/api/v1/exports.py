import logging
from urllib.parse import quote

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from comicbook.api.v1.schemas import HtmlExportRequest
from comicbook.export.html import export_filename, render_story_html

router = APIRouter(tags=["exports"])
logger = logging.getLogger(__name__)


@router.post("/exports/html", response_class=HTMLResponse)
def export_story_html(payload: HtmlExportRequest):
    story = payload.story.to_story(title=payload.title, language=payload.language)
    html = render_story_html(story, payload.images, title=payload.title, created_at=payload.created_at)
    filename = export_filename(payload.title)
    logger.info(
        "story_exported",
        extra={"panels": len(story.panels), "images": len(payload.images), "export_filename": filename},
    )
    # RFC 5987 form so CJK titles survive the latin-1 header encoding.
    return HTMLResponse(
        content=html,
        headers={"content-disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
