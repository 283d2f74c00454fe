from fastapi import APIRouter

from comicbook.api.deps import GeminiClientDep
from comicbook.api.v1.schemas import StoryGenerateRequest, StoryGenerateResponse
from comicbook.pipeline.models import LanguageMode, StoryInput
from comicbook.pipeline.story_generation import generate_story, prepare_story_prompt

router = APIRouter(tags=["stories"])


@router.post("/stories/generate", response_model=StoryGenerateResponse)
def generate_story_endpoint(payload: StoryGenerateRequest, gemini=GeminiClientDep):
    story_input = StoryInput(
        raw_text=payload.story_text,
        keywords=payload.keywords,
        language_mode=LanguageMode.EXPLICIT if payload.language else LanguageMode.AUTO,
        language=payload.language,
    )
    story_prompt = prepare_story_prompt(story_input)
    story = generate_story(story_input, gemini=gemini, story_prompt=story_prompt)

    return StoryGenerateResponse(
        **story.to_payload(),
        language=story_prompt.language,
        maxPanels=story_prompt.max_panels,
        targetRange=story_prompt.target_range,
    )
