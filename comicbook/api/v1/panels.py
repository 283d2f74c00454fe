from fastapi import APIRouter

from comicbook.api.deps import GeminiClientDep
from comicbook.api.v1.schemas import PanelImageResponse, PanelPromptRequest, PanelPromptResponse
from comicbook.pipeline.image_generation import generate_image
from comicbook.pipeline.image_prompt import gemini_rewriter, synthesize_panel_prompt

router = APIRouter(tags=["panels"])


def _synthesize(payload: PanelPromptRequest, gemini):
    return synthesize_panel_prompt(
        payload.visual_style,
        payload.characters,
        payload.panel_text,
        payload.prompt,
        rewrite=gemini_rewriter(gemini),
    )


@router.post("/panels/prompt", response_model=PanelPromptResponse)
def synthesize_panel_prompt_endpoint(payload: PanelPromptRequest, gemini=GeminiClientDep):
    synthesized = _synthesize(payload, gemini)
    return PanelPromptResponse(prompt=synthesized.prompt, tier=synthesized.tier)


@router.post("/panels/image", response_model=PanelImageResponse)
def generate_panel_image(payload: PanelPromptRequest, gemini=GeminiClientDep):
    synthesized = _synthesize(payload, gemini)
    image = generate_image(synthesized.prompt, gemini=gemini)
    return PanelImageResponse(image=image, prompt=synthesized.prompt, tier=synthesized.tier)
