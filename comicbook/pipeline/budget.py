from comicbook.pipeline.models import PanelBudget

SHORT_STORY_MAX_CHARS = 1500

SHORT_STORY_BUDGET = PanelBudget(target_range="8-10", max_panels=10)
LONG_STORY_BUDGET = PanelBudget(target_range="15-20", max_panels=20)


def compute_budget(char_count: int) -> PanelBudget:
    """Map story length to a panel-count target; 1500 characters still counts as short."""
    if char_count <= SHORT_STORY_MAX_CHARS:
        return SHORT_STORY_BUDGET
    return LONG_STORY_BUDGET
