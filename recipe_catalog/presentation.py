from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .errors import ValidationError
from .mapper import to_record
from .models import Recipe

NOT_SPECIFIED = "No especificado"

DIFFICULTY_COLORS = {
    "easy": "#10b981",
    "medium": "#f59e0b",
    "hard": "#ef4444",
}
DEFAULT_DIFFICULTY_COLOR = "#6b7280"

DIFFICULTY_LABELS = {
    "easy": "Fácil",
    "medium": "Media",
    "hard": "Difícil",
}


def format_cooking_time(minutes: Optional[int]) -> str:
    """Render a duration in minutes as Spanish text (``"1 hora 30 minutos"``)."""

    if not minutes:
        return NOT_SPECIFIED
    if minutes < 0:
        return "Tiempo inválido"

    hours, remaining = divmod(minutes, 60)
    if hours == 0:
        return f"{minutes} {_plural(minutes, 'minuto', 'minutos')}"
    if remaining == 0:
        return f"{hours} {_plural(hours, 'hora', 'horas')}"
    return f"{hours} {_plural(hours, 'hora', 'horas')} {remaining} {_plural(remaining, 'minuto', 'minutos')}"


def format_difficulty(level: Optional[str]) -> str:
    if not level:
        return NOT_SPECIFIED
    return DIFFICULTY_LABELS.get(level, level)


def to_view_model(recipe: Recipe) -> Dict[str, Any]:
    view = to_record(recipe)
    try:
        total = recipe.total_time().value
    except ValidationError:
        # Each part is valid but together they run past a day.
        total = recipe.prep_time.value + recipe.cook_time.value
    view.update(
        totalTime=total,
        totalTimeLabel=format_cooking_time(total),
        difficultyColor=DIFFICULTY_COLORS.get(recipe.difficulty.value, DEFAULT_DIFFICULTY_COLOR),
        difficultyLabel=format_difficulty(recipe.difficulty.value),
    )
    return view


def to_view_models(recipes: Iterable[Recipe]) -> List[Dict[str, Any]]:
    return [to_view_model(recipe) for recipe in recipes]


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


__all__ = [
    "format_cooking_time",
    "format_difficulty",
    "to_view_model",
    "to_view_models",
]
