"""
Effect catalog endpoints.
"""

from fastapi import APIRouter

from sonedit.audio.effects import catalog, get_effect_class
from sonedit.core.exceptions import EffectNotFound

router = APIRouter()


@router.get("/effects")
async def list_effects():
    """All effects with their parameter tables (name, min, max, default, step, unit)."""
    return {"effects": catalog()}


@router.get("/effects/{effect_type}")
async def get_effect_info(effect_type: str):
    effect_class = get_effect_class(effect_type)
    if effect_class is None:
        raise EffectNotFound(f"Unknown effect type: {effect_type}")
    return {
        "id": effect_class.effect_type.value,
        "name": effect_class.display_name,
        "description": effect_class.description,
        "parameters": effect_class.parameter_table(),
    }
