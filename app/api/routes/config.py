"""Configuration API endpoints."""

from fastapi import APIRouter, HTTPException

from app.config import get_settings

router = APIRouter(prefix="/api/config", tags=["config"])

POLICY_SECTIONS = ("segments", "confidence", "picks")


@router.get("")
async def get_policy_config():
    """Get the full analytics policy."""
    defaults = get_settings().load_defaults_config()
    return {section: defaults.get(section, {}) for section in POLICY_SECTIONS}


@router.get("/{section}")
async def get_policy_section(section: str):
    """Get one policy section: segments, confidence or picks."""
    if section not in POLICY_SECTIONS:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown config section: {section}. Available: {list(POLICY_SECTIONS)}",
        )
    return get_settings().load_defaults_config().get(section, {})
