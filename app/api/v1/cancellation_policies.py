"""Cancellation policy read endpoints."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from app.api.deps import AppSettings
from app.policy.loader import PolicyTemplateLoader

router = APIRouter()

_loader = PolicyTemplateLoader()


class PolicyTemplateResponse(BaseModel):
    """Standard policy template offered to providers."""

    filename: str
    hash: str
    template: dict[str, Any]


@router.get("/template", response_model=PolicyTemplateResponse)
async def get_default_template(settings: AppSettings) -> PolicyTemplateResponse:
    """Return the validated default policy template."""
    policy, template_hash = _loader.load(settings.default_policy_template)

    return PolicyTemplateResponse(
        filename=settings.default_policy_template,
        hash=template_hash,
        template=policy.to_dict(),
    )
