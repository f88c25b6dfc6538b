"""
Athlete list endpoint.

Returns the team list with a ready-to-use portrait URL per athlete.
Portraits are resolved softly: a missing or broken portrait never fails
the list, the athlete just gets a placeholder avatar.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.models import Athlete, TrainingGroup
from ...infrastructure.storage.client import StorageClient, resolve_portrait_url
from ..dependencies import (
    AthleteRepositoryDep,
    AuthenticatedUser,
    SettingsDep,
    StorageClientDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class AthleteResponse(BaseModel):
    """One athlete as shown in lists and attendance sheets."""
    fincode: Optional[int] = Field(None, description="Federation code (athlete identity)")
    name: str = Field(description="Display name")
    groups: list[str] = Field(default_factory=list, description="Training group codes")
    photo_url: str = Field(description="Portrait URL, or a placeholder avatar")


async def build_athlete_response(
    athlete: Athlete,
    storage: StorageClient,
    placeholder_template: str,
) -> AthleteResponse:
    return AthleteResponse(
        fincode=athlete.fincode,
        name=athlete.name,
        groups=athlete.group_codes,
        photo_url=await resolve_portrait_url(storage, athlete, placeholder_template),
    )


def parse_group(group: Optional[str]) -> Optional[str]:
    """Validate an optional group filter; raises 422 on unknown codes."""
    if not group:
        return None
    try:
        return TrainingGroup.parse(group).value
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )


@router.get(
    "",
    response_model=list[AthleteResponse],
    status_code=status.HTTP_200_OK,
    summary="List athletes",
    description="All athletes ordered by name, optionally limited to one training group",
)
async def list_athletes(
    group: Optional[str] = Query(None, description="Training group code (ASS, EA, EB, PROP)"),
    api_key: AuthenticatedUser = None,
    repository: AthleteRepositoryDep = None,
    storage: StorageClientDep = None,
    settings: SettingsDep = None,
) -> list[AthleteResponse]:
    group_code = parse_group(group)
    athletes = repository.list_athletes(group=group_code)

    logger.info(
        "Listed athletes",
        extra={"group": group_code, "count": len(athletes)}
    )

    return [
        await build_athlete_response(athlete, storage, settings.portrait_placeholder_url)
        for athlete in athletes
    ]
