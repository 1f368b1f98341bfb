from fastapi import APIRouter, Depends, Response, status
from typing import Any, Dict, List
import logging

from venturelink.core.dependencies import get_current_user_id, get_roster
from venturelink.core.exceptions import IdentityMismatchError
from venturelink.schemas.affiliation import AffiliationDraft, CompanyAffiliation
from venturelink.services.roster.synchronizer import CompanyRosterSynchronizer
from venturelink.services.roster.validators import is_submittable, validate_draft

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[CompanyAffiliation])
async def list_affiliations(roster: CompanyRosterSynchronizer = Depends(get_roster)):
    """
    List the caller's company affiliations, newest first.
    """
    return list(roster.affiliations)


@router.get("/current", response_model=List[CompanyAffiliation])
async def list_current_affiliations(roster: CompanyRosterSynchronizer = Depends(get_roster)):
    """
    Affiliations whose title indicates an active role.
    """
    return roster.current_affiliations()


@router.get("/summary")
async def roster_summary(roster: CompanyRosterSynchronizer = Depends(get_roster)) -> Dict[str, Any]:
    return {
        "count": roster.count,
        "current_count": len(roster.current_affiliations()),
        "completion_percentage": roster.completion_percentage,
    }


@router.post("/", response_model=CompanyAffiliation, status_code=status.HTTP_201_CREATED)
async def create_affiliation(
    draft: AffiliationDraft,
    user_id: str = Depends(get_current_user_id),
    roster: CompanyRosterSynchronizer = Depends(get_roster),
):
    """
    Add a company affiliation for the caller.
    """
    owner_user_id = roster.owner_user_id
    created = await roster.add_affiliation(draft)
    if created is None:
        raise IdentityMismatchError(owner_user_id, user_id)
    return created


@router.put("/{affiliation_id}", response_model=CompanyAffiliation)
async def update_affiliation(
    affiliation_id: str,
    draft: AffiliationDraft,
    user_id: str = Depends(get_current_user_id),
    roster: CompanyRosterSynchronizer = Depends(get_roster),
):
    owner_user_id = roster.owner_user_id
    updated = await roster.update_affiliation(affiliation_id, draft)
    if updated is None:
        raise IdentityMismatchError(owner_user_id, user_id)
    return updated


@router.delete("/{affiliation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_affiliation(
    affiliation_id: str,
    roster: CompanyRosterSynchronizer = Depends(get_roster),
):
    await roster.delete_affiliation(affiliation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/validate")
async def validate_affiliation(draft: AffiliationDraft) -> Dict[str, Any]:
    """
    Field-level messages for a draft, without saving it.
    """
    return {
        "errors": validate_draft(draft),
        "submittable": is_submittable(draft.company_name, draft.title),
    }
