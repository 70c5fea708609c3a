from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from scoutwatch.api.deps import get_review_service
from scoutwatch.data.review import ReviewService
from scoutwatch.domain.models import FormType

router = APIRouter(prefix="/teams", tags=["review"])


@router.get("/{team_num}/reconstruct", response_class=PlainTextResponse)
def reconstruct(
    team_num: int,
    form_type: int = int(FormType.PRESCOUTING),
    service: ReviewService = Depends(get_review_service),
):
    try:
        kind = FormType(form_type)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown form type {form_type}")
    text = service.reconstruct(team_num, kind)
    if text is None:
        raise HTTPException(status_code=404, detail=f"No {kind.name.lower()} form for team {team_num}")
    return text


@router.get("/{team_num}/summary", response_class=PlainTextResponse)
def summary(team_num: int, service: ReviewService = Depends(get_review_service)):
    return service.summarize(team_num)


@router.get("/{team_num}/comments")
def comments(team_num: int, service: ReviewService = Depends(get_review_service)):
    return {"team_num": team_num, "comments": service.comments(team_num)}
