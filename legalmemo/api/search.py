"""Full-text search across the caller's processed meetings."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from legalmemo.api.deps import get_repositories, get_user_id
from legalmemo.repositories import Repositories
from legalmemo.search.index import MeetingSearchResult

router = APIRouter(prefix="/search", tags=["search"])


class SearchResponse(BaseModel):
    query: str
    total_results: int
    results: list[MeetingSearchResult]


@router.get("", response_model=SearchResponse)
async def search_meetings(
    q: str = Query(..., min_length=1, description="Search keywords"),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_user_id),
    repos: Repositories = Depends(get_repositories),
) -> SearchResponse:
    """Search summaries, topics, participants and transcript text."""
    results = await repos.search_index.search(user_id, q, limit)
    return SearchResponse(query=q, total_results=len(results), results=results)
