"""
Dashboard feature: API routes.
"""

from fastapi import APIRouter, Depends

from studyplanner.core.dependencies import get_signed_in_store
from studyplanner.features.dashboard.stats import dashboard_summary
from studyplanner.features.study.store import StudyStore

router = APIRouter()


@router.get("/")
async def get_dashboard(store: StudyStore = Depends(get_signed_in_store)):
    """Counts, averages and the next seven days at a glance."""
    return dashboard_summary(store.homework, store.calendar_events, store.grades)
