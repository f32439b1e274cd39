"""
FastAPI dependency injection functions.

The lifespan in ``studyplanner.main`` builds one AuthService and one StudyStore
per process and parks them on ``app.state``.
"""

from fastapi import Depends, HTTPException, Request, status

from studyplanner.features.auth.service import AuthService
from studyplanner.features.study.store import StudyStore


def get_auth_service(request: Request) -> AuthService:
    """Dependency: the process-wide AuthService."""
    return request.app.state.auth


def get_store(request: Request) -> StudyStore:
    """Dependency: the process-wide StudyStore."""
    return request.app.state.store


async def get_signed_in_store(
    store: StudyStore = Depends(get_store),
) -> StudyStore:
    """Dependency: the store, provided somebody is signed in.

    Raises:
        HTTPException 401: If no user is signed in.
    """
    if store.user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in",
        )
    return store
