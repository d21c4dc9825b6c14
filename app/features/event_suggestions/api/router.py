"""
Event suggestion routes.

Architecture:
    - API layer: auth, HTTP status mapping, response models
    - Service layer: SuggestionCacheManager returns domain results

Usage:
    1. POST /preferences        - Normalize and store onboarding free text
    2. GET  /suggestions/events - Ranked upcoming events for the user
"""

import math

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.auth.verify import auth_dependency
from app.features.event_suggestions.api.schemas import (
    EventSuggestionsResponse,
    PreferencesUpdateRequest,
    PreferencesUpdateResponse,
)
from app.features.event_suggestions.services import (
    IngestionFailedError,
    PreferencesMissingError,
    RankingProviderError,
    RankingProviderMalformed,
    SuggestionCacheManager,
    save_user_preferences,
    suggestion_manager,
)
from app.infrastructure.observability.logging import bind_request_context, get_logger

router = APIRouter(tags=["suggestions"])
logger = get_logger(__name__)


def get_suggestion_manager() -> SuggestionCacheManager:
    return suggestion_manager


def _require_user_id(claims: dict) -> str:
    user_id = claims.get("sub")
    if not user_id:
        logger.error("No user ID in JWT claims")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token: missing user ID"
        )
    bind_request_context(user_id=user_id)
    return user_id


@router.get("/suggestions/events", response_model=EventSuggestionsResponse)
async def get_event_suggestions(
    response: Response,
    claims: dict = Depends(auth_dependency),
    manager: SuggestionCacheManager = Depends(get_suggestion_manager),
):
    """
    Get ranked event suggestions for the authenticated user.

    Returns:
        EventSuggestionsResponse: payload plus where it came from (cache / fresh / fallback)

    Raises:
        401: Invalid authentication token
        409: Onboarding preferences missing
        503: Event pool empty and ingestion failed
    """
    user_id = _require_user_id(claims)

    try:
        result = await manager.get_suggestions(user_id)

    except PreferencesMissingError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    except IngestionFailedError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e

    if result.retry_after_ms is not None:
        response.headers["Retry-After"] = str(max(1, math.ceil(result.retry_after_ms / 1000)))

    return EventSuggestionsResponse.from_result(result)


@router.post("/preferences", response_model=PreferencesUpdateResponse)
async def update_preferences(
    request: PreferencesUpdateRequest,
    claims: dict = Depends(auth_dependency),
):
    """
    Normalize onboarding free text into structured interests and store them.

    Raises:
        400: Blank text
        502: Ranking provider returned unusable output
        503: Ranking provider unavailable
    """
    user_id = _require_user_id(claims)

    try:
        preferences = await save_user_preferences(user_id, request.raw_text)

    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    except RankingProviderMalformed as e:
        logger.error("Preference normalization returned malformed output", user_id=user_id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Couldn't understand your preferences right now. Please try again.",
        ) from e

    except RankingProviderError as e:
        logger.error("Preference normalization unavailable", user_id=user_id, reason=e.reason)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Preference processing is temporarily unavailable.",
        ) from e

    return PreferencesUpdateResponse(user_id=user_id, preferences=preferences)
