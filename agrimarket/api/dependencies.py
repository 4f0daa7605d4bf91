"""Request dependencies shared by the routers."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from agrimarket.domain.value_objects import ActorRole, ViewerScope


def get_viewer(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> ViewerScope:
    """Build the viewer scope from the identity headers set by the gateway.

    Raises:
        HTTPException: 401 if a header is missing, 422 if the role is unknown.
    """
    if not x_actor_id or not x_actor_id.strip() or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "MISSING_ACTOR",
                "message": "X-Actor-Id and X-Actor-Role headers are required",
            },
        )
    try:
        role = ActorRole(x_actor_role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error_code": "VALIDATION_ERROR",
                "message": f"Unknown actor role: {x_actor_role}",
                "details": [{"field": "X-Actor-Role", "message": "unknown role"}],
            },
        )
    return ViewerScope(viewer_id=x_actor_id.strip(), viewer_role=role)


CurrentViewer = Annotated[ViewerScope, Depends(get_viewer)]
