from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fileshare.config import Settings, settings
from fileshare.db.base import utcnow
from fileshare.dependencies import get_file_service, get_resolver
from fileshare.deps import get_db, get_settings
from fileshare.middleware.rate_limit import rate_limit
from fileshare.models import User
from fileshare.repos import user_repo
from fileshare.routers._render import file_out, grant_out
from fileshare.schemas.common import OkResponse
from fileshare.schemas.share import (
    RedeemOut,
    SharedFileOut,
    ShareLinkIn,
    ShareLinkOut,
    SharesListOut,
    ShareUserIn,
    ShareUserOut,
)
from fileshare.security import get_current_user
from fileshare.services.access import AccessResolver
from fileshare.services.files import FileService

router = APIRouter(prefix="/api/share", tags=["share"])
logger = logging.getLogger(__name__)


@router.post("/{file_id}/user", response_model=ShareUserOut, status_code=status.HTTP_201_CREATED)
def share_with_user(
    file_id: str,
    body: ShareUserIn,
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
    db: Annotated[Session, Depends(get_db)],
) -> ShareUserOut:
    target = user_repo.get_by_email(db, body.user_email)
    if target is None:
        raise HTTPException(404, "user_not_found")
    grant = svc.share_with_user(file_id, user.id, target, body.role, body.expires_at)
    return ShareUserOut(share=grant_out(grant, utcnow()))


@router.post("/{file_id}/link", response_model=ShareLinkOut, status_code=status.HTTP_201_CREATED)
def share_by_link(
    file_id: str,
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
    cfg: Annotated[Settings, Depends(get_settings)],
    body: ShareLinkIn | None = None,
) -> ShareLinkOut:
    grant = svc.share_by_link(file_id, user.id, body.expires_at if body else None)
    return ShareLinkOut(share_link=cfg.share_url(grant.token or ""), share=grant_out(grant, utcnow()))


@router.get(
    "/link/{token}",
    response_model=RedeemOut,
    dependencies=[Depends(rate_limit("share_link", settings.link_redeem_rate_per_min, 60))],
)
def redeem_link(
    token: str,
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
) -> RedeemOut:
    access = svc.redeem_link(user.id, token)
    base = file_out(access.file, access.role, is_owner=access.file.owner_id == user.id)
    return RedeemOut(file=SharedFileOut(**base.model_dump(), download_url=access.file.url))


@router.get("/{file_id}/shares", response_model=SharesListOut)
def list_shares(
    file_id: str,
    user: Annotated[User, Depends(get_current_user)],
    resolver: Annotated[AccessResolver, Depends(get_resolver)],
) -> SharesListOut:
    now = utcnow()
    return SharesListOut(shares=[grant_out(g, now) for g in resolver.list_grants(file_id, user.id)])


@router.delete("/{grant_id}", response_model=OkResponse)
def revoke_share(
    grant_id: str,
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
) -> OkResponse:
    svc.revoke(grant_id, user.id)
    return OkResponse(message="Share revoked successfully")
