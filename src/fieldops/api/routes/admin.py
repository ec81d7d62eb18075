"""Administrator routes: user approval management."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from fieldops.admin.service import AdminError, AdminService, SelfRevocationError
from fieldops.api.deps import get_admin_service, require_admin
from fieldops.models.profile import PendingUser, Profile

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/users", response_model=List[Profile])
def list_users(admin: AdminService = Depends(get_admin_service)):
    try:
        return admin.list_users()
    except AdminError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.get("/pending", response_model=List[PendingUser])
def list_pending(admin: AdminService = Depends(get_admin_service)):
    try:
        return admin.list_pending()
    except AdminError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.get("/stats")
def stats(admin: AdminService = Depends(get_admin_service)):
    try:
        result = admin.stats()
    except AdminError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return {"total": result.total, "approved": result.approved, "pending": result.pending}


@router.post("/users/{user_id}/approve")
def approve(user_id: str, admin: AdminService = Depends(get_admin_service)):
    try:
        admin.approve(user_id)
    except AdminError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return {"message": "Usuário aprovado!", "user_id": user_id}


@router.post("/users/{user_id}/revoke")
def revoke(
    user_id: str,
    admin: AdminService = Depends(get_admin_service),
    current: Profile = Depends(require_admin),
):
    try:
        admin.revoke(user_id, acting_user_id=current.id)
    except SelfRevocationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except AdminError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return {"message": "Acesso revogado", "user_id": user_id}
