from fastapi import APIRouter, Depends

from grievance.api.deps import get_principal, get_store
from grievance.principal import Principal
from grievance.services import PolicyEnforcedStore

router = APIRouter()


@router.put("/{principal_id}/{role}")
def grant_role(
    principal_id: str,
    role: str,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    changed = store.grant_role(principal, principal_id, role)
    return {"principal_id": principal_id, "role": role, "changed": changed}


@router.delete("/{principal_id}/{role}")
def revoke_role(
    principal_id: str,
    role: str,
    principal: Principal = Depends(get_principal),
    store: PolicyEnforcedStore = Depends(get_store),
):
    changed = store.revoke_role(principal, principal_id, role)
    return {"principal_id": principal_id, "role": role, "changed": changed}
