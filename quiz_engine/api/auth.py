from fastapi import APIRouter
from pydantic import BaseModel, constr
from typing import List
from quiz_engine.core.auth import create_token

router = APIRouter()

class MockLogin(BaseModel):
    user_id: constr(min_length=1)
    tenant_id: constr(min_length=1)
    roles: List[str]

@router.post("/mock-login")
def mock_login(payload: MockLogin):
    token = create_token(payload.user_id, payload.tenant_id, payload.roles)
    return {"access_token": token, "token_type": "bearer", "roles": payload.roles}
