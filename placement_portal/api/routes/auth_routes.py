"""
Authentication Routes

POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info
"""

from fastapi import APIRouter, HTTPException, Depends

from placement_portal.db.postgres import get_db_session, fetch_one
from placement_portal.core.auth import verify_password, create_access_token, get_current_user
from placement_portal.schemas.schemas import LoginRequest, TokenResponse, UserResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    with get_db_session() as db:
        user = fetch_one(
            db,
            "SELECT user_id, name, password_hash, role, is_active FROM users WHERE email = :email",
            {"email": request.email}
        )

    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user["is_active"]:
        raise HTTPException(status_code=403, detail="Account deactivated")

    if not verify_password(request.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    role = user["role"].upper()
    token = create_access_token(data={"sub": str(user["user_id"]), "role": role})

    return TokenResponse(access_token=token, user_id=user["user_id"], role=role, name=user["name"])


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    """Get current authenticated user's info."""
    with get_db_session() as db:
        row = fetch_one(
            db,
            "SELECT user_id, name, email, role, department, is_active, created_at FROM users WHERE user_id = :id",
            {"id": user["user_id"]}
        )

    return UserResponse(**row)
