from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from hippobuck.db.session import get_db
from hippobuck.schemas.auth import LoginRequest, TokenOut
from hippobuck.models.user import User
from hippobuck.core.security import verify_password, create_access_token, hash_password
from hippobuck.api.deps import get_current_user

router = APIRouter(tags=["auth"])


@router.post("/auth/login", response_model=TokenOut)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.strip().lower()).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenOut(access_token=create_access_token(user.id, user.role), role=user.role)


@router.get("/auth/me")
def me(me: User = Depends(get_current_user)):
    """Return current user info including role."""
    return {
        "id": me.id,
        "email": me.email,
        "fullName": me.full_name,
        "role": me.role,
    }


@router.post("/auth/change-password")
def change_password(oldPassword: str, newPassword: str,
                    db: Session = Depends(get_db),
                    me: User = Depends(get_current_user)):
    if not verify_password(oldPassword, me.password_hash):
        raise HTTPException(status_code=400, detail="Old password incorrect")
    if len(newPassword) < 8:
        raise HTTPException(status_code=400, detail="Password too short")
    me.password_hash = hash_password(newPassword)
    db.commit()
    return {"ok": True}
