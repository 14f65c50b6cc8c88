from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
from pydantic import BaseModel, EmailStr

from margin_analysis.database import get_db
from margin_analysis.models.admin import User
from margin_analysis.core.security import hash_password, get_current_admin

router = APIRouter(
    prefix="/users",
    tags=["User Management"]
)

ROLES = ["admin", "user"]

# Pydantic Schemas
class UserCreate(BaseModel):
    email: EmailStr
    password: str
    role: str  # 'admin', 'user'
    first_name: Optional[str] = None
    last_name: Optional[str] = None

class UserOut(BaseModel):
    id: int
    email: str
    username: str
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    active: bool

    class Config:
        from_attributes = True

@router.get("/", response_model=List[UserOut])
def list_users(
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_admin)
):
    """List all users. Only for Admins."""
    return db.query(User).order_by(User.email).all()

@router.post("/", response_model=UserOut, status_code=201)
def create_user(
    user_in: UserCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_admin)
):
    """Create a new user. Only for Admins."""
    if db.query(User).filter(User.email == user_in.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    if user_in.role not in ROLES:
        raise HTTPException(status_code=400, detail="Invalid role. Must be 'admin' or 'user'")

    new_user = User(
        email=user_in.email,
        username=user_in.email.split("@")[0],
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        hashed_password=hash_password(user_in.password),
        role=user_in.role
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    return new_user

@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_admin)
):
    """Delete a user. Only for Admins."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    # Prevent deleting yourself (compare email since current_user is a dict)
    if user.email == current_user["email"]:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")

    db.delete(user)
    db.commit()
    return {"message": "User deleted successfully"}
