from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from margin_analysis.database import get_db
from margin_analysis.models.admin import User
from margin_analysis.schemas.auth import UserCreate, UserLogin, Token, CurrentUser
from margin_analysis.core.security import hash_password, verify_password, create_access_token, get_current_user

router = APIRouter(tags=["Authentication"])


def _token_for(user: User) -> dict:
    token = create_access_token({"sub": user.email, "id": user.id, "role": user.role})
    return {"access_token": token, "token_type": "bearer", "role": user.role}


@router.post("/signup", response_model=Token)
def signup(user_in: UserCreate, db: Session = Depends(get_db)):
    # Check if email already exists
    existing = db.query(User).filter(User.email == user_in.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = User(
        email=user_in.email,
        username=user_in.email.split("@")[0],
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        hashed_password=hash_password(user_in.password),
        role="user"
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    return _token_for(new_user)


@router.post("/signin", response_model=Token)
def signin(data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email).first()

    if not user or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    return _token_for(user)


@router.get("/me", response_model=CurrentUser)
def me(current_user: dict = Depends(get_current_user)):
    return current_user
