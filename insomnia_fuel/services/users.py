from __future__ import annotations

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from insomnia_fuel.models.user import User
from insomnia_fuel.services.orders import utcnow


def get_user_by_uid(db: Session, uid: str) -> User | None:
    return db.query(User).filter(User.uid == uid).first()


def create_user(
    db: Session,
    *,
    uid: str,
    email: str,
    display_name: str = "",
    photo_url: str = "",
    phone: str = "",
    role: str = "user",
) -> User:
    now = utcnow()
    user = User(
        uid=uid,
        email=email,
        display_name=display_name or "",
        photo_url=photo_url or "",
        phone=phone or "",
        role=role or "user",
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user


def get_or_create_user(db: Session, *, uid: str, email: str, **fields) -> tuple[User, bool]:
    existing = get_user_by_uid(db, uid)
    if existing:
        return existing, False
    try:
        return create_user(db, uid=uid, email=email, **fields), True
    except IntegrityError:
        existing = get_user_by_uid(db, uid)
        if existing is None:
            raise
        return existing, False


def list_users_paginated(db: Session, page: int = 1, limit: int = 20) -> dict:
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    query = db.query(User)
    total = query.count()
    items = query.order_by(desc(User.created_at), desc(User.id)).offset((page - 1) * limit).limit(limit).all()
    return {"items": items, "total": total}


def delete_user(db: Session, uid: str) -> bool:
    deleted = db.query(User).filter(User.uid == uid).delete(synchronize_session=False)
    db.commit()
    return deleted == 1


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "uid": user.uid,
        "email": user.email,
        "displayName": user.display_name,
        "photoURL": user.photo_url,
        "phone": user.phone,
        "role": user.role,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "updatedAt": user.updated_at.isoformat() if user.updated_at else None,
    }
