from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from agenda import models


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, email: str, name: str, password_hash: str) -> models.User:
    """
    Stores a new user.

    The password must already be hashed; this function never sees the plain
    text password.

    :param db: Database session.
    :param email: Normalized (lower-cased) email.
    :param name: Display name.
    :param password_hash: Hash produced by the password service.
    :return: The persisted user.
    """
    db_user = models.User(email=email, name=name, password=password_hash)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def get_contact(db: Session, contact_id: int, owner_id: int) -> Optional[models.Contact]:
    return (
        db.query(models.Contact)
        .filter(models.Contact.id == contact_id, models.Contact.owner_id == owner_id)
        .first()
    )


def get_contacts(db: Session, owner_id: int) -> List[models.Contact]:
    return (
        db.query(models.Contact)
        .filter(models.Contact.owner_id == owner_id)
        .order_by(models.Contact.created_at.desc(), models.Contact.id.desc())
        .all()
    )


def create_contact(db: Session, fields: Dict[str, Any], owner_id: int) -> models.Contact:
    db_contact = models.Contact(**fields, owner_id=owner_id)
    db.add(db_contact)
    db.commit()
    db.refresh(db_contact)
    return db_contact


def update_contact(db: Session, contact: models.Contact, fields: Dict[str, Any]) -> models.Contact:
    """
    Applies the given fields to a contact already loaded for its owner.

    :param db: Database session.
    :param contact: Contact fetched through :func:`get_contact`.
    :param fields: Cleaned values; every key is written to the record.
    :return: The refreshed contact.
    """
    for name, value in fields.items():
        setattr(contact, name, value)
    db.commit()
    db.refresh(contact)
    return contact


def delete_contact(db: Session, contact_id: int, owner_id: int) -> bool:
    deleted = (
        db.query(models.Contact)
        .filter(models.Contact.id == contact_id, models.Contact.owner_id == owner_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted > 0
