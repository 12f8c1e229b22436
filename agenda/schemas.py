from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, StringConstraints, field_validator

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"

Nombre = Annotated[StrictStr, Field(min_length=1, max_length=100)]
Apellido = Annotated[StrictStr, Field(min_length=1, max_length=100)]
Telefono = Annotated[StrictStr, Field(min_length=1, max_length=15)]
ContactEmail = Annotated[StrictStr, Field(max_length=200, pattern=EMAIL_PATTERN)]

UserEmail = Annotated[StrictStr, StringConstraints(strip_whitespace=True, to_lower=True, min_length=1)]
UserName = Annotated[StrictStr, StringConstraints(strip_whitespace=True, min_length=1)]


def _blank_email_is_absent(value):
    if value is None:
        raise ValueError("The 'email' field, if present, must be a string.")
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ContactCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    nombre: Nombre
    apellido: Apellido
    telefono: Telefono
    email: Optional[ContactEmail] = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_absent(cls, value):
        return _blank_email_is_absent(value)


class ContactUpdate(BaseModel):
    """
    Fields of a partial update.

    Only the fields sent by the client are set; read them with
    ``model_dump(exclude_unset=True)``. A field sent as null is rejected.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    nombre: Nombre = None
    apellido: Apellido = None
    telefono: Telefono = None
    email: Optional[ContactEmail] = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_absent(cls, value):
        return _blank_email_is_absent(value)


class Contact(BaseModel):
    id: int
    nombre: str
    apellido: str
    telefono: str
    email: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RegisterRequest(BaseModel):
    email: UserEmail
    password: StrictStr = Field(min_length=6)
    name: UserName

    @field_validator("password")
    @classmethod
    def password_without_nul(cls, value: str) -> str:
        if "\x00" in value:
            raise ValueError("The 'password' field cannot contain NUL characters.")
        return value


class LoginRequest(BaseModel):
    email: UserEmail
    password: StrictStr


class UserPublic(BaseModel):
    email: str
    name: str

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    user: UserPublic


class Message(BaseModel):
    message: str
