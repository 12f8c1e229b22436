import logging
import re
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from agenda import auth, config, crud, schemas, validation
from agenda.db import create_session_factory, get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_DUPLICATE_FIELD_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: \w+\.(\w+)"),
    re.compile(r"Key \((\w+)\)="),
    re.compile(r"for key '(?:\w+\.)?(\w+)'"),
)


async def read_json_object(request: Request) -> dict:
    """
    Decodes the request body.

    :param request: Incoming request.
    :return: The body as a dict.
    :raises HTTPException: 400 if the body is not a JSON object.
    """
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid body. It must be JSON.")
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid body. It must be a JSON object.")
    return body


def duplicated_field(exc: IntegrityError) -> str:
    message = str(exc.orig)
    for pattern in _DUPLICATE_FIELD_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return "field"


def store_error(db: Session, exc: SQLAlchemyError, action: str) -> HTTPException:
    """
    Translates a database failure into the HTTP error reported to the client.

    Duplicate keys become 409 naming the offending field; anything else is
    logged and reported as a generic 500.

    :param db: Session the failure happened on; it is rolled back.
    :param exc: The database exception.
    :param action: What the handler was doing, used in the messages.
    :return: The exception for the handler to raise.
    """
    db.rollback()
    if isinstance(exc, IntegrityError):
        field = duplicated_field(exc)
        logger.info("Duplicate '%s' while %s contact", field, action)
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Could not save the contact: another contact with the same '{field}' already exists.",
        )
    logger.exception("Database error while %s contact", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Internal error while {action} contact.",
    )


def bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def parse_body(model: type, body: dict) -> BaseModel:
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise bad_request(validation.error_message(exc))


def contact_not_found(contact_id: int) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Contact {contact_id} does not exist.")


@router.post("/register", response_model=schemas.Message, status_code=status.HTTP_201_CREATED)
async def register_user(request: Request, db: Session = Depends(get_db)):
    """
    Registers a new user.

    :param request: Body with email, password and name.
    :param db: Database session.
    :return: Confirmation message.
    :raises HTTPException: 400 for missing or invalid fields, 409 if the email is taken.
    """
    body = await read_json_object(request)
    credentials = parse_body(schemas.RegisterRequest, body)

    email = credentials.email
    if crud.get_user_by_email(db, email=email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already registered.")

    password_hash = auth.hash_password(credentials.password)
    try:
        crud.create_user(db, email=email, name=credentials.name, password_hash=password_hash)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already registered.")

    logger.info("Registered user %s", email)
    return {"message": "User created successfully."}


@router.post("/login", response_model=schemas.LoginResponse)
async def login_user(request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Logs a user in with email and password.

    On success the session token is set as an http-only cookie; it is not
    part of the response body.

    :param request: Body with email and password.
    :param response: Response the cookie is attached to.
    :param db: Database session.
    :return: Public profile of the user.
    :raises HTTPException: 400 for missing fields, 404 for an unknown email, 401 for a wrong password.
    """
    body = await read_json_object(request)
    credentials = parse_body(schemas.LoginRequest, body)

    db_user = crud.get_user_by_email(db, email=credentials.email)
    if db_user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    if not auth.verify_password(credentials.password, db_user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect password.")

    token = auth.create_session_token(db_user.id, db_user.email)
    response.set_cookie(
        key=config.COOKIE_NAME,
        value=token,
        max_age=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
        secure=config.COOKIE_SECURE,
        httponly=True,
        samesite="lax",
    )
    logger.info("User %s logged in", db_user.email)
    return {"user": {"email": db_user.email, "name": db_user.name}}


@router.get(
    "/contacts",
    response_model=Union[schemas.Contact, List[schemas.Contact]],
    response_model_exclude_none=True,
)
async def get_contacts(
    contact_id: Optional[str] = Query(None, alias="id"),
    db: Session = Depends(get_db),
    identity: auth.SessionIdentity = Depends(auth.get_current_identity),
):
    """
    Returns one contact of the current user, or all of them newest first.

    :param contact_id: Optional identifier of a single contact.
    :param db: Database session.
    :param identity: Authenticated user.
    :return: The contact, or the list of contacts.
    :raises HTTPException: 400 for a malformed id, 404 if the user has no such contact.
    """
    try:
        if contact_id:
            parsed_id = validation.parse_id(contact_id)
            if parsed_id is None:
                raise bad_request("The 'id' parameter is not a valid identifier.")
            contact = crud.get_contact(db, contact_id=parsed_id, owner_id=identity.user_id)
            if contact is None:
                raise contact_not_found(parsed_id)
            return schemas.Contact.model_validate(contact)

        contacts = crud.get_contacts(db, owner_id=identity.user_id)
        return [schemas.Contact.model_validate(contact) for contact in contacts]
    except SQLAlchemyError as exc:
        raise store_error(db, exc, "reading")


@router.post(
    "/contacts",
    response_model=schemas.Contact,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_contact(
    request: Request,
    db: Session = Depends(get_db),
    identity: auth.SessionIdentity = Depends(auth.get_current_identity),
):
    body = await read_json_object(request)
    new_contact = parse_body(schemas.ContactCreate, body)

    try:
        contact = crud.create_contact(db, fields=new_contact.model_dump(), owner_id=identity.user_id)
    except SQLAlchemyError as exc:
        raise store_error(db, exc, "creating")

    logger.info("User %s created contact %s", identity.user_id, contact.id)
    return contact


@router.put("/contacts", response_model=schemas.Contact, response_model_exclude_none=True)
async def update_contact(
    request: Request,
    db: Session = Depends(get_db),
    identity: auth.SessionIdentity = Depends(auth.get_current_identity),
):
    """
    Partially updates a contact of the current user.

    Fields absent from the body keep their stored values. Fields sent are
    held to the same rules as for a new contact.

    :raises HTTPException: 400 for a missing or malformed id or invalid fields, 404 if the user has no such contact.
    """
    body = await read_json_object(request)
    raw_id = body.get("id")
    if raw_id is None or raw_id == "":
        raise bad_request("The 'id' field is required to update a contact.")
    contact_id = validation.parse_id(raw_id)
    if contact_id is None:
        raise bad_request("The 'id' field is not a valid identifier.")

    try:
        contact = crud.get_contact(db, contact_id=contact_id, owner_id=identity.user_id)
    except SQLAlchemyError as exc:
        raise store_error(db, exc, "updating")
    if contact is None:
        raise contact_not_found(contact_id)

    updates = parse_body(schemas.ContactUpdate, body).model_dump(exclude_unset=True)
    changes = {name: value for name, value in updates.items() if getattr(contact, name) != value}
    if not changes:
        return contact

    try:
        contact = crud.update_contact(db, contact, changes)
    except SQLAlchemyError as exc:
        raise store_error(db, exc, "updating")

    logger.info("User %s updated contact %s (%s)", identity.user_id, contact.id, ", ".join(sorted(changes)))
    return contact


@router.delete("/contacts", response_model=schemas.Message)
async def delete_contact(
    contact_id: Optional[str] = Query(None, alias="id"),
    db: Session = Depends(get_db),
    identity: auth.SessionIdentity = Depends(auth.get_current_identity),
):
    if not contact_id:
        raise bad_request("The 'id' query parameter is required.")
    parsed_id = validation.parse_id(contact_id)
    if parsed_id is None:
        raise bad_request("The 'id' parameter is not a valid identifier.")

    try:
        deleted = crud.delete_contact(db, contact_id=parsed_id, owner_id=identity.user_id)
    except SQLAlchemyError as exc:
        raise store_error(db, exc, "deleting")
    if not deleted:
        raise contact_not_found(parsed_id)

    logger.info("User %s deleted contact %s", identity.user_id, parsed_id)
    return {"message": f"Contact {parsed_id} deleted."}


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error."},
    )


def create_app(database_url: str = config.SQLALCHEMY_DATABASE_URL) -> FastAPI:
    """
    Builds the application with its own database handle.

    :param database_url: SQLAlchemy URL of the database to use.
    :return: Configured FastAPI application.
    """
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(title="Agenda")
    app.state.session_factory = create_session_factory(database_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)
    return app


app = create_app()
