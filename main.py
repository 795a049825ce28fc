import logging
from typing import Optional

import bcrypt
from fastapi import APIRouter, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

import center_routes
import collection_routes
import schedule_routes
from config import Settings, load_settings
from database import DataStore, SupabaseStore, first, get_store
from errors import ApiError, AuthError, StoreError, ValidationError, install_error_handlers
from schemas import LoginRequest

logger = logging.getLogger(__name__)

LOAN_CREDITED = "CREDITED"

# bcrypt only reads the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72

router = APIRouter()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@router.get("/")
def read_root():
    return {"status": "API running"}


@router.post("/api/login")
def login(payload: LoginRequest, store: DataStore = Depends(get_store)):
    if not payload.email or not payload.password:
        raise ValidationError("Missing email or password")

    try:
        user = first(
            store.select(
                "users",
                "id, name, password, isAdmin, blocked",
                eq={"email": payload.email.lower()},
                limit=1,
            )
        )
    except StoreError:
        logger.exception("LOGIN ERROR")
        raise ApiError("Login failed")

    if not user:
        raise AuthError("Invalid credentials")
    if user.get("blocked"):
        raise AuthError("Account blocked", status_code=403)

    try:
        password = payload.password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        match = bcrypt.checkpw(password, (user.get("password") or "").encode("utf-8"))
    except ValueError:
        logger.exception("LOGIN ERROR: unreadable password hash for user %s", user.get("id"))
        raise ApiError("Login failed")
    if not match:
        raise AuthError("Wrong password")

    return {"id": user["id"], "name": user.get("name"), "isAdmin": user.get("isAdmin")}


@router.get("/api/members/{center_id}")
def list_members(center_id: str, store: DataStore = Depends(get_store)):
    try:
        members = store.select("members", "id, name, loans(id, status)", eq={"center_id": center_id})
    except StoreError:
        logger.exception("FETCH MEMBERS ERROR")
        raise ApiError("Failed to fetch members")

    result = []
    for m in members:
        loan = next((l for l in m.get("loans") or [] if l.get("status") == LOAN_CREDITED), None)
        if loan is None:
            continue
        result.append({"member_id": m["id"], "name": m.get("name"), "loan_id": loan["id"], "status": loan["status"]})
    return result


def create_app(settings: Optional[Settings] = None, store: Optional[DataStore] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Weekly Collection API", version="1.0.0")
    app.state.settings = settings
    app.state.store = store if store is not None else SupabaseStore.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(router)
    app.include_router(center_routes.router)
    app.include_router(collection_routes.router)
    app.include_router(schedule_routes.router)
    return app


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
