import logging

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_users.password import PasswordHelper
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from .database import init_db, async_session_maker
from .logging_config import configure_logging
from .models import User, UserType
from .routers import admin, data, progress
from .schemas import UserCreate, UserRead, UserUpdate
from .services.content_store import AlreadyExists, NotFound
from .settings.config import settings
from .users import fastapi_users, auth_backend
from .utils import get_current_user

configure_logging(settings)
logger = logging.getLogger(__name__)

app = FastAPI(title="Courseware")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Update for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Route Includes
# ----------------------
app.include_router(data.router)
app.include_router(admin.router)
app.include_router(progress.router)

# Authentication Routes
app.include_router(
    fastapi_users.get_auth_router(auth_backend),
    prefix="/auth/jwt",
    tags=["auth"]
)
app.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate),
    prefix="/auth",
    tags=["auth"]
)
app.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
    prefix="/users",
    tags=["users"]
)


# -----------------------------------------------------
# Content errors: unsafe and missing paths are both 404
# -----------------------------------------------------
@app.exception_handler(NotFound)
async def _not_found_handler(request: Request, exc: NotFound):
    return JSONResponse({"detail": "Not Found"}, status_code=404)


@app.exception_handler(AlreadyExists)
async def _already_exists_handler(request: Request, exc: AlreadyExists):
    return JSONResponse({"detail": "File already exists."}, status_code=409)


@app.exception_handler(IntegrityError)
async def _integrity_handler(request: Request, exc: IntegrityError):
    # two writers raced on a unique key; the request can simply be repeated
    logger.warning("Unique constraint conflict on %s: %s", request.url.path, exc.orig)
    return JSONResponse({"detail": "Conflicting concurrent update, retry the request."}, status_code=409)


# ----------------------
# Auto-create admin user
# ----------------------
async def create_admin_user():
    admin_email = settings.ADMIN_EMAIL
    admin_password = settings.ADMIN_PASSWORD

    if not admin_email or not admin_password:
        logger.info("ADMIN_EMAIL or ADMIN_PASSWORD not set, skipping admin creation.")
        return

    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == admin_email))
        existing_admin = result.scalars().first()
        if not existing_admin:
            user = User(
                email=admin_email,
                hashed_password=PasswordHelper().hash(admin_password),
                username=settings.ADMIN_USERNAME,
                is_superuser=True,
                is_active=True,
                is_verified=True,
                user_type=UserType.Admin,
            )
            session.add(user)
            await session.commit()
            logger.info("Admin user created: %s", admin_email)
        else:
            logger.info("Admin user already exists: %s", admin_email)


@app.on_event("startup")
async def on_startup():
    from . import models  # Required for SQLAlchemy model detection
    await init_db()
    await create_admin_user()


@app.get("/api/auth/status")
async def auth_status(user: User = Depends(get_current_user)):
    if not user:
        return {"authenticated": False, "user": None}
    return {"authenticated": True, "user": UserRead.model_validate(user).model_dump(mode="json")}
