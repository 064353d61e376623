from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool
from typing import Optional
import os
import shutil
from urllib.parse import urlencode
import redis
from backend import DuplicateUsername, UserStore, hash_password
from logging_config import get_logger

logger = get_logger(__name__)

auth_router = APIRouter(tags=["auth"])


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def _page(request: Request, name: str) -> FileResponse:
    return FileResponse(os.path.join(request.app.state.public_dir, name))


def profile_image_filename(raw: str) -> Optional[str]:
    """Base filename for an upload, or None if it cannot name a file."""
    filename = os.path.basename(raw.replace("\\", "/"))
    if filename in ("", ".", ".."):
        return None
    return filename


def save_profile_image(upload: UploadFile, upload_dir: str, filename: str) -> str:
    """Store an uploaded profile image under its original base filename."""
    os.makedirs(upload_dir, exist_ok=True)
    with open(os.path.join(upload_dir, filename), "wb") as f:
        shutil.copyfileobj(upload.file, f)
    logger.debug(f"Saved profile image {filename} to {upload_dir}")
    return filename


@auth_router.get("/")
async def signup_page(request: Request):
    return _page(request, "signup.html")


@auth_router.post("/signup")
async def signup(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    profileImage: Optional[UploadFile] = File(None),
):
    logger.info(f"Signup request for {username} from {request.client.host if request.client else 'unknown'}")
    store = get_user_store(request)

    if store.get_user(username) is not None:
        logger.warning(f"Signup failed: username {username} already exists")
        raise HTTPException(status_code=400, detail="Username already exists")

    image_filename = None
    if profileImage is not None and profileImage.filename:
        image_filename = profile_image_filename(profileImage.filename)
        if image_filename is None:
            logger.warning(f"Signup failed: unusable profile image filename {profileImage.filename!r}")
            raise HTTPException(status_code=400, detail="Invalid profile image filename")

    # bcrypt is deliberately slow, keep it off the event loop
    password_hash = await run_in_threadpool(hash_password, password, request.app.state.bcrypt_rounds)

    profile_image = None
    try:
        if image_filename is not None:
            profile_image = await run_in_threadpool(
                save_profile_image, profileImage, request.app.state.upload_dir, image_filename
            )
        store.create_account(username, password_hash, profile_image)
    except DuplicateUsername:
        logger.warning(f"Signup failed: username {username} already exists")
        raise HTTPException(status_code=400, detail="Username already exists")
    except (OSError, redis.RedisError) as e:
        logger.error(f"Error saving user {username}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error saving user data")

    return RedirectResponse(url="/login", status_code=303)


@auth_router.get("/login")
async def login_page(request: Request):
    return _page(request, "login.html")


@auth_router.post("/login")
async def login(request: Request, username: str = Form(...), password: str = Form(...)):
    logger.info(f"Login attempt for {username} from {request.client.host if request.client else 'unknown'}")
    store = get_user_store(request)

    # Pick up accounts written by other processes since startup
    store.reload()

    if store.get_user(username) is None:
        logger.warning(f"Login failed: user {username} not found")
        raise HTTPException(status_code=401, detail="User not found")

    if not await run_in_threadpool(store.verify_credentials, username, password):
        logger.warning(f"Login failed: invalid password for {username}")
        raise HTTPException(status_code=401, detail="Invalid password")

    logger.info(f"User {username} logged in")
    return RedirectResponse(url=f"/chat?{urlencode({'username': username})}", status_code=303)


@auth_router.get("/chat")
async def chat_page(request: Request):
    return _page(request, "chat.html")
