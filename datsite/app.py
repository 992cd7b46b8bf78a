import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from datsite import config
from datsite.archive import LocalArchive
from datsite.errors import ArchiveError, ArchiveNotFoundError, InvalidUrlError
from datsite.site import ProfileSite

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting up: opening {config.SITE_URL} at {config.ARCHIVE_ROOT}...")
    app.state.site = ProfileSite(LocalArchive(config.ARCHIVE_ROOT, config.SITE_URL))
    yield
    logger.info("Shutting down.")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def require_api_key(request: Request):
    key = request.headers.get("x-api-key")
    if not config.API_KEY or key != config.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


def feed_options(after, before, limit, type, reverse, meta_only):
    return {
        "after": after,
        "before": before,
        "limit": limit,
        "type": type,
        "reverse": reverse,
        "meta_only": meta_only,
        "timeout": config.FETCH_TIMEOUT,
    }


# Routes
@app.get("/")
async def root(request: Request):
    return {
        "site": request.app.state.site.url,
        "endpoints": ["/profile", "/follows", "/friends", "/broadcasts", "/feed"],
    }


@app.get("/profile")
async def get_profile(request: Request):
    return await request.app.state.site.get_profile()


@app.patch("/profile")
async def update_profile(request: Request, data: dict):
    require_api_key(request)
    data.pop("follows", None)  # follows are managed through /follows
    return await request.app.state.site.set_profile(data)


@app.get("/follows")
async def list_follows(request: Request):
    return await request.app.state.site.list_following(timeout=config.FETCH_TIMEOUT)


@app.post("/follows")
async def follow(request: Request, data: dict):
    require_api_key(request)
    url = data.get("url")
    if not url:
        raise HTTPException(status_code=400, detail="Missing url")
    site = request.app.state.site
    try:
        await site.follow(url)
    except InvalidUrlError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"{site.url} now follows {url}")
    return {"url": url, "following": True}


@app.delete("/follows")
async def unfollow(request: Request, url: str):
    require_api_key(request)
    site = request.app.state.site
    await site.unfollow(url)
    logger.info(f"{site.url} unfollowed {url}")
    return {"url": url, "following": False}


@app.get("/friends")
async def list_friends(request: Request):
    return await request.app.state.site.list_friends(timeout=config.FETCH_TIMEOUT)


@app.get("/broadcasts")
async def list_broadcasts(request: Request, after: int = None, before: int = None, limit: int = None,
                          type: str = None, reverse: bool = False, meta_only: bool = False):
    opts = feed_options(after, before, limit, type, reverse, meta_only)
    entries = await request.app.state.site.list_broadcasts(**opts)
    return [entry.to_dict() for entry in entries]


@app.post("/broadcasts")
async def broadcast(request: Request, data: dict):
    require_api_key(request)
    fields = {k: data.get(k) for k in ("text", "image", "video", "audio")}
    if not any(fields.values()):
        raise HTTPException(status_code=400, detail="Broadcast needs text, image, video or audio")
    try:
        url = await request.app.state.site.broadcast(**fields)
    except ArchiveError as e:
        logger.error(f"Error writing broadcast: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    return {"url": url}


@app.get("/broadcasts/{name}")
async def get_broadcast(request: Request, name: str):
    try:
        entry = await request.app.state.site.get_broadcast(f"/broadcasts/{name}")
    except ArchiveNotFoundError:
        raise HTTPException(status_code=404, detail="Broadcast not found")
    except (ArchiveError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return entry.to_dict()


@app.get("/feed")
async def get_feed(request: Request, after: int = None, before: int = None, limit: int = None,
                   type: str = None, reverse: bool = False, meta_only: bool = False):
    opts = feed_options(after, before, limit, type, reverse, meta_only)
    entries = await request.app.state.site.list_feed(**opts)
    return [entry.to_dict() for entry in entries]


if __name__ == "__main__":
    logger.info("Starting API server...")
    uvicorn.run(app, host=config.HOST, port=config.PORT)
