import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Body, Depends, FastAPI, File, Header, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from auth import authenticate, login, require_admin
from blobstore import LocalBlobStore, check_image
from database import Database
from errors import APIError, NotFoundError, ValidationError
from query import MovieQuery, run_query
from schemas import Identity, LoginPayload, PageInfo
from stats import dashboard, featured_movies, movie_stats
from store import SiteStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# Utils

def envelope(data: Any = None, pagination: Optional[PageInfo] = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination.to_wire()
    if message is not None:
        body["message"] = message
    return body


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def get_site(request: Request) -> SiteStore:
    return request.app.state.site


def get_blobs(request: Request) -> LocalBlobStore:
    return request.app.state.blobs


def get_current_user(authorization: Optional[str] = Header(None)) -> Identity:
    return authenticate(authorization)


def get_admin_user(user: Identity = Depends(get_current_user)) -> Identity:
    return require_admin(user)


async def read_movie_payload(request: Request) -> Tuple[Dict[str, Any], Optional[StarletteUploadFile]]:
    """Movie fields come either as JSON or as a form with an optional `poster` file."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        fields: Dict[str, Any] = {}
        upload = None
        for key, value in form.multi_items():
            if isinstance(value, StarletteUploadFile):
                if key == "poster" and value.filename:
                    upload = value
            else:
                fields[key] = value
        return fields, upload

    raw = await request.body()
    if not raw.strip():
        return {}, None
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body, None


async def store_upload(blobs: LocalBlobStore, upload: StarletteUploadFile) -> Tuple[str, int]:
    if upload.size is not None:
        check_image(upload.content_type, upload.size)
    # one byte past the limit is enough to tell it is too large
    data = await upload.read(config.MAX_UPLOAD_BYTES + 1)
    check_image(upload.content_type, len(data))
    url = await run_in_threadpool(blobs.store, data, upload.content_type, upload.filename or "")
    return url, len(data)


async def save_movie(request: Request, blobs: LocalBlobStore, action):
    fields, upload = await read_movie_payload(request)
    poster = None
    if upload is not None:
        poster, _ = await store_upload(blobs, upload)
        fields["poster"] = poster
    try:
        return await run_in_threadpool(action, fields)
    except APIError:
        if poster:
            await run_in_threadpool(blobs.discard, poster)
        raise


# Public

@router.get("/movies")
def list_movies(
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1),
    genre: Optional[str] = None,
    rating: Optional[str] = None,
    year: Optional[int] = None,
    search: Optional[str] = None,
    sort: str = "publishedAt",
    order: str = "desc",
    featured: Optional[str] = None,
    site: SiteStore = Depends(get_site),
):
    q = MovieQuery(page=page, limit=limit, genre=genre, rating=rating, year=year,
                   search=search, sort=sort, order=order, featured=featured)
    movies, pagination = run_query(site.movies.all(), q)
    return envelope([m.to_wire() for m in movies], pagination=pagination)


# Declared before /movies/{identifier} so these paths are not read as slugs
@router.get("/movies/stats")
def get_movie_stats(site: SiteStore = Depends(get_site)):
    return envelope(movie_stats(site.movies.all()))


@router.get("/movies/featured")
def get_featured_movies(site: SiteStore = Depends(get_site)):
    return envelope([m.to_wire() for m in featured_movies(site.movies.all())])


@router.get("/movies/{identifier}")
def get_movie(identifier: str, site: SiteStore = Depends(get_site)):
    movie = site.movies.find_by_id_or_slug(identifier)
    if movie is None or movie.status != "published":
        raise NotFoundError()
    movie = site.movies.record_view(movie.id)
    return envelope(movie.to_wire())


@router.get("/settings")
def get_settings(site: SiteStore = Depends(get_site)):
    return envelope(site.settings.get())


# Auth

@router.post("/auth/login")
def login_user(payload: LoginPayload, site: SiteStore = Depends(get_site)):
    token, user = login(site.users, payload.email, payload.password)
    return envelope({"token": token, "user": user.public()})


@router.get("/auth/verify")
def verify_token(user: Identity = Depends(get_current_user)):
    return envelope(user.model_dump())


# Admin

@router.get("/admin/movies")
def list_all_movies(
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1),
    status: Optional[str] = None,
    genre: Optional[str] = None,
    rating: Optional[str] = None,
    year: Optional[int] = None,
    search: Optional[str] = None,
    sort: str = "publishedAt",
    order: str = "desc",
    featured: Optional[str] = None,
    admin: Identity = Depends(get_admin_user),
    site: SiteStore = Depends(get_site),
):
    q = MovieQuery(page=page, limit=limit, public=False, status=status, genre=genre, rating=rating,
                   year=year, search=search, sort=sort, order=order, featured=featured)
    movies, pagination = run_query(site.movies.all(), q)
    return envelope([m.to_wire() for m in movies], pagination=pagination)


@router.post("/admin/movies", status_code=201)
async def create_movie(
    request: Request,
    admin: Identity = Depends(get_admin_user),
    site: SiteStore = Depends(get_site),
    blobs: LocalBlobStore = Depends(get_blobs),
):
    movie = await save_movie(request, blobs, site.movies.create)
    return envelope(movie.to_wire())


@router.put("/admin/movies/{movie_id}")
async def update_movie(
    movie_id: int,
    request: Request,
    admin: Identity = Depends(get_admin_user),
    site: SiteStore = Depends(get_site),
    blobs: LocalBlobStore = Depends(get_blobs),
):
    movie = await save_movie(request, blobs, lambda fields: site.movies.update(movie_id, fields))
    return envelope(movie.to_wire())


@router.delete("/admin/movies/{movie_id}")
def delete_movie(movie_id: int, admin: Identity = Depends(get_admin_user), site: SiteStore = Depends(get_site)):
    site.movies.delete(movie_id)
    return envelope(message="Movie deleted successfully")


@router.put("/admin/settings")
def update_settings(
    payload: Dict[str, Any] = Body(...),
    admin: Identity = Depends(get_admin_user),
    site: SiteStore = Depends(get_site),
):
    return envelope(site.settings.update(payload))


@router.get("/admin/dashboard")
def get_dashboard(admin: Identity = Depends(get_admin_user), site: SiteStore = Depends(get_site)):
    return envelope(dashboard(site.movies.all()))


@router.post("/admin/upload")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    admin: Identity = Depends(get_admin_user),
    blobs: LocalBlobStore = Depends(get_blobs),
):
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")
    url, size = await store_upload(blobs, file)
    return envelope({
        "filename": url.rsplit("/", 1)[-1],
        "originalName": file.filename,
        "url": url,
        "size": size,
    })


# Error handling

async def api_error_handler(request: Request, exc: APIError):
    return error_response(exc.status_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return error_response(400, "Invalid request")
    err = errors[0]
    where = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header"))
    return error_response(400, f"Invalid {where or 'request'}: {err.get('msg', 'bad value')}")


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error_response(404, "Endpoint not found")
    return error_response(exc.status_code, str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


def create_app(database: Optional[Database] = None, blobs: Optional[LocalBlobStore] = None) -> FastAPI:
    database = database or Database()
    blobs = blobs or LocalBlobStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        database.flush()
        database.close()

    app = FastAPI(title="CineReview CMS API", lifespan=lifespan)
    app.state.database = database
    app.state.site = SiteStore(database.load(), database)
    app.state.blobs = blobs

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/")
    def root():
        return {"message": "CineReview API is running"}

    app.include_router(router)
    app.mount(blobs.url_prefix, StaticFiles(directory=str(blobs.directory), check_dir=False), name="uploads")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
