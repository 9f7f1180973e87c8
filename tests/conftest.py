import pytest
from fastapi.testclient import TestClient

from auth import create_access_token, get_password_hash
from blobstore import LocalBlobStore
from database import Database
from main import create_app
from schemas import Identity, UserRecord


@pytest.fixture
def database(tmp_path):
    db = Database(tmp_path / "data.json")
    yield db
    db.close()


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(tmp_path / "uploads", "/uploads")


@pytest.fixture
def app(database, blobs):
    return create_app(database, blobs)


@pytest.fixture
def site(app):
    return app.state.site


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    token = create_access_token(Identity(id=1, email="admin@cinereview.com", role="admin"))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def viewer(site):
    user = UserRecord(
        id=2,
        email="viewer@cinereview.com",
        password=get_password_hash("viewer123"),
        role="viewer",
        name="Viewer",
    )
    site.users.append(user)
    return user


@pytest.fixture
def viewer_headers(viewer):
    token = create_access_token(Identity(id=viewer.id, email=viewer.email, role=viewer.role))
    return {"Authorization": f"Bearer {token}"}
