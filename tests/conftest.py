import io
import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient
from PIL import Image

# Set test environment variables BEFORE importing app modules
os.environ["TESTING"] = "true"

# Dummy AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["STORAGE_BACKEND"] = "s3"
os.environ["STORAGE_REGION"] = "us-east-1"
os.environ["STORAGE_ACCESS_KEY_ID"] = "testing"
os.environ["STORAGE_SECRET_ACCESS_KEY"] = "testing"
# Clear endpoint overrides so moto mocks are used instead of a real backend
os.environ.pop("STORAGE_ENDPOINT_URL", None)
os.environ.pop("STORAGE_PUBLIC_URL", None)

from media_service.main import app
from media_service.settings import Settings
from media_service.storage.s3 import S3Gateway


def make_image_bytes(fmt="JPEG", size=(64, 48), color="red", mode="RGB"):
    """Generate a simple valid image in-memory."""
    img = Image.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image():
    return make_image_bytes


@pytest.fixture
def test_settings():
    return Settings(
        storage_backend="s3",
        storage_region="us-east-1",
        storage_access_key_id="testing",
        storage_secret_access_key="testing",
        storage_endpoint_url=None,
        storage_public_url=None,
    )


@pytest.fixture
def s3_gateway(test_settings):
    with mock_aws():
        yield S3Gateway(test_settings)


@pytest.fixture
def mock_storage(mocker):
    """Storage double that accepts every write."""
    storage = mocker.Mock()
    storage.put.side_effect = lambda data, key, bucket, content_type: {
        "url": f"https://cdn.test/{bucket}/{key}",
        "path": key,
    }
    storage.remove.return_value = True
    return storage


@pytest.fixture(scope="function")
def test_client():
    with mock_aws():
        # lifespan builds the S3 gateway and creates the category buckets in moto
        with TestClient(app) as client:
            yield client


@pytest.fixture
def image_service(test_client):
    return app.state.images
