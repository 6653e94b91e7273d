# storefront_api/settings.py

from starlette.config import Config
from starlette.datastructures import CommaSeparatedStrings, Secret

config = Config(".env")

DATABASE_URL = config("DATABASE_URL", cast=Secret, default="sqlite:///./storefront.db")
TEST_DATABASE_URL = config("TEST_DATABASE_URL", cast=Secret, default="sqlite:///./test_storefront.db")

SECRET_KEY = config("SECRET_KEY", cast=Secret, default="change-me")
ACCESS_TOKEN_EXPIRE_MINUTES = config("ACCESS_TOKEN_EXPIRE_MINUTES", cast=int, default=60 * 24)
# Tokens are issued by the account service; this service only verifies them
TOKEN_URL = config("TOKEN_URL", default="http://127.0.0.1:8004/api/v1/auth/login")

# Uploaded proof-of-payment images
UPLOAD_DIR = config("UPLOAD_DIR", default="uploads")
PUBLIC_BASE_URL = config("PUBLIC_BASE_URL", default="http://localhost:8000")
ALLOWED_IMAGE_TYPES = config(
    "ALLOWED_IMAGE_TYPES",
    cast=CommaSeparatedStrings,
    default="image/png,image/jpeg,image/webp",
)
