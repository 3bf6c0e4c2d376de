import os
import logging
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 24 * 60  # 1 day
MAGIC_LINK_EXPIRE_MINUTES = 15

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")

R2_BUCKET = os.getenv("R2_BUCKET")
CLOUDFLARE_ACCOUNT_ID = os.getenv("CLOUDFLARE_ACCOUNT_ID")
STORAGE_PUBLIC_URL = os.getenv("STORAGE_PUBLIC_URL", "")

RESEND_API_KEY = os.getenv("RESEND_API_KEY")
MAIL_FROM = os.getenv("MAIL_FROM", "Campus Bazaar <login@campusbazaar.app>")

APP_URL = os.getenv("APP_URL", "http://localhost:3000")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", APP_URL).split(",") if o.strip()]

DEMO_DATA_DIR = os.getenv("DEMO_DATA_DIR", ".demo_data")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEV_JWT_SECRET = "campus-bazaar-demo-secret-change-me"


def get_demo_data_dir() -> str:
    return os.getenv("DEMO_DATA_DIR", DEMO_DATA_DIR)


def is_backend_configured() -> bool:
    return bool(os.getenv("DATABASE_URL", DATABASE_URL))


def get_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET", JWT_SECRET)
    if secret:
        return secret

    if is_backend_configured():
        raise ValueError("JWT_SECRET must be set when DATABASE_URL is configured")

    return DEV_JWT_SECRET


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
