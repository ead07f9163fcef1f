"""Runtime configuration read from the environment"""
import os

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").strip().lower()
IS_PRODUCTION = ENVIRONMENT == "production"
IS_DEVELOPMENT = ENVIRONMENT == "development"

# JWT
SECRET_KEY = os.getenv("JWT_SECRET", "")
if not SECRET_KEY:
    if IS_PRODUCTION:
        raise RuntimeError("Environment variable JWT_SECRET is required in production")
    SECRET_KEY = "dev-secret-change-me"
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

# Passwords
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
MIN_PASSWORD_LENGTH = 8

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if IS_DEVELOPMENT else "WARNING").upper()
LOG_DIR = os.getenv("LOG_DIR", "logs")

# HTTP
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "*")

# Bootstrap administrator, created on first access to the user store
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin User")
