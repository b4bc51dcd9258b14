"""
Runtime configuration read from the environment (and a local .env file).
"""

import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Admin panel credentials (all five must match)
ADMIN_SECRET = os.getenv("ADMIN_SECRET", "dev_admin_secret_change_me")
ADMIN_NAME = os.getenv("ADMIN_NAME")
ADMIN_DOB = os.getenv("ADMIN_DOB")
ADMIN_AADHAAR = os.getenv("ADMIN_AADHAAR")
ADMIN_PAN = os.getenv("ADMIN_PAN")
ADMIN_PHONE = os.getenv("ADMIN_PHONE")
ADMIN_TOKEN_EXPIRE_MIN = 60 * 24  # 1 day

# Kitchen screen credentials
KITCHEN_SECRET = os.getenv("KITCHEN_SECRET", "dev_kitchen_secret_change_me")
KITCHEN_NAME = os.getenv("KITCHEN_NAME")
KITCHEN_NUMBER = os.getenv("KITCHEN_NUMBER")
KITCHEN_PIN = os.getenv("KITCHEN_PIN")
KITCHEN_TOKEN_EXPIRE_MIN = 60 * 24 * 7  # 7 days

JWT_ALG = "HS256"

# 2Factor SMS gateway
TWO_FACTOR_API_KEY = os.getenv("TWO_FACTOR_API_KEY")
TWO_FACTOR_BASE_URL = os.getenv("TWO_FACTOR_BASE_URL", "https://2factor.in/API/V1")
TWO_FACTOR_TIMEOUT = float(os.getenv("TWO_FACTOR_TIMEOUT", "10"))

ORDER_READY_MINUTES = 30
