import os
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

# Security settings
SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")  # Replace with strong env value in production
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))

# Persistence settings
LESSON_STORE = os.getenv("LESSON_STORE", "memory")      # "supabase" or "memory"
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
LESSON_PLANS_TABLE = os.getenv("LESSON_PLANS_TABLE", "lesson_plans")

# Session resume settings (plan id + wizard step per client)
SESSION_STATE_DIR = os.getenv("SESSION_STATE_DIR", "")  # empty keeps session state in memory

# CORS
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173,http://127.0.0.1:3000",
    ).split(",")
    if o.strip()
]

# Open plan sessions kept in memory (least recently used are evicted)
PLAN_SESSION_LIMIT = int(os.getenv("PLAN_SESSION_LIMIT", 500))
