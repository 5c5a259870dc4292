# backend/main.py
import os

from app.core.lifespan import lifespan
from app.api import api_router
from app.core.middleware import setup_middleware
from fastapi import FastAPI


app = FastAPI(
    title="Institution Export API",
    version="1.0.0",
    description="Export institution listings to Excel and PDF",
    lifespan=lifespan
)

# Setup middleware
setup_middleware(app)

# Register API routes
app.include_router(api_router)

# ---------- Run ----------

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
