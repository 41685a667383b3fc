"""
ERP Sessions - API Backend
Import et planification des sessions de formation

Démarre avec:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

# Configuration logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("erp_sessions")

# Créer l'app
app = FastAPI(
    title="ERP Sessions",
    description="Réconciliation des sessions importées et attribution des salles",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== IMPORT DES ROUTES ====================

from routes import session_imports

# Routes avec préfixe /api
app.include_router(session_imports.router, prefix="/api")

# ==================== ROUTE RACINE ====================

@app.get("/")
async def root():
    return {
        "name": "ERP Sessions API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP / SHUTDOWN ====================

@app.on_event("startup")
async def startup():
    logger.info("ERP Sessions démarré")

    from config import db

    # Index utilisés par l'import de sessions
    await db.deals.create_index("deal_id", unique=True)
    await db.sessions.create_index("id", unique=True)
    await db.sessions.create_index("deal_id")
    await db.sessions.create_index([("room_id", 1), ("start_at", 1)])
    await db.session_trainers.create_index("session_id")
    await db.session_units.create_index("session_id")
    await db.rooms.create_index("id", unique=True)
    await db.trainers.create_index("id", unique=True)

    logger.info("Index MongoDB créés")


@app.on_event("shutdown")
async def shutdown_db_client():
    from config import client
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
