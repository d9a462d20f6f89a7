# agent_portal/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent_portal.api.v1.routes import admin, agents, chat, conversations, feedback, link_preview, users, webhook
from agent_portal.core import auth
from agent_portal.core.config import settings
from agent_portal.core.http import close_http_client, open_http_client
from agent_portal.db.database import close_mongo_connection, connect_to_mongo

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    # Permite todos los métodos (GET, POST, PUT, DELETE, etc.)
    allow_methods=["*"],
    allow_headers=["*"],  # Permite todos los encabezados
)

# Incluir las rutas de los endpoints
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(agents.router, prefix="/api/v1/agents", tags=["Agents"])
app.include_router(chat.router, prefix="/api/v1/chat", tags=["Chat"])
app.include_router(conversations.router, prefix="/api/v1/conversations", tags=["Conversations"])
app.include_router(feedback.router, prefix="/api/v1/feedback", tags=["Feedback"])
app.include_router(webhook.router, prefix="/api", tags=["Webhook"])
app.include_router(link_preview.router, prefix="/api", tags=["Link preview"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.get("/")
async def ping():
    return {"message": "Pong"}


@app.on_event("startup")
async def startup_clients():
    await connect_to_mongo(app)
    await open_http_client(app)


@app.on_event("shutdown")
async def shutdown_clients():
    await close_http_client(app)
    await close_mongo_connection(app)
