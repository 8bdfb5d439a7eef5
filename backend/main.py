# backend/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

from config import settings
from database import init_db
from utils.errors import register_exception_handlers

# Import routerów
from routes.forwarding_orders import router as forwarding_orders_router
from routes.transport_requests import router as transport_requests_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Inicjalizacja
init_db()

app = FastAPI(title="Transport Logistics API", version="1.0.0")

# CORS Configuration
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Rejestracja routerów
app.include_router(forwarding_orders_router)
app.include_router(transport_requests_router)

@app.get("/")
def read_root():
    return {"message": "Transport Logistics API działa!"}
