import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database

from config import get_settings, setup_logging
from database import Gateway, get_database
from errors import (
    USER_ID_REQUIRED,
    USERNAME_TAKEN,
    PreconditionError,
    StorageError,
    ValidationError,
    error_response,
)
from schemas import MessageResponse, UsernameAvailability
from validation import BOOKINGS, CONTACTS, USERS, is_profile_complete

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    owns_client = app.state.database is None
    if owns_client:
        app.state.database = get_database()
    gateway = Gateway.from_database(app.state.database)
    app.state.gateway = gateway

    try:
        gateway.ensure_indexes()
        logger.info("Connected to MongoDB database %s", app.state.database.name)
    except StorageError as e:
        # Keep serving; requests report their own storage errors.
        logger.error("MongoDB connection error: %s", e)

    try:
        yield
    finally:
        if owns_client:
            gateway.close()


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def _as_record(payload: Any) -> Dict[str, Any]:
    return dict(payload) if isinstance(payload, dict) else {}


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the API. Pass ``database`` to use an existing handle instead of DATABASE_URL."""
    settings = get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title="Consultation Backend", lifespan=lifespan)
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def read_root():
        return {"message": "Consultation API is running"}

    @app.get("/api/health")
    def health(gateway: Gateway = Depends(get_gateway)):
        """Check that the backend is up and the database answers."""
        response: Dict[str, Any] = {
            "backend": "running",
            "database": "not available",
            "database_name": None,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            response["collections"] = gateway.collection_names()[:10]
            response["database_name"] = gateway.collection(USERS).database.name
            response["database"] = "connected"
            response["connection_status"] = "Connected"
        except StorageError as e:
            response["database"] = f"error: {str(e)[:80]}"
        return response

    @app.post("/api/contact", status_code=201, response_model=MessageResponse)
    def submit_contact(payload: Any = Body(None), gateway: Gateway = Depends(get_gateway)):
        """Store a contact form message."""
        try:
            gateway.insert(CONTACTS, _as_record(payload))
        except ValidationError as e:
            logger.info("Rejected contact message, invalid fields: %s", e.fields)
            return JSONResponse(status_code=400, content=error_response("Please fill all required fields"))
        except Exception:
            logger.exception("Failed to store contact message")
            return JSONResponse(status_code=500, content=error_response("Failed to send message"))
        return {"message": "Message sent successfully"}

    @app.post("/api/booking", status_code=201, response_model=MessageResponse)
    def submit_booking(payload: Any = Body(None), gateway: Gateway = Depends(get_gateway)):
        """Store a consultation call booking."""
        try:
            gateway.insert(BOOKINGS, _as_record(payload))
        except ValidationError as e:
            logger.info("Rejected booking, invalid fields: %s", e.fields)
            return JSONResponse(
                status_code=400, content=error_response("Please fill all required fields correctly")
            )
        except Exception:
            logger.exception("Failed to store booking")
            return JSONResponse(status_code=500, content=error_response("Failed to book call"))
        return {"message": "Booking successful"}

    @app.get("/api/check-username/{username}", response_model=UsernameAvailability)
    def check_username(username: str, auth0Id: Optional[str] = None, gateway: Gateway = Depends(get_gateway)):
        """Report whether ``username`` is free, and whether it already belongs to ``auth0Id``."""
        try:
            existing = gateway.find_one(USERS, {"username": username})
        except StorageError as e:
            return JSONResponse(status_code=500, content=error_response(str(e)))
        return {
            "available": existing is None,
            "currentUser": existing is not None and auth0Id is not None and existing.get("auth0Id") == auth0Id,
        }

    @app.post("/api/profile")
    def upsert_profile(payload: Any = Body(None), gateway: Gateway = Depends(get_gateway)):
        """Create or update the profile owned by ``auth0Id``.

        ``profileCompleted`` is recomputed from the submitted fields; whatever
        the client sent for it is discarded.
        """
        user_data = _as_record(payload)
        auth0_id = user_data.get("auth0Id")
        try:
            if not auth0_id:
                raise PreconditionError(USER_ID_REQUIRED)

            username = user_data.get("username")
            if isinstance(username, str) and username.strip():
                # Not atomic with the write below; the username_unique index backs it up.
                taken = gateway.find_one(USERS, {"username": username.strip(), "auth0Id": {"$ne": auth0_id}})
                if taken is not None:
                    raise PreconditionError(USERNAME_TAKEN)

            user_data["profileCompleted"] = is_profile_complete(user_data)
            user = gateway.upsert(USERS, {"auth0Id": auth0_id}, user_data)
        except PreconditionError as e:
            logger.info("Profile write refused for %s: %s", auth0_id, e)
            return JSONResponse(status_code=400, content=error_response(str(e)))
        except ValidationError as e:
            logger.info("Rejected profile for %s, invalid fields: %s", auth0_id, e.fields)
            return JSONResponse(status_code=400, content=error_response(e.messages))
        except StorageError as e:
            return JSONResponse(status_code=500, content=error_response(str(e)))
        except Exception as e:
            logger.exception("Failed to save profile for %s", auth0_id)
            return JSONResponse(status_code=500, content=error_response(str(e)))
        return user

    @app.get("/api/profile/{auth0Id}")
    def get_profile(auth0Id: str, gateway: Gateway = Depends(get_gateway)):
        """Return the stored profile, or ``{}`` when there is none."""
        try:
            user = gateway.find_one(USERS, {"auth0Id": auth0Id})
        except StorageError as e:
            return JSONResponse(status_code=500, content=error_response(str(e)))
        return user or {}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logger.info("Server running on port %s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
