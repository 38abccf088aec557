import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from healthlink.core import config
from healthlink.core.exceptions import HealthLinkError
from healthlink.database import Base, engine, ensure_appointment_schema, ensure_availability_schema
from healthlink.models import appointment, availability, medical_record, user  # noqa: F401
from healthlink.routes import admin_routes, appointment_routes, doctor_routes
from healthlink.routes.common import DATABASE_UNAVAILABLE_DETAIL

app = FastAPI(title='HealthLink API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.exception_handler(HealthLinkError)
def handle_healthlink_error(request: Request, exc: HealthLinkError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.message})


@app.exception_handler(SQLAlchemyError)
def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error('Database error while handling %s %s', request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={'detail': DATABASE_UNAVAILABLE_DETAIL},
    )


@app.get('/')
def root():
    return {'status': 'HealthLink API Running'}


app.include_router(doctor_routes.router, prefix='/api/v1/doctor')
app.include_router(appointment_routes.router, prefix='/api/v1/appointments')
app.include_router(admin_routes.router, prefix='/api/v1/admin')
