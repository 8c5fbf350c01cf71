from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.access.routes import router as access_router
from app.api.access_logs.routes import router as access_logs_router
from app.api.bulk_exits.routes import router as bulk_exits_router
from app.api.invitations.routes import router as invitations_router
from app.api.walk_in_visitors.routes import router as walk_in_visitors_router
from app.core.config import Environment, settings
from app.core.database import create_db
from app.core.exceptions.access_exceptions import AccessError
from app.core.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENVIRONMENT != Environment.TEST:
        create_db()
    yield


app = FastAPI(lifespan=lifespan)


@app.exception_handler(AccessError)
async def access_error_handler(request: Request, exc: AccessError):
    logger.info(
        'Access error on %s: %s (%s)', request.url.path, exc.detail, exc.error_code
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={'detail': exc.detail, 'error': exc.error_code, **exc.extra()},
    )


# Include routers
app.include_router(access_router, prefix='/access', tags=['Access'])
app.include_router(access_logs_router, prefix='/access-logs', tags=['Access Logs'])
app.include_router(bulk_exits_router, prefix='/bulk-exits', tags=['Bulk Exits'])
app.include_router(invitations_router, prefix='/invitations', tags=['Invitations'])
app.include_router(
    walk_in_visitors_router, prefix='/walk-in-visitors', tags=['Walk-in Visitors']
)

origins = ['*']
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.get('/', include_in_schema=False)
def ping():
    return Response(status_code=200)
