from __future__ import annotations

from fastapi import Request
from starlette.responses import Response

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


async def cors_middleware(request: Request, call_next):
    """
    PUBLIC_INTERFACE
    Open CORS for browser callers. OPTIONS preflights are answered with 204 and an
    empty body before routing or validation; every other response gets the
    Access-Control-* headers.
    """
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)

    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response
