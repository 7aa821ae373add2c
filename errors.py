from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class AppError(HTTPException):
    def __init__(self, status_code: int, message: str):
        super().__init__(status_code=status_code, detail=message)

    @property
    def message(self) -> str:
        return self.detail


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, message)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(status.HTTP_403_FORBIDDEN, message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "You are not authorized!"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request"):
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class ConflictError(AppError):
    def __init__(self, message: str = "Already exists"):
        super().__init__(status.HTTP_409_CONFLICT, message)


def send_response(message: str, data=None) -> dict:
    return {"success": True, "message": message, "data": data}


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail), "statusCode": exc.status_code},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    sources = [
        {"path": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Validation Error",
            "statusCode": 422,
            "errorSources": sources,
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
