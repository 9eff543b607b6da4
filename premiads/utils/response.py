from typing import Any, Optional, Dict
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from premiads.core.exceptions import MissionWorkflowError


def success_response(
    message: str = "Success",
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """
    Standard success response
    
    Args:
        message: Success message
        data: Response data (optional)
        status_code: HTTP status code (default: 200)
    
    Returns:
        JSONResponse with success format
    """
    response = {
        "success": True,
        "message": message
    }
    
    if data is not None:
        response["data"] = jsonable_encoder(data)
    
    return JSONResponse(content=response, status_code=status_code)


def error_response(
    message: str = "Error",
    status_code: int = 400,
    error: Optional[str] = None
) -> JSONResponse:
    """
    Standard error response
    
    Args:
        message: Error message
        status_code: HTTP status code (default: 400)
        error: Machine-readable error code (optional)
    
    Returns:
        JSONResponse with error format
    """
    content = {
        "success": False,
        "message": message
    }
    
    if error:
        content["error"] = error
    
    return JSONResponse(content=content, status_code=status_code)


def workflow_error_response(exc: MissionWorkflowError) -> JSONResponse:
    """Render a workflow error with its HTTP status and error code"""
    response = error_response(
        message=exc.message,
        status_code=exc.status_code,
        error=exc.code
    )
    if exc.retryable:
        response.headers["Retry-After"] = "1"
    return response


def validation_error_response(
    message: str = "Validation error",
    errors: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """
    Standard validation error response
    
    Args:
        message: Validation error message
        errors: Dictionary of validation errors (optional)
    
    Returns:
        JSONResponse with validation error format (422)
    """
    response = {
        "success": False,
        "message": message
    }
    
    if errors:
        response["errors"] = errors
    
    return JSONResponse(content=response, status_code=422)
