"""
HTTP front end for the complex-number calculator.

Each request runs the same tokenizer -> parser -> evaluator -> formatter pipeline as the REPL and
is evaluated independently; nothing is remembered between requests.

Endpoints:
- POST /evaluate   body {"expression": "..."}
- GET  /evaluate?expression=...
- GET  /vocabulary  operators, constants and functions the parser understands

A parse failure answers 400 with detail "parse failed"; an evaluation failure answers 400 with
detail "evaluation failed".
"""

import logging
import math
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Annotated, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from . import __version__
from .config import Config, configure_logging, load_config
from .main import (
    CONSTANTS,
    FUNCTION_ARITY,
    OPERATORS,
    UNARY_OPERATORS,
    EvalError,
    ParseError,
    calculate,
    format_value,
)

logger = logging.getLogger(__name__)

# ----- Pydantic Models -----

class EvaluationRequest(BaseModel):
    """Model for an expression submitted in a request body."""
    expression: str = Field(..., description="Expression to evaluate, e.g. 3+4i")

    @field_validator('expression')
    @classmethod
    def expression_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Expression cannot be empty')
        return v


class EvaluationResponse(BaseModel):
    """Model for a successful evaluation."""
    expression: str
    result: str
    real: Optional[float] = Field(None, description="Real part, null when not finite")
    imag: Optional[float] = Field(None, description="Imaginary part, null when not finite")


class FunctionInfo(BaseModel):
    name: str
    arity: int


class VocabularyResponse(BaseModel):
    """Model for the recognized symbols."""
    operators: List[str]
    constants: Dict[str, float]
    functions: List[FunctionInfo]


class ErrorResponse(BaseModel):
    """Model for error responses."""
    detail: str


# ----- Service Layer -----

def _finite_or_none(x: float) -> Optional[float]:
    return x if math.isfinite(x) else None


def evaluate_expression(expression: str, precision: int) -> EvaluationResponse:
    """
    Evaluate an expression for an HTTP caller.

    Raises:
        HTTPException: 400 when the expression fails to parse or to evaluate
    """
    try:
        value = calculate(expression)
    except ParseError as e:
        logger.info(f"Parse failed for {expression!r}: {e}")
        raise HTTPException(status_code=400, detail="parse failed")
    except EvalError as e:
        logger.info(f"Evaluation failed for {expression!r}: {e}")
        raise HTTPException(status_code=400, detail="evaluation failed")

    return EvaluationResponse(
        expression=expression,
        result=format_value(value, precision),
        real=_finite_or_none(value.real),
        imag=_finite_or_none(value.imag),
    )


# ----- Dependency Injection -----

@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Dependency for runtime configuration.
    Reads .env and the environment once, on first use, and applies the configured log level.
    Tests override it through app.dependency_overrides.
    """
    load_dotenv()
    config = load_config()
    configure_logging(config.log_level)
    return config


# ----- Application Lifecycle -----

@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    logger.info(f"blicalc API starting up (precision={config.precision})")
    yield
    logger.info("blicalc API shutting down")


# ----- Application -----

app = FastAPI(
    title="blicalc",
    description="Evaluate arithmetic expressions over complex numbers",
    version=__version__,
    lifespan=lifespan,
)


# ----- API Routes -----

_ERROR_RESPONSES = {400: {"model": ErrorResponse}}

# At least one non-whitespace character, matching EvaluationRequest's validator.
_NOT_BLANK = r"^\s*\S[\s\S]*$"


@app.post(
    "/evaluate",
    response_model=EvaluationResponse,
    responses=_ERROR_RESPONSES,
    summary="Evaluate an expression from a JSON body",
)
async def evaluate_post(
    request: EvaluationRequest,
    config: Config = Depends(get_config),
):
    logger.info(f"Processing POST evaluate request: {request.expression!r}")
    return evaluate_expression(request.expression, config.precision)


@app.get(
    "/evaluate",
    response_model=EvaluationResponse,
    responses=_ERROR_RESPONSES,
    summary="Evaluate an expression from the query string",
)
async def evaluate_get(
    expression: Annotated[
        str,
        Query(..., min_length=1, pattern=_NOT_BLANK, description="Expression to evaluate"),
    ],
    config: Config = Depends(get_config),
):
    logger.info(f"Processing GET evaluate request: {expression!r}")
    return evaluate_expression(expression, config.precision)


@app.get("/vocabulary", response_model=VocabularyResponse, summary="List recognized symbols")
async def vocabulary():
    return VocabularyResponse(
        operators=[op for op in OPERATORS if op not in UNARY_OPERATORS],
        constants={name: value.real for name, value in CONSTANTS.items()},
        functions=[FunctionInfo(name=name, arity=arity) for name, arity in FUNCTION_ARITY.items()],
    )


# ----- Main Entry Point -----

if __name__ == "__main__":
    import uvicorn

    _settings = get_config()
    uvicorn.run(app, host=_settings.host, port=_settings.port)
