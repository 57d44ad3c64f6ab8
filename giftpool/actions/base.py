from collections.abc import Awaitable, Callable
from typing import TypeVar
import logging

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from giftpool.core.errors import GiftPoolError
from giftpool.db.session import get_db
from giftpool.schemas.result import ActionFailure, ActionSuccess

logger = logging.getLogger("giftpool.actions")

T = TypeVar("T")

GENERIC_ERROR = "Something went wrong, please try again later"


def _format_schema_error(exc: SchemaValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "input"
        parts.append(f"{field}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts) or "Invalid input"


async def run_action(
    name: str,
    operation: Callable[[AsyncSession], Awaitable[T]],
) -> ActionSuccess[T] | ActionFailure:
    """Run ``operation`` in a fresh session and wrap its outcome in a result envelope.

    Nothing raised by the operation crosses this boundary.
    """
    try:
        async with get_db() as db:
            data = await operation(db)
    except GiftPoolError as exc:
        logger.info("Action %s rejected error=%s message=%s", name, type(exc).__name__, exc.message)
        return ActionFailure(error=exc.message)
    except SchemaValidationError as exc:
        message = _format_schema_error(exc)
        logger.info("Action %s rejected invalid input: %s", name, message)
        return ActionFailure(error=message)
    except Exception:
        logger.exception("Action %s failed", name)
        return ActionFailure(error=GENERIC_ERROR)
    return ActionSuccess(data=data)
