from typing import Any, Iterable, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from duplicate_detector.core.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_model(model: Type[ModelT], data: Any) -> ModelT:
    """
    Coerces a dict (or an already validated instance) into `model`,
    translating pydantic failures into the domain ValidationError.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {model.__name__}",
            errors=_flatten(e.errors(include_url=False), prefix=())
        )


def parse_items(model: Type[ModelT], items: Iterable[Any]) -> list[ModelT]:
    """
    Validates every entry before returning any of them, so callers can
    refuse a whole batch when a single entry is bad.

    Raises:
        ValidationError: Listing every failing entry by index.
    """
    parsed: list[ModelT] = []
    errors: list[dict] = []

    for index, item in enumerate(items):
        if isinstance(item, model):
            parsed.append(item)
            continue
        try:
            parsed.append(model.model_validate(item))
        except PydanticValidationError as e:
            errors.extend(_flatten(e.errors(include_url=False), prefix=(index,)))

    if errors:
        raise ValidationError(
            f"{len(errors)} invalid {model.__name__} entr{'y' if len(errors) == 1 else 'ies'}",
            errors=errors
        )
    return parsed


def check_page(limit: int, offset: int, maximum: int) -> None:
    if not isinstance(limit, int) or limit <= 0 or limit > maximum:
        raise ValidationError(f"limit must be between 1 and {maximum}, got {limit}")
    if not isinstance(offset, int) or offset < 0:
        raise ValidationError(f"offset must be >= 0, got {offset}")


def _flatten(errors: list[dict], prefix: tuple) -> list[dict]:
    # Context objects (e.g. the original ValueError) are not JSON serializable
    return [
        {"loc": list(prefix) + list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in errors
    ]
