from pydantic import BaseModel, StringConstraints
from pydantic import ValidationError as PydanticValidationError
from typing import Annotated, Any, Mapping, Type, TypeVar, Union

from bloglab.exceptions import ValidationError

# Required text: surrounding whitespace is dropped, an empty result is rejected
NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

P = TypeVar("P", bound="Payload")

class Payload(BaseModel):
    """Base for creation/update payloads.

    ``parse`` turns pydantic validation failures into the lab's own
    ``ValidationError`` so callers only deal with one taxonomy.
    """

    @classmethod
    def parse(cls: Type[P], data: Union[P, Mapping[str, Any], None] = None, **fields: Any) -> P:
        if isinstance(data, cls):
            return data
        values = dict(data or {})
        values.update(fields)
        try:
            return cls(**values)
        except PydanticValidationError as e:
            invalid = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise ValidationError(
                f"Invalid {cls.__name__}",
                context={"fields": ",".join(invalid)}
            ) from e

def parse_payload(model_cls: Type[P], data: Union[P, Mapping[str, Any], None] = None, **fields: Any) -> P:
    return model_cls.parse(data, **fields)

def reject_null(value: Any) -> Any:
    """For update fields that may be left out but never set to null"""
    if value is None:
        raise ValueError("must not be null")
    return value
