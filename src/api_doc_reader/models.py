"""Data models for the resolved API description.

The reader produces these models; export and the CLI consume them.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Tag(BaseModel):
    """A named operation group with optional description."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""


class PropertySchema(BaseModel):
    """Schema of a model property, parameter or response body."""

    type: str | None = None  # string / integer / number / boolean / array / object
    format: str | None = None
    ref: str | None = None  # model name of a named definition
    items: "PropertySchema | None" = None
    additional_properties: "PropertySchema | None" = None
    enum: list | None = None
    description: str | None = None
    read_only: bool | None = None
    example: str | None = None
    unique_items: bool | None = None


class Parameter(BaseModel):
    """A single operation parameter."""

    name: str
    location: str  # path / query / header / cookie / formData / body
    required: bool
    type_schema: PropertySchema
    description: str = ""
    default: str | int | float | bool | None = None
    constraints: dict = {}  # enum, minimum, maximum, etc.


class Response(BaseModel):
    """A response entry for one status code."""

    description: str = ""
    response_schema: PropertySchema | None = None


class FlatModel(BaseModel):
    """All own and inherited properties merged into one property map."""

    kind: Literal["flat"] = "flat"
    name: str
    properties: dict[str, PropertySchema] = {}
    required: list[str] = []
    discriminator: str | None = None
    description: str = ""


class ComposedModel(BaseModel):
    """A parent model reference plus a child holding only subtype-declared properties."""

    kind: Literal["composed"] = "composed"
    name: str
    parent: str
    interfaces: list[str] = []
    child: FlatModel
    discriminator_value: str | None = None
    description: str = ""

    @property
    def properties(self) -> dict[str, PropertySchema]:
        return self.child.properties


ModelDefinition = Annotated[Union[FlatModel, ComposedModel], Field(discriminator="kind")]


class Operation(BaseModel):
    """A resolved HTTP operation with all its metadata."""

    model_config = ConfigDict(frozen=True)

    method: str  # GET / POST / PUT / DELETE / PATCH / HEAD / OPTIONS
    path: str  # /api/users/{id}
    operation_id: str
    summary: str = ""
    description: str = ""
    parameters: list[Parameter] = []
    responses: dict[str, Response] = {}  # {status_code: Response}
    tags: list[str] = []
    consumes: list[str] = []
    produces: list[str] = []
    deprecated: bool = False
    hidden: bool = False


class APIDescription(BaseModel):
    """The resolved whole: tags, path tree and the global definition table."""

    base_path: str = ""
    tags: dict[str, Tag] = {}
    paths: dict[str, list[Operation]] = {}
    definitions: dict[str, ModelDefinition] = {}

    def operations(self) -> list[Operation]:
        return [op for ops in self.paths.values() for op in ops]


class ResolutionWarning(BaseModel):
    """A non-fatal failure attributed to one operation, root or model."""

    kind: str  # ModelConflict / ExtensionFailure / MalformedMetadata / UnresolvableType
    subject: str
    message: str

    @classmethod
    def from_error(cls, error) -> "ResolutionWarning":
        return cls(kind=error.kind, subject=error.subject, message=str(error))
