"""Request model shared by the relay endpoint and the stream consumer."""

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr


class ExplainRequest(BaseModel):
    """A block of source code and the target-audience flag.

    Field types are strict: ``"true"`` is not a boolean and ``123`` is not
    code. The wire name of ``explain_to_child`` is ``explainToChild``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: StrictStr
    explain_to_child: StrictBool = Field(alias="explainToChild")

    def to_wire(self) -> dict:
        """JSON body as sent to the relay endpoint."""
        return self.model_dump(by_alias=True)
