import json
from typing import Any, Dict

import pydantic


class BaseModel(pydantic.BaseModel):
    """Common base for every panel record.

    Records are open: keys the schema does not name are kept in
    ``model_extra`` and written back by :meth:`to_wire`, so an inbound read from
    one panel version can be re-imported without losing fields.
    """

    model_config = pydantic.ConfigDict(
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self, *, only_set: bool = False) -> Dict[str, Any]:
        """Dump with panel key names.

        Args:
            only_set: Emit exactly the keys that were received or assigned,
                including explicit nulls, and none of the schema defaults.
                Otherwise unset optional values are dropped.
        """
        if only_set:
            return self.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_wire_json(self, *, only_set: bool = False) -> str:
        return json.dumps(self.to_wire(only_set=only_set), ensure_ascii=False)
