"""Provider payload as fetched, before conversion to a standardized entity."""

from typing import Any

from pydantic import BaseModel, Field

# Keys providers use for a record's own id, checked in order
_ID_KEYS = ("id", "Id", "organization_id")


class RawRecord(BaseModel):
    """One untyped provider payload. Adapters build and consume it; nothing downstream sees it."""

    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def source_id(self) -> str:
        """Provider id of the record for log messages, '?' when absent."""
        for key in _ID_KEYS:
            if self.data.get(key) not in (None, ""):
                return str(self.data[key])
        account = self.data.get("account")
        if isinstance(account, dict) and account.get("Id"):
            return str(account["Id"])
        return "?"
