"""Serializable views of registry state."""

from pydantic import BaseModel, Field

from plugsmith.plugins.keys import HandlerCall
from plugsmith.plugins.record import PluginRecord
from plugsmith.plugins.source import SourceKind


class PluginInfo(BaseModel):
    """Snapshot of one registered plugin."""

    alias: str
    import_key: str
    kind: SourceKind
    url: str = ""
    ref: str = ""
    artifact: str
    update: bool = False
    state: str
    loaded: bool = False

    @classmethod
    def from_record(cls, record: PluginRecord) -> "PluginInfo":
        return cls(
            alias=record.alias,
            import_key=record.import_key,
            kind=record.kind,
            url=record.url,
            ref=record.ref,
            artifact=str(record.artifact),
            update=record.update,
            state=record.state.name.lower(),
            loaded=record.loaded,
        )


class ParsedKey(BaseModel):
    """Result of parsing a plugin key without registering it."""

    key: str
    source: str
    alias: str
    kind: SourceKind
    url: str = ""
    version: str = ""
    branch: str = ""


class ParsedHandler(BaseModel):
    """Result of parsing a handler key."""

    alias: str
    method: str
    args: list[str] = Field(default_factory=list)

    @classmethod
    def from_call(cls, call: HandlerCall) -> "ParsedHandler":
        return cls(alias=call.alias, method=call.method, args=list(call.args))
