"""
Records exchanged with the Vertex API.

Each record is a pydantic model whose snake_case attributes map to the
server's camelCase wire names. Fields the server sends that a record does
not know about are kept as model extras and written back by to_dict(), so
a record read from one call can be sent to another without losing anything.

Fields whose shape varies on the server (rule priority, comparison value,
fit time, conditions) are typed Any and never coerced.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_serializer, model_validator
from pydantic.alias_generators import to_camel

from .errors import MalformedResponseError


# Raw JSON value: dict, list, str, int, float, bool or None
JSONValue = Any


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    # Fields left out of the payload when empty, so the server assigns them
    OMIT_EMPTY: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # The server sends null for unset fields; those fall back to their defaults
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields)
        known.update(f.alias or to_camel(name) for name, f in cls.model_fields.items())
        return {k: v for k, v in data.items() if v is not None or k not in known}

    @model_serializer(mode="wrap")
    def omit_empty(self, handler) -> Dict[str, Any]:
        data = handler(self)
        for name in self.OMIT_EMPTY:
            for key in (name, to_camel(name)):
                if key in data and not data[key]:
                    del data[key]
        return data

    @classmethod
    def from_dict(cls, data: Any):
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected an object for {cls.__name__}, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid {cls.__name__}: {e}") from e

    @classmethod
    def from_list(cls, data: Any) -> list:
        if data is None:
            return []
        if not isinstance(data, list):
            raise MalformedResponseError(f"Expected a list of {cls.__name__}, got {type(data).__name__}")
        return [cls.from_dict(item) for item in data]

    @property
    def extra(self) -> Dict[str, Any]:
        """Wire fields this record does not model."""
        return dict(self.model_extra or {})

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# -----------------------------------------------------------------------------
# Servers
# -----------------------------------------------------------------------------

class Server(Record):
    id: str = ""
    alias: str = ""
    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    enable: bool = False
    status: bool = False
    used: bool = False


class VnstatInfo(Record):
    """Traffic statistics for one server, as reported by vnstat."""
    five_minute: JSONValue = Field(default=None, alias="fiveminute")
    hour: JSONValue = None
    day: JSONValue = None
    month: JSONValue = None


# -----------------------------------------------------------------------------
# Downloaders
# -----------------------------------------------------------------------------

class DownloaderConfig(Record):
    OMIT_EMPTY: ClassVar[Tuple[str, ...]] = ("id", "same_server_clients")

    id: str = ""
    alias: str = ""
    type: str = ""  # e.g. "qBittorrent"
    client_url: str = ""
    username: str = ""
    password: str = ""
    enable: bool = False
    push_notify: bool = False
    notify: str = ""
    push_monitor: bool = False
    monitor: str = ""
    cron: str = ""
    auto_reannounce: bool = False
    first_last_piece_prio: bool = False
    space_alarm: bool = False
    alarm_space: str = ""
    alarm_space_unit: str = ""
    max_upload_speed: str = ""
    max_upload_speed_unit: str = ""
    max_download_speed: str = ""
    max_download_speed_unit: str = ""
    min_free_space: str = ""
    min_free_space_unit: str = ""
    max_leech_num: str = ""
    auto_delete: bool = False
    auto_delete_cron: str = ""
    reject_delete_rules: List[str] = Field(default_factory=list)
    delete_rules: List[str] = Field(default_factory=list)
    save_path: str = ""
    same_server_clients: List[str] = Field(default_factory=list)


class DownloaderInfo(DownloaderConfig):
    """A downloader's configuration plus its live status."""
    status: bool = False
    upload_speed: float = 0
    download_speed: float = 0
    all_time_upload: int = 0
    all_time_download: int = 0
    leeching_count: int = 0
    seeding_count: int = 0


# -----------------------------------------------------------------------------
# RSS tasks and rules
# -----------------------------------------------------------------------------

class RssConfig(Record):
    OMIT_EMPTY: ClassVar[Tuple[str, ...]] = ("id",)

    id: str = ""
    alias: str = ""
    rss_url: str = ""
    client: str = ""  # downloader id
    enable: bool = False
    push: bool = False
    auto_reseed: bool = False
    accept_rules: List[str] = Field(default_factory=list)
    reject_rules: List[str] = Field(default_factory=list)
    same_server_clients: List[str] = Field(default_factory=list)


class RssRule(Record):
    """Torrent selection rule used by RSS tasks."""
    OMIT_EMPTY: ClassVar[Tuple[str, ...]] = ("id", "code")

    id: str = ""
    alias: str = ""
    type: str = ""
    conditions: JSONValue = None
    must_not_contain: List[str] = Field(default_factory=list)
    not_contain: List[str] = Field(default_factory=list)
    size: str = ""
    min_size: str = ""
    max_size: str = ""
    code: str = ""
    priority: JSONValue = None
    standard: bool = False
    support_categories: List[str] = Field(default_factory=list)
    restricted_trackers: List[str] = Field(default_factory=list)


class DeleteRule(Record):
    """Automatic torrent deletion rule."""
    OMIT_EMPTY: ClassVar[Tuple[str, ...]] = ("id", "code")

    id: str = ""
    alias: str = ""
    type: str = ""
    priority: JSONValue = None
    conditions: JSONValue = None
    code: str = ""
    maindata: str = ""
    comparetor: str = ""  # sic, server field name
    value: JSONValue = None
    fit_time: JSONValue = None
    ignore_free_space: bool = False


# -----------------------------------------------------------------------------
# Torrents and history
# -----------------------------------------------------------------------------

class TorrentHistory(Record):
    id: int = 0
    rss_id: str = ""
    name: str = ""
    size: int = 0
    link: str = ""
    record_type: int = 0
    record_note: str = ""
    upload: int = 0
    download: int = 0
    tracker: str = ""
    record_time: int = 0
    add_time: int = 0
    delete_time: int = 0
    hash: str = ""


class Torrent(Record):
    OMIT_EMPTY: ClassVar[Tuple[str, ...]] = ("link",)

    hash: str = ""
    name: str = ""
    size: int = 0
    progress: float = 0  # 0-1
    upload_speed: int = 0
    download_speed: int = 0
    state: str = ""
    client_alias: str = ""
    link: str = ""


class HistoryPage(Record):
    torrents: List[TorrentHistory] = Field(default_factory=list)
    total: int = 0


class TorrentPage(Record):
    torrents: List[Torrent] = Field(default_factory=list)
    total: int = 0


SORT_TYPES = ("asc", "desc")


@dataclass
class TorrentListOptions:
    """
    Query for list_torrents().

    Attributes:
        client_list: Downloader ids to query; empty means every downloader
        page: 1-based page number
        length: Page size
        search_key: Substring to match in torrent names
        sort_key: Field to sort by, e.g. "addTime"
        sort_type: "asc" or "desc"
    """
    client_list: List[str] = field(default_factory=list)
    page: int = 1
    length: int = 10
    search_key: Optional[str] = None
    sort_key: Optional[str] = None
    sort_type: Optional[str] = None

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page is 1-based and must be >= 1")
        if self.length < 1:
            raise ValueError("length must be >= 1")
        if self.sort_type and self.sort_type not in SORT_TYPES:
            raise ValueError(f"sort_type must be one of {SORT_TYPES}, got {self.sort_type!r}")

    def to_params(self, client_ids: List[str]) -> Dict[str, Any]:
        return {
            "clientList": list(client_ids),
            "page": self.page,
            "length": self.length,
            "searchKey": self.search_key or None,
            "sortKey": self.sort_key or None,
            "sortType": self.sort_type or None,
        }
