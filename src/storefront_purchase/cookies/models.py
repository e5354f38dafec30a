"""
Cookie records shared between the persisted jar and the live browser context
"""
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

CookieKey = Tuple[str, str]


class CookieRecord(BaseModel):
    """One cookie, keyed by (domain, name)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    domain: str
    value: str
    path: str = "/"
    expires: float = -1
    http_only: bool = Field(default=False, alias="httpOnly")
    secure: bool = False
    same_site: Optional[str] = Field(default=None, alias="sameSite")

    @property
    def key(self) -> CookieKey:
        return (self.domain, self.name)

    def to_browser(self) -> Dict:
        """Playwright `add_cookies` shape"""
        cookie = self.model_dump(by_alias=True, exclude_none=True)
        if cookie.get("expires") is None or cookie["expires"] < 0:
            cookie["expires"] = -1
        return cookie

    @classmethod
    def from_browser(cls, cookie: Dict) -> "CookieRecord":
        """Build from a Playwright `context.cookies()` entry"""
        return cls(
            name=cookie["name"],
            domain=cookie["domain"],
            value=cookie.get("value", ""),
            path=cookie.get("path") or "/",
            expires=cookie.get("expires", -1) if cookie.get("expires") is not None else -1,
            httpOnly=cookie.get("httpOnly", False),
            secure=cookie.get("secure", False),
            sameSite=cookie.get("sameSite"),
        )


class CookieSet:
    """Mapping of (domain, name) to CookieRecord; the last insert for a key wins"""

    def __init__(self, records: Iterable[CookieRecord] = ()):
        self._records: Dict[CookieKey, CookieRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: CookieRecord):
        self._records[record.key] = record

    def get(self, domain: str, name: str) -> Optional[CookieRecord]:
        return self._records.get((domain, name))

    def merge(self, other: "CookieSet") -> "CookieSet":
        merged = CookieSet(self)
        for record in other:
            merged.add(record)
        return merged

    def to_browser(self) -> List[Dict]:
        return [record.to_browser() for record in self]

    @classmethod
    def from_browser(cls, cookies: Iterable[Dict]) -> "CookieSet":
        return cls(CookieRecord.from_browser(c) for c in cookies)

    def __iter__(self) -> Iterator[CookieRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key) -> bool:
        return key in self._records

    def __eq__(self, other) -> bool:
        if not isinstance(other, CookieSet):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"CookieSet({len(self)} cookies)"
