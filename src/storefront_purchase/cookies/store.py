"""
Persisted cookie jars, one per identity
"""
import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from .models import CookieRecord, CookieSet

logger = logging.getLogger(__name__)


class CookieStore(ABC):
    """Cookie jar storage partitioned by identity"""

    @abstractmethod
    async def load(self, identity: str) -> CookieSet:
        pass

    @abstractmethod
    async def save(self, identity: str, cookies: CookieSet) -> None:
        pass


class FileCookieStore(CookieStore):
    """Stores each identity's jar as a JSON session file under `cookies_dir`"""

    def __init__(self, cookies_dir: Path):
        self.cookies_dir = Path(cookies_dir)

    def path_for(self, identity: str) -> Path:
        safe_name = re.sub(r"[^\w.@+-]", "_", identity)
        return self.cookies_dir / f"{safe_name}.json"

    async def load(self, identity: str) -> CookieSet:
        session_file = self.path_for(identity)
        if not session_file.exists():
            logger.info(f"No saved cookies for {identity}")
            return CookieSet()

        with open(session_file, "r", encoding="utf-8") as f:
            session_data = json.load(f)

        cookies = CookieSet(CookieRecord.model_validate(c) for c in session_data.get("cookies", []))
        logger.debug(f"Loaded {len(cookies)} cookies for {identity}")
        return cookies

    async def save(self, identity: str, cookies: CookieSet) -> None:
        session_file = self.path_for(identity)
        session_file.parent.mkdir(parents=True, exist_ok=True)

        session_data = {
            "cookies": [c.model_dump(by_alias=True) for c in cookies],
            "saved_at": datetime.now().isoformat(),
        }

        # Write then rename so a crash never leaves half a jar behind
        fd, tmp_path = tempfile.mkstemp(dir=session_file.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(session_data, f, indent=2)
            os.replace(tmp_path, session_file)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info(f"💾 Saved {len(cookies)} cookies for {identity}")
