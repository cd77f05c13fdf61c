"""백업 저장소(/var/lib/pgbackrest) 디스크 사용률."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


async def repository_usage(path: str | Path) -> Optional[float]:
    """저장소가 있는 파일시스템 사용률 (0~1). 디렉터리가 없으면 None.

    df 의 Use% 와 같은 기준: used / (used + available).
    """
    repo = Path(path)
    try:
        usage = await asyncio.to_thread(shutil.disk_usage, repo)
    except FileNotFoundError:
        logger.debug("Backup repository not present: %s", repo)
        return None
    except OSError as e:
        logger.warning("Backup repository usage unavailable: %s (%s)", repo, e)
        return None

    capacity = usage.used + usage.free
    if capacity <= 0:
        return None
    return usage.used / capacity
