from __future__ import annotations

import re
from typing import Optional, Union

# <:name:123> or <a:name:123>
CUSTOM_EMOJI_RE = re.compile(r"<a?:[^:>]+:(\d+)>")


def custom_emoji_id(token: Union[str, int, None]) -> Optional[int]:
    """Return the numeric id embedded in a custom emoji token, else None."""
    if token is None:
        return None
    if isinstance(token, int):
        return token
    s = str(token).strip()
    m = CUSTOM_EMOJI_RE.fullmatch(s)
    if m:
        return int(m.group(1))
    if s.isdigit():
        return int(s)
    return None


def emoji_matches(reacted: Union[str, int, None], configured: Optional[str]) -> bool:
    """Compare a reacted emoji with the configured trigger.

    Custom emoji compare by id (names can change); unicode emoji compare literally.
    """
    if reacted is None or not configured:
        return False
    want_id = custom_emoji_id(configured)
    if want_id is not None:
        return custom_emoji_id(reacted) == want_id
    return str(reacted).strip() == str(configured).strip()

