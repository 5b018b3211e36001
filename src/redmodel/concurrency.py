"""Compare-and-set writes for the serial attribute group.

The check of the stored token, the token increment, and the attribute write
run as a single server-side routine, so two writers holding the same token
can never both succeed.
"""

from __future__ import annotations

import logging

from redmodel.codec import CAS, NDATA, SDATA
from redmodel.errors import CasViolationError
from redmodel.store import Script, Store

logger = logging.getLogger(__name__)

# KEYS[1]  object hash
# ARGV[1]  encoded serial attributes
# ARGV[2]  caller's token ("" when the caller never read one)
# ARGV[3]  encoded plain attributes (optional)
SAVE_SCRIPT = Script(
    "save",
    f"""
local current = redis.call('HGET', KEYS[1], '{CAS}')
if (not current) or current == ARGV[2] then
  local token = 1
  if current then
    token = tonumber(current) + 1
  end
  redis.call('HSET', KEYS[1], '{SDATA}', ARGV[1], '{CAS}', token)
  if #ARGV >= 3 then
    redis.call('HSET', KEYS[1], '{NDATA}', ARGV[3])
  end
  return token
end
return false
""".strip(),
)


class ConcurrencyGuard:
    """Optimistic concurrency for serial attributes."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def atomic_update(
        self,
        key: str,
        current_token: int | None,
        serial_payload: bytes,
        other_payload: bytes | None = None,
    ) -> int:
        """Write ``serial_payload`` if the stored token still equals ``current_token``.

        A key with no stored token accepts any caller token. Returns the new
        token; raises :class:`CasViolationError` when the stored token moved on.
        """
        args: list[bytes | str] = [
            serial_payload,
            "" if current_token is None else str(current_token),
        ]
        if other_payload is not None:
            args.append(other_payload)

        result = self.store.run_script(SAVE_SCRIPT, [key], args)
        if result is None:
            logger.warning("CAS conflict on %s (token %r)", key, current_token)
            raise CasViolationError(key, current_token)
        return int(result)
