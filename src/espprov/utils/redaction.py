from __future__ import annotations

import re
from dataclasses import dataclass, field

UID_RUN = re.compile(r"\d{10,}")


@dataclass
class Redactor:
    enabled: bool = True
    _address_map: dict[str, int] = field(default_factory=dict)
    _address_counter: int = 0

    def redact_secret(self, secret: str) -> str:
        if not self.enabled or not secret:
            return secret
        return "*" * 8

    def redact_address(self, address: str) -> str:
        if not self.enabled:
            return address
        parts = address.split(":")
        if len(parts) != 6:
            return address
        prefix = ":".join(parts[:3])
        counter = self._address_map.get(address)
        if counter is None:
            self._address_counter += 1
            counter = self._address_counter
            self._address_map[address] = counter
        return f"{prefix}:xx:xx:{counter:02d}"

    def redact_uid(self, uid: str | None) -> str:
        if uid is None:
            return ""
        if not self.enabled or len(uid) <= 4:
            return uid
        return f"{'x' * (len(uid) - 4)}{uid[-4:]}"

    def redact_text(self, text: str, secret: str = "") -> str:
        if not self.enabled:
            return text
        if secret:
            text = text.replace(secret, self.redact_secret(secret))
        return UID_RUN.sub(lambda found: self.redact_uid(found.group()), text)
