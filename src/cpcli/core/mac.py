"""
cpcli - MAC Address Canonicalization

ClearPass stores MAC addresses in different formats depending on the resource,
so every MAC-like filter value goes through this canonical form first.
"""

_SEPARATORS = (":", "-", ".")


class MAC(str):
    """MAC address in canonical form: 12 uppercase characters, no separators.

    Separators are stripped and short input is zero-extended on the left, so
    ``MAC("86:df:11:22:33") == "0086DF112233"``. Input is never rejected.
    """

    def __new__(cls, raw: str) -> "MAC":
        for separator in _SEPARATORS:
            raw = raw.replace(separator, "")
        raw = ("0" * 12) + raw.strip().upper()
        return super().__new__(cls, raw[-12:])

    def _split(self, size: int) -> list[str]:
        return [self[i:i + size] for i in range(0, 12, size)]

    def colon(self) -> str:
        """Uppercased, colon-separated representation."""
        return ":".join(self._split(2))

    def hyphen(self) -> str:
        """Uppercased, hyphen-separated representation."""
        return "-".join(self._split(2))

    def dot(self) -> str:
        """Uppercased, dot-separated (Cisco style) representation."""
        return ".".join(self._split(4))
