"""Closed set of ERP adapter variants."""

from enum import Enum

from erp.exceptions import UnknownProvider


class Provider(str, Enum):
    """ERP backends the registry can construct."""

    ERPNEXT = "erpnext"
    MOCK = "mock"

    @classmethod
    def parse(cls, name: "str | Provider") -> "Provider":
        """
        Resolve a configured provider name (case-insensitive).

        Raises:
            UnknownProvider: name matches no variant
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise UnknownProvider(str(name))
