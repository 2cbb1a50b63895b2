"""Read protocol descriptions from YAML text."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import yaml

from framecodec.model.errors import ProtocolValidationError
from framecodec.model.protocol import Protocol
from framecodec.protocols.validator import ensure_valid

from .schema import parse_protocol_spec


class ProtocolDocumentLoader:
    """Parses a YAML document once and caches the resulting protocols.

    The document either describes a single protocol at its root or lists
    several under ``protocols:``.
    """

    def __init__(self, text: str, *, validate: bool = True):
        self._text = text
        self._validate = validate
        self._protocols: Optional[List[Protocol]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def protocols(self) -> List[Protocol]:
        if self._protocols is None:
            self._protocols = self._load()
        return list(self._protocols)

    def protocol_by_name(self, name: str) -> Protocol:
        for protocol in self.protocols():
            if protocol.name == name:
                return protocol
        raise ProtocolValidationError(f"Unknown protocol '{name}' in document")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _load(self) -> List[Protocol]:
        try:
            raw = yaml.safe_load(self._text)
        except yaml.YAMLError as exc:
            raise ProtocolValidationError(f"Invalid YAML document: {exc}") from exc

        entries = self._entries(raw)
        protocols: List[Protocol] = []
        for idx, entry in enumerate(entries):
            try:
                protocol = parse_protocol_spec(entry)
                if self._validate:
                    ensure_valid(protocol)
            except ProtocolValidationError as exc:
                if len(entries) == 1:
                    raise
                raise ProtocolValidationError(
                    f"protocols[{idx}]: {exc}", exc.issues
                ) from exc
            protocols.append(protocol)
        return protocols

    @staticmethod
    def _entries(raw: Any) -> List[Dict[str, Any]]:
        if not isinstance(raw, dict):
            raise ProtocolValidationError("Document root must be a mapping")
        if "protocols" not in raw:
            return [raw]
        entries = raw["protocols"]
        if not isinstance(entries, list) or not entries:
            raise ProtocolValidationError("protocols must be a non-empty list")
        return entries


def parse_protocol_document(text: str, *, validate: bool = True) -> List[Protocol]:
    """Convenience helper returning every protocol described by ``text``."""

    return ProtocolDocumentLoader(text, validate=validate).protocols()
