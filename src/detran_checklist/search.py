"""Service search index derived from the catalog."""

from __future__ import annotations

import re
import unicodedata
from typing import Dict, List

from rapidfuzz import fuzz

from .catalog import CatalogState
from .models import ServiceCategory, ServiceSummary

TOKEN_PATTERN = re.compile(r"[^\w]+", re.UNICODE)


def normalise_whitespace(value: str) -> str:
    """Collapse multiple whitespace characters into a single space."""

    return " ".join(value.split())


def fold(text: str) -> str:
    """Lowercase and strip accents so "habilitacao" finds "Habilitação"."""

    decomposed = unicodedata.normalize("NFKD", normalise_whitespace(text).lower())
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def _tokenise(text: str) -> List[str]:
    cleaned = TOKEN_PATTERN.sub(" ", fold(text))
    return [token for token in cleaned.split(" ") if token]


class ServiceSearchIndex:
    """Lightweight inverted index with fuzzy scoring fallback."""

    def __init__(self, catalog: CatalogState) -> None:
        self._catalog = catalog
        self._index: Dict[str, set[str]] = {}
        self.rebuild()

    def rebuild(self) -> None:
        self._index.clear()
        for service in self._catalog.services.values():
            tokens = set(_tokenise(service.title))
            if service.description:
                tokens.update(_tokenise(service.description))
            for token in tokens:
                self._index.setdefault(token, set()).add(service.id)

    def search(
        self,
        query: str,
        *,
        category: ServiceCategory | str | None = None,
        limit: int = 10,
    ) -> List[ServiceSummary]:
        wanted = ServiceCategory(category) if category is not None else None
        services = self._catalog.services

        if not query.strip():
            if wanted is None:
                return []
            listed = [s for s in services.values() if s.category == wanted]
            return [ServiceSummary.from_service(service) for service in listed[:limit]]

        folded_query = fold(query)
        candidates: Dict[str, int] = {}
        for token in _tokenise(query):
            for service_id in self._index.get(token, set()):
                candidates[service_id] = candidates.get(service_id, 0) + 1

        scored: List[tuple[float, str]] = []
        if candidates:
            for service_id, count in candidates.items():
                service = services.get(service_id)
                if not service:
                    continue
                fuzzy = fuzz.partial_ratio(folded_query, fold(service.title))
                scored.append((count * 10 + fuzzy, service_id))
        else:
            for service in services.values():
                fuzzy = fuzz.partial_ratio(folded_query, fold(service.title))
                if fuzzy >= 60:
                    scored.append((float(fuzzy), service.id))

        scored.sort(key=lambda item: item[0], reverse=True)
        results: List[ServiceSummary] = []
        for score, service_id in scored:
            service = services[service_id]
            if wanted is not None and service.category != wanted:
                continue
            summary = ServiceSummary.from_service(service)
            results.append(summary.model_copy(update={"score": float(score)}))
            if len(results) >= limit:
                break
        return results
