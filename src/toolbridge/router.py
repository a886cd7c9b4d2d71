"""Static model routing.

Maps each configured model identifier to the backend that serves it.
Built once at startup from three parallel lists (model names, base URLs,
credentials); identifiers that are absent or unknown resolve to the
configured default model.

Typical usage::

    from toolbridge.router import ModelRouter

    router = ModelRouter.from_lists(
        ["gpt-4o", "qwen"],
        ["https://api.openai.com", "http://localhost:8000"],
        ["sk-...", "local"],
    )
    entry = router.resolve("claude-sonnet-4-5")  # -> gpt-4o entry
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from toolbridge.errors import ConfigurationError
from toolbridge.types import RoutingEntry

logger = logging.getLogger(__name__)


class ModelRouter:
    """Resolves model identifiers to routing entries.

    Args:
        entries: Routing entries keyed by model id.  Must not be empty.
        default_model: Model id used for absent or unknown identifiers.
            Defaults to the first entry.

    Raises:
        ConfigurationError: If no entries are given or the default model
            is not one of them.
    """

    def __init__(self, entries: dict[str, RoutingEntry], default_model: str | None = None) -> None:
        if not entries:
            raise ConfigurationError("At least one model must be configured (MODELS).")
        default = default_model or next(iter(entries))
        if default not in entries:
            raise ConfigurationError(
                f"Default model '{default}' is not configured. "
                f"Known models: {', '.join(entries)}."
            )
        self._entries = dict(entries)
        self._default_model = default

    @classmethod
    def from_lists(
        cls,
        models: Sequence[str],
        base_urls: Sequence[str],
        keys: Sequence[str],
        default_model: str | None = None,
    ) -> ModelRouter:
        """Build a router from positionally matched configuration lists.

        Args:
            models: Model identifiers.
            base_urls: Backend base URLs, one per model.
            keys: Backend credentials, one per model.
            default_model: Fallback model id.  Defaults to ``models[0]``.

        Returns:
            A populated ``ModelRouter``.

        Raises:
            ConfigurationError: If the three lists differ in length.
        """
        if not (len(models) == len(base_urls) == len(keys)):
            raise ConfigurationError(
                "MODELS, OPENAI_BASE_URLS, OPENAI_KEYS must have the same length "
                f"(got {len(models)}, {len(base_urls)}, {len(keys)})."
            )
        entries: dict[str, RoutingEntry] = {}
        for model, base_url, key in zip(models, base_urls, keys, strict=True):
            model = model.strip()
            entries[model] = RoutingEntry(
                model_id=model,
                base_url=base_url.strip().rstrip("/"),
                credential=key.strip(),
            )
        return cls(entries, default_model.strip() if default_model else None)

    @property
    def default_model(self) -> str:
        return self._default_model

    @property
    def default_entry(self) -> RoutingEntry:
        """Routing entry of the default model (used for JSON repair)."""
        return self._entries[self._default_model]

    @property
    def entries(self) -> list[RoutingEntry]:
        return list(self._entries.values())

    def resolve_model(self, model_id: str | None) -> str:
        """Return *model_id* if it is routed, otherwise the default model."""
        if model_id and model_id in self._entries:
            return model_id
        if model_id:
            logger.info("Model '%s' not routed, using default '%s'", model_id, self._default_model)
        return self._default_model

    def resolve(self, model_id: str | None) -> RoutingEntry:
        """Resolve a model identifier to its routing entry.

        Args:
            model_id: Requested model, possibly absent or unknown.

        Returns:
            The entry for *model_id*, or the default model's entry.
        """
        return self._entries[self.resolve_model(model_id)]
