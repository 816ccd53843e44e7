"""Registry of completion providers and their health state.

Holds the ordered provider list, which one is primary, and how often each
has failed. One instance is shared by every dispatch in the process, so all
mutations go through a single lock.
"""

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Dict, List, Optional, Sequence

from foliorelay.domain.interfaces.completion_provider import CompletionProvider
from foliorelay.domain.models.common import NO_PROVIDER, ProviderName

logger = logging.getLogger(__name__)


@dataclass
class ProviderState:
    name: ProviderName
    configured: bool
    failure_count: int = 0
    is_primary: bool = False

    def as_dict(self) -> Dict[str, object]:
        return {
            "configured": self.configured,
            "failure_count": self.failure_count,
            "is_primary": self.is_primary,
        }


class ProviderRegistry:
    """Ordered providers plus their configured/primary/failure state."""

    def __init__(
        self,
        providers: Sequence[CompletionProvider],
        default_primary: Optional[str] = None,
    ):
        """Initializes the registry.

        Args:
            providers: Providers in declaration order. Names must be unique.
            default_primary: Preferred initial primary; ignored unless configured.
        """
        self._lock = Lock()
        self._providers: Dict[ProviderName, CompletionProvider] = {}
        self._states: Dict[ProviderName, ProviderState] = {}
        for provider in providers:
            if provider.name in self._states:
                raise ValueError(f"Duplicate provider name: {provider.name}")
            self._providers[provider.name] = provider
            self._states[provider.name] = ProviderState(name=provider.name, configured=provider.configured)

        initial = None
        preferred = self._states.get(ProviderName(default_primary)) if default_primary else None
        if preferred is not None and preferred.configured:
            initial = preferred.name
        elif default_primary:
            logger.warning(f"Default provider '{default_primary}' is not configured; using declaration order.")
        with self._lock:
            if initial is not None:
                self._states[initial].is_primary = True
            else:
                self._elect_first_configured()

        logger.info(
            f"ProviderRegistry initialized: providers={list(self._states)}, "
            f"primary='{self.current_primary()}'"
        )

    # --- Queries ---

    def status(self) -> Dict[str, Dict[str, object]]:
        """Returns a snapshot of every provider's state. Side-effect free."""
        with self._lock:
            return {name: state.as_dict() for name, state in self._states.items()}

    def current_primary(self) -> ProviderName:
        with self._lock:
            return self._primary_name() or NO_PROVIDER

    def get(self, name: str) -> Optional[CompletionProvider]:
        return self._providers.get(ProviderName(name))

    def names(self) -> List[ProviderName]:
        return list(self._states)

    def attempt_order(self) -> List[CompletionProvider]:
        """Current primary first, then the other configured providers in declaration order."""
        with self._lock:
            primary = self._primary_name()
            order = [primary] if primary else []
            order.extend(
                name for name, state in self._states.items()
                if state.configured and name != primary
            )
        return [self._providers[name] for name in order]

    # --- Mutations ---

    def mark_failure(self, name: str) -> None:
        """Increments the failure count for `name`. Unknown names are ignored."""
        with self._lock:
            state = self._states.get(ProviderName(name))
            if state is None:
                logger.debug(f"mark_failure ignored for unknown provider '{name}'")
                return
            state.failure_count += 1
            count = state.failure_count
        logger.info(f"Provider '{name}' failure recorded (total={count})")

    def set_primary(self, name: str) -> bool:
        """Makes `name` the primary provider if it is configured.

        Returns:
            True if the primary flag now sits on `name`, False otherwise (state unchanged).
        """
        with self._lock:
            state = self._states.get(ProviderName(name))
            if state is None or not state.configured:
                logger.warning(f"Cannot set primary to '{name}': unknown or unconfigured provider")
                return False
            for other in self._states.values():
                other.is_primary = False
            state.is_primary = True
        logger.info(f"Primary provider set to '{name}'")
        return True

    def set_configured(self, name: str, configured: bool) -> bool:
        """Marks a provider configured or unconfigured. Providers are never removed.

        If the primary becomes unconfigured, the flag moves to the first
        configured provider in declaration order, or to none.
        """
        with self._lock:
            state = self._states.get(ProviderName(name))
            if state is None:
                return False
            state.configured = configured
            if not configured and state.is_primary:
                state.is_primary = False
                self._elect_first_configured()
            elif configured and self._primary_name() is None:
                state.is_primary = True
        logger.info(f"Provider '{name}' marked {'configured' if configured else 'unconfigured'}")
        return True

    def reset_failures(self, name: Optional[str] = None) -> None:
        """Operator action: zero the failure count of one provider, or of all."""
        with self._lock:
            targets = self._states.values() if name is None else [
                s for n, s in self._states.items() if n == name
            ]
            for state in targets:
                state.failure_count = 0
        logger.info(f"Failure counts reset for {name or 'all providers'}")

    # --- Internal helpers (caller holds the lock) ---

    def _primary_name(self) -> Optional[ProviderName]:
        for name, state in self._states.items():
            if state.is_primary:
                return name
        return None

    def _elect_first_configured(self) -> None:
        for state in self._states.values():
            if state.configured:
                state.is_primary = True
                return
