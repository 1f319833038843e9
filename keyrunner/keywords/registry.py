"""
Keyword registry.

Keyword providers declare their keywords explicitly through a builder; the
registry canonicalizes names to upper case and resolves them at dispatch time.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from keyrunner.error_handling.exceptions import KeywordRegistrationError
from keyrunner.monitoring.logger import get_logger

logger = get_logger(__name__)

KeywordCallable = Callable[[Any], Any]


def canonical_name(name: str) -> str:
    return name.strip().upper()


@dataclass(frozen=True)
class KeywordEntry:
    """A registered keyword."""

    name: str
    implementation: KeywordCallable
    mandatory: bool = True
    description: str = ""
    provider: str = ""


class _NotFound:
    """Sentinel returned by KeywordRegistry.resolve() for unknown names."""

    _instance: Optional["_NotFound"] = None

    def __new__(cls) -> "_NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


class KeywordBuilder:
    """Collects the keywords one provider declares."""

    def __init__(self, provider_name: str) -> None:
        self.provider_name = provider_name
        self.entries: List[KeywordEntry] = []

    def add(
        self,
        name: str,
        implementation: KeywordCallable,
        mandatory: bool = True,
        description: str = "",
    ) -> "KeywordBuilder":
        """
        Declare a keyword.

        Args:
            name: Keyword name (case-insensitive)
            implementation: Callable taking the execution context
            mandatory: Whether a failure stops the test case
            description: Human-readable description

        Raises:
            KeywordRegistrationError: If the name is blank or the
                implementation is not callable
        """
        if not name or not name.strip():
            raise KeywordRegistrationError(
                "Keyword name must not be blank", provider=self.provider_name
            )
        if not callable(implementation):
            raise KeywordRegistrationError(
                f"Implementation of keyword {name} is not callable",
                provider=self.provider_name,
                keyword=name,
            )
        self.entries.append(
            KeywordEntry(
                name=canonical_name(name),
                implementation=implementation,
                mandatory=mandatory,
                description=description,
                provider=self.provider_name,
            )
        )
        return self


class KeywordProvider(ABC):
    """Base class for objects that contribute keywords."""

    @property
    def provider_name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def register_keywords(self, builder: KeywordBuilder) -> None:
        """Declare this provider's keywords on the builder."""
        pass


class KeywordRegistry:
    """Maps canonical keyword names to their implementations."""

    def __init__(self, providers: Optional[Iterable[KeywordProvider]] = None) -> None:
        self._keywords: Dict[str, KeywordEntry] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: KeywordProvider) -> int:
        """
        Register every keyword a provider declares.

        A name that is already registered is replaced by the new entry.

        Returns:
            Number of keywords the provider declared
        """
        builder = KeywordBuilder(provider.provider_name)
        provider.register_keywords(builder)

        for entry in builder.entries:
            existing = self._keywords.get(entry.name)
            if existing is not None:
                logger.warning(
                    f"Keyword {entry.name} from {existing.provider} replaced by {entry.provider}"
                )
            self._keywords[entry.name] = entry
            logger.debug(f"Registered keyword: {entry.name} (mandatory: {entry.mandatory})")

        logger.info(
            f"Registered {len(builder.entries)} keywords from {provider.provider_name}"
        )
        return len(builder.entries)

    def resolve(self, name: str) -> Union[KeywordEntry, _NotFound]:
        """Look a keyword up by name, case-insensitively."""
        if name is None:
            return NOT_FOUND
        return self._keywords.get(canonical_name(name), NOT_FOUND)

    def has(self, name: str) -> bool:
        return self.resolve(name) is not NOT_FOUND

    def count(self) -> int:
        return len(self._keywords)

    def names(self) -> List[str]:
        return sorted(self._keywords)

    def entries(self) -> List[KeywordEntry]:
        return [self._keywords[name] for name in self.names()]
