"""Registry mapping account ids to their mail provider."""

from typing import Dict

from velo.utils.errors import ProviderNotRegisteredError
from velo.utils.logging import get_logger

from .ports import EmailProvider

logger = get_logger(__name__)


class ProviderRegistry:
    """Looks up the EmailProvider serving an account."""

    def __init__(self):
        self._providers: Dict[str, EmailProvider] = {}

    def register(self, account_id: str, provider: EmailProvider) -> None:
        self._providers[account_id] = provider
        logger.debug(f"Registered provider {type(provider).__name__} for {account_id}")

    def unregister(self, account_id: str) -> None:
        self._providers.pop(account_id, None)

    def get(self, account_id: str) -> EmailProvider:
        """Return the provider for an account.

        Raises:
            ProviderNotRegisteredError: If the account has no provider
        """
        try:
            return self._providers[account_id]
        except KeyError:
            raise ProviderNotRegisteredError(
                f"No provider registered for account {account_id}",
                details={"account_id": account_id},
            )

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._providers
